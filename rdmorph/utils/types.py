"""Shared enums and small aliases."""

from __future__ import annotations

from enum import Enum

Point = tuple[float, float]


class Outcome(str, Enum):
    CONSUMPTION = "consumption"
    STUNTING = "stunting"
    ROADS = "roads"


class Phase(str, Enum):
    """Reveal stage of the scatter plot, in display order."""

    DOTS = "dots"
    OLS = "ols"
    NAIVE_EFFECT = "naive-effect"
    EFFECT = "effect"


class ZoomLevel(str, Enum):
    WIDE = "wide"
    ZOOMED = "zoomed"

    @property
    def target(self) -> float:
        return 1.0 if self is ZoomLevel.ZOOMED else 0.0


class HighlightMode(str, Enum):
    NONE = "none"
    BOUNDARY = "boundary"
    TREATED_ONLY = "treated-only"
    UNTREATED_ONLY = "untreated-only"
