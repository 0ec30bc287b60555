"""Immutable per-unit records.

Geometry and outcome records are loaded once and never modified; merged
units and scatter points are derived from them and are equally read-only.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from rdmorph.utils.types import Outcome


@dataclass(frozen=True)
class GeometryRecord:
    """One district polygon with its treatment flag.

    ``polygon`` holds ``(lat, lon)`` pairs.
    """

    unit_id: int
    treated: int
    polygon: tuple[tuple[float, float], ...]


@dataclass(frozen=True)
class OutcomeRecord:
    """Boundary distance and outcome magnitudes for one district."""

    unit_id: int
    distance: Optional[float]
    is_inside: bool
    consumption: Optional[float] = None
    stunting: Optional[float] = None
    roads: Optional[float] = None


@dataclass(frozen=True)
class MergedUnit:
    unit_id: int
    treated: int
    polygon: tuple[tuple[float, float], ...]
    centroid_lon: Optional[float]
    centroid_lat: Optional[float]
    distance: Optional[float]
    is_inside: bool
    consumption: Optional[float] = None
    stunting: Optional[float] = None
    roads: Optional[float] = None

    def outcome(self, outcome: Outcome | str) -> Optional[float]:
        return getattr(self, Outcome(outcome).value)

    @property
    def centroid(self) -> Optional[tuple[float, float]]:
        """``(lon, lat)`` or None when the polygon had no vertices."""
        if self.centroid_lon is None or self.centroid_lat is None:
            return None
        return (self.centroid_lon, self.centroid_lat)


@dataclass(frozen=True)
class ScatterPoint:
    """A merged unit placed in RD plot space.

    ``x`` is the boundary distance signed so that inside units sit on the
    positive half. ``y`` is the selected outcome (scaled for display), or
    None for points built for cross-outcome transitions.
    """

    unit: MergedUnit
    x: float
    y: Optional[float]
    consumption_y: Optional[float]
    stunting_y: Optional[float]
    roads_y: Optional[float]

    @property
    def unit_id(self) -> int:
        return self.unit.unit_id

    @property
    def is_inside(self) -> bool:
        return self.unit.is_inside

    def outcome_y(self, outcome: Outcome | str) -> Optional[float]:
        return getattr(self, f"{Outcome(outcome).value}_y")
