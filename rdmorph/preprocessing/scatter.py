"""Place merged units into RD scatter space."""

from __future__ import annotations

from typing import Iterable, Optional

from rdmorph.preprocessing.records import MergedUnit, ScatterPoint
from rdmorph.utils.config import PERCENT_OUTCOMES
from rdmorph.utils.types import Outcome


def flip_distance(distance: float, is_inside: bool) -> float:
    """Inside units on the positive half, outside units on the negative half."""
    return abs(distance) if is_inside else -abs(distance)


def scale_outcome(value: float, outcome: Outcome | str) -> float:
    """Proportion outcomes are shown as percentages."""
    return value * 100 if Outcome(outcome).value in PERCENT_OUTCOMES else value


def _positive_scaled(unit: MergedUnit, outcome: Outcome) -> Optional[float]:
    value = unit.outcome(outcome)
    if value is None or not value > 0:
        return None
    return scale_outcome(value, outcome)


def _point(unit: MergedUnit, y: Optional[float]) -> ScatterPoint:
    return ScatterPoint(
        unit=unit,
        x=flip_distance(unit.distance, unit.is_inside),
        y=y,
        consumption_y=_positive_scaled(unit, Outcome.CONSUMPTION),
        stunting_y=_positive_scaled(unit, Outcome.STUNTING),
        roads_y=_positive_scaled(unit, Outcome.ROADS),
    )


def project(units: Iterable[MergedUnit], outcome: Outcome | str) -> list[ScatterPoint]:
    """Scatter points for one outcome.

    A unit is kept only when its distance is known and the selected outcome
    is known and strictly positive.
    """
    outcome = Outcome(outcome)
    points = []
    for unit in units:
        if unit.distance is None:
            continue
        y = _positive_scaled(unit, outcome)
        if y is None:
            continue
        points.append(_point(unit, y))
    return points


def project_all(units: Iterable[MergedUnit]) -> list[ScatterPoint]:
    """Scatter points for every unit with at least one usable outcome.

    The point set does not depend on the selected outcome, so a renderer can
    move the same keyed points between outcomes.
    """
    points = []
    for unit in units:
        if unit.distance is None:
            continue
        point = _point(unit, None)
        if all(point.outcome_y(o) is None for o in Outcome):
            continue
        points.append(point)
    return points


def outcome_y(point: ScatterPoint, outcome: Outcome | str) -> Optional[float]:
    return point.outcome_y(outcome)
