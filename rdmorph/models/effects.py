"""Paper effect lookup and display formatting."""

from __future__ import annotations

import math
from typing import Mapping

from rdmorph.utils.config import LEVEL_UNITS, LOG_OUTCOMES, PAPER_COEFFICIENTS, PERCENT_OUTCOMES
from rdmorph.utils.types import Outcome


def paper_effect(
    outcome: Outcome | str,
    coefficients: Mapping[str, float] = PAPER_COEFFICIENTS,
) -> float:
    """Externally supplied coefficient in the outcome's display units."""
    key = Outcome(outcome).value
    value = float(coefficients[key])
    return value * 100 if key in PERCENT_OUTCOMES else value


def _signed(value: float, digits: int) -> str:
    text = f"{value:.{digits}f}"
    return f"+{text}" if value > 0 else text


def format_effect(effect: float, outcome: Outcome | str) -> str:
    """Human label for a discontinuity already in display units.

    Log outcomes are shown as a percent change, proportions as percentage
    points, everything else as a level difference.
    """
    key = Outcome(outcome).value
    if key in LOG_OUTCOMES:
        return f"{_signed((math.exp(effect) - 1) * 100, 0)}%"
    if key in PERCENT_OUTCOMES:
        return f"{_signed(effect, 1)}pp"
    unit = LEVEL_UNITS.get(key, "")
    return f"{_signed(effect, 0)} {unit}".rstrip()
