"""Closed-form linear and quadratic OLS per side of the boundary."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

import numpy as np

from rdmorph.models.effects import paper_effect
from rdmorph.preprocessing.records import ScatterPoint
from rdmorph.utils.config import CURVE_STEP, FIT_EPSILON, PAPER_COEFFICIENTS
from rdmorph.utils.types import Outcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinearFit:
    intercept: float
    slope: float

    def predict(self, x: float) -> float:
        return self.intercept + self.slope * x


@dataclass(frozen=True)
class QuadraticFit:
    intercept: float
    slope: float
    quadratic: float

    def predict(self, x: float) -> float:
        return self.intercept + self.slope * x + self.quadratic * x * x


@dataclass(frozen=True)
class FittedLine:
    """Sampled fit curve on one side of the boundary."""

    kind: str  # "linear" | "quadratic"
    points: tuple[tuple[float, float], ...]

    def __len__(self) -> int:
        return len(self.points)

    @property
    def xs(self) -> np.ndarray:
        return np.array([p[0] for p in self.points], dtype=float)

    @property
    def ys(self) -> np.ndarray:
        return np.array([p[1] for p in self.points], dtype=float)

    def y_at(self, x: float) -> float | None:
        for px, py in self.points:
            if px == x:
                return py
        return None


@dataclass(frozen=True)
class TreatmentEffect:
    """Naive and paper discontinuities plus the curves drawn for them."""

    naive: float
    paper: float
    inside_linear: FittedLine
    outside_linear: FittedLine
    inside_quadratic: FittedLine
    outside_quadratic: FittedLine

    def lines(self, quadratic: bool) -> tuple[FittedLine, FittedLine]:
        """``(inside, outside)`` curves of the requested kind."""
        if quadratic:
            return self.inside_quadratic, self.outside_quadratic
        return self.inside_linear, self.outside_linear


def _as_arrays(points: Iterable) -> tuple[np.ndarray, np.ndarray]:
    pairs = [(p.x, p.y) if isinstance(p, ScatterPoint) else tuple(p) for p in points]
    if not pairs:
        return np.empty(0), np.empty(0)
    arr = np.asarray(pairs, dtype=float)
    return arr[:, 0], arr[:, 1]


# ── Fits ────────────────────────────────────────────────────────────────────
def fit_linear(points: Iterable) -> LinearFit:
    """y = a + b·x via the normal equations.

    With fewer than two points or no spread in x the fit degrades to a flat
    line through the mean of y (0 for an empty set).
    """
    x, y = _as_arrays(points)
    n = len(x)
    if n == 0:
        return LinearFit(intercept=0.0, slope=0.0)

    sum_x, sum_y = x.sum(), y.sum()
    sum_xy, sum_x2 = (x * y).sum(), (x * x).sum()
    denom = n * sum_x2 - sum_x * sum_x

    if n < 2 or np.unique(x).size < 2 or abs(denom) < FIT_EPSILON:
        logger.debug("Degenerate linear fit (n=%d), using mean of y", n)
        return LinearFit(intercept=float(sum_y / n), slope=0.0)

    slope = (n * sum_xy - sum_x * sum_y) / denom
    intercept = (sum_y - slope * sum_x) / n
    return LinearFit(intercept=float(intercept), slope=float(slope))


def fit_quadratic(points: Iterable) -> QuadraticFit:
    """y = a + b·x + c·x² by Cramer's rule on the 3×3 normal equations.

    Falls back to the linear fit (c = 0) with fewer than three points, fewer
    than three distinct x values, or a near-singular system.
    """
    x, y = _as_arrays(points)
    n = len(x)
    if n < 3 or np.unique(x).size < 3:
        linear = fit_linear(zip(x, y))
        return QuadraticFit(intercept=linear.intercept, slope=linear.slope, quadratic=0.0)

    s = [float((x**k).sum()) for k in range(5)]  # Σx⁰ .. Σx⁴
    moments = np.array(
        [
            [s[0], s[1], s[2]],
            [s[1], s[2], s[3]],
            [s[2], s[3], s[4]],
        ]
    )
    rhs = np.array([y.sum(), (x * y).sum(), (x * x * y).sum()])

    det = np.linalg.det(moments)
    if abs(det) < FIT_EPSILON:
        logger.debug("Singular quadratic system (det=%g), using linear fit", det)
        linear = fit_linear(zip(x, y))
        return QuadraticFit(intercept=linear.intercept, slope=linear.slope, quadratic=0.0)

    coefs = []
    for col in range(3):
        replaced = moments.copy()
        replaced[:, col] = rhs
        coefs.append(float(np.linalg.det(replaced) / det))
    return QuadraticFit(intercept=coefs[0], slope=coefs[1], quadratic=coefs[2])


# ── Curves & effect ─────────────────────────────────────────────────────────
def _grid(start: float, stop: float, step: float = CURVE_STEP) -> np.ndarray:
    count = int(math.floor((stop - start) / step + 1e-9)) + 1
    return start + step * np.arange(max(count, 1))


def _sample(kind: str, xs: np.ndarray, fn) -> FittedLine:
    return FittedLine(kind=kind, points=tuple((float(v), float(fn(v))) for v in xs))


def compute_effect(
    points: Sequence[ScatterPoint],
    outcome: Outcome | str,
    coefficients: Mapping[str, float] = PAPER_COEFFICIENTS,
) -> TreatmentEffect:
    """Naive and paper discontinuities at x = 0 with their display curves.

    The naive estimate is the gap between the per-side linear intercepts.
    The quadratic curves keep their fitted slope and curvature but are
    anchored at the sample grand mean (outside) and grand mean plus the
    paper effect (inside), so the drawn jump equals the paper estimate.
    Linear and quadratic curves of a side share one x grid.
    """
    inside = [p for p in points if p.is_inside]
    outside = [p for p in points if not p.is_inside]

    inside_linear = fit_linear(inside)
    outside_linear = fit_linear(outside)
    inside_poly = fit_quadratic(inside)
    outside_poly = fit_quadratic(outside)

    max_inside = max([p.x for p in inside] + [0.0])
    min_outside = min([p.x for p in outside] + [0.0])

    paper = paper_effect(outcome, coefficients)
    naive = inside_linear.intercept - outside_linear.intercept

    ys = [p.y for p in points if p.y is not None]
    grand_mean = float(np.mean(ys)) if ys else 0.0
    inside_anchor = QuadraticFit(grand_mean + paper, inside_poly.slope, inside_poly.quadratic)
    outside_anchor = QuadraticFit(grand_mean, outside_poly.slope, outside_poly.quadratic)

    inside_xs = _grid(0.0, float(math.ceil(max_inside)))
    outside_xs = _grid(float(math.floor(min_outside)), 0.0)

    return TreatmentEffect(
        naive=float(naive),
        paper=float(paper),
        inside_linear=_sample("linear", inside_xs, inside_linear.predict),
        outside_linear=_sample("linear", outside_xs, outside_linear.predict),
        inside_quadratic=_sample("quadratic", inside_xs, inside_anchor.predict),
        outside_quadratic=_sample("quadratic", outside_xs, outside_anchor.predict),
    )
