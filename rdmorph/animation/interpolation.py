"""Projection blending, map → scatter position blending and plot scales."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import numpy as np

from rdmorph.models.regression import FittedLine
from rdmorph.preprocessing.records import ScatterPoint
from rdmorph.utils.config import MIN_MORPH_RADIUS, PERCENT_OUTCOMES, STUNTING_Y_DOMAIN, X_DOMAIN, Y_PADDING
from rdmorph.utils.types import Outcome, Point


def ease_in_out_quad(t: float) -> float:
    return 2 * t * t if t < 0.5 else 1 - ((-2 * t + 2) ** 2) / 2


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def _clamp01(t: float) -> float:
    return min(max(t, 0.0), 1.0)


# ── Map projection ──────────────────────────────────────────────────────────
def _mercator(lon: float, lat: float) -> tuple[float, float]:
    return math.radians(lon), math.log(math.tan(math.pi / 4 + math.radians(lat) / 2))


@dataclass(frozen=True)
class ProjectionView:
    """Mercator view: ``center`` (lon, lat) lands on ``translate`` pixels."""

    center: Point
    scale: float
    translate: Point

    def project(self, lon: Optional[float], lat: Optional[float]) -> Optional[Point]:
        """Pixel position of a coordinate, or None if it cannot be projected."""
        if lon is None or lat is None:
            return None
        if not (math.isfinite(lon) and math.isfinite(lat)) or abs(lat) >= 90:
            return None
        cx, cy = _mercator(*self.center)
        x, y = _mercator(lon, lat)
        return (
            self.translate[0] + self.scale * (x - cx),
            self.translate[1] - self.scale * (y - cy),
        )

    @classmethod
    def fit(cls, coords: Iterable[Point], width: float, height: float) -> "ProjectionView":
        """View that fits every ``(lon, lat)`` in ``coords`` into the box."""
        raw = np.array(
            [_mercator(lon, lat) for lon, lat in coords
             if math.isfinite(lon) and math.isfinite(lat) and abs(lat) < 90],
            dtype=float,
        ).reshape(-1, 2)
        translate = (width / 2, height / 2)
        if len(raw) == 0:
            return cls(center=(0.0, 0.0), scale=1.0, translate=translate)

        (x0, y0), (x1, y1) = raw.min(axis=0), raw.max(axis=0)
        candidates = [size / span for size, span in ((width, x1 - x0), (height, y1 - y0)) if span > 0]
        scale = min(candidates) if candidates else 1.0
        center = (
            math.degrees((x0 + x1) / 2),
            math.degrees(2 * math.atan(math.exp((y0 + y1) / 2)) - math.pi / 2),
        )
        return cls(center=center, scale=scale, translate=translate)


def blend_projection(view_a: ProjectionView, view_b: ProjectionView, z: float) -> ProjectionView:
    """Interpolate center, scale and translate independently (z=0 → a, z=1 → b)."""
    z = _clamp01(z)
    return ProjectionView(
        center=(_lerp(view_a.center[0], view_b.center[0], z), _lerp(view_a.center[1], view_b.center[1], z)),
        scale=_lerp(view_a.scale, view_b.scale, z),
        translate=(
            _lerp(view_a.translate[0], view_b.translate[0], z),
            _lerp(view_a.translate[1], view_b.translate[1], z),
        ),
    )


# ── Plot space ──────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class PlotBounds:
    x_min: float
    x_max: float
    y_min: float
    y_max: float

    def clamp(self, point: Point) -> Point:
        return (
            min(max(point[0], self.x_min), self.x_max),
            min(max(point[1], self.y_min), self.y_max),
        )


def blend_position(
    map_point: Optional[Point],
    scatter_point: Point,
    t: float,
    bounds: Optional[PlotBounds] = None,
) -> Point:
    """Move a unit from its map position toward its scatter position.

    At ``t >= 1`` the scatter position is returned unchanged. Before that the
    blended position is kept inside ``bounds`` so far-off units cannot leave
    the plot while they travel. A unit without a map position starts at its
    scatter position.
    """
    if t >= 1:
        return scatter_point
    if map_point is None:
        map_point = scatter_point
    t = max(t, 0.0)
    point = (_lerp(map_point[0], scatter_point[0], t), _lerp(map_point[1], scatter_point[1], t))
    return bounds.clamp(point) if bounds is not None else point


def morph_polygon(
    vertices: Sequence[Point],
    centroid: Point,
    target: Point,
    eased: float,
) -> Optional[list[Point]]:
    """Shrink and round a projected district toward a dot at ``target``.

    The outline moves with its centroid, is pulled toward a circle of
    shrinking radius, and collapses at ``eased = 1``. Returns None when the
    district has fewer than three projected vertices.
    """
    if len(vertices) < 3:
        return None
    pts = np.asarray(vertices, dtype=float)
    c = np.asarray(centroid, dtype=float)
    shrink = 1 - eased

    center = c + (np.asarray(target, dtype=float) - c) * eased
    offsets = pts - c
    radius = np.hypot(offsets[:, 0], offsets[:, 1]).mean()
    target_radius = MIN_MORPH_RADIUS + (radius - MIN_MORPH_RADIUS) * shrink

    angles = np.arctan2(offsets[:, 1], offsets[:, 0])
    circle = np.column_stack([np.cos(angles), np.sin(angles)]) * target_radius
    blended = offsets * (1 - eased) * shrink + circle * eased * shrink
    return [(float(x), float(y)) for x, y in center + blended]


def blend_line(line_a: FittedLine, line_b: FittedLine, t: float) -> FittedLine:
    """Point-by-point interpolation between two curves on the same grid.

    Curves with different sample counts cannot be paired, so the result
    snaps to ``line_b``.
    """
    if len(line_a) != len(line_b) or len(line_a) == 0:
        return line_b
    t = _clamp01(t)
    points = tuple(
        (_lerp(ax, bx, t), _lerp(ay, by, t))
        for (ax, ay), (bx, by) in zip(line_a.points, line_b.points)
    )
    return FittedLine(kind=line_b.kind if t >= 1 else line_a.kind, points=points)


# ── Scales ──────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class LinearScale:
    domain: tuple[float, float]
    range: tuple[float, float]

    def __call__(self, value: float) -> float:
        d0, d1 = self.domain
        r0, r1 = self.range
        if d1 == d0:
            return (r0 + r1) / 2
        return r0 + (value - d0) / (d1 - d0) * (r1 - r0)


def x_scale(inner_width: float) -> LinearScale:
    return LinearScale(domain=X_DOMAIN, range=(0.0, inner_width))


def y_scales(all_points: Sequence[ScatterPoint], inner_height: float) -> dict[str, LinearScale]:
    """One vertical scale per outcome, keyed by outcome value.

    Percentage outcomes use a fixed 0–100 domain; the others pad the
    observed range by 5 % on each end.
    """
    scales = {}
    for outcome in Outcome:
        if outcome.value in PERCENT_OUTCOMES:
            domain = STUNTING_Y_DOMAIN
        else:
            values = [v for v in (p.outcome_y(outcome) for p in all_points) if v is not None]
            if values:
                domain = (
                    float(math.floor(min(values) * Y_PADDING[0])),
                    float(math.ceil(max(values) * Y_PADDING[1])),
                )
            else:
                domain = (0.0, 1.0)
        scales[outcome.value] = LinearScale(domain=domain, range=(inner_height, 0.0))
    return scales
