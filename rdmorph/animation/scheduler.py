"""Progress-region × phase state machine that builds per-frame layer descriptors.

The scheduler holds no timers and no mutable history. Each call takes the
current control state plus an explicit :class:`TransitionContext` describing
what was shown last, and returns a :class:`Frame` carrying the next context.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Sequence

from rdmorph.animation.interpolation import (
    LinearScale,
    PlotBounds,
    ProjectionView,
    blend_position,
    blend_projection,
    ease_in_out_quad,
    morph_polygon,
    x_scale,
    y_scales,
)
from rdmorph.models.effects import format_effect
from rdmorph.models.regression import FittedLine, TreatmentEffect, compute_effect
from rdmorph.preprocessing.records import MergedUnit, ScatterPoint
from rdmorph.preprocessing.scatter import project, project_all
from rdmorph.utils.config import (
    AXIS_FADE_START,
    BOUNDARY_THRESHOLD,
    DEFAULT_DIMENSIONS,
    DEFAULT_MARGIN,
    DIMMED_FACTOR,
    DISTRICT_OPACITY,
    DOT_FADE_END,
    DOT_FADE_START,
    DOT_OPACITY,
    DOT_RADIUS,
    LABEL_FADE_START,
    MAP_FADE_OPACITY,
    MAP_REGION_END,
    MAP_TITLE,
    MORPH_END,
    MORPH_START,
    OUTCOME_LABELS,
    PAPER_COEFFICIENTS,
    VERY_CLOSE_THRESHOLD,
    WIDE_ZOOM_FACTOR,
)
from rdmorph.utils.types import HighlightMode, Outcome, Phase, Point, ZoomLevel

logger = logging.getLogger(__name__)

TREATED = "treated"
UNTREATED = "untreated"


class Region(str, Enum):
    MAP = "map"
    MORPH = "morph"
    SCATTER = "scatter"


class TransitionKind(str, Enum):
    """What changed since the previous frame.

    PROGRESS covers every update that is not a pinned-at-scatter outcome or
    phase switch. Whether persistent elements survive is decided by
    :func:`should_preserve`, which also looks at the previous frame.
    """

    PROGRESS = "progress"
    OUTCOME = "outcome"
    PHASE = "phase"


class Layer(str, Enum):
    POINTS = "points"
    FIT_LINES = "fit_lines"
    EFFECT = "effect"


_VISIBLE = {
    Phase.DOTS: frozenset({Layer.POINTS}),
    Phase.OLS: frozenset({Layer.POINTS, Layer.FIT_LINES}),
    Phase.NAIVE_EFFECT: frozenset({Layer.POINTS, Layer.FIT_LINES, Layer.EFFECT}),
    Phase.EFFECT: frozenset({Layer.POINTS, Layer.FIT_LINES, Layer.EFFECT}),
}


def visible_layers(phase: Optional[Phase | str]) -> frozenset[Layer]:
    if phase is None:
        return frozenset()
    return _VISIBLE[Phase(phase)]


def uses_quadratic(phase: Phase | str) -> bool:
    return Phase(phase) is Phase.EFFECT


def region_for(progress: float) -> Region:
    if progress < MAP_REGION_END:
        return Region.MAP
    if progress < 1:
        return Region.MORPH
    return Region.SCATTER


def morph_progress(progress: float) -> float:
    """Re-normalise overall progress to the district → dot morph (0..1)."""
    t = (progress - MORPH_START) / (MORPH_END - MORPH_START)
    return min(max(t, 0.0), 1.0)


# ── Control & transition state ──────────────────────────────────────────────
@dataclass(frozen=True)
class ControlState:
    """Externally supplied control tuple for one update."""

    progress: float
    outcome: Outcome = Outcome.CONSUMPTION
    phase: Phase = Phase.DOTS
    show_boundaries: bool = True
    zoom_level: ZoomLevel = ZoomLevel.WIDE
    highlight_mode: HighlightMode = HighlightMode.NONE

    def __post_init__(self) -> None:
        object.__setattr__(self, "outcome", Outcome(self.outcome))
        object.__setattr__(self, "phase", Phase(self.phase))
        object.__setattr__(self, "zoom_level", ZoomLevel(self.zoom_level))
        object.__setattr__(self, "highlight_mode", HighlightMode(self.highlight_mode))


@dataclass(frozen=True)
class TransitionContext:
    """What the previous frame showed (None and False before the first)."""

    previous_phase: Optional[Phase] = None
    previous_outcome: Optional[Outcome] = None
    previous_at_scatter: bool = False

    def advance(self, control: ControlState) -> "TransitionContext":
        """Context for the frame after ``control``.

        The outcome is always recorded; the phase only once the scatter plot
        is fully shown, since phases are invisible before that.
        """
        phase = control.phase if control.progress >= 1 else self.previous_phase
        return TransitionContext(
            previous_phase=phase,
            previous_outcome=control.outcome,
            previous_at_scatter=control.progress >= 1,
        )


def classify_transition(context: TransitionContext, control: ControlState) -> TransitionKind:
    if control.progress >= 1:
        if context.previous_outcome is not None and context.previous_outcome != control.outcome:
            return TransitionKind.OUTCOME
        if context.previous_phase is not None and context.previous_phase != control.phase:
            return TransitionKind.PHASE
    return TransitionKind.PROGRESS


def should_preserve(context: TransitionContext, control: ControlState) -> bool:
    """True when persistent layers must be updated in place, not recreated.

    That holds for an outcome or phase switch, and for every frame that
    follows a full-scatter frame while progress stays at 1.
    """
    if control.progress >= 1 and context.previous_at_scatter:
        return True
    return classify_transition(context, control) is not TransitionKind.PROGRESS


def is_highlighted(unit: MergedUnit, mode: HighlightMode) -> bool:
    if mode is HighlightMode.TREATED_ONLY:
        return unit.treated == 1
    if mode is HighlightMode.UNTREATED_ONLY:
        return unit.treated == 0
    if mode is HighlightMode.BOUNDARY:
        return unit.distance is not None and abs(unit.distance) <= BOUNDARY_THRESHOLD
    return False


def is_very_close(unit: MergedUnit) -> bool:
    return unit.distance is not None and abs(unit.distance) <= VERY_CLOSE_THRESHOLD


# ── Layer descriptors ───────────────────────────────────────────────────────
@dataclass(frozen=True)
class DistrictShape:
    key: int
    layer: str  # "district" | "fading-district" | "morphing-district"
    vertices: tuple[Point, ...]
    category: str
    opacity: float
    stroke_opacity: float = 1.0
    stroke_width: float = 1.0
    highlighted: bool = False


@dataclass(frozen=True)
class PointMarker:
    key: int
    x: float
    y: float
    radius: float
    opacity: float
    category: str
    interactive: bool = True


@dataclass(frozen=True)
class CurveLayer:
    key: str  # "inside-line" | "outside-line"
    line: FittedLine
    pixels: tuple[Point, ...]
    animate_in: bool = False


@dataclass(frozen=True)
class EffectAnnotation:
    x: float
    y1: float
    y2: float
    label: str
    label_x: float
    label_y: float
    estimate: str  # "naive" | "paper"
    value: float
    animate_in: bool = False


@dataclass(frozen=True)
class PlotChrome:
    background_opacity: float = 0.0
    label_opacity: float = 0.0
    axis_opacity: float = 0.0
    basemap_opacity: float = 0.0


@dataclass(frozen=True)
class Frame:
    region: Region
    progress: float
    morph_t: float
    title: str
    transition: TransitionKind
    preserve_elements: bool
    context: TransitionContext
    chrome: PlotChrome = field(default_factory=PlotChrome)
    districts: tuple[DistrictShape, ...] = ()
    points: tuple[PointMarker, ...] = ()
    curves: tuple[CurveLayer, ...] = ()
    effect: Optional[EffectAnnotation] = None

    @property
    def point_keys(self) -> list[int]:
        return [p.key for p in self.points]

    @property
    def curve_keys(self) -> list[str]:
        return [c.key for c in self.curves]


# ── Scheduler ───────────────────────────────────────────────────────────────
class PhaseScheduler:
    """Decide which layers are active for a control state and describe them.

    Parameters
    ----------
    units : sequence of MergedUnit
        Loaded once; point sets, scales and fits are derived lazily per
        outcome and cached.
    dimensions, margin : mapping
        Plot size in pixels; all descriptor coordinates are relative to the
        inner (margin-free) area.
    coefficients : mapping
        Paper coefficient per outcome.
    wide_outline : sequence of (lon, lat) or None
        Outline of the wider context shown at zoom 0. Without it the wide
        view is the study region zoomed out by ``WIDE_ZOOM_FACTOR``.
    """

    def __init__(
        self,
        units: Sequence[MergedUnit],
        dimensions: Mapping[str, float] = DEFAULT_DIMENSIONS,
        margin: Mapping[str, float] = DEFAULT_MARGIN,
        coefficients: Mapping[str, float] = PAPER_COEFFICIENTS,
        wide_outline: Optional[Sequence[Point]] = None,
    ) -> None:
        self.units = list(units)
        self.coefficients = dict(coefficients)
        self.inner_width = dimensions["width"] - margin["left"] - margin["right"]
        self.inner_height = dimensions["height"] - margin["top"] - margin["bottom"]
        self.bounds = PlotBounds(0.0, self.inner_width, 0.0, self.inner_height)

        coords = [(lon, lat) for u in self.units for lat, lon in u.polygon]
        self.zoomed_view = ProjectionView.fit(coords, self.inner_width, self.inner_height)
        if wide_outline is not None:
            self.wide_view = ProjectionView.fit(wide_outline, self.inner_width, self.inner_height)
        else:
            self.wide_view = ProjectionView(
                center=self.zoomed_view.center,
                scale=self.zoomed_view.scale / WIDE_ZOOM_FACTOR,
                translate=self.zoomed_view.translate,
            )

        self.all_points = project_all(self.units)
        self.x_scale = x_scale(self.inner_width)
        self.y_scales = y_scales(self.all_points, self.inner_height)
        self._points: dict[str, list[ScatterPoint]] = {}
        self._effects: dict[str, TreatmentEffect] = {}

    # ── Cached derivations ──────────────────────────────────────────────────
    def points_for(self, outcome: Outcome | str) -> list[ScatterPoint]:
        key = Outcome(outcome).value
        if key not in self._points:
            self._points[key] = project(self.units, key)
        return self._points[key]

    def effect_for(self, outcome: Outcome | str) -> TreatmentEffect:
        key = Outcome(outcome).value
        if key not in self._effects:
            self._effects[key] = compute_effect(self.points_for(key), key, self.coefficients)
        return self._effects[key]

    def projection(self, zoom: float) -> ProjectionView:
        return blend_projection(self.wide_view, self.zoomed_view, zoom)

    # ── Entry point ─────────────────────────────────────────────────────────
    def schedule(
        self,
        control: ControlState,
        context: TransitionContext = TransitionContext(),
        zoom: Optional[float] = None,
        border_opacity: Optional[float] = None,
    ) -> Frame:
        """Build the frame for ``control`` given what the last frame showed.

        ``zoom`` and ``border_opacity`` are the animated values; when omitted
        the control state's targets are used directly.
        """
        if zoom is None:
            zoom = control.zoom_level.target
        if border_opacity is None:
            border_opacity = 1.0 if control.show_boundaries else 0.0

        progress = min(max(control.progress, 0.0), 1.0)
        transition = classify_transition(context, control)
        preserve = should_preserve(context, control)
        region = region_for(progress)
        morph_t = morph_progress(progress)
        outcome = control.outcome
        projection = self.projection(zoom)
        y_scale = self.y_scales[outcome.value]

        districts: tuple[DistrictShape, ...] = ()
        points: tuple[PointMarker, ...] = ()
        if region is Region.MAP:
            districts = self._map_districts(projection, progress, zoom, border_opacity, control.highlight_mode)
        elif region is Region.MORPH:
            if morph_t < 1:
                districts = self._morph_districts(projection, outcome, morph_t, y_scale)
            points = self._morphing_points(projection, outcome, morph_t, y_scale)
        else:
            points = self._scatter_points(outcome, y_scale)

        curves: tuple[CurveLayer, ...] = ()
        effect = None
        if region is Region.SCATTER:
            curves, effect = self._analysis_layers(control, context, y_scale)

        if transition is not TransitionKind.PROGRESS:
            logger.debug("%s transition at full scatter, preserving elements", transition.value)

        return Frame(
            region=region,
            progress=progress,
            morph_t=morph_t,
            title=MAP_TITLE if progress < MAP_REGION_END else OUTCOME_LABELS[outcome.value],
            transition=transition,
            preserve_elements=preserve,
            context=context.advance(control),
            chrome=self._chrome(progress, zoom, region),
            districts=districts,
            points=points,
            curves=curves,
            effect=effect,
        )

    # ── Map region ──────────────────────────────────────────────────────────
    @staticmethod
    def _project_polygon(projection: ProjectionView, unit: MergedUnit) -> tuple[Point, ...]:
        projected = (projection.project(lon, lat) for lat, lon in unit.polygon)
        return tuple(p for p in projected if p is not None)

    def _map_districts(
        self,
        projection: ProjectionView,
        progress: float,
        zoom: float,
        border_opacity: float,
        mode: HighlightMode,
    ) -> tuple[DistrictShape, ...]:
        polygon_opacity = 1 - (progress / MAP_REGION_END) * 0.3
        treated_opacity = DISTRICT_OPACITY * polygon_opacity
        untreated_opacity = zoom * DISTRICT_OPACITY * polygon_opacity

        # Highlighted districts draw last, treated above untreated
        ordered = sorted(self.units, key=lambda u: (is_highlighted(u, mode), u.treated))
        shapes = []
        for unit in ordered:
            highlighted = is_highlighted(unit, mode)
            opacity = treated_opacity if unit.treated == 1 else untreated_opacity
            if mode is not HighlightMode.NONE and not highlighted:
                opacity *= DIMMED_FACTOR

            stroke_width = 1.0
            if mode is HighlightMode.BOUNDARY and is_very_close(unit):
                stroke_width = 2.5
            elif mode is HighlightMode.BOUNDARY and highlighted:
                stroke_width = 1.5

            shapes.append(
                DistrictShape(
                    key=unit.unit_id,
                    layer="district",
                    vertices=self._project_polygon(projection, unit),
                    category=TREATED if unit.treated == 1 else UNTREATED,
                    opacity=opacity,
                    stroke_opacity=1.0 if highlighted else border_opacity,
                    stroke_width=stroke_width,
                    highlighted=highlighted,
                )
            )
        return tuple(shapes)

    # ── Morph region ────────────────────────────────────────────────────────
    def _target(self, point: ScatterPoint, y_scale: LinearScale) -> Point:
        return (self.x_scale(point.x), y_scale(point.y))

    def _morph_districts(
        self,
        projection: ProjectionView,
        outcome: Outcome,
        morph_t: float,
        y_scale: LinearScale,
    ) -> tuple[DistrictShape, ...]:
        eased = ease_in_out_quad(morph_t)
        scatter = self.points_for(outcome)
        in_scatter = {p.unit_id for p in scatter}

        shapes = []
        fade = max(0.0, 0.5 - eased * 0.8)
        for unit in self.units:
            if unit.unit_id in in_scatter:
                continue
            shapes.append(
                DistrictShape(
                    key=unit.unit_id,
                    layer="fading-district",
                    vertices=self._project_polygon(projection, unit),
                    category=TREATED if unit.treated == 1 else UNTREATED,
                    opacity=fade,
                    stroke_width=0.0,
                )
            )

        for point in scatter:
            unit = point.unit
            centroid = projection.project(*unit.centroid) if unit.centroid is not None else None
            if centroid is None:
                continue
            vertices = morph_polygon(
                self._project_polygon(projection, unit), centroid, self._target(point, y_scale), eased
            )
            if vertices is None:
                continue
            shapes.append(
                DistrictShape(
                    key=unit.unit_id,
                    layer="morphing-district",
                    vertices=tuple(vertices),
                    category=TREATED if point.is_inside else UNTREATED,
                    opacity=DOT_OPACITY * (1 - eased * 0.3),
                    stroke_width=max(0.5, 1 - eased),
                )
            )
        return tuple(shapes)

    def _morphing_points(
        self,
        projection: ProjectionView,
        outcome: Outcome,
        morph_t: float,
        y_scale: LinearScale,
    ) -> tuple[PointMarker, ...]:
        if morph_t <= DOT_FADE_START:
            return ()
        eased = ease_in_out_quad(morph_t)
        opacity = min(1.0, (morph_t - DOT_FADE_START) / (DOT_FADE_END - DOT_FADE_START)) * DOT_OPACITY

        markers = []
        for point in self.points_for(outcome):
            centroid = point.unit.centroid
            map_point = projection.project(*centroid) if centroid is not None else None
            x, y = blend_position(map_point, self._target(point, y_scale), eased, self.bounds)
            markers.append(
                PointMarker(
                    key=point.unit_id,
                    x=x,
                    y=y,
                    radius=DOT_RADIUS * eased,
                    opacity=opacity,
                    category=TREATED if point.is_inside else UNTREATED,
                    interactive=morph_t > DOT_FADE_END,
                )
            )
        return tuple(markers)

    # ── Scatter region ──────────────────────────────────────────────────────
    def _scatter_points(self, outcome: Outcome, y_scale: LinearScale) -> tuple[PointMarker, ...]:
        """Outcome-independent point set keyed by unit id.

        Units without the selected outcome stay in the set, transparent, so
        the keys do not change while the plot is at full scatter.
        """
        markers = []
        for point in self.all_points:
            value = point.outcome_y(outcome)
            markers.append(
                PointMarker(
                    key=point.unit_id,
                    x=self.x_scale(point.x),
                    y=y_scale(value) if value is not None else self.inner_height / 2,
                    radius=DOT_RADIUS,
                    opacity=DOT_OPACITY if value is not None else 0.0,
                    category=TREATED if point.is_inside else UNTREATED,
                    interactive=value is not None,
                )
            )
        return tuple(markers)

    def _pixels(self, line: FittedLine, y_scale: LinearScale) -> tuple[Point, ...]:
        return tuple((self.x_scale(x), y_scale(y)) for x, y in line.points)

    def _analysis_layers(
        self,
        control: ControlState,
        context: TransitionContext,
        y_scale: LinearScale,
    ) -> tuple[tuple[CurveLayer, ...], Optional[EffectAnnotation]]:
        layers = visible_layers(control.phase)
        previous = visible_layers(context.previous_phase)
        if Layer.FIT_LINES not in layers or not self.points_for(control.outcome):
            return (), None

        effect = self.effect_for(control.outcome)
        inside, outside = effect.lines(uses_quadratic(control.phase))
        animate_lines = Layer.FIT_LINES not in previous
        curves = (
            CurveLayer("inside-line", inside, self._pixels(inside, y_scale), animate_lines),
            CurveLayer("outside-line", outside, self._pixels(outside, y_scale), animate_lines),
        )
        if Layer.EFFECT not in layers:
            return curves, None

        if control.phase is Phase.EFFECT:
            estimate, value = "paper", effect.paper
        else:
            estimate, value = "naive", effect.naive

        inside_y0 = inside.y_at(0.0)
        if inside_y0 is None and len(inside):
            inside_y0 = inside.points[0][1]
        outside_y0 = outside.y_at(0.0)
        if outside_y0 is None and len(outside):
            outside_y0 = outside.points[-1][1]
        if inside_y0 is None or outside_y0 is None:
            return curves, None

        x = self.x_scale(0.0)
        y1, y2 = y_scale(inside_y0), y_scale(outside_y0)
        annotation = EffectAnnotation(
            x=x,
            y1=y1,
            y2=y2,
            label=format_effect(value, control.outcome),
            label_x=x + 20,
            label_y=(y1 + y2) / 2,
            estimate=estimate,
            value=value,
            animate_in=Layer.EFFECT not in previous,
        )
        return curves, annotation

    @staticmethod
    def _chrome(progress: float, zoom: float, region: Region) -> PlotChrome:
        return PlotChrome(
            background_opacity=progress * DISTRICT_OPACITY if progress > 0 else 0.0,
            label_opacity=(progress - LABEL_FADE_START) / (1 - LABEL_FADE_START) if progress > LABEL_FADE_START else 0.0,
            axis_opacity=(progress - AXIS_FADE_START) / (1 - AXIS_FADE_START) if progress > AXIS_FADE_START else 0.0,
            basemap_opacity=(1 - zoom) * MAP_FADE_OPACITY if region is Region.MAP and zoom < 1 else 0.0,
        )
