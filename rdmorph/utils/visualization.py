"""Static matplotlib previews of frames and RD fits."""

from __future__ import annotations

from typing import Sequence

import matplotlib.pyplot as plt
from matplotlib.patches import Polygon as PolygonPatch

from rdmorph.models.effects import format_effect
from rdmorph.models.regression import TreatmentEffect
from rdmorph.preprocessing.records import ScatterPoint
from rdmorph.utils.config import COLORS, FIGURES_DIR, OUTCOME_LABELS
from rdmorph.utils.types import Outcome


def _color(category: str) -> str:
    return COLORS["treated"] if category == "treated" else COLORS["untreated"]


def plot_frame(
    frame,
    width: float,
    height: float,
    save: bool = True,
    filename: str = "frame.png",
) -> plt.Figure:
    """Draw a scheduler ``Frame`` in its inner pixel space (y grows downward)."""
    fig, ax = plt.subplots(figsize=(8, 6))
    for shape in frame.districts:
        if len(shape.vertices) < 3:
            continue
        ax.add_patch(
            PolygonPatch(
                shape.vertices,
                closed=True,
                facecolor=_color(shape.category),
                edgecolor=COLORS["untreated_stroke"],
                linewidth=shape.stroke_width,
                alpha=shape.opacity,
            )
        )
    if frame.points:
        ax.scatter(
            [p.x for p in frame.points],
            [p.y for p in frame.points],
            s=[(p.radius * 1.5) ** 2 for p in frame.points],
            c=[_color(p.category) for p in frame.points],
            alpha=max((p.opacity for p in frame.points), default=1.0),
            edgecolors="none",
        )
    for curve in frame.curves:
        color = COLORS["treated_stroke"] if curve.key == "inside-line" else COLORS["untreated"]
        ax.plot([p[0] for p in curve.pixels], [p[1] for p in curve.pixels], color=color, linewidth=3)
    if frame.effect is not None:
        eff = frame.effect
        ax.plot([eff.x, eff.x], [eff.y1, eff.y2], color=COLORS["effect_line"], linewidth=4)
        ax.text(eff.label_x, eff.label_y, eff.label, va="center", fontweight="bold",
                color=COLORS["effect_line"],
                bbox={"facecolor": COLORS["effect_bg"], "boxstyle": "round"})

    ax.set_xlim(0, width)
    ax.set_ylim(height, 0)
    ax.set_title(frame.title)
    ax.set_aspect("equal")
    plt.tight_layout()
    if save:
        FIGURES_DIR.mkdir(parents=True, exist_ok=True)
        fig.savefig(FIGURES_DIR / filename, dpi=150, bbox_inches="tight")
    plt.close(fig)
    return fig


def plot_rd_fit(
    points: Sequence[ScatterPoint],
    effect: TreatmentEffect,
    outcome: Outcome | str,
    quadratic: bool = False,
    save: bool = True,
    filename: str = "rd_fit.png",
) -> plt.Figure:
    """RD scatter in data units with per-side curves and the jump at zero.

    The annotated jump is the paper estimate when ``quadratic`` is set and
    the naive estimate otherwise, matching the scheduler's phases.
    """
    outcome = Outcome(outcome)
    inside, outside = effect.lines(quadratic)
    estimate = effect.paper if quadratic else effect.naive

    fig, ax = plt.subplots(figsize=(8, 5))
    for flag, label in ((False, "Outside"), (True, "Inside")):
        side = [p for p in points if p.is_inside == flag]
        ax.scatter([p.x for p in side], [p.y for p in side], s=20, alpha=0.8,
                   color=_color("treated" if flag else "untreated"), label=label)
    ax.plot(inside.xs, inside.ys, color=COLORS["treated_stroke"], linewidth=2.5)
    ax.plot(outside.xs, outside.ys, color=COLORS["untreated_stroke"], linewidth=2.5)
    ax.axvline(0, color="grey", linestyle="--", linewidth=1)
    ax.set_xlabel("Distance from boundary (km)")
    ax.set_ylabel(OUTCOME_LABELS[outcome.value])
    ax.set_title(f"Discontinuity at the boundary: {format_effect(estimate, outcome)}")
    ax.legend()
    plt.tight_layout()
    if save:
        FIGURES_DIR.mkdir(parents=True, exist_ok=True)
        fig.savefig(FIGURES_DIR / filename, dpi=150, bbox_inches="tight")
    plt.close(fig)
    return fig
