"""One visualization instance: three animated scalars feeding the scheduler."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from rdmorph.animation.driver import AnimationDriver, FrameLoop
from rdmorph.animation.scheduler import ControlState, Frame, PhaseScheduler, TransitionContext
from rdmorph.utils.config import BORDER_FADE_DURATION, MORPH_DURATION, ZOOM_DURATION

logger = logging.getLogger(__name__)


class VisualizationSession:
    """Owns the progress, zoom and border-opacity drivers of one view.

    The drivers share the frame loop but no state. ``update`` forwards new
    control targets, ``tick`` advances the loop by one frame and returns the
    frame descriptors, and ``close`` cancels all three animations. A driver
    callback or a control update marks the session dirty; otherwise ``tick``
    hands back the previous frame unchanged.
    """

    def __init__(
        self,
        scheduler: PhaseScheduler,
        loop: FrameLoop,
        initial: ControlState,
    ) -> None:
        self.scheduler = scheduler
        self.loop = loop
        self.control = initial
        self.context = TransitionContext()
        self.progress = AnimationDriver(loop, initial.progress, name="progress")
        self.zoom = AnimationDriver(loop, initial.zoom_level.target, name="zoom")
        self.border_opacity = AnimationDriver(
            loop, 1.0 if initial.show_boundaries else 0.0, name="border_opacity"
        )
        self.closed = False
        self.dirty = True
        self.frame: Optional[Frame] = None

    @property
    def drivers(self) -> tuple[AnimationDriver, AnimationDriver, AnimationDriver]:
        return (self.progress, self.zoom, self.border_opacity)

    @property
    def animating(self) -> bool:
        return any(d.running for d in self.drivers)

    def update(self, control: ControlState) -> None:
        """Accept a new control tuple; animated scalars start moving toward it."""
        if self.closed:
            raise RuntimeError("session is closed")
        previous, self.control = self.control, control
        self.dirty = True

        if control.progress != previous.progress:
            self.progress.animate(self.progress.value, control.progress, MORPH_DURATION, self._on_value)
        if control.zoom_level != previous.zoom_level:
            self.zoom.animate(self.zoom.value, control.zoom_level.target, ZOOM_DURATION, self._on_value)
        if control.show_boundaries != previous.show_boundaries:
            target = 1.0 if control.show_boundaries else 0.0
            self.border_opacity.animate(self.border_opacity.value, target, BORDER_FADE_DURATION, self._on_value)

    def _on_value(self, value: float) -> None:
        self.dirty = True

    def render(self) -> Frame:
        """Frame for the current animated values; advances the transition context."""
        control = replace(self.control, progress=self.progress.value)
        frame = self.scheduler.schedule(
            control,
            self.context,
            zoom=self.zoom.value,
            border_opacity=self.border_opacity.value,
        )
        self.context = frame.context
        self.dirty = False
        self.frame = frame
        return frame

    def tick(self, now: Optional[float] = None) -> Frame:
        """Run one loop frame; the last frame is reused when nothing moved."""
        self.loop.tick(now)
        if self.dirty or self.frame is None:
            return self.render()
        return self.frame

    def close(self) -> None:
        for driver in self.drivers:
            driver.cancel()
        self.closed = True
        logger.debug("Session closed, %d frame requests left on the loop", self.loop.pending)

    def __enter__(self) -> "VisualizationSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
