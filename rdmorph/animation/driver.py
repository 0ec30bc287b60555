"""Frame-callback loop and eased scalar animation.

Everything here is single-threaded. A :class:`FrameLoop` stands in for the
host's "request animation frame" facility; the host (or a test) calls
:meth:`FrameLoop.tick` once per display frame.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from rdmorph.animation.interpolation import ease_in_out_quad

logger = logging.getLogger(__name__)

FrameCallback = Callable[[float], None]


def monotonic_ms() -> float:
    return time.perf_counter() * 1000.0


class ManualClock:
    """Millisecond clock advanced explicitly (tests, offline rendering)."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now


class FrameLoop:
    """Registry of callbacks waiting for the next frame."""

    def __init__(self, clock: Callable[[], float] = monotonic_ms) -> None:
        self.clock = clock
        self._pending: dict[int, FrameCallback] = {}
        self._next_handle = 1

    @property
    def pending(self) -> int:
        return len(self._pending)

    def request_frame(self, callback: FrameCallback) -> int:
        handle = self._next_handle
        self._next_handle += 1
        self._pending[handle] = callback
        return handle

    def cancel_frame(self, handle: int) -> None:
        self._pending.pop(handle, None)

    def tick(self, now: Optional[float] = None) -> int:
        """Run the callbacks queued before this frame; returns how many ran.

        Callbacks requested while the frame runs wait for the next tick.
        """
        if now is None:
            now = self.clock()
        due, self._pending = self._pending, {}
        for callback in due.values():
            callback(now)
        return len(due)


class AnimationDriver:
    """Animate one scalar toward a target over a fixed duration.

    A driver owns at most one in-flight frame request. Retargeting while in
    flight cancels that request and restarts from the last reported value,
    so the animated value never jumps.

    Parameters
    ----------
    loop : FrameLoop
        Source of frame callbacks and of the clock.
    value : float
        Initial value, reported as the start when nothing is in flight.
    name : str
        Used in log messages only.
    """

    def __init__(self, loop: FrameLoop, value: float = 0.0, name: str = "value") -> None:
        self.loop = loop
        self.value = float(value)
        self.name = name
        self.target: Optional[float] = None
        self._handle: Optional[int] = None
        self._generation = 0
        self._on_frame: Optional[Callable[[float], None]] = None

    @property
    def running(self) -> bool:
        return self._handle is not None

    def animate(
        self,
        from_value: float,
        to: float,
        duration_ms: float,
        on_frame: Callable[[float], None],
        easing: Callable[[float], float] = ease_in_out_quad,
    ) -> None:
        """Start interpolating toward ``to``.

        ``from_value`` is used only when nothing is in flight; otherwise the
        most recently reported value is the start. Asking again for the
        target already in flight keeps the running loop, its start time and
        its duration; only ``on_frame`` is replaced.
        """
        if duration_ms < 0:
            raise ValueError(f"duration_ms must be non-negative, got {duration_ms}")
        if self.running:
            if to == self.target:
                self._on_frame = on_frame
                return
            logger.debug("%s: retarget %.4f -> %.4f from %.4f", self.name, self.target, to, self.value)
            start = self.value
            self.cancel()
        else:
            start = float(from_value)

        self.target = to
        self._on_frame = on_frame
        self._generation += 1
        generation = self._generation
        start_time = self.loop.clock()

        def frame(now: float) -> None:
            if generation != self._generation:
                return
            elapsed = max(now - start_time, 0.0)
            t = 1.0 if duration_ms == 0 else min(elapsed / duration_ms, 1.0)
            value = to if t >= 1 else start + (to - start) * easing(t)
            self.value = value
            self._handle = self.loop.request_frame(frame) if t < 1 else None
            self._on_frame(value)

        self._handle = self.loop.request_frame(frame)

    def cancel(self) -> None:
        """Drop the outstanding frame request, if any."""
        if self._handle is not None:
            self.loop.cancel_frame(self._handle)
            self._handle = None
        self._generation += 1
