"""Timed animation state machine driving smooth zoom transitions.

The controller never schedules anything itself: the caller (a QTimer in the
GUI, plain calls in tests) invokes ``tick(now)`` with a millisecond clock.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from shared.constants import ANIMATION_DURATION_MS, ANIMATION_FPS

if TYPE_CHECKING:
    from collections.abc import Callable

    from shared.constants import AnimationKind

logger = logging.getLogger(__name__)


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


def frame_interval_ms(fps: int = ANIMATION_FPS) -> int:
    """Период таймера анимации для заданной частоты кадров."""
    return max(1, 1000 // fps)


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Running:
    kind: AnimationKind
    start_time: float
    duration: float


AnimationState = Idle | Running

IDLE = Idle()


class AnimationController:
    """At most one running animation; a second ``start`` is ignored."""

    def __init__(self, clock: Callable[[], float] = monotonic_ms) -> None:
        self._clock = clock
        self._state: AnimationState = IDLE
        self._factor = 0.0
        self._on_frame: Callable[[float], None] | None = None
        self._on_complete: Callable[[], None] | None = None

    @property
    def state(self) -> AnimationState:
        return self._state

    @property
    def running(self) -> bool:
        return isinstance(self._state, Running)

    @property
    def kind(self) -> AnimationKind | None:
        return self._state.kind if isinstance(self._state, Running) else None

    @property
    def factor(self) -> float:
        return self._factor

    def now(self) -> float:
        return self._clock()

    def start(
        self,
        kind: AnimationKind,
        duration: float = ANIMATION_DURATION_MS,
        on_frame: Callable[[float], None] | None = None,
        on_complete: Callable[[], None] | None = None,
        now: float | None = None,
    ) -> bool:
        if self.running:
            logger.debug('Animation %s ignored: %s is running', kind, self.kind)
            return False
        if duration <= 0:
            msg = f'Animation duration must be positive, got {duration}'
            raise ValueError(msg)
        start_time = self._clock() if now is None else now
        self._state = Running(kind, start_time, float(duration))
        self._factor = 0.0
        self._on_frame = on_frame
        self._on_complete = on_complete
        return True

    def tick(self, now: float | None = None) -> float:
        state = self._state
        if not isinstance(state, Running):
            return self._factor
        if now is None:
            now = self._clock()
        factor = (now - state.start_time) / state.duration
        factor = min(1.0, max(0.0, factor))
        self._factor = factor
        if self._on_frame is not None:
            self._on_frame(factor)
        if factor >= 1.0:
            on_complete = self._on_complete
            self._reset_to_idle()
            if on_complete is not None:
                on_complete()
        return factor

    def cancel(self) -> None:
        if self.running:
            logger.debug('Animation %s cancelled', self.kind)
        self._reset_to_idle()
        self._factor = 0.0

    def _reset_to_idle(self) -> None:
        self._state = IDLE
        self._on_frame = None
        self._on_complete = None
