"""Timed rotation of the projector display with a staged reveal of winners.

The scheduler is a two-level state machine. The outer level cycles through
:class:`DisplayMode` every ``interval_ms``. While the result slide is shown
the inner level walks :class:`RevealStep` from hidden to champion, one step
per deadline. Only one reveal deadline is pending at a time and each entry to
the result slide gets a fresh generation token, so a deadline scheduled for a
previous result can never fire against the current one.

Timers come from an injected :class:`Clock`. Tests drive a
:class:`ManualClock`; the websocket consumer uses :class:`AsyncioClock`.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from django.conf import settings
from django.db import models

from festival.services import latest_declared_result
from festival.snapshot import Snapshot

logger = logging.getLogger(__name__)

__all__ = [
    "DisplayMode",
    "RevealStep",
    "Clock",
    "ManualClock",
    "AsyncioClock",
    "Frame",
    "PresentationScheduler",
]


class DisplayMode(models.TextChoices):
    RESULT = "result", "Latest result"
    LEADERBOARD = "leaderboard", "Leaderboard"
    STATS = "stats", "Statistics"
    UPCOMING = "upcoming", "Upcoming events"

    @property
    def following(self) -> "DisplayMode":
        modes = list(DisplayMode)
        return modes[(modes.index(self) + 1) % len(modes)]

    @property
    def preceding(self) -> "DisplayMode":
        modes = list(DisplayMode)
        return modes[(modes.index(self) - 1) % len(modes)]


class RevealStep(models.IntegerChoices):
    HIDDEN = 0, "Hidden"
    THIRD = 1, "Third place"
    SECOND = 2, "Second place"
    CHAMPION = 3, "Champion"


# Deadline of each step, in multiples of the reveal delay, from entering RESULT.
REVEAL_SCHEDULE = {
    RevealStep.HIDDEN: 0,
    RevealStep.THIRD: 1,
    RevealStep.SECOND: 2,
    RevealStep.CHAMPION: 4,
}


class Clock:
    """Time source for the scheduler, in milliseconds."""

    def now(self) -> float:  # pragma: no cover - interface
        raise NotImplementedError

    def call_later(self, delay_ms: float, callback: Callable[[], None]):  # pragma: no cover - interface
        """Run ``callback`` after ``delay_ms``; return a handle with ``cancel()``."""
        raise NotImplementedError


@dataclass
class ManualTimer:
    due: float
    callback: Callable[[], None]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock(Clock):
    """A clock that only moves when :meth:`advance` is called."""

    def __init__(self, start: float = 0) -> None:
        self._now = float(start)
        self._queue: list[tuple[float, int, ManualTimer]] = []
        self._counter = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(due=self._now + max(0.0, delay_ms), callback=callback)
        heapq.heappush(self._queue, (timer.due, next(self._counter), timer))
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)

    def advance(self, delta_ms: float) -> None:
        """Move time forward, firing due callbacks in deadline order."""

        target = self._now + delta_ms
        while self._queue and self._queue[0][0] <= target:
            due, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = due
            timer.callback()
        self._now = target


class AsyncioClock(Clock):
    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self.loop = loop or asyncio.get_running_loop()

    def now(self) -> float:
        return self.loop.time() * 1000

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(max(0.0, delay_ms) / 1000, callback)


@dataclass(frozen=True)
class Frame:
    mode: DisplayMode
    reveal_step: RevealStep
    content: Dict[str, Any] = field(default_factory=dict)
    paused: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "type": "frame",
            "mode": self.mode.value,
            "revealStep": int(self.reveal_step),
            "paused": self.paused,
            "content": self.content,
        }


ContentBuilder = Callable[[DisplayMode, Snapshot, RevealStep], Dict[str, Any]]


class PresentationScheduler:
    def __init__(
        self,
        clock: Clock,
        on_frame: Callable[[Frame], None],
        content_builder: Optional[ContentBuilder] = None,
        *,
        interval_ms: Optional[int] = None,
        reveal_delay_ms: Optional[int] = None,
    ) -> None:
        if content_builder is None:
            from .slides import SlideDeck

            content_builder = SlideDeck().build
        self.clock = clock
        self.on_frame = on_frame
        self.content_builder = content_builder
        self.interval_ms = interval_ms or getattr(settings, "PROJECTOR_SLIDE_INTERVAL_MS", 15000)
        self.reveal_delay_ms = reveal_delay_ms or getattr(settings, "PROJECTOR_REVEAL_DELAY_MS", 1500)

        self.snapshot: Optional[Snapshot] = None
        self.mode = DisplayMode.RESULT
        self.reveal_step = RevealStep.HIDDEN
        self.running = False
        self.paused = False
        self._result_id: Optional[str] = None
        self._generation = 0
        self._rotation_timer = None
        self._reveal_timer = None

    # Lifecycle -----------------------------------------------------------

    def start(self, mode: DisplayMode = DisplayMode.RESULT) -> None:
        self._cancel_timers()
        self.running = True
        self.paused = False
        self._enter(DisplayMode(mode))

    def stop(self) -> None:
        self._cancel_timers()
        self._generation += 1
        self.running = False
        self.paused = False

    def pause(self) -> None:
        if not self.running or self.paused:
            return
        self.paused = True
        self._cancel_timers()
        self._emit()

    def resume(self) -> None:
        if not self.running or not self.paused:
            return
        self.paused = False
        if self.snapshot is None:
            return
        self._schedule_rotation()
        self._schedule_reveal()
        self._emit()

    # Navigation ----------------------------------------------------------

    def advance(self) -> None:
        if self.running:
            self._enter(self.mode.following)

    def previous(self) -> None:
        if self.running:
            self._enter(self.mode.preceding)

    def jump_to(self, mode: DisplayMode) -> None:
        if self.running:
            self._enter(DisplayMode(mode))

    # Data ----------------------------------------------------------------

    def load(self, snapshot: Optional[Snapshot]) -> None:
        """Swap in new data and re-render the current slide."""

        had_snapshot = self.snapshot is not None
        self.snapshot = snapshot
        if not self.running:
            self._result_id = self._current_result_id()
            return
        if snapshot is None:
            logger.info("Projector data unavailable; holding on %s", self.mode.value)
            self._cancel_timers()
            return
        if not had_snapshot:
            self._enter(self.mode)
            return

        result_id = self._current_result_id()
        if result_id != self._result_id:
            self._result_id = result_id
            if self.mode == DisplayMode.RESULT:
                logger.debug("Displayed result changed to %s; restarting reveal", result_id)
                self._restart_reveal()
                return
        self._emit()

    # Internals -----------------------------------------------------------

    def _current_result_id(self) -> Optional[str]:
        if self.snapshot is None:
            return None
        result = latest_declared_result(self.snapshot)
        return result.id if result else None

    def _enter(self, mode: DisplayMode) -> None:
        self._cancel_timers()
        self.mode = mode
        self._result_id = self._current_result_id()
        if self.snapshot is None:
            self.reveal_step = RevealStep.HIDDEN
            return
        self._schedule_rotation()
        self._restart_reveal()

    def _restart_reveal(self) -> None:
        self._cancel_reveal()
        self._generation += 1
        self.reveal_step = RevealStep.HIDDEN
        self._schedule_reveal()
        self._emit()

    def _reveal_pending(self) -> bool:
        return (
            self.mode == DisplayMode.RESULT
            and self._result_id is not None
            and self.reveal_step < RevealStep.CHAMPION
        )

    def _schedule_reveal(self) -> None:
        if self.paused or not self._reveal_pending():
            return
        step = RevealStep(self.reveal_step + 1)
        delay = (REVEAL_SCHEDULE[step] - REVEAL_SCHEDULE[self.reveal_step]) * self.reveal_delay_ms
        token = self._generation
        self._reveal_timer = self.clock.call_later(delay, lambda: self._on_reveal(token, step))

    def _on_reveal(self, token: int, step: RevealStep) -> None:
        self._reveal_timer = None
        if token != self._generation or not self.running or self.paused:
            logger.debug("Dropping stale reveal step %s", int(step))
            return
        self.reveal_step = step
        self._emit()
        self._schedule_reveal()

    def _schedule_rotation(self) -> None:
        if self._rotation_timer is not None:
            self._rotation_timer.cancel()
        if self.paused:
            self._rotation_timer = None
            return
        self._rotation_timer = self.clock.call_later(self.interval_ms, self._on_rotate)

    def _on_rotate(self) -> None:
        self._rotation_timer = None
        if not self.running or self.paused:
            return
        self._enter(self.mode.following)

    def _cancel_reveal(self) -> None:
        if self._reveal_timer is not None:
            self._reveal_timer.cancel()
            self._reveal_timer = None

    def _cancel_timers(self) -> None:
        self._cancel_reveal()
        if self._rotation_timer is not None:
            self._rotation_timer.cancel()
            self._rotation_timer = None

    def current_frame(self) -> Optional[Frame]:
        if self.snapshot is None:
            return None
        return Frame(
            mode=self.mode,
            reveal_step=self.reveal_step,
            content=self.content_builder(self.mode, self.snapshot, self.reveal_step),
            paused=self.paused,
        )

    def _emit(self) -> None:
        frame = self.current_frame()
        if frame is not None:
            self.on_frame(frame)
