"""Cancellable timers scoped to a single phase of the game flow."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Protocol

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class Handle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything that can run a callback once after ``delay`` seconds."""

    def call_later(self, delay: float, callback: Callback) -> Handle: ...


class LoopScheduler:
    """Scheduler backed by the asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop or asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callback) -> Handle:
        return self._loop.call_later(delay, callback)


class TimerGroup:
    """A set of timers that are cancelled together.

    Every callback captures the group's generation when it is scheduled.
    ``cancel`` cancels the outstanding handles and bumps the generation, so a
    callback that was already queued by the scheduler becomes a no-op.
    """

    def __init__(self, scheduler: Scheduler, name: str = "timers") -> None:
        self._scheduler = scheduler
        self._name = name
        self._handles: List[Handle] = []
        self._generation = 0

    @property
    def active(self) -> bool:
        return bool(self._handles)

    def later(self, delay: float, callback: Callback) -> Handle:
        generation = self._generation
        handle: Optional[Handle] = None

        def fire() -> None:
            if handle in self._handles:
                self._handles.remove(handle)
            if generation != self._generation:
                logger.debug("%s: dropping stale callback", self._name)
                return
            callback()

        handle = self._scheduler.call_later(delay, fire)
        self._handles.append(handle)
        return handle

    def every(self, interval: float, callback: Callback) -> None:
        """Run ``callback`` every ``interval`` seconds until cancelled."""
        generation = self._generation

        def tick() -> None:
            callback()
            # The callback may have cancelled the group.
            if generation == self._generation:
                self.later(interval, tick)

        self.later(interval, tick)

    def cancel(self) -> None:
        self._generation += 1
        handles, self._handles = self._handles, []
        for handle in handles:
            handle.cancel()
        if handles:
            logger.debug("%s: cancelled %d pending timer(s)", self._name, len(handles))
