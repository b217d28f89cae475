"""Post-game countdown that drives the automatic return to the main menu."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .timers import Scheduler, TimerGroup

logger = logging.getLogger(__name__)

COUNTDOWN_SECONDS = 6


class CountdownController:
    """Ticks ``remaining`` down once per interval and fires ``on_expire`` at zero."""

    def __init__(
        self,
        scheduler: Scheduler,
        on_expire: Callable[[], None],
        on_tick: Optional[Callable[[int], None]] = None,
        seconds: int = COUNTDOWN_SECONDS,
        tick_interval: float = 1.0,
    ) -> None:
        self.seconds = seconds
        self.remaining = seconds
        self._on_expire = on_expire
        self._on_tick = on_tick
        self._tick_interval = tick_interval
        self._timers = TimerGroup(scheduler, name="countdown")

    @property
    def running(self) -> bool:
        return self._timers.active

    def start(self) -> None:
        self._timers.cancel()
        self.remaining = self.seconds
        self._timers.every(self._tick_interval, self._tick)

    def cancel(self) -> None:
        self._timers.cancel()
        self.remaining = self.seconds

    def _tick(self) -> None:
        self.remaining = max(0, self.remaining - 1)
        if self.remaining == 0:
            self._timers.cancel()
            logger.debug("Countdown expired")
            self._on_expire()
            return
        if self._on_tick is not None:
            self._on_tick(self.remaining)
