"""Shared fixtures: a scheduler whose clock only moves when told to."""

from __future__ import annotations

import itertools
import random
from dataclasses import dataclass, field
from typing import Callable, List

import pytest

from starxo.config import Settings
from starxo.machine import GameMachine


@dataclass
class ManualTimer:
    when: float
    seq: int
    callback: Callable[[], None]
    cancelled: bool = field(default=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Runs callbacks in (time, scheduling order) as ``advance`` moves the clock."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: List[ManualTimer] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.now + delay, next(self._seq), callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> List[ManualTimer]:
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [t for t in self.pending if t.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.when, t.seq))
            self.timers.remove(timer)
            self.now = timer.when
            timer.callback()
        self.now = target


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def machine(scheduler: ManualScheduler, settings: Settings) -> GameMachine:
    return GameMachine(scheduler, rng=random.Random(1234), settings=settings)
