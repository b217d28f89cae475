"""Local stand-in for online matchmaking.

Nothing leaves the process: "searching" is a pair of timers, and the opponent
is a freshly generated identity with one of the stock avatars.
"""

from __future__ import annotations

import logging
import random
from typing import Callable, List, Optional, Sequence, Tuple

from .game import AVATARS, Player
from .timers import Scheduler, TimerGroup

logger = logging.getLogger(__name__)

MATCH_DELAY = 3.0
REVEAL_DELAY = 1.5
AVATAR_INTERVAL = 0.5


def generate_game_id(rng: random.Random) -> str:
    return str(rng.randint(1000, 9999))


def generate_player_id(rng: random.Random) -> str:
    return f"User{rng.randint(1000, 9999)}"


def random_players(
    rng: random.Random, avatars: Sequence[str] = AVATARS
) -> Tuple[Player, Player]:
    """Two players with random ids and independently drawn avatars."""
    return (
        Player(id=generate_player_id(rng), symbol="X", avatar=rng.choice(avatars)),
        Player(id=generate_player_id(rng), symbol="O", avatar=rng.choice(avatars)),
    )


class MatchmakingSimulator:
    """Fakes opponent discovery with an avatar carousel and two timers.

    ``start`` rotates ``avatars`` every ``avatar_interval`` seconds. After
    ``match_delay`` the rotation freezes and ``match_found`` is set; after a
    further ``reveal_delay`` the two front avatars become the players handed
    to ``on_matched``. ``cancel`` drops every pending timer.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        rng: random.Random,
        on_matched: Callable[[Tuple[Player, Player]], None],
        on_update: Optional[Callable[[], None]] = None,
        avatars: Sequence[str] = AVATARS,
        match_delay: float = MATCH_DELAY,
        reveal_delay: float = REVEAL_DELAY,
        avatar_interval: float = AVATAR_INTERVAL,
    ) -> None:
        self._rng = rng
        self._on_matched = on_matched
        self._on_update = on_update
        self._initial_avatars = list(avatars)
        self.avatars: List[str] = list(avatars)
        self.match_found = False
        self.match_delay = match_delay
        self.reveal_delay = reveal_delay
        self.avatar_interval = avatar_interval
        self._carousel = TimerGroup(scheduler, name="avatar-carousel")
        self._timers = TimerGroup(scheduler, name="matchmaking")

    @property
    def searching(self) -> bool:
        return self._timers.active

    def start(self) -> None:
        self.cancel()
        self.avatars = list(self._initial_avatars)
        self._carousel.every(self.avatar_interval, self._rotate)
        self._timers.later(self.match_delay, self._match_found)
        logger.debug("Matchmaking started")

    def cancel(self) -> None:
        self._carousel.cancel()
        self._timers.cancel()
        self.match_found = False

    def _rotate(self) -> None:
        self.avatars.append(self.avatars.pop(0))
        self._updated()

    def _match_found(self) -> None:
        self._carousel.cancel()
        self.match_found = True
        self._timers.later(self.reveal_delay, self._reveal)
        logger.debug("Match found: %s vs %s", self.avatars[0], self.avatars[1])
        self._updated()

    def _reveal(self) -> None:
        players = (
            Player(id=generate_player_id(self._rng), symbol="X", avatar=self.avatars[0]),
            Player(id=generate_player_id(self._rng), symbol="O", avatar=self.avatars[1]),
        )
        self._on_matched(players)

    def _updated(self) -> None:
        if self._on_update is not None:
            self._on_update()
