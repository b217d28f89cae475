"""The StarXO game flow: menu, matchmaking, play, game over and reset.

A :class:`GameMachine` is the single state container behind one browser page.
Every user intent is a method returning ``True`` when it changed state and
``False`` when its guard turned it into a no-op. Timer-driven transitions
(matchmaking, post-game countdown) go through the same machine, and every
mutation is announced to the registered listeners.
"""

from __future__ import annotations

import functools
import logging
import random
import re
from typing import Callable, List, Optional, Tuple

from .config import Settings, get_settings
from .countdown import CountdownController
from .game import (
    EMPTY,
    Board,
    GamePhase,
    GameResult,
    Player,
    SessionStats,
    Symbol,
    evaluate,
    is_full,
    new_board,
    other,
)
from .matchmaking import MatchmakingSimulator, generate_game_id, random_players
from .timers import Scheduler

logger = logging.getLogger(__name__)

GAME_ID_PATTERN = re.compile(r"[0-9]{4}")
MODES = ("online", "friends")

Listener = Callable[["GameMachine"], None]


def is_valid_game_id(game_id: object) -> bool:
    return isinstance(game_id, str) and GAME_ID_PATTERN.fullmatch(game_id) is not None


def intent(method):
    """Turn the wrapped intent into a no-op once the machine is shut down."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        if self._closed:
            return self._ignored(method.__name__, "machine is shut down")
        return method(self, *args, **kwargs)

    return wrapper


class GameMachine:
    def __init__(
        self,
        scheduler: Scheduler,
        rng: Optional[random.Random] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or get_settings()
        self._rng = rng or random.Random()
        self._listeners: List[Listener] = []
        self._closed = False

        self.phase = GamePhase.INITIAL
        self.board: Board = new_board()
        self.current_player: Symbol = "X"
        self.game_id = ""
        self.players: List[Player] = []
        self.result: Optional[GameResult] = None
        self.winner: Optional[Symbol] = None
        self.stats = SessionStats()
        self.show_restart_confirmation = False

        self.matchmaking = MatchmakingSimulator(
            scheduler,
            self._rng,
            on_matched=self._on_matched,
            on_update=self._notify,
            match_delay=settings.match_delay,
            reveal_delay=settings.reveal_delay,
            avatar_interval=settings.avatar_interval,
        )
        self.countdown = CountdownController(
            scheduler,
            on_expire=self._on_countdown_expired,
            on_tick=lambda _remaining: self._notify(),
            seconds=settings.countdown_seconds,
        )

    # ---- observers ----

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # ---- intents ----

    @intent
    def create_game(self) -> bool:
        if self.phase is not GamePhase.INITIAL:
            return self._ignored("create_game")
        self.game_id = generate_game_id(self._rng)
        self._set_phase(GamePhase.MODE_SELECTION)
        return self._changed()

    @intent
    def join_game(self, game_id: object) -> bool:
        if self.phase not in (GamePhase.INITIAL, GamePhase.ENTER_FRIEND_ID):
            return self._ignored("join_game")
        if not is_valid_game_id(game_id):
            return self._ignored("join_game", "game id %r is not 4 digits" % (game_id,))
        self.game_id = game_id
        self._start_play(random_players(self._rng))
        return self._changed()

    @intent
    def select_mode(self, mode: str) -> bool:
        if self.phase is not GamePhase.MODE_SELECTION or mode not in MODES:
            return self._ignored("select_mode")
        if mode == "online":
            self._set_phase(GamePhase.SEARCHING)
            self.matchmaking.start()
        else:
            self._set_phase(GamePhase.ENTER_FRIEND_ID)
        return self._changed()

    @intent
    def stop_matching(self) -> bool:
        if self.phase is not GamePhase.SEARCHING:
            return self._ignored("stop_matching")
        self._set_phase(GamePhase.MODE_SELECTION)
        return self._changed()

    @intent
    def cell_click(self, index: object) -> bool:
        if self.phase is not GamePhase.PLAYING or self.show_restart_confirmation:
            return self._ignored("cell_click")
        if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index <= 8:
            return self._ignored("cell_click", "index %r out of range" % (index,))
        if self.board[index] != EMPTY:
            return self._ignored("cell_click", "cell %d occupied" % index)

        mover = self.current_player
        self.board[index] = mover
        winner = evaluate(self.board)
        if winner is not None:
            # The player who completed the line won.
            self._end_game(GameResult.WIN, winner)
        elif is_full(self.board):
            self._end_game(GameResult.DRAW, None)
        else:
            self.current_player = other(mover)
        return self._changed()

    @intent
    def play_again(self) -> bool:
        if self.phase is not GamePhase.ENDED:
            return self._ignored("play_again")
        self._clear_board()
        self._set_phase(GamePhase.PLAYING)
        return self._changed()

    @intent
    def restart_game(self) -> bool:
        if self.phase is not GamePhase.ENDED:
            return self._ignored("restart_game")
        self._full_reset()
        return self._changed()

    @intent
    def confirm_restart(self) -> bool:
        self._full_reset()
        return self._changed()

    @intent
    def cancel_restart(self) -> bool:
        if not self.show_restart_confirmation:
            return self._ignored("cancel_restart")
        self.show_restart_confirmation = False
        return self._changed()

    @intent
    def go_back(self) -> bool:
        if self.phase in (GamePhase.MODE_SELECTION, GamePhase.ENTER_FRIEND_ID):
            self._set_phase(GamePhase.INITIAL)
        elif self.phase is GamePhase.SEARCHING:
            self._set_phase(GamePhase.MODE_SELECTION)
        elif self.phase is GamePhase.PLAYING:
            self.show_restart_confirmation = True
        else:
            return self._ignored("go_back")
        return self._changed()

    def shutdown(self) -> None:
        """Cancel all timers and drop listeners; the machine goes inert."""
        self._closed = True
        self.matchmaking.cancel()
        self.countdown.cancel()
        self._listeners.clear()

    # ---- timer callbacks ----

    def _on_matched(self, players: Tuple[Player, Player]) -> None:
        if self._closed or self.phase is not GamePhase.SEARCHING:
            logger.debug("Ignoring match result outside of search")
            return
        self._start_play(players)
        self._changed()

    def _on_countdown_expired(self) -> None:
        if self._closed or self.phase is not GamePhase.ENDED:
            logger.debug("Ignoring countdown expiry outside of game over")
            return
        self._full_reset()
        self._changed()

    # ---- helpers ----

    def _set_phase(self, phase: GamePhase) -> None:
        previous = self.phase
        if previous is phase:
            return
        if previous is GamePhase.SEARCHING:
            self.matchmaking.cancel()
        elif previous is GamePhase.ENDED:
            self.countdown.cancel()
        self.phase = phase
        logger.info("Game %s: %s -> %s", self.game_id or "-", previous.value, phase.value)

    def _start_play(self, players: Tuple[Player, Player]) -> None:
        self.players = list(players)
        self._clear_board()
        self._set_phase(GamePhase.PLAYING)

    def _end_game(self, result: GameResult, winner: Optional[Symbol]) -> None:
        self.result = result
        self.winner = winner
        self.stats.record(result)
        self._set_phase(GamePhase.ENDED)
        self.countdown.start()

    def _clear_board(self) -> None:
        self.board = new_board()
        self.current_player = "X"
        self.result = None
        self.winner = None

    def _full_reset(self) -> None:
        self._clear_board()
        self._set_phase(GamePhase.INITIAL)
        self.matchmaking.cancel()
        self.countdown.cancel()
        self.game_id = ""
        self.players = []
        self.show_restart_confirmation = False

    def _changed(self) -> bool:
        self._notify()
        return True

    def _ignored(self, intent: str, reason: str = "") -> bool:
        logger.debug(
            "Ignoring %s in phase %s%s",
            intent,
            self.phase.value,
            ": " + reason if reason else "",
        )
        return False
