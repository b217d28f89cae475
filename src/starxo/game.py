"""Board rules, player records and session statistics for StarXO."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

Symbol = str  # "X" or "O"
Board = List[str]

EMPTY = ""

WINNING_LINES: Tuple[Tuple[int, int, int], ...] = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)

AVATARS: Tuple[str, ...] = (
    "/placeholder.svg?height=40&width=40&text=%F0%9F%91%A7",
    "/placeholder.svg?height=40&width=40&text=%F0%9F%91%A6",
    "/placeholder.svg?height=40&width=40&text=%F0%9F%91%A9",
    "/placeholder.svg?height=40&width=40&text=%F0%9F%91%A8",
)


class GamePhase(str, Enum):
    INITIAL = "initial"
    MODE_SELECTION = "mode_selection"
    ENTER_FRIEND_ID = "enter_friend_id"
    SEARCHING = "searching"
    PLAYING = "playing"
    ENDED = "ended"


class GameResult(str, Enum):
    WIN = "win"
    LOSS = "loss"
    DRAW = "draw"


# ---------- Board ----------


def new_board() -> Board:
    return [EMPTY] * 9


def is_full(board: Sequence[str]) -> bool:
    return all(cell != EMPTY for cell in board)


def evaluate(board: Sequence[str]) -> Optional[Symbol]:
    """Return the symbol owning a complete line, or ``None``.

    Lines are checked in fixed order (rows, columns, diagonals) and the first
    uniform non-empty triple wins.
    """
    for a, b, c in WINNING_LINES:
        v = board[a]
        if v != EMPTY and v == board[b] == board[c]:
            return v
    return None


def other(symbol: Symbol) -> Symbol:
    return "O" if symbol == "X" else "X"


# ---------- Players & stats ----------


@dataclass(frozen=True)
class Player:
    id: str
    symbol: Symbol
    avatar: str


@dataclass
class SessionStats:
    """Win/loss/draw counters that outlive individual games."""

    total_matches: int = 0
    wins: int = 0
    losses: int = 0
    draws: int = 0

    def record(self, result: GameResult) -> None:
        self.total_matches += 1
        if result is GameResult.WIN:
            self.wins += 1
        elif result is GameResult.LOSS:
            self.losses += 1
        else:
            self.draws += 1
