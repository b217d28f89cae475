"""StarXO package exposing the game flow, its rules, and the web application."""

from .game import GamePhase, GameResult, SessionStats, evaluate
from .machine import GameMachine
from .ui import app

__all__ = ["GameMachine", "GamePhase", "GameResult", "SessionStats", "app", "evaluate"]
