"""Bingo package exposing the game engine, multiplayer relay, and web application."""

from .ai import HeuristicAI
from .game import BingoGame, Board, generate_board
from .relay import RelayHub
from .rooms import RoomRegistry
from .ui import app

__all__ = [
    "BingoGame",
    "Board",
    "HeuristicAI",
    "RelayHub",
    "RoomRegistry",
    "app",
    "generate_board",
]
