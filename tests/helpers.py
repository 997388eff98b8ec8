"""Deterministic fixtures shared by the Bingo tests."""

from __future__ import annotations

import random
from typing import Iterable, List

from bingo.game import BOARD_SIZE, Board
from bingo.relay import RelayHub
from bingo.rooms import RoomRegistry


class ScriptedRandom(random.Random):
    """``random.Random`` whose ``choice`` replays a script before falling back."""

    script: List[object]

    def choice(self, seq):
        if getattr(self, "script", None):
            value = self.script.pop(0)
            assert value in seq, f"scripted {value!r} not in {seq!r}"
            return value
        return super().choice(seq)


def scripted(choices: Iterable[object], seed: int = 0) -> ScriptedRandom:
    rng = ScriptedRandom(seed)
    rng.script = list(choices)
    return rng


def ordered_board() -> Board:
    """Board holding 1..25 row by row."""
    return Board(numbers=tuple(range(1, BOARD_SIZE * BOARD_SIZE + 1)))


def transposed_board() -> Board:
    """Board where row ``r`` of ``ordered_board`` becomes column ``r``."""
    return Board(
        numbers=tuple(
            c * BOARD_SIZE + r + 1 for r in range(BOARD_SIZE) for c in range(BOARD_SIZE)
        )
    )


def make_hub(choices: Iterable[object] = (), codes: Iterable[str] = ("WXYZ",)) -> RelayHub:
    codes = list(codes)
    choices = list(choices)
    registry = RoomRegistry(
        code_generator=lambda: codes.pop(0),
        rng_factory=lambda: scripted(choices),
    )
    return RelayHub(registry)
