"""Coin toss deciding which player moves first."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple
import random

from .errors import InvalidTossChoice
from .turns import PLAYERS, PlayerIndex, other_player

TOSS_CHOICES: Tuple[str, str] = ("head", "tails")


@dataclass(frozen=True)
class TossOutcome:
    caller: PlayerIndex
    player_choice: str
    server_choice: str
    toss_winner: PlayerIndex

    @property
    def starting_player(self) -> PlayerIndex:
        return self.toss_winner


class TossResolver:
    """Picks a caller, then flips its own coin independently of the call.

    The starting player is the caller when the call matches the flip and the
    other player otherwise, which is an even split whoever calls.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def choose_caller(self) -> PlayerIndex:
        return self.rng.choice(PLAYERS)

    def flip(self) -> str:
        return self.rng.choice(TOSS_CHOICES)

    def resolve(self, caller: PlayerIndex, call: str) -> TossOutcome:
        if call not in TOSS_CHOICES:
            raise InvalidTossChoice()
        if caller not in PLAYERS:
            raise ValueError(f"Unknown caller {caller!r}")
        server_choice = self.flip()
        winner = caller if call == server_choice else other_player(caller)
        return TossOutcome(
            caller=caller,
            player_choice=call,
            server_choice=server_choice,
            toss_winner=winner,
        )

    def random_starter(self) -> PlayerIndex:
        return self.rng.choice(PLAYERS)
