"""Turn state machine shared by local games and multiplayer rooms."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import GameNotInProgress, InvalidTransition, NotYourTurn

PlayerIndex = int  # 1 or 2
PLAYERS = (1, 2)


class TurnState(str, Enum):
    AWAITING_TOSS = "awaiting_toss"
    PLAYER1_TURN = "player1_turn"
    PLAYER2_TURN = "player2_turn"
    ENDED = "ended"


_TURN_STATES = {1: TurnState.PLAYER1_TURN, 2: TurnState.PLAYER2_TURN}


def other_player(player: PlayerIndex) -> PlayerIndex:
    if player not in PLAYERS:
        raise ValueError(f"Unknown player {player!r}")
    return 2 if player == 1 else 1


@dataclass
class TurnMachine:
    """Whose move it is, and whether moves are accepted at all."""

    state: TurnState = TurnState.AWAITING_TOSS

    @property
    def current_player(self) -> Optional[PlayerIndex]:
        if self.state is TurnState.PLAYER1_TURN:
            return 1
        if self.state is TurnState.PLAYER2_TURN:
            return 2
        return None

    @property
    def in_progress(self) -> bool:
        return self.current_player is not None

    @property
    def ended(self) -> bool:
        return self.state is TurnState.ENDED

    def begin(self, starting_player: PlayerIndex) -> None:
        if self.state is not TurnState.AWAITING_TOSS:
            raise InvalidTransition(f"Cannot start a game from {self.state.value}")
        if starting_player not in PLAYERS:
            raise InvalidTransition(f"Unknown starting player {starting_player!r}")
        self.state = _TURN_STATES[starting_player]

    def advance(self) -> PlayerIndex:
        current = self.current_player
        if current is None:
            raise InvalidTransition(f"Cannot pass the turn from {self.state.value}")
        nxt = other_player(current)
        self.state = _TURN_STATES[nxt]
        return nxt

    def finish(self) -> None:
        if not self.in_progress:
            raise InvalidTransition(f"Cannot end a game from {self.state.value}")
        self.state = TurnState.ENDED

    def reset(self) -> None:
        self.state = TurnState.AWAITING_TOSS

    def require_turn(self, player: PlayerIndex) -> None:
        """Raise unless ``player`` may move right now."""
        current = self.current_player
        if current is None:
            if self.ended:
                raise GameNotInProgress("Game has ended.")
            raise GameNotInProgress("Game has not started yet.")
        if current != player:
            raise NotYourTurn()
