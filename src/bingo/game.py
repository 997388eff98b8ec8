"""Core rules for Bingo: boards, line completion and win detection."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple
import random

from .errors import AlreadyStruck, GameNotInProgress, InvalidNumber
from .turns import PLAYERS, PlayerIndex, TurnMachine, other_player

BOARD_SIZE = 5
CELL_COUNT = BOARD_SIZE * BOARD_SIZE
DEFAULT_MAX_NUMBER = 25
WINNING_LINE_COUNT = 5

# Rows 0-4, columns 5-9, main diagonal 10, anti-diagonal 11.
LINES: Tuple[Tuple[int, ...], ...] = (
    tuple(tuple(r * BOARD_SIZE + c for c in range(BOARD_SIZE)) for r in range(BOARD_SIZE))
    + tuple(tuple(r * BOARD_SIZE + c for r in range(BOARD_SIZE)) for c in range(BOARD_SIZE))
    + (
        tuple(i * BOARD_SIZE + i for i in range(BOARD_SIZE)),
        tuple(i * BOARD_SIZE + (BOARD_SIZE - 1 - i) for i in range(BOARD_SIZE)),
    )
)


# ---------- Board ----------


@dataclass
class Board:
    numbers: Tuple[int, ...]
    struck: List[bool] = field(default_factory=lambda: [False] * CELL_COUNT)

    def __post_init__(self) -> None:
        self.numbers = tuple(self.numbers)
        if len(self.numbers) != CELL_COUNT:
            raise ValueError(f"A board holds exactly {CELL_COUNT} numbers")
        if len(set(self.numbers)) != CELL_COUNT:
            raise ValueError("Board numbers must be distinct")
        if len(self.struck) != CELL_COUNT:
            raise ValueError(f"A board holds exactly {CELL_COUNT} struck flags")
        self._positions: Dict[int, int] = {n: i for i, n in enumerate(self.numbers)}

    def __contains__(self, number: object) -> bool:
        return number in self._positions

    def is_struck(self, number: int) -> bool:
        idx = self._positions.get(number)
        return idx is not None and self.struck[idx]

    def strike(self, number: int) -> bool:
        """Strike ``number``; False when it is absent or already struck."""
        idx = self._positions.get(number)
        if idx is None or self.struck[idx]:
            return False
        self.struck[idx] = True
        return True

    def line_is_complete(self, line_index: int) -> bool:
        return all(self.struck[i] for i in LINES[line_index])

    def completed_lines(self, previous: Set[int] = frozenset()) -> Set[int]:
        """Lines fully struck now that are not already recorded in ``previous``."""
        return {
            i
            for i in range(len(LINES))
            if i not in previous and self.line_is_complete(i)
        }

    def unstruck_numbers(self) -> List[int]:
        return [n for n, hit in zip(self.numbers, self.struck) if not hit]


def generate_board(
    rng: Optional[random.Random] = None, max_number: int = DEFAULT_MAX_NUMBER
) -> Board:
    """Draw 25 distinct numbers from ``1..max_number`` in random order."""
    if max_number < CELL_COUNT:
        raise ValueError(f"max_number must be at least {CELL_COUNT}")
    rng = rng or random.Random()
    return Board(numbers=tuple(rng.sample(range(1, max_number + 1), CELL_COUNT)))


# ---------- Game ----------


@dataclass
class MoveResult:
    player: PlayerIndex
    number: int
    new_lines: Dict[PlayerIndex, Set[int]]
    winner: Optional[PlayerIndex] = None


@dataclass
class BingoGame:
    """Two boards over a shared number pool plus the turn machine driving them."""

    boards: Dict[PlayerIndex, Board]
    struck_lines: Dict[PlayerIndex, Set[int]] = field(
        default_factory=lambda: {p: set() for p in PLAYERS}
    )
    turns: TurnMachine = field(default_factory=TurnMachine)
    winner: Optional[PlayerIndex] = None

    @classmethod
    def new(
        cls,
        rng: Optional[random.Random] = None,
        max_number: int = DEFAULT_MAX_NUMBER,
    ) -> "BingoGame":
        return cls(boards={p: generate_board(rng, max_number) for p in PLAYERS})

    # ---- API used by rooms, UI & AI ----

    @property
    def current_player(self) -> Optional[PlayerIndex]:
        return self.turns.current_player

    def board_for(self, player: PlayerIndex) -> Board:
        return self.boards[player]

    def line_count(self, player: PlayerIndex) -> int:
        return len(self.struck_lines[player])

    def start(self, starting_player: PlayerIndex) -> None:
        self.turns.begin(starting_player)

    def reset(
        self,
        rng: Optional[random.Random] = None,
        max_number: int = DEFAULT_MAX_NUMBER,
    ) -> None:
        """Fresh boards and empty line sets; the turn machine awaits a toss."""
        self.boards = {p: generate_board(rng, max_number) for p in PLAYERS}
        self.struck_lines = {p: set() for p in PLAYERS}
        self.winner = None
        self.turns.reset()

    def play_number(self, player: PlayerIndex, number: int) -> MoveResult:
        """Strike ``number`` on both boards for ``player``'s move.

        The mover's board is checked for new lines first, so when both players
        reach the winning count on the same strike the mover wins.
        """
        if self.winner is not None:
            raise GameNotInProgress("Game has ended.")
        self.turns.require_turn(player)

        own = self.boards[player]
        if number not in own:
            raise InvalidNumber(f"Number {number} is not on your board.")
        if own.is_struck(number):
            raise AlreadyStruck(f"Number {number} is already struck.")

        opponent = other_player(player)
        own.strike(number)
        self.boards[opponent].strike(number)

        new_lines: Dict[PlayerIndex, Set[int]] = {}
        for p in (player, opponent):
            fresh = self.boards[p].completed_lines(self.struck_lines[p])
            self.struck_lines[p] |= fresh
            new_lines[p] = fresh

        for p in (player, opponent):
            if self.line_count(p) >= WINNING_LINE_COUNT:
                self.winner = p
                break

        if self.winner is not None:
            self.turns.finish()
        else:
            self.turns.advance()
        return MoveResult(
            player=player, number=number, new_lines=new_lines, winner=self.winner
        )
