"""Line-chasing computer opponent for single-player Bingo."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List
import random

from .game import LINES, BingoGame, Board
from .turns import PlayerIndex

# Weights for lines close to completion vs. lines merely started.
NEAR_COMPLETE_THRESHOLD = 4
STARTED_THRESHOLD = 2
NEAR_COMPLETE_WEIGHT = 2
STARTED_WEIGHT = 1


@dataclass
class HeuristicAI:
    """AI player that prefers numbers finishing its most advanced lines.

    Public surface used by ui.py:
      - HeuristicAI(player=2)
      - choose(game) -> number
    """

    player: PlayerIndex = 2
    rng: random.Random = field(default_factory=random.Random, repr=False)

    # ---- public API ----

    def choose(self, game: BingoGame) -> int:
        if game.current_player != self.player:
            raise ValueError("It is not this AI player's turn")

        board = game.board_for(self.player)
        remaining = board.unstruck_numbers()
        if not remaining:
            raise RuntimeError("No numbers left to choose")

        scores = self.score_numbers(board)
        if scores:
            best = max(remaining, key=lambda n: scores.get(n, 0))
            if scores.get(best, 0) > 0:
                return best
        return self.rng.choice(remaining)

    # ---- heuristics ----

    def score_numbers(self, board: Board) -> Dict[int, int]:
        scores: Dict[int, int] = {}
        for line in LINES:
            struck_count = sum(1 for i in line if board.struck[i])
            if struck_count >= NEAR_COMPLETE_THRESHOLD:
                weight = NEAR_COMPLETE_WEIGHT
            elif struck_count >= STARTED_THRESHOLD:
                weight = STARTED_WEIGHT
            else:
                continue
            for n in self._open_numbers(board, line):
                scores[n] = scores.get(n, 0) + weight
        return scores

    @staticmethod
    def _open_numbers(board: Board, line: tuple) -> List[int]:
        return [board.numbers[i] for i in line if not board.struck[i]]
