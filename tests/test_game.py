"""Unit tests for Bingo boards and game rules."""

import random

import pytest

from bingo.errors import AlreadyStruck, GameNotInProgress, InvalidNumber, NotYourTurn
from bingo.game import LINES, WINNING_LINE_COUNT, BingoGame, Board, generate_board
from bingo.turns import TurnState

from helpers import ordered_board, transposed_board

# Row 0, column 0 and the main diagonal of ordered_board().
THREE_LINES = (1, 2, 3, 4, 5, 6, 11, 16, 21, 7, 13, 19, 25)


def _game(board1=None, board2=None, starter=1):
    game = BingoGame(boards={1: board1 or ordered_board(), 2: board2 or transposed_board()})
    game.start(starter)
    return game


def _play_all(game, numbers):
    result = None
    for number in numbers:
        result = game.play_number(game.current_player, number)
    return result


def test_lines_cover_rows_columns_and_diagonals():
    assert len(LINES) == 12
    assert all(len(set(line)) == 5 for line in LINES)
    assert LINES[0] == (0, 1, 2, 3, 4)
    assert LINES[5] == (0, 5, 10, 15, 20)
    assert LINES[10] == (0, 6, 12, 18, 24)
    assert LINES[11] == (4, 8, 12, 16, 20)


def test_generated_boards_are_distinct_and_in_range():
    rng = random.Random(42)
    for _ in range(200):
        board = generate_board(rng)
        assert len(board.numbers) == 25
        assert sorted(board.numbers) == list(range(1, 26))


def test_generated_board_variant_draws_from_larger_pool():
    board = generate_board(random.Random(3), max_number=75)
    assert len(set(board.numbers)) == 25
    assert all(1 <= n <= 75 for n in board.numbers)


def test_board_rejects_duplicates_and_wrong_size():
    with pytest.raises(ValueError):
        Board(numbers=tuple([1] * 25))
    with pytest.raises(ValueError):
        Board(numbers=tuple(range(1, 25)))
    with pytest.raises(ValueError):
        generate_board(max_number=24)


def test_strike_is_idempotent_and_ignores_absent_numbers():
    board = ordered_board()
    assert board.strike(7) is True
    assert board.strike(7) is False
    assert board.strike(99) is False
    assert board.is_struck(7)
    assert sum(board.struck) == 1


def test_completed_lines_only_reports_new_lines():
    board = ordered_board()
    for n in (1, 2, 3, 4, 5):
        board.strike(n)
    assert board.completed_lines(set()) == {0}
    assert board.completed_lines({0}) == set()


def test_move_strikes_both_boards_and_passes_turn():
    game = _game()
    result = game.play_number(1, 8)
    assert game.boards[1].is_struck(8)
    assert game.boards[2].is_struck(8)
    assert result.winner is None
    assert game.current_player == 2
    assert game.turns.state is TurnState.PLAYER2_TURN


def test_rejected_moves_leave_turn_unchanged():
    game = _game()
    with pytest.raises(NotYourTurn):
        game.play_number(2, 8)
    game.play_number(1, 8)
    with pytest.raises(AlreadyStruck):
        game.play_number(2, 8)
    with pytest.raises(InvalidNumber):
        game.play_number(2, 60)
    assert game.current_player == 2


def test_three_lines_do_not_win():
    game = _game()
    _play_all(game, THREE_LINES)
    assert game.struck_lines[1] == {0, 5, 10}
    # The transposed board sees the same three lines from the other side.
    assert game.struck_lines[2] == {0, 5, 10}
    assert game.winner is None
    assert game.turns.state is not TurnState.ENDED


def test_struck_line_sets_never_shrink():
    game = _game()
    sizes = []
    for number in THREE_LINES:
        game.play_number(game.current_player, number)
        sizes.append(game.line_count(1))
    assert sizes == sorted(sizes)


def test_win_fires_once_when_five_lines_reached():
    game = _game(board2=generate_board(random.Random(5)))
    # Rows 0-3 give four lines; 21..24 then complete column after column.
    numbers = list(range(1, 21)) + [21, 22, 23, 24, 25]
    winners = []
    for number in numbers:
        if game.winner is not None:
            break
        result = game.play_number(game.current_player, number)
        winners.append(result.winner)
    assert game.winner is not None
    assert game.line_count(game.winner) >= WINNING_LINE_COUNT
    assert sum(1 for w in winners if w is not None) == 1
    assert game.turns.state is TurnState.ENDED
    with pytest.raises(GameNotInProgress):
        game.play_number(1, 25)


def test_mover_wins_when_both_reach_five_together():
    game = _game(board1=ordered_board(), board2=ordered_board())
    last = None
    for number in range(1, 26):
        last = game.play_number(game.current_player, number)
        if last.winner is not None:
            break
    assert last.winner == last.player
    assert game.line_count(1) == game.line_count(2)


def test_opponent_wins_through_cross_strike():
    game = _game(board1=transposed_board(), board2=ordered_board())
    opponent_board = game.boards[2]
    # Four full rows struck on player 2's board only.
    for n in range(1, 21):
        opponent_board.strike(n)
    game.struck_lines[2] = opponent_board.completed_lines()
    assert game.line_count(2) == 4

    # 21 closes column 0 and the anti-diagonal for player 2 but nothing for the mover.
    result = game.play_number(1, 21)
    assert result.winner == 2
    assert game.winner == 2
    assert result.new_lines == {1: set(), 2: {5, 11}}


def test_reset_deals_fresh_boards_and_awaits_toss():
    game = _game()
    _play_all(game, THREE_LINES)
    game.reset(random.Random(1))
    assert game.struck_lines == {1: set(), 2: set()}
    assert not any(game.boards[1].struck)
    assert game.turns.state is TurnState.AWAITING_TOSS
