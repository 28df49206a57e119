import random

import pytest

from core import DIRECTION, GameProgressState, determine_game_status
from errors import IllegalMove, InvalidConfiguration
from game_state import Game

LOST_BOARD = [
    [2, 4, 2, 4],
    [4, 2, 4, 2],
    [2, 4, 2, 4],
    [4, 2, 4, 2],
]

ALMOST_WON_BOARD = [
    [1024, 1024, 2, 4],
    [4, 2, 4, 2],
    [2, 4, 2, 4],
    [4, 2, 4, 2],
]


def non_empty(game):
    return [value for row in game.board for value in row if value]


def test_new_game_has_two_tiles_and_zero_score():
    game = Game(4, rng=random.Random(1))
    tiles = non_empty(game)
    assert len(tiles) == 2
    assert all(tile in (2, 4) for tile in tiles)
    assert game.score == 0
    assert game.status == GameProgressState.IN_PROGRESS
    assert game.size == 4
    assert game.win_tile == 2048


def test_new_game_on_larger_board():
    game = Game(6)
    assert game.size == 6
    assert game.win_tile == 8192
    assert len(non_empty(game)) == 2


@pytest.mark.parametrize("size", [3, 0, -4, "4", 4.0, True])
def test_new_game_rejects_invalid_size(size):
    with pytest.raises(InvalidConfiguration):
        Game(size)


def test_from_existing_validates_score_and_board():
    with pytest.raises(InvalidConfiguration):
        Game.from_existing(LOST_BOARD, score=-1)
    with pytest.raises(InvalidConfiguration):
        Game.from_existing([[2, 0, 0], [0, 0, 0], [0, 0, 0]])


def test_make_move_applies_merge_score_and_spawns():
    rows = [[2, 2, 0, 0]] + [[0, 0, 0, 0] for _ in range(3)]
    game = Game.from_existing(rows, score=10, rng=random.Random(3))

    gained = game.make_move(DIRECTION.LEFT)

    assert gained == 4
    assert game.score == 14
    assert game.board[0, 0] == 4
    assert len(non_empty(game)) == 2
    assert game.status == GameProgressState.IN_PROGRESS


def test_illegal_move_leaves_game_untouched():
    rows = [[2, 0, 0, 0]] + [[0, 0, 0, 0] for _ in range(3)]
    game = Game.from_existing(rows, score=8)
    assert game.legal_moves() == [DIRECTION.DOWN, DIRECTION.RIGHT]

    for direction in (DIRECTION.LEFT, DIRECTION.UP):
        with pytest.raises(IllegalMove):
            game.make_move(direction)

    assert game.board.rows() == rows
    assert game.score == 8
    assert game.status == GameProgressState.IN_PROGRESS


def test_make_move_rejects_non_direction():
    game = Game(4, rng=random.Random(0))
    before = game.board
    with pytest.raises(IllegalMove):
        game.make_move("LEFT")
    assert game.board == before


def test_lost_board_has_no_legal_moves_and_is_absorbing():
    game = Game.from_existing(LOST_BOARD, score=100)
    assert game.legal_moves() == []
    assert game.status == GameProgressState.GAME_LOST
    assert game.is_game_over()
    for direction in DIRECTION:
        with pytest.raises(IllegalMove):
            game.make_move(direction)
    assert game.score == 100


def test_win_registers_even_when_board_is_full():
    game = Game.from_existing(ALMOST_WON_BOARD, rng=random.Random(9))
    assert game.legal_moves() == [DIRECTION.LEFT, DIRECTION.RIGHT]

    gained = game.make_move(DIRECTION.LEFT)

    assert gained == 2048
    assert game.board.empty_cells() == []
    assert game.status == GameProgressState.GAME_WON
    with pytest.raises(IllegalMove):
        game.make_move(DIRECTION.RIGHT)
    assert game.score == 2048


def test_board_property_returns_a_copy():
    game = Game(4, rng=random.Random(4))
    board = game.board
    (row, col), = board.empty_cells()[:1]
    board[row, col] = 1024
    assert game.board[row, col] == 0


def test_clone_is_independent():
    game = Game(4, rng=random.Random(6))
    snapshot = game.board
    clone = game.clone(random.Random(1))

    clone.make_move(clone.legal_moves()[0])

    assert game.board == snapshot
    assert game.score == 0
    assert clone.board != snapshot


def test_full_game_status_only_moves_forward():
    game = Game(4, rng=random.Random(12))
    total = 0
    while not game.is_game_over():
        assert game.status == GameProgressState.IN_PROGRESS
        legal = game.legal_moves()
        assert legal
        total += game.make_move(legal[0])

    assert game.status in (GameProgressState.GAME_WON, GameProgressState.GAME_LOST)
    assert game.score == total
    if game.status == GameProgressState.GAME_LOST:
        assert game.legal_moves() == []
    for direction in DIRECTION:
        with pytest.raises(IllegalMove):
            game.make_move(direction)


def test_status_agrees_with_board_rules_after_every_move():
    game = Game(4, rng=random.Random(21))
    assert game.status == determine_game_status(game.board, game.win_tile)
    while not game.is_game_over():
        game.make_move(game.legal_moves()[-1])
        assert game.status == determine_game_status(game.board, game.win_tile)

    late = Game.from_existing(ALMOST_WON_BOARD)
    assert late.status == determine_game_status(late.board, late.win_tile)
    late.make_move(DIRECTION.LEFT)
    assert late.status == determine_game_status(late.board, late.win_tile) == GameProgressState.GAME_WON


def test_same_seed_gives_same_game():
    first = Game(5, rng=random.Random(77))
    second = Game(5, rng=random.Random(77))
    for _ in range(10):
        direction = first.legal_moves()[-1]
        first.make_move(direction)
        second.make_move(direction)
    assert first.board == second.board
    assert first.score == second.score


def test_str_shows_board_and_score():
    game = Game.from_existing(LOST_BOARD, score=42)
    text = str(game)
    assert text.startswith("Board:")
    assert text.endswith("Score: 42")
