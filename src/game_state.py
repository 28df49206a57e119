# game_state.py
# The stateful 2048 game: owns a board, the cumulative score and the progress
# state, and only changes them through make_move().

import logging
import random
from typing import Dict, List, Optional, Sequence, Tuple

from core import (
    DEFAULT_BOARD_SIZE,
    DIRECTION,
    MIN_BOARD_SIZE,
    Board,
    GameProgressState,
    add_random_tile,
    determine_game_status,
    process_move,
    win_tile_for_size,
)
from errors import IllegalMove, InvalidConfiguration

logger = logging.getLogger(__name__)


class Game:
    """
    A single game of 2048 on an N x N board.

    The outcome of every direction is computed after each mutation, so
    ``legal_moves()`` and the status always describe the current board.
    Cached outcome boards are never mutated; ``make_move`` spawns onto a copy.
    """

    def __init__(self, size: int = DEFAULT_BOARD_SIZE, rng: Optional[random.Random] = None):
        """
        Starts a new game with two random tiles on an otherwise empty board.
        Args:
            size (int): The dimension of the N x N board. Must be at least MIN_BOARD_SIZE.
            rng (random.Random, optional): Random stream for tile spawns.
        Raises:
            InvalidConfiguration: If size is not an integer of at least MIN_BOARD_SIZE.
        """
        if not isinstance(size, int) or isinstance(size, bool) or size < MIN_BOARD_SIZE:
            raise InvalidConfiguration(f"Board size must be an integer of at least {MIN_BOARD_SIZE}, got {size!r}.")

        rng = rng if rng is not None else random.Random()
        board = Board(size)
        add_random_tile(board, rng)
        add_random_tile(board, rng)
        self._install(board, 0, rng)

    @classmethod
    def from_existing(cls, rows: Sequence[Sequence[int]], score: int = 0,
                      rng: Optional[random.Random] = None) -> "Game":
        """
        Resumes a game from a board held elsewhere (e.g. by an API client).
        Args:
            rows (Sequence[Sequence[int]]): The N x N board.
            score (int): The score accumulated so far.
            rng (random.Random, optional): Random stream for tile spawns.
        Returns:
            Game: The game, with its status derived from the board.
        Raises:
            InvalidConfiguration: If the board is invalid or the score is negative.
        """
        if not isinstance(score, int) or isinstance(score, bool) or score < 0:
            raise InvalidConfiguration(f"Score must be a non-negative integer, got {score!r}.")
        game = cls.__new__(cls)
        game._install(Board.from_rows(rows), score, rng if rng is not None else random.Random())
        return game

    def _install(self, board: Board, score: int, rng: random.Random) -> None:
        self._board = board
        self._score = score
        self._rng = rng
        self._win_tile = win_tile_for_size(board.size)
        self._refresh()

    def _refresh(self) -> None:
        """Recomputes the per-direction outcomes and the progress state."""
        outcomes: Dict[DIRECTION, Tuple[Board, int]] = {}
        for direction in DIRECTION:
            new_board, score_gained, changed = process_move(self._board, direction)
            if changed:
                outcomes[direction] = (new_board, score_gained)
        self._outcomes = outcomes
        self._status = determine_game_status(self._board, self._win_tile, list(outcomes))

    # --- Queries ---

    @property
    def board(self) -> Board:
        """A copy of the current board."""
        return self._board.copy()

    @property
    def score(self) -> int:
        return self._score

    @property
    def status(self) -> GameProgressState:
        return self._status

    @property
    def size(self) -> int:
        return self._board.size

    @property
    def win_tile(self) -> int:
        return self._win_tile

    @property
    def max_tile(self) -> int:
        return self._board.max_tile()

    def legal_moves(self) -> List[DIRECTION]:
        """Directions that would change the board, in canonical order."""
        return [direction for direction in DIRECTION if direction in self._outcomes]

    def is_game_over(self) -> bool:
        return self._status is not GameProgressState.IN_PROGRESS

    # --- Transitions ---

    def make_move(self, direction: DIRECTION) -> int:
        """
        Slides the board, adds the merge score, spawns a tile and updates the status.
        Args:
            direction (DIRECTION): The direction to move.
        Returns:
            int: The score gained by this move.
        Raises:
            IllegalMove: If the game is over or the move would not change the
                         board. The game is left untouched.
        """
        if self._status is not GameProgressState.IN_PROGRESS:
            raise IllegalMove(f"The game is over ({self._status.name}); no further moves are accepted.")
        outcome = self._outcomes.get(direction)
        if outcome is None:
            raise IllegalMove(f"Move {getattr(direction, 'name', direction)} does not change the board.")

        moved_board, score_gained = outcome
        new_board = moved_board.copy()
        add_random_tile(new_board, self._rng)

        self._board = new_board
        self._score += score_gained
        self._refresh()
        logger.debug("Moved %s: +%d (score %d, status %s)",
                     direction.name, score_gained, self._score, self._status.name)
        return score_gained

    def clone(self, rng: Optional[random.Random] = None) -> "Game":
        """
        Returns an independent copy of this game.
        Args:
            rng (random.Random, optional): Random stream for the copy. A fresh
                                           unseeded one is used when omitted.
        """
        clone = Game.__new__(Game)
        clone._board = self._board.copy()
        clone._score = self._score
        clone._rng = rng if rng is not None else random.Random()
        clone._win_tile = self._win_tile
        # Outcome boards are never mutated, so the copy can share them.
        clone._outcomes = dict(self._outcomes)
        clone._status = self._status
        return clone

    def __repr__(self) -> str:
        return f"Game(size={self.size}, score={self._score}, status={self._status.name})"

    def __str__(self) -> str:
        return f"Board:\n{self._board}\nScore: {self._score}"
