# core.py
# This file is intended to be the deterministic core logic for a 2048 game:
# the board, move processing, tile spawning and game status rules.

from enum import Enum
from typing import Iterator, List, Optional, Sequence, Tuple
import random

from errors import InvalidConfiguration

MIN_BOARD_SIZE = 4
DEFAULT_BOARD_SIZE = 4
# The win tile is 2 ** (size + offset): 2048 on 4x4, 4096 on 5x5, ...
WIN_TILE_EXPONENT_OFFSET = 7
SPAWN_FOUR_PROBABILITY = 0.1
# Largest power of two that fits an unsigned 64-bit cell; two such tiles never merge.
MAX_TILE_VALUE = 2 ** 63


class GameProgressState(Enum):
    """Represents the current progress state of the game."""
    IN_PROGRESS = 1
    GAME_LOST = 2
    GAME_WON = 3


class DIRECTION(Enum):
    """Represents the possible move directions, in canonical order."""
    UP = 1
    DOWN = 2
    LEFT = 3
    RIGHT = 4


def is_valid_tile(value: int) -> bool:
    """
    Checks whether a value may be stored in a board cell.
    Args:
        value (int): The candidate cell value.
    Returns:
        bool: True for 0 (empty) or a power of two between 2 and MAX_TILE_VALUE.
    """
    if not isinstance(value, int) or isinstance(value, bool):
        return False
    if value == 0:
        return True
    return 2 <= value <= MAX_TILE_VALUE and value & (value - 1) == 0


def win_tile_for_size(size: int) -> int:
    """Returns the tile value that wins a game on a size x size board."""
    return 2 ** (size + WIN_TILE_EXPONENT_OFFSET)


# --- Board ---

class Board:
    """
    A fixed-size N x N grid of tile values, 0 marking an empty cell.

    Cells are addressed as ``board[row, col]``. The dimension is chosen at
    construction and never changes.
    """

    __slots__ = ("_size", "_rows")

    def __init__(self, size: int):
        if not isinstance(size, int) or isinstance(size, bool) or size < MIN_BOARD_SIZE:
            raise InvalidConfiguration(f"Board size must be an integer of at least {MIN_BOARD_SIZE}, got {size!r}.")
        self._size = size
        self._rows: List[List[int]] = [[0] * size for _ in range(size)]

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[int]]) -> "Board":
        """
        Builds a board from a list of rows, validating shape and values.
        Args:
            rows (Sequence[Sequence[int]]): Square matrix of cell values.
        Returns:
            Board: A new board holding a copy of the values.
        Raises:
            InvalidConfiguration: If the matrix is not square, is smaller than
                                  MIN_BOARD_SIZE, or holds an invalid tile.
        """
        size = len(rows)
        if size < MIN_BOARD_SIZE:
            raise InvalidConfiguration(f"Board size must be at least {MIN_BOARD_SIZE}, got {size}.")
        if not all(len(row) == size for row in rows):
            raise InvalidConfiguration("Board must be a square matrix.")
        for row in rows:
            for value in row:
                if not is_valid_tile(value):
                    raise InvalidConfiguration(
                        f"Invalid tile value {value!r}: must be 0 or a power of two from 2 to {MAX_TILE_VALUE}."
                    )
        board = cls(size)
        board._rows = [list(row) for row in rows]
        return board

    @property
    def size(self) -> int:
        return self._size

    def _check_position(self, position: Tuple[int, int]) -> Tuple[int, int]:
        row, col = position
        if not (0 <= row < self._size and 0 <= col < self._size):
            raise IndexError(f"Cell ({row}, {col}) is outside a {self._size}x{self._size} board.")
        return row, col

    def __getitem__(self, position: Tuple[int, int]) -> int:
        row, col = self._check_position(position)
        return self._rows[row][col]

    def __setitem__(self, position: Tuple[int, int], value: int) -> None:
        row, col = self._check_position(position)
        if not is_valid_tile(value):
            raise ValueError(f"Invalid tile value {value!r}.")
        self._rows[row][col] = value

    def empty_cells(self) -> List[Tuple[int, int]]:
        """
        Get coordinates of empty (0-value) cells.
        Returns:
            List[Tuple[int, int]]: List of (row, col) tuples in row-major order.
        """
        return [
            (r, c)
            for r, row in enumerate(self._rows)
            for c, value in enumerate(row)
            if value == 0
        ]

    def max_tile(self) -> int:
        return max(max(row) for row in self._rows)

    def rows(self) -> List[List[int]]:
        """Returns a copy of the cells as a list of rows."""
        return [list(row) for row in self._rows]

    def copy(self) -> "Board":
        clone = Board.__new__(Board)
        clone._size = self._size
        clone._rows = [list(row) for row in self._rows]
        return clone

    def __iter__(self) -> Iterator[Tuple[int, ...]]:
        return (tuple(row) for row in self._rows)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Board):
            return NotImplemented
        return self._size == other._size and self._rows == other._rows

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        return f"Board.from_rows({self._rows!r})"

    def __str__(self) -> str:
        width = len(str(self.max_tile())) + 1
        return "\n".join("".join(f"{value:>{width}}" for value in row) for row in self._rows)


# --- Spawner ---

def add_random_tile(board: Board, rng=random) -> bool:
    """
    Adds a new tile (90% chance of 2, 10% chance of 4) to a random empty cell, in place.
    Args:
        board (Board): The board to mutate.
        rng: Source of randomness offering choice() and random(); defaults to
             the random module, pass a random.Random for an independent stream.
    Returns:
        bool: True if a tile was placed, False if the board had no empty cell
              (the board is left untouched).
    """
    empty_cells = board.empty_cells()
    if not empty_cells:
        return False

    row, col = rng.choice(empty_cells)
    board._rows[row][col] = 4 if rng.random() < SPAWN_FOUR_PROBABILITY else 2
    return True


# --- Line Manipulation (Core Move Logic Helpers) ---

def _compress_line(line: Sequence[int]) -> List[int]:
    """Moves all non-zero tiles of a line towards index 0, padding with zeros."""
    compressed = [value for value in line if value != 0]
    return compressed + [0] * (len(line) - len(compressed))


def _merge_line(line: Sequence[int]) -> Tuple[List[int], int]:
    """
    Merges adjacent identical numbers in a compressed line (moving towards index 0).
    Each tile takes part in at most one merge; MAX_TILE_VALUE tiles do not merge.
    Args:
        line (Sequence[int]): A line already compressed by _compress_line.
    Returns:
        Tuple[List[int], int]: The merged line (may contain gaps) and the score gained.
    """
    n = len(line)
    merged = [0] * n
    score_increase = 0
    write_idx = 0
    read_idx = 0

    while read_idx < n and line[read_idx] != 0:
        current_val = line[read_idx]
        if read_idx + 1 < n and current_val == line[read_idx + 1] and current_val < MAX_TILE_VALUE:
            merged[write_idx] = current_val * 2
            score_increase += current_val * 2
            read_idx += 2  # skip the consumed neighbour
        else:
            merged[write_idx] = current_val
            read_idx += 1
        write_idx += 1

    return merged, score_increase


def slide_line(line: Sequence[int]) -> Tuple[List[int], int]:
    """
    Slides a single line towards index 0: compress, merge, then compress again.
    Args:
        line (Sequence[int]): The line, oriented so the move direction is index 0.
    Returns:
        Tuple[List[int], int]: The processed line and the score gained by merges.
    """
    merged, score_increase = _merge_line(_compress_line(line))
    return _compress_line(merged), score_increase


# --- Board Transformations ---

def transpose_board(rows: List[List[int]]) -> List[List[int]]:
    """Swaps rows and columns of a list-of-rows matrix."""
    return [list(column) for column in zip(*rows)]


def reverse_rows(rows: List[List[int]]) -> List[List[int]]:
    """Reverses each row of a list-of-rows matrix."""
    return [row[::-1] for row in rows]


def _slide_all_lines(rows: List[List[int]]) -> Tuple[List[List[int]], int, bool]:
    """
    Applies slide_line to every row of a matrix.
    Returns:
        Tuple[List[List[int]], int, bool]: The processed matrix, total score
                                           increase, and whether any row changed.
    """
    processed = []
    total_score_increase = 0
    changed = False

    for row in rows:
        new_row, score_from_line = slide_line(row)
        if new_row != row:
            changed = True
        total_score_increase += score_from_line
        processed.append(new_row)

    return processed, total_score_increase, changed


# --- Core Game Move Processing ---

def process_move(board: Board, direction: DIRECTION) -> Tuple[Board, int, bool]:
    """
    Processes a move in the specified direction without touching the input board.
    Args:
        board (Board): The current game board.
        direction (DIRECTION): The direction to move.
    Returns:
        Tuple[Board, int, bool]:
            - The new board state after the move.
            - The score gained from this move.
            - A boolean indicating if the board changed as a result of the move.
    Raises:
        ValueError: If an invalid direction is specified.
    """
    rows = board._rows

    if direction is DIRECTION.LEFT:
        moved, score_gained, changed = _slide_all_lines(rows)
    elif direction is DIRECTION.RIGHT:
        moved, score_gained, changed = _slide_all_lines(reverse_rows(rows))
        moved = reverse_rows(moved)
    elif direction is DIRECTION.UP:
        moved, score_gained, changed = _slide_all_lines(transpose_board(rows))
        moved = transpose_board(moved)
    elif direction is DIRECTION.DOWN:
        moved, score_gained, changed = _slide_all_lines(reverse_rows(transpose_board(rows)))
        moved = transpose_board(reverse_rows(moved))
    else:
        raise ValueError(f"Invalid direction specified for process_move: {direction!r}")

    new_board = Board.__new__(Board)
    new_board._size = board._size
    new_board._rows = moved
    return new_board, score_gained, changed


# --- Game State Checks ---

def check_for_win(board: Board, win_tile: int) -> bool:
    """
    Check if the game is won (a tile of at least win_tile exists).
    Args:
        board (Board): The game board.
        win_tile (int): The tile value that signifies a win.
    Returns:
        bool: True if the game is won, False otherwise.
    """
    return board.max_tile() >= win_tile


def legal_directions(board: Board) -> List[DIRECTION]:
    """Returns, in canonical order, the directions that would change the board."""
    return [direction for direction in DIRECTION if process_move(board, direction)[2]]


def determine_game_status(board: Board, win_tile: int,
                          legal: Optional[Sequence[DIRECTION]] = None) -> GameProgressState:
    """
    Determines the current progress state of the game based on the board.
    The win check comes first: a board holding the win tile is won even if it is full.
    Args:
        board (Board): The current game board.
        win_tile (int): The tile value that signifies a win.
        legal (Sequence[DIRECTION], optional): The legal directions, when the
                                               caller has already computed them.
    Returns:
        GameProgressState: The current state (IN_PROGRESS, GAME_WON, GAME_LOST).
    """
    if check_for_win(board, win_tile):
        return GameProgressState.GAME_WON

    if legal is None:
        legal = legal_directions(board)
    if not legal:
        return GameProgressState.GAME_LOST

    return GameProgressState.IN_PROGRESS
