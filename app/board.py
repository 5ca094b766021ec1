"""Board factory and sizing policy."""

from __future__ import annotations

from enum import Enum

MIN_BOARD_SIZE = 3
MAX_BOARD_SIZE = 15
MIN_WIN_LENGTH = 3
MAX_WIN_LENGTH = 10

DEFAULT_BOARD_SIZE = 3
DEFAULT_WIN_LENGTH = 3


class Symbol(str, Enum):
    X = "X"
    O = "O"

    @property
    def other(self) -> Symbol:
        return Symbol.O if self is Symbol.X else Symbol.X


Cell = Symbol | None
Board = list[list[Cell]]


def make_board(n: int) -> Board:
    return [[None] * n for _ in range(n)]


def clamp_win_length(k: int, n: int) -> int:
    """A run can never be longer than the board is wide."""
    return min(k, n)


def effective_win_length(k: int, n: int) -> int:
    """Win length actually used on an n×n board: clamped to n and to MAX_WIN_LENGTH."""
    return min(clamp_win_length(k, n), MAX_WIN_LENGTH)


def win_length_options(n: int) -> list[int]:
    """Win lengths a player may pick for an n×n board."""
    return list(range(MIN_WIN_LENGTH, min(n, MAX_WIN_LENGTH) + 1))


def in_bounds(board: Board, row: int, col: int) -> bool:
    size = len(board)
    return 0 <= row < size and 0 <= col < size


def is_full(board: Board) -> bool:
    return all(cell is not None for line in board for cell in line)
