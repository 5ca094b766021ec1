"""Game logic: board state machine and win detection."""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from app.board import (
    DEFAULT_BOARD_SIZE,
    DEFAULT_WIN_LENGTH,
    MAX_BOARD_SIZE,
    MIN_BOARD_SIZE,
    MIN_WIN_LENGTH,
    Board,
    Symbol,
    effective_win_length,
    in_bounds,
    make_board,
)

# Four directions: horizontal, vertical, diagonal ↘, diagonal ↙
DIRECTIONS = [
    (0, 1),
    (1, 0),
    (1, 1),
    (1, -1),
]

DRAW = "Draw"


def detect_win(board: Board, row: int, col: int, target_run: int) -> Symbol | None:
    """Check whether the mark just placed at (row, col) completes a run of target_run.

    Only the four lines through the placed cell are inspected. Returns the
    winning symbol, or None when there is no win or the cell is empty.
    """
    if not in_bounds(board, row, col):
        return None
    symbol = board[row][col]
    if symbol is None:
        return None

    for dr, dc in DIRECTIONS:
        count = 1

        # Extend in positive direction
        for i in range(1, target_run):
            r, c = row + dr * i, col + dc * i
            if not in_bounds(board, r, c) or board[r][c] != symbol:
                break
            count += 1

        # Extend in negative direction
        for i in range(1, target_run):
            r, c = row - dr * i, col - dc * i
            if not in_bounds(board, r, c) or board[r][c] != symbol:
                break
            count += 1

        if count >= target_run:
            return symbol

    return None


class GameStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    WON = "won"
    DRAW = "draw"


def result_label(status: GameStatus, winner: Symbol | None) -> str | None:
    """Result label: "X", "O", "Draw", or None while the game is running."""
    if status is GameStatus.WON:
        return winner.value
    if status is GameStatus.DRAW:
        return DRAW
    return None


@dataclass(frozen=True)
class MoveOutcome:
    accepted: bool
    status: GameStatus
    winner: Symbol | None = None
    # True only for the move that first ends the game after a reset.
    should_persist: bool = False


@dataclass(frozen=True)
class GameSnapshot:
    board: tuple[tuple[Symbol | None, ...], ...]
    size: int
    win_length: int
    current_player: Symbol
    move_count: int
    status: GameStatus
    winner: Symbol | None

    @property
    def result(self) -> str | None:
        return result_label(self.status, self.winner)


class GameState:
    def __init__(self, size: int = DEFAULT_BOARD_SIZE, win_length: int = DEFAULT_WIN_LENGTH):
        self.size = size
        self.win_length = win_length
        self.reset(size, win_length)

    def reset(self, size: int | None = None, win_length: int | None = None) -> None:
        """Start a fresh game, optionally on a new board size or win length."""
        size = self.size if size is None else size
        if size < MIN_BOARD_SIZE or size > MAX_BOARD_SIZE:
            raise ValueError(f"Board size must be between {MIN_BOARD_SIZE} and {MAX_BOARD_SIZE}")
        win_length = self.win_length if win_length is None else win_length
        if win_length < MIN_WIN_LENGTH:
            raise ValueError(f"Win length must be at least {MIN_WIN_LENGTH}")

        self.size = size
        self.win_length = effective_win_length(win_length, size)
        self.board: Board = make_board(size)
        self.current_player: Symbol = Symbol.X
        self.move_count: int = 0
        self.status: GameStatus = GameStatus.IN_PROGRESS
        self.winner: Symbol | None = None
        self._reported: bool = False
        self.started_at: float = time.monotonic()

    @property
    def is_game_over(self) -> bool:
        return self.status is not GameStatus.IN_PROGRESS

    @property
    def result(self) -> str | None:
        return result_label(self.status, self.winner)

    @property
    def elapsed_seconds(self) -> int:
        return int(time.monotonic() - self.started_at)

    def play(self, row: int, col: int) -> MoveOutcome:
        """Place the active symbol at (row, col). Illegal moves are ignored."""
        if self.is_game_over or not in_bounds(self.board, row, col) or self.board[row][col] is not None:
            logger.debug(f"Ignored move ({row}, {col}): status={self.status.value}")
            return MoveOutcome(accepted=False, status=self.status, winner=self.winner)

        symbol = self.current_player
        self.board[row][col] = symbol
        self.move_count += 1

        winner = detect_win(self.board, row, col, self.win_length)
        if winner is not None:
            self.status = GameStatus.WON
            self.winner = winner
        elif self.move_count == self.size * self.size:
            self.status = GameStatus.DRAW
        else:
            # Switch turn
            self.current_player = symbol.other
            return MoveOutcome(accepted=True, status=self.status)

        should_persist = not self._reported
        self._reported = True
        return MoveOutcome(
            accepted=True, status=self.status, winner=self.winner, should_persist=should_persist
        )

    def snapshot(self) -> GameSnapshot:
        return GameSnapshot(
            board=tuple(tuple(line) for line in self.board),
            size=self.size,
            win_length=self.win_length,
            current_player=self.current_player,
            move_count=self.move_count,
            status=self.status,
            winner=self.winner,
        )
