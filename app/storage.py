"""SQLite persistence for user accounts, finished games, and player stats."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

from loguru import logger


class DuplicateUserError(ValueError):
    pass


class InvalidGameError(ValueError):
    pass


@dataclass
class User:
    id: str
    username: str
    nickname: str
    password_hash: bytes
    is_guest: bool
    created_at: str


@dataclass
class GameRecord:
    board_size: int
    is_win: bool
    moves: int
    player_x_id: str
    player_o_id: str
    winner_id: str | None = None
    duration_seconds: int | None = None
    id: str | None = None
    created_at: str | None = None


@dataclass
class Stats:
    total_games: int = 0
    wins: int = 0
    losses: int = 0
    draws: int = 0
    win_rate: float = 0.0


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class GameStore:
    """
    Relational store behind the account and stats endpoints.
    Tables: users(id, username, nickname, password_hash, is_guest_account, created_at)
    and games(id, board_size, is_win, moves, duration_seconds, winner_id,
    player_x_id, player_o_id, created_at). One connection per operation.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @contextmanager
    def _conn_db(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_schema(self):
        with self._conn_db() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    username TEXT NOT NULL UNIQUE,
                    nickname TEXT NOT NULL,
                    password_hash BLOB NOT NULL,
                    is_guest_account INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS games (
                    id TEXT PRIMARY KEY,
                    board_size INTEGER NOT NULL,
                    is_win INTEGER NOT NULL,
                    moves INTEGER NOT NULL,
                    duration_seconds INTEGER,
                    winner_id TEXT REFERENCES users(id),
                    player_x_id TEXT NOT NULL REFERENCES users(id),
                    player_o_id TEXT NOT NULL REFERENCES users(id),
                    created_at TEXT NOT NULL
                )
                """
            )
        logger.debug(f"Game store schema ensured at {self.db_path}")

    # ============================| Users |=============================================

    def create_user(self, username: str, nickname: str, password_hash: bytes, is_guest: bool = False) -> User:
        user = User(
            id=str(uuid4()),
            username=username,
            nickname=nickname,
            password_hash=password_hash,
            is_guest=is_guest,
            created_at=_now(),
        )
        try:
            with self._conn_db() as conn:
                conn.execute(
                    "INSERT INTO users(id, username, nickname, password_hash, is_guest_account, created_at)"
                    " VALUES(?,?,?,?,?,?)",
                    (user.id, user.username, user.nickname, user.password_hash, int(is_guest), user.created_at),
                )
        except sqlite3.IntegrityError as exc:
            raise DuplicateUserError(f"username '{username}' exists") from exc
        return user

    def get_user(self, user_id: str) -> User | None:
        with self._conn_db() as conn:
            row = conn.execute("SELECT * FROM users WHERE id=?", (user_id,)).fetchone()
        return self._user_from_row(row) if row else None

    def get_user_by_username(self, username: str) -> User | None:
        with self._conn_db() as conn:
            row = conn.execute("SELECT * FROM users WHERE username=?", (username,)).fetchone()
        return self._user_from_row(row) if row else None

    def list_guest_accounts(self) -> list[str]:
        with self._conn_db() as conn:
            rows = conn.execute(
                "SELECT username FROM users WHERE is_guest_account=1 ORDER BY created_at, username"
            ).fetchall()
        return [row["username"] for row in rows]

    @staticmethod
    def _user_from_row(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            username=row["username"],
            nickname=row["nickname"],
            password_hash=row["password_hash"],
            is_guest=bool(row["is_guest_account"]),
            created_at=row["created_at"],
        )

    # ============================| Games |=============================================

    def save_game_result(self, record: GameRecord) -> GameRecord:
        """Insert a finished game. Raises InvalidGameError on inconsistent data."""
        if record.winner_id is not None and record.winner_id not in (record.player_x_id, record.player_o_id):
            raise InvalidGameError("winner must be one of the two players")
        if record.is_win != (record.winner_id is not None):
            raise InvalidGameError("is_win must match the presence of a winner")

        saved = GameRecord(
            board_size=record.board_size,
            is_win=record.is_win,
            moves=record.moves,
            player_x_id=record.player_x_id,
            player_o_id=record.player_o_id,
            winner_id=record.winner_id,
            duration_seconds=record.duration_seconds,
            id=str(uuid4()),
            created_at=_now(),
        )
        try:
            with self._conn_db() as conn:
                conn.execute(
                    "INSERT INTO games(id, board_size, is_win, moves, duration_seconds, winner_id,"
                    " player_x_id, player_o_id, created_at) VALUES(?,?,?,?,?,?,?,?,?)",
                    (
                        saved.id,
                        saved.board_size,
                        int(saved.is_win),
                        saved.moves,
                        saved.duration_seconds,
                        saved.winner_id,
                        saved.player_x_id,
                        saved.player_o_id,
                        saved.created_at,
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise InvalidGameError("game references an unknown player") from exc
        logger.info(
            f"Saved game {saved.id}: {saved.board_size}x{saved.board_size}, "
            f"winner={saved.winner_id}, moves={saved.moves}"
        )
        return saved

    def list_games(self, user_id: str) -> list[GameRecord]:
        with self._conn_db() as conn:
            rows = conn.execute(
                "SELECT * FROM games WHERE player_x_id=? OR player_o_id=? ORDER BY created_at DESC",
                (user_id, user_id),
            ).fetchall()
        return [
            GameRecord(
                board_size=row["board_size"],
                is_win=bool(row["is_win"]),
                moves=row["moves"],
                player_x_id=row["player_x_id"],
                player_o_id=row["player_o_id"],
                winner_id=row["winner_id"],
                duration_seconds=row["duration_seconds"],
                id=row["id"],
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def get_stats(self, user_id: str) -> Stats:
        """Aggregate a player's record over every game they played as X or O."""
        with self._conn_db() as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) AS total,
                       COALESCE(SUM(CASE WHEN winner_id = ? THEN 1 ELSE 0 END), 0) AS wins,
                       COALESCE(SUM(CASE WHEN is_win = 0 THEN 1 ELSE 0 END), 0) AS draws
                FROM games
                WHERE player_x_id = ? OR player_o_id = ?
                """,
                (user_id, user_id, user_id),
            ).fetchone()
        total, wins, draws = row["total"], row["wins"], row["draws"]
        if total == 0:
            return Stats()
        return Stats(
            total_games=total,
            wins=wins,
            losses=total - wins - draws,
            draws=draws,
            win_rate=round(wins / total * 100, 2),
        )
