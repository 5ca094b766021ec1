"""Game sessions: two seated players sharing one board, and the save-on-finish hook."""

from __future__ import annotations

import asyncio
import secrets
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from loguru import logger

from app.board import DEFAULT_BOARD_SIZE, DEFAULT_WIN_LENGTH, Symbol, effective_win_length
from app.game import GameState, GameStatus, MoveOutcome
from app.storage import GameRecord, Stats, User


class SessionError(Exception):
    pass


class SessionLockedError(SessionError):
    """Board settings and seats cannot change while a game is under way."""


class SeatOwnershipError(SessionError):
    """Only the player holding a seat may give it up."""


class SaveStatus(str, Enum):
    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"
    FAILED = "failed"


class ResultSink(Protocol):
    def save_game_result(self, record: GameRecord) -> GameRecord: ...

    def get_stats(self, user_id: str) -> Stats: ...


@dataclass
class PlayerIdentity:
    id: str
    username: str
    nickname: str
    is_guest: bool = False

    @classmethod
    def from_user(cls, user: User) -> PlayerIdentity:
        return cls(id=user.id, username=user.username, nickname=user.nickname, is_guest=user.is_guest)


@dataclass
class GameSession:
    session_id: str
    sink: ResultSink
    game: GameState = field(default_factory=GameState)
    players: dict[Symbol, PlayerIdentity | None] = field(
        default_factory=lambda: {Symbol.X: None, Symbol.O: None}
    )
    stats: dict[Symbol, Stats | None] = field(default_factory=lambda: {Symbol.X: None, Symbol.O: None})
    save_status: SaveStatus = SaveStatus.IDLE
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    save_task: asyncio.Task | None = field(default=None, repr=False)
    last_active: float = field(default_factory=time.monotonic, repr=False)
    _generation: int = field(default=0, repr=False)

    @property
    def ready(self) -> bool:
        return all(p is not None for p in self.players.values())

    @property
    def is_locked(self) -> bool:
        """True once the first move of a running game has been played."""
        return self.game.move_count > 0 and not self.game.is_game_over

    async def seat(self, symbol: Symbol, identity: PlayerIdentity):
        async with self.lock:
            if self.is_locked:
                raise SessionLockedError("Players cannot change during a game")
            holder = self.players[symbol]
            if holder is not None and holder.id != identity.id:
                raise SessionError(f"{symbol.value} is already taken by {holder.username}")
            other = self.players[symbol.other]
            if other is not None and other.id == identity.id:
                raise SessionError(f"{identity.username} already plays {symbol.other.value}")
            self.players[symbol] = identity
            self.stats[symbol] = None
            self.touch()
        logger.info(f"Session {self.session_id}: {identity.username} takes {symbol.value}")
        await self._load_stats(symbol, identity)

    async def unseat(self, symbol: Symbol, user_id: str):
        async with self.lock:
            holder = self.players[symbol]
            if holder is None:
                return
            if holder.id != user_id:
                raise SeatOwnershipError(f"{symbol.value} is held by another player")
            if self.is_locked:
                raise SessionLockedError("Players cannot change during a game")
            self.players[symbol] = None
            self.stats[symbol] = None
            self.touch()
        logger.info(f"Session {self.session_id}: {holder.username} leaves {symbol.value}")

    async def play(self, row: int, col: int) -> MoveOutcome:
        async with self.lock:
            if not self.ready:
                return MoveOutcome(accepted=False, status=self.game.status, winner=self.game.winner)
            outcome = self.game.play(row, col)
            self.touch()
            if outcome.should_persist:
                logger.info(
                    f"Session {self.session_id} finished: result={self.game.result}, "
                    f"moves={self.game.move_count}"
                )
                self._schedule_save(self._build_record())
            return outcome

    async def reset(self, board_size: int | None = None, win_length: int | None = None):
        async with self.lock:
            target_size = self.game.size if board_size is None else board_size
            target_win_length = self.game.win_length
            if win_length is not None:
                target_win_length = effective_win_length(win_length, target_size)
            changes_settings = target_size != self.game.size or target_win_length != self.game.win_length
            if changes_settings and self.is_locked:
                raise SessionLockedError("Board size and win length are locked during a game")
            self.game.reset(board_size, win_length)
            self.save_status = SaveStatus.IDLE
            self._generation += 1
            self.touch()

    def touch(self):
        self.last_active = time.monotonic()

    async def wait_for_save(self):
        if self.save_task is not None:
            await self.save_task

    async def refresh_stats(self):
        await asyncio.gather(
            *(self._load_stats(symbol, player) for symbol, player in self.players.items() if player is not None)
        )

    def _build_record(self) -> GameRecord:
        x, o = self.players[Symbol.X], self.players[Symbol.O]
        winner_id = None
        if self.game.status is GameStatus.WON:
            winner_id = self.players[self.game.winner].id
        return GameRecord(
            board_size=self.game.size,
            is_win=winner_id is not None,
            moves=self.game.move_count,
            player_x_id=x.id,
            player_o_id=o.id,
            winner_id=winner_id,
            duration_seconds=self.game.elapsed_seconds,
        )

    def _schedule_save(self, record: GameRecord):
        self.save_status = SaveStatus.SAVING
        self.save_task = asyncio.create_task(self._persist(record, self._generation))

    async def _persist(self, record: GameRecord, generation: int):
        try:
            await asyncio.to_thread(self.sink.save_game_result, record)
        except Exception:
            logger.exception(f"Session {self.session_id}: failed to save game")
            if generation == self._generation:
                self.save_status = SaveStatus.FAILED
            return
        if generation == self._generation:
            self.save_status = SaveStatus.SAVED
        await self.refresh_stats()

    async def _load_stats(self, symbol: Symbol, player: PlayerIdentity):
        try:
            stats = await asyncio.to_thread(self.sink.get_stats, player.id)
        except Exception:
            logger.exception(f"Session {self.session_id}: failed to load stats for {player.username}")
            return
        # The seat may have changed hands while the stats were loading.
        if self.players[symbol] is player:
            self.stats[symbol] = stats


class SessionManager:
    def __init__(self, sink: ResultSink):
        self.sink = sink
        self.sessions: dict[str, GameSession] = {}

    def _generate_session_id(self) -> str:
        while True:
            session_id = secrets.token_hex(3)  # 6-char hex
            if session_id not in self.sessions:
                return session_id

    def create_session(
        self, board_size: int = DEFAULT_BOARD_SIZE, win_length: int = DEFAULT_WIN_LENGTH
    ) -> GameSession:
        session = GameSession(
            session_id=self._generate_session_id(),
            sink=self.sink,
            game=GameState(board_size, win_length),
        )
        self.sessions[session.session_id] = session
        logger.info(
            f"Created session {session.session_id}: {session.game.size}x{session.game.size}, "
            f"win length {session.game.win_length}"
        )
        return session

    def get_session(self, session_id: str) -> GameSession:
        """Raises KeyError for an unknown session id."""
        return self.sessions[session_id]

    def close_session(self, session_id: str) -> GameSession | None:
        session = self.sessions.pop(session_id, None)
        if session is not None:
            logger.info(f"Closed session {session_id}")
        return session

    def sweep_idle(self, max_idle_seconds: float, now: float | None = None) -> list[str]:
        """Close sessions untouched for longer than max_idle_seconds. Returns the closed ids."""
        now = time.monotonic() if now is None else now
        stale = [
            session_id
            for session_id, session in self.sessions.items()
            if now - session.last_active > max_idle_seconds
            and (session.save_task is None or session.save_task.done())
        ]
        for session_id in stale:
            self.close_session(session_id)
        return stale
