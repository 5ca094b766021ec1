"""Pydantic models for the HTTP API."""

from __future__ import annotations

from pydantic import BaseModel, Field

from app.auth import MAX_NICKNAME_LENGTH
from app.board import (
    DEFAULT_BOARD_SIZE,
    DEFAULT_WIN_LENGTH,
    MAX_BOARD_SIZE,
    MAX_WIN_LENGTH,
    MIN_BOARD_SIZE,
    MIN_WIN_LENGTH,
    win_length_options,
)
from app.session import GameSession
from app.storage import GameRecord, Stats, User


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    nickname: str = Field(min_length=1, max_length=MAX_NICKNAME_LENGTH)


class LoginRequest(BaseModel):
    username: str
    password: str


class GuestLoginRequest(BaseModel):
    username: str = Field(min_length=1)


class SaveGameRequest(BaseModel):
    board_size: int = Field(ge=MIN_BOARD_SIZE, le=MAX_BOARD_SIZE)
    is_win: bool
    moves: int = Field(ge=0)
    duration: int | None = Field(default=None, ge=0)
    winner_id: str | None = None
    player_x_id: str
    player_o_id: str


class CreateSessionRequest(BaseModel):
    board_size: int = Field(default=DEFAULT_BOARD_SIZE, ge=MIN_BOARD_SIZE, le=MAX_BOARD_SIZE)
    win_length: int = Field(default=DEFAULT_WIN_LENGTH, ge=MIN_WIN_LENGTH, le=MAX_WIN_LENGTH)


class ResetRequest(BaseModel):
    board_size: int | None = Field(default=None, ge=MIN_BOARD_SIZE, le=MAX_BOARD_SIZE)
    win_length: int | None = Field(default=None, ge=MIN_WIN_LENGTH, le=MAX_WIN_LENGTH)


class PlaceMarkRequest(BaseModel):
    row: int
    col: int


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class UserOut(BaseModel):
    id: str
    username: str
    nickname: str
    is_guest: bool = False

    @classmethod
    def from_user(cls, user: User) -> UserOut:
        return cls(id=user.id, username=user.username, nickname=user.nickname, is_guest=user.is_guest)


class AuthResponse(BaseModel):
    message: str
    user: UserOut
    token: str


class StatsOut(BaseModel):
    total_games: int
    wins: int
    losses: int
    draws: int
    win_rate: float

    @classmethod
    def from_stats(cls, stats: Stats) -> StatsOut:
        return cls(
            total_games=stats.total_games,
            wins=stats.wins,
            losses=stats.losses,
            draws=stats.draws,
            win_rate=stats.win_rate,
        )


class StatsResponse(BaseModel):
    stats: StatsOut


class ProfileResponse(BaseModel):
    user: UserOut
    created_at: str
    stats: StatsOut


class GameOut(BaseModel):
    id: str
    board_size: int
    is_win: bool
    moves: int
    duration: int | None
    winner_id: str | None
    player_x_id: str
    player_o_id: str
    created_at: str

    @classmethod
    def from_record(cls, record: GameRecord) -> GameOut:
        return cls(
            id=record.id,
            board_size=record.board_size,
            is_win=record.is_win,
            moves=record.moves,
            duration=record.duration_seconds,
            winner_id=record.winner_id,
            player_x_id=record.player_x_id,
            player_o_id=record.player_o_id,
            created_at=record.created_at,
        )


class GameSavedResponse(BaseModel):
    message: str = "Game saved successfully"
    game: GameOut


class GamesResponse(BaseModel):
    games: list[GameOut]


class GuestAccountsResponse(BaseModel):
    guest_accounts: list[str]


class PlayerOut(BaseModel):
    id: str
    username: str
    nickname: str
    is_guest: bool
    stats: StatsOut | None = None


class SessionStateOut(BaseModel):
    session_id: str
    board: list[list[str | None]]
    board_size: int
    win_length: int
    win_length_options: list[int]
    current_player: str
    move_count: int
    status: str  # "in_progress" | "won" | "draw"
    winner: str | None
    result: str | None  # "X" | "O" | "Draw" | None
    players: dict[str, PlayerOut | None]
    ready: bool
    settings_locked: bool
    save_status: str  # "idle" | "saving" | "saved" | "failed"

    @classmethod
    def from_session(cls, session: GameSession) -> SessionStateOut:
        snap = session.game.snapshot()
        players = {}
        for symbol, player in session.players.items():
            if player is None:
                players[symbol.value] = None
                continue
            stats = session.stats[symbol]
            players[symbol.value] = PlayerOut(
                id=player.id,
                username=player.username,
                nickname=player.nickname,
                is_guest=player.is_guest,
                stats=StatsOut.from_stats(stats) if stats is not None else None,
            )
        return cls(
            session_id=session.session_id,
            board=[[cell.value if cell is not None else None for cell in line] for line in snap.board],
            board_size=snap.size,
            win_length=snap.win_length,
            win_length_options=win_length_options(snap.size),
            current_player=snap.current_player.value,
            move_count=snap.move_count,
            status=snap.status.value,
            winner=snap.winner.value if snap.winner is not None else None,
            result=snap.result,
            players=players,
            ready=session.ready,
            settings_locked=session.is_locked,
            save_status=session.save_status.value,
        )


class MoveResponse(BaseModel):
    accepted: bool
    state: SessionStateOut
