"""HTTP endpoints: accounts, stats, and game sessions."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from app.auth import AuthError, Authenticator
from app.board import Symbol
from app.models import (
    AuthResponse,
    CreateSessionRequest,
    GameOut,
    GameSavedResponse,
    GamesResponse,
    GuestAccountsResponse,
    GuestLoginRequest,
    LoginRequest,
    MoveResponse,
    PlaceMarkRequest,
    ProfileResponse,
    RegisterRequest,
    ResetRequest,
    SaveGameRequest,
    SessionStateOut,
    StatsOut,
    StatsResponse,
    UserOut,
)
from app.session import GameSession, PlayerIdentity, SeatOwnershipError, SessionError, SessionManager
from app.storage import GameRecord, GameStore, InvalidGameError, Stats, User

router = APIRouter(prefix="/api")


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_store(request: Request) -> GameStore:
    return request.app.state.store


def get_authenticator(request: Request) -> Authenticator:
    return request.app.state.authenticator


def get_sessions(request: Request) -> SessionManager:
    return request.app.state.sessions


def bearer_token(authorization: str | None = Header(default=None)) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def current_user(
    token: str | None = Depends(bearer_token),
    auth: Authenticator = Depends(get_authenticator),
) -> User:
    try:
        return auth.resolve(token)
    except AuthError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc


def session_or_404(session_id: str, sessions: SessionManager = Depends(get_sessions)) -> GameSession:
    try:
        return sessions.get_session(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Session not found") from None


def _auth_response(message: str, user: User, token: str) -> AuthResponse:
    return AuthResponse(message=message, user=UserOut.from_user(user), token=token)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(body: RegisterRequest, auth: Authenticator = Depends(get_authenticator)):
    try:
        user, token = auth.register(body.username, body.password, body.nickname)
    except AuthError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    return _auth_response("User created successfully", user, token)


@router.post("/login", response_model=AuthResponse)
def login(body: LoginRequest, auth: Authenticator = Depends(get_authenticator)):
    try:
        user, token = auth.login(body.username, body.password)
    except AuthError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    return _auth_response("Login successful", user, token)


@router.post("/guest-login", response_model=AuthResponse)
def guest_login(body: GuestLoginRequest, auth: Authenticator = Depends(get_authenticator)):
    try:
        user, token = auth.guest_login(body.username)
    except AuthError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    return _auth_response("Guest login successful", user, token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(token: str | None = Depends(bearer_token), auth: Authenticator = Depends(get_authenticator)):
    if token:
        auth.logout(token)


@router.get("/guest-accounts", response_model=GuestAccountsResponse)
def guest_accounts(store: GameStore = Depends(get_store)):
    return GuestAccountsResponse(guest_accounts=store.list_guest_accounts())


@router.get("/profile", response_model=ProfileResponse)
def profile(user: User = Depends(current_user), store: GameStore = Depends(get_store)):
    return ProfileResponse(
        user=UserOut.from_user(user),
        created_at=user.created_at,
        stats=StatsOut.from_stats(store.get_stats(user.id)),
    )


# ---------------------------------------------------------------------------
# Games and stats
# ---------------------------------------------------------------------------

@router.post("/games", response_model=GameSavedResponse, status_code=status.HTTP_201_CREATED)
def save_game(body: SaveGameRequest, store: GameStore = Depends(get_store)):
    record = GameRecord(
        board_size=body.board_size,
        is_win=body.is_win,
        moves=body.moves,
        player_x_id=body.player_x_id,
        player_o_id=body.player_o_id,
        winner_id=body.winner_id,
        duration_seconds=body.duration,
    )
    try:
        saved = store.save_game_result(record)
    except InvalidGameError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return GameSavedResponse(game=GameOut.from_record(saved))


@router.get("/games", response_model=GamesResponse)
def list_games(user: User = Depends(current_user), store: GameStore = Depends(get_store)):
    return GamesResponse(games=[GameOut.from_record(g) for g in store.list_games(user.id)])


@router.get("/users/{user_id}/stats", response_model=StatsResponse)
def user_stats(user_id: str, store: GameStore = Depends(get_store)):
    if store.get_user(user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")
    return StatsResponse(stats=StatsOut.from_stats(store.get_stats(user_id)))


@router.get("/guest-stats/{username}", response_model=StatsResponse)
def guest_stats(username: str, store: GameStore = Depends(get_store)):
    user = store.get_user_by_username(username)
    stats = store.get_stats(user.id) if user is not None else Stats()
    return StatsResponse(stats=StatsOut.from_stats(stats))


# ---------------------------------------------------------------------------
# Game sessions
# ---------------------------------------------------------------------------

@router.post("/sessions", response_model=SessionStateOut, status_code=status.HTTP_201_CREATED)
def create_session(
    body: CreateSessionRequest | None = None, sessions: SessionManager = Depends(get_sessions)
):
    body = body or CreateSessionRequest()
    session = sessions.create_session(body.board_size, body.win_length)
    return SessionStateOut.from_session(session)


@router.get("/sessions/{session_id}", response_model=SessionStateOut)
def get_session(session: GameSession = Depends(session_or_404)):
    return SessionStateOut.from_session(session)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def close_session(session: GameSession = Depends(session_or_404), sessions: SessionManager = Depends(get_sessions)):
    sessions.close_session(session.session_id)


@router.put("/sessions/{session_id}/players/{symbol}", response_model=SessionStateOut)
async def take_seat(
    symbol: Symbol,
    session: GameSession = Depends(session_or_404),
    user: User = Depends(current_user),
):
    try:
        await session.seat(symbol, PlayerIdentity.from_user(user))
    except SessionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return SessionStateOut.from_session(session)


@router.delete("/sessions/{session_id}/players/{symbol}", response_model=SessionStateOut)
async def leave_seat(
    symbol: Symbol,
    session: GameSession = Depends(session_or_404),
    user: User = Depends(current_user),
):
    try:
        await session.unseat(symbol, user.id)
    except SeatOwnershipError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except SessionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return SessionStateOut.from_session(session)


@router.post("/sessions/{session_id}/moves", response_model=MoveResponse)
async def place_mark(body: PlaceMarkRequest, session: GameSession = Depends(session_or_404)):
    outcome = await session.play(body.row, body.col)
    return MoveResponse(accepted=outcome.accepted, state=SessionStateOut.from_session(session))


@router.post("/sessions/{session_id}/reset", response_model=SessionStateOut)
async def reset_session(body: ResetRequest | None = None, session: GameSession = Depends(session_or_404)):
    body = body or ResetRequest()
    try:
        await session.reset(body.board_size, body.win_length)
    except SessionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return SessionStateOut.from_session(session)
