from __future__ import annotations

import secrets
import time
from dataclasses import dataclass

import bcrypt
from loguru import logger

from app.storage import DuplicateUserError, GameStore, User

MAX_NICKNAME_LENGTH = 15


class AuthError(Exception):
    status_code = 401


class InvalidCredentialsError(AuthError):
    status_code = 401


class InvalidTokenError(AuthError):
    status_code = 403


class UsernameTakenError(AuthError):
    status_code = 409


class GuestNotFoundError(AuthError):
    status_code = 404


class InvalidProfileError(AuthError):
    status_code = 400


@dataclass
class Session:
    user_id: str
    expires_at: float
    is_guest: bool = False


class Authenticator:
    """
    Registers and logs in players against the game store.
    Issues opaque bearer tokens kept in memory with an expiry; guest accounts log
    in by name alone and get a longer-lived token.
    """

    def __init__(
        self,
        store: GameStore,
        bcrypt_rounds: int = 12,
        token_ttl_hours: int = 24,
        guest_token_ttl_hours: int = 24 * 7,
    ):
        self.store = store
        self.bcrypt_rounds = bcrypt_rounds
        self.token_ttl = token_ttl_hours * 3600
        self.guest_token_ttl = guest_token_ttl_hours * 3600
        self.sessions: dict[str, Session] = {}

    def _hash(self, password: str) -> bytes:
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self.bcrypt_rounds))

    def _issue_token(self, user: User) -> str:
        ttl = self.guest_token_ttl if user.is_guest else self.token_ttl
        token = secrets.token_hex(16)
        self.sessions[token] = Session(user_id=user.id, expires_at=time.time() + ttl, is_guest=user.is_guest)
        return token

    def register(self, username: str, password: str, nickname: str) -> tuple[User, str]:
        """
        Create an account and log it in. Returns (user, token).
        Raises UsernameTakenError if the username exists.
        """
        if not username or not password or not nickname:
            raise InvalidProfileError("Username, password, and nickname are required")
        if len(nickname) > MAX_NICKNAME_LENGTH:
            raise InvalidProfileError(f"Nickname must be {MAX_NICKNAME_LENGTH} characters or less")
        try:
            user = self.store.create_user(username, nickname, self._hash(password))
        except DuplicateUserError as exc:
            logger.info(f"Register failed: duplicate username '{username}'")
            raise UsernameTakenError("Username already exists") from exc
        logger.info(f"Registered user '{username}'")
        return user, self._issue_token(user)

    def login(self, username: str, password: str) -> tuple[User, str]:
        user = self.store.get_user_by_username(username)
        if user is None or not bcrypt.checkpw(password.encode(), user.password_hash):
            logger.info(f"Login failed for '{username}'")
            raise InvalidCredentialsError("Invalid credentials")
        logger.info(f"User '{username}' logged in")
        return user, self._issue_token(user)

    def guest_login(self, username: str) -> tuple[User, str]:
        user = self.store.get_user_by_username(username)
        if user is None or not user.is_guest:
            raise GuestNotFoundError("Guest account not found")
        logger.info(f"Guest '{username}' logged in")
        return user, self._issue_token(user)

    def resolve(self, token: str | None) -> User:
        """Return the user a bearer token belongs to."""
        if not token:
            raise InvalidCredentialsError("Missing token")
        session = self.sessions.get(token)
        if session is None:
            raise InvalidTokenError("Invalid token")
        if session.expires_at < time.time():
            self.sessions.pop(token, None)
            raise InvalidTokenError("Token expired")
        user = self.store.get_user(session.user_id)
        if user is None:
            self.sessions.pop(token, None)
            raise InvalidTokenError("Invalid token")
        return user

    def logout(self, token: str) -> None:
        if self.sessions.pop(token, None) is not None:
            logger.debug("Token revoked")

    def purge_expired(self, now: float | None = None) -> int:
        """Drop every token past its expiry. Returns how many were removed."""
        now = time.time() if now is None else now
        expired = [token for token, session in self.sessions.items() if session.expires_at < now]
        for token in expired:
            del self.sessions[token]
        if expired:
            logger.debug(f"Purged {len(expired)} expired tokens")
        return len(expired)

    def seed_guest_accounts(self, usernames) -> list[str]:
        """Create the guest accounts that do not exist yet. Returns the names created."""
        created = []
        for username in usernames:
            if self.store.get_user_by_username(username) is not None:
                logger.debug(f"Guest account already exists: {username}")
                continue
            try:
                # Guests never log in with a password; store an unguessable one.
                self.store.create_user(username, username, self._hash(secrets.token_urlsafe(16)), is_guest=True)
            except DuplicateUserError:
                continue
            created.append(username)
            logger.info(f"Created guest account: {username}")
        return created
