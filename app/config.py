"""Runtime settings read from the environment (and a local .env file)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_GUEST_ACCOUNTS = (
    "EcoWarrior GreenHeart",
    "SolarPump Champion",
    "GeothermalGuru",
    "HeatWave Hero",
    "EfficientEagle",
    "GreenEnergy Wizard",
    "ThermalThunder",
    "EcoFriendly Phoenix",
    "RenewableRanger",
    "SustainableSage",
)


def _split(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_path: Path = Path("data/tictactoe.db")
    cors_origins: tuple[str, ...] = ("http://localhost:3000", "http://127.0.0.1:3000")
    log_dir: Path = Path("logs")
    log_level: str = "INFO"
    seed_guests: bool = True
    guest_accounts: tuple[str, ...] = DEFAULT_GUEST_ACCOUNTS
    bcrypt_rounds: int = 12
    token_ttl_hours: int = 24
    guest_token_ttl_hours: int = 24 * 7
    session_idle_minutes: int = 60
    sweep_interval_seconds: int = 300

    @classmethod
    def from_env(cls) -> Settings:
        load_dotenv()
        guests = os.getenv("GUEST_ACCOUNTS")
        return cls(
            database_path=Path(os.getenv("DATABASE_PATH", "data/tictactoe.db")),
            cors_origins=_split(os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")),
            log_dir=Path(os.getenv("LOG_DIR", "logs")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            seed_guests=_flag(os.getenv("SEED_GUESTS", "true")),
            guest_accounts=_split(guests) if guests is not None else DEFAULT_GUEST_ACCOUNTS,
            bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", "12")),
            token_ttl_hours=int(os.getenv("TOKEN_TTL_HOURS", "24")),
            guest_token_ttl_hours=int(os.getenv("GUEST_TOKEN_TTL_HOURS", str(24 * 7))),
            session_idle_minutes=int(os.getenv("SESSION_IDLE_MINUTES", "60")),
            sweep_interval_seconds=int(os.getenv("SWEEP_INTERVAL_SECONDS", "300")),
        )
