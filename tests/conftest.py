import os
import tempfile
from pathlib import Path

import pytest

# Importing app.main builds the default app from the environment; keep its
# database and logs out of the working tree.
_scratch = Path(tempfile.mkdtemp(prefix="tictactoe-tests-"))
os.environ.setdefault("DATABASE_PATH", str(_scratch / "default.db"))
os.environ.setdefault("LOG_DIR", str(_scratch / "logs"))
os.environ.setdefault("SEED_GUESTS", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from app.auth import Authenticator  # noqa: E402
from app.config import Settings  # noqa: E402
from app.storage import GameStore  # noqa: E402


@pytest.fixture
def store(tmp_path):
    return GameStore(tmp_path / "games.db")


@pytest.fixture
def authenticator(store):
    return Authenticator(store, bcrypt_rounds=4)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_path=tmp_path / "app.db",
        log_dir=tmp_path / "logs",
        seed_guests=True,
        guest_accounts=("GeothermalGuru", "ThermalThunder"),
        bcrypt_rounds=4,
    )


@pytest.fixture
def users(store):
    alice = store.create_user("alice", "Alice", b"x")
    bob = store.create_user("bob", "Bob", b"x")
    return alice, bob
