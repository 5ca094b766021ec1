from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from app.auth import Authenticator
from app.config import Settings
from app.logger import configure_logging
from app.routes import router as api_router
from app.session import SessionManager
from app.storage import GameStore


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_dir, settings.log_level)

    store = GameStore(settings.database_path)
    authenticator = Authenticator(
        store,
        bcrypt_rounds=settings.bcrypt_rounds,
        token_ttl_hours=settings.token_ttl_hours,
        guest_token_ttl_hours=settings.guest_token_ttl_hours,
    )

    sessions = SessionManager(store)

    async def sweep_loop():
        while True:
            await asyncio.sleep(settings.sweep_interval_seconds)
            authenticator.purge_expired()
            closed = sessions.sweep_idle(settings.session_idle_minutes * 60)
            if closed:
                logger.info(f"Closed {len(closed)} idle sessions")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.seed_guests:
            created = authenticator.seed_guest_accounts(settings.guest_accounts)
            logger.info(f"Guest account seeding completed ({len(created)} created)")
        logger.info(f"Tic-tac-toe server ready, database at {settings.database_path}")
        sweeper = asyncio.create_task(sweep_loop())
        yield
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper

    app = FastAPI(title="Tic-Tac-Toe Server", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.authenticator = authenticator
    app.state.sessions = sessions

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
