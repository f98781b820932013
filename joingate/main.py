"""joingate: FastAPI application.

Screens membership requests for a group chat: requesters explain why they
want to join, moderators approve or decline from a review card.

Run with: uvicorn joingate.main:create_app --factory
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .api.webhook import build_webhook_router
from .core.config import Settings, get_settings
from .core.database import close_db, create_engine, create_session_factory, init_db
from .core.logging import configure_logging
from .integrations.telegram.client import TelegramBotClient
from .messages import set_locale
from .storage.state import StateStore, create_state_store

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    store: StateStore | None = None,
    bot: TelegramBotClient | None = None,
) -> FastAPI:
    """
    Build the application.

    Collaborators not passed in are created from settings: the bot client
    immediately, the state store (and database engine) in the lifespan.
    """
    settings = settings or get_settings()
    configure_logging(settings)
    set_locale(settings.locale)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = None
        if app.state.store is None:
            session_factory = None
            if settings.resolved_storage_type == "sql":
                engine = create_engine(
                    settings.database_url_async,
                    echo=settings.database_echo,
                    require_ssl=settings.database_require_ssl,
                )
                await init_db(engine)
                session_factory = create_session_factory(engine)
            app.state.store = create_state_store(settings, session_factory)

        logger.info(
            f"Started {settings.app_name} {settings.app_version} "
            f"(storage={settings.resolved_storage_type}, webhook={settings.webhook_path})"
        )
        yield

        if engine is not None:
            await close_db(engine)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Telegram join request screening bot",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.bot = bot or TelegramBotClient(settings.bot_token)

    app.include_router(build_webhook_router(settings.webhook_path))

    @app.get("/", tags=["health"])
    @app.get("/health", tags=["health"])
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "version": settings.app_version}

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("joingate.main:create_app", factory=True, host="0.0.0.0", port=8000)
