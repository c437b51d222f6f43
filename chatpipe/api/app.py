"""
chatpipe - FastAPI Application.

HTTP entry point for chat adapters running outside the bot process.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from chatpipe import __version__
from chatpipe.bot import Bot
from chatpipe.core.exceptions import (
    ChatpipeError,
    InvalidMessageError,
    UnknownStageError,
)

logger = logging.getLogger(__name__)


def create_app(bot: Bot | None = None) -> FastAPI:
    """Create and configure the FastAPI application for ``bot``."""
    bot = bot if bot is not None else Bot()
    settings = bot.config

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        logger.info(f"Starting {bot.name}...")
        logger.info(f"Server: {settings.server.host}:{settings.server.port}")
        logger.info(f"Stages: {', '.join(bot.stage_names)}")

        yield

        logger.info(f"Shutting down {bot.name}...")
        await bot.close()

    app = FastAPI(
        title="chatpipe",
        description="Message ingestion API for a chatpipe bot",
        version=__version__,
        docs_url="/docs" if settings.server.debug else None,
        redoc_url="/redoc" if settings.server.debug else None,
        lifespan=lifespan,
    )
    app.state.bot = bot

    # Exception handlers
    @app.exception_handler(ChatpipeError)
    async def chatpipe_error_handler(request: Request, exc: ChatpipeError):
        return JSONResponse(
            status_code=500,
            content={"error": exc.__class__.__name__, "message": str(exc)},
        )

    @app.exception_handler(UnknownStageError)
    async def unknown_stage_handler(request: Request, exc: UnknownStageError):
        return JSONResponse(
            status_code=404,
            content={"error": "UnknownStageError", "message": str(exc), "details": exc.details},
        )

    @app.exception_handler(InvalidMessageError)
    async def invalid_message_handler(request: Request, exc: InvalidMessageError):
        return JSONResponse(
            status_code=422,
            content={"error": "InvalidMessageError", "message": str(exc), "details": exc.details},
        )

    # Register routers
    from chatpipe.api.routes import health_router, messages_router, stages_router

    app.include_router(health_router, tags=["Health"])
    app.include_router(messages_router, prefix="/api/messages", tags=["Messages"])
    app.include_router(stages_router, prefix="/api/stages", tags=["Stages"])

    return app


if __name__ == "__main__":
    import uvicorn

    from chatpipe.core.config import configure_logging

    app_bot = Bot()
    configure_logging(app_bot.config.logging)
    uvicorn.run(
        create_app(app_bot),
        host=app_bot.config.server.host,
        port=app_bot.config.server.port,
    )
