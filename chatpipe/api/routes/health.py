"""Health check routes."""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends

from chatpipe import __version__
from chatpipe.api.deps import get_bot
from chatpipe.bot import Bot

router = APIRouter()


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


@router.get("/health")
async def health_check(bot: Bot = Depends(get_bot)) -> dict[str, Any]:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": _utcnow().isoformat(),
        "service": bot.name,
        "version": __version__,
    }
