"""API routes module."""

from chatpipe.api.routes.health import router as health_router
from chatpipe.api.routes.messages import router as messages_router
from chatpipe.api.routes.stages import router as stages_router

__all__ = [
    "health_router",
    "messages_router",
    "stages_router",
]
