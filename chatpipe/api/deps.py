"""Request dependencies shared by the API routes."""

from fastapi import Request

from chatpipe.bot import Bot


def get_bot(request: Request) -> Bot:
    """The bot the application was created for."""
    return request.app.state.bot
