"""
Message ingestion routes.

Chat adapters that live outside the bot process deliver inbound messages
here.

Endpoints:
    POST /
        Accepts one JSON message and runs it through the pipeline in the
        background. ``?stage=sender`` starts processing at a later stage,
        e.g. to send a message directly.

Security:
    - HMAC signature verification (when server.webhook_secret is set),
      header ``X-Chatpipe-Signature: sha256=<hex>`` over the raw body
"""

import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Query, Request
from pydantic import BaseModel, ConfigDict, ValidationError

from chatpipe.api.deps import get_bot
from chatpipe.bot import Bot
from chatpipe.core.exceptions import UnknownStageError
from chatpipe.core.signatures import SIGNATURE_HEADER, verify_signature

logger = logging.getLogger(__name__)

router = APIRouter()


class InboundMessage(BaseModel):
    """A chat message as delivered by an adapter.

    ``service``, ``group`` and ``text`` are required; any other fields are
    passed through to processors untouched.
    """
    model_config = ConfigDict(extra="allow")

    service: str
    group: str
    text: str


class AcceptedResponse(BaseModel):
    """Response for accepted messages."""
    status: str
    stage: str


@router.post(
    "",
    status_code=202,
    response_model=AcceptedResponse,
    summary="Submit a message",
    description="Runs one inbound chat message through the bot's pipeline in the background.",
)
async def submit_message(
    request: Request,
    background_tasks: BackgroundTasks,
    stage: str | None = Query(None, description="Stage to start at (defaults to the first)"),
    x_chatpipe_signature: str | None = Header(None, alias=SIGNATURE_HEADER),
    bot: Bot = Depends(get_bot),
) -> AcceptedResponse:
    """Accept a message for processing."""
    body = await request.body()

    if not verify_signature(body, x_chatpipe_signature, bot.config.server.webhook_secret):
        logger.warning("Invalid message signature")
        raise HTTPException(
            status_code=401,
            detail="Invalid message signature"
        )

    try:
        payload_dict = json.loads(body)
        if not isinstance(payload_dict, dict):
            raise ValueError("message must be a JSON object")
        payload = InboundMessage(**payload_dict)
    except (ValueError, ValidationError) as e:
        logger.warning(f"Rejected message payload: {e}")
        raise HTTPException(
            status_code=400,
            detail=f"Invalid payload: {e}"
        )

    # UnknownStageError and InvalidMessageError surface through the app's handlers
    start = stage or bot.stage_names[0]
    if start not in bot.stage_names:
        raise UnknownStageError(start, bot.stage_names)
    message = bot.validate(payload.model_dump())

    logger.info(f"Accepted message for {message.service}/{message.group} at stage {start}")
    background_tasks.add_task(bot.accept, message, start)

    return AcceptedResponse(status="accepted", stage=start)
