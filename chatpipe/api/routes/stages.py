"""Introspection of the bot's pipeline stages."""

from typing import Any

from fastapi import APIRouter, Depends

from chatpipe.api.deps import get_bot
from chatpipe.bot import Bot
from chatpipe.pipeline.failures import describe_handle
from chatpipe.pipeline.group import ProcessorGroup

router = APIRouter()


@router.get("")
async def list_stages(bot: Bot = Depends(get_bot)) -> dict[str, Any]:
    """List every stage in pipeline order with its registered processors."""
    stages = []
    for stage in bot.stages:
        stages.append({
            "name": stage.name,
            "kind": "group" if issubclass(stage.kind, ProcessorGroup) else "chain",
            "processors": [describe_handle(p) for p in bot.registry(stage.name).list()],
        })
    return {"stages": stages}
