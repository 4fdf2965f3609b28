"""Bot Framework messaging endpoint."""

import logging
from typing import Any

import pydantic
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from pra_relay.bot.activity_handler import ApprovalBot
from pra_relay.schemas.activity import Activity

router = APIRouter()
logger = logging.getLogger(__name__)


def _get_bot(request: Request) -> ApprovalBot:
    bot = getattr(request.app.state, "bot", None)
    if bot is None:
        raise HTTPException(status_code=503, detail="Bot not available")
    return bot


@router.post("/api/messages")
async def receive_activity(payload: dict[str, Any], request: Request):
    """Run one activity through the bot; invokes answer with their InvokeResponse."""
    bot = _get_bot(request)
    try:
        activity = Activity.model_validate(payload)
    except pydantic.ValidationError as e:
        logger.warning("Rejected malformed activity: %s", e.error_count())
        return JSONResponse(status_code=400, content={"error": "Malformed activity"})

    # Card payloads carry the PRA auth key, so only the envelope is logged
    logger.info(
        "Received %s activity %s in conversation %s",
        activity.type,
        activity.id,
        activity.conversation.id if activity.conversation else None,
    )

    try:
        invoke = await bot.on_turn(activity)
    except Exception as e:
        logger.exception("[on_turn_error] unhandled error: %s", e)
        await bot.notify_turn_error(activity)
        return JSONResponse(
            status_code=500, content={"error": "The bot encountered an error or bug."}
        )

    if invoke is None:
        return JSONResponse(status_code=200, content={})
    return JSONResponse(status_code=invoke.status, content=invoke.body_json())
