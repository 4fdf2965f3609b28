"""Inbound notification webhook: fans an event out to every registered conversation."""

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import PlainTextResponse

from pra_relay.errors import RelayError
from pra_relay.services.fanout import NotificationDispatcher

router = APIRouter()
logger = logging.getLogger(__name__)


def _get_dispatcher(request: Request) -> NotificationDispatcher:
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise HTTPException(status_code=503, detail="Dispatcher not available")
    return dispatcher


@router.post("/api/webhook", response_class=PlainTextResponse)
async def receive_webhook(request: Request):
    """Broadcast the JSON body; 500 with the reason if nobody could be notified."""
    dispatcher = _get_dispatcher(request)
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Webhook body is not valid JSON")
        return PlainTextResponse("Request body must be JSON", status_code=400)

    logger.info("Webhook request received")
    try:
        report = await dispatcher.dispatch(payload)
    except RelayError as e:
        logger.error("Webhook error: %s", e)
        return PlainTextResponse(str(e), status_code=500)

    logger.info(
        "Webhook fan-out: %d/%d delivered", report.delivered, report.attempted
    )
    return PlainTextResponse("Notifications sent successfully", status_code=200)
