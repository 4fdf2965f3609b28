"""Approval card invoke handling.

An ``adaptiveCard/action`` invoke goes through validate -> normalize ->
dispatch -> acknowledge and always ends in exactly one InvokeResponse.
"""

from __future__ import annotations

import logging
from typing import Any

from pra_relay.clients.decision_service import DecisionServiceClient
from pra_relay.errors import DecisionServiceError, ValidationError
from pra_relay.schemas.activity import Activity
from pra_relay.schemas.approval import (
    DEFAULT_MESSAGE,
    DEFAULT_USERNAME,
    DURATION_ONCE,
    ApprovalActionRequest,
    Decision,
    InvokeResponse,
)

logger = logging.getLogger(__name__)

CARD_ACTION_INVOKE = "adaptiveCard/action"
REQUIRED_FIELDS = ("approvalUrl", "authKey", "decision", "requestId")


def extract_action_data(activity: Activity) -> dict[str, Any]:
    """Pull ``value.action.data`` out of a card action invoke."""
    if activity.type != "invoke" or activity.name != CARD_ACTION_INVOKE:
        raise ValidationError(
            f"Unsupported invoke: {activity.type}/{activity.name or ''}"
        )
    value = activity.value if isinstance(activity.value, dict) else {}
    action = value.get("action")
    data = action.get("data") if isinstance(action, dict) else None
    if not isinstance(data, dict):
        raise ValidationError("Card action carries no data")
    missing = [f for f in REQUIRED_FIELDS if not data.get(f)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    return data


def normalize_action(data: dict[str, Any], username: str | None) -> ApprovalActionRequest:
    """Apply every default for optional card fields in one place.

    - approval_message -> message, default "Not specified"
    - duration_type/duration_seconds -> duration, "Once" unless a seconds
      duration is given, then the integer seconds as a string
    - username, default "Unknown User"
    - ticketNumber (or ticketId) -> ticket_id, default ""
    """
    duration = DURATION_ONCE
    seconds = data.get("duration_seconds")
    if data.get("duration_type") == "seconds" and seconds not in (None, ""):
        try:
            duration = str(int(seconds))
        except (TypeError, ValueError) as e:
            raise ValidationError(
                f"duration_seconds must be an integer, got {seconds!r}"
            ) from e

    ticket = data.get("ticketNumber", data.get("ticketId"))
    return ApprovalActionRequest(
        decision=Decision.parse(data.get("decision")),
        request_id=str(data["requestId"]),
        ticket_id="" if ticket is None else str(ticket),
        message=data.get("approval_message") or DEFAULT_MESSAGE,
        duration=duration,
        username=username or DEFAULT_USERNAME,
        approval_url=str(data["approvalUrl"]),
        auth_key=str(data["authKey"]),
    )


class ApprovalDecisionRouter:
    """Turns an approval card submission into a synchronous acknowledgement."""

    def __init__(self, decisions: DecisionServiceClient) -> None:
        self.decisions = decisions

    async def handle(self, activity: Activity) -> InvokeResponse:
        username = activity.from_.name if activity.from_ else None
        try:
            data = extract_action_data(activity)
            request = normalize_action(data, username)
            await self.decisions.submit(request)
        except (ValidationError, DecisionServiceError) as e:
            logger.error("Error processing card action: %s", e)
            return InvokeResponse.message(500, f"Error: {e}")
        except Exception as e:
            logger.exception("Unexpected error processing card action")
            return InvokeResponse.message(500, f"Error: {e}")

        return InvokeResponse.message(
            200,
            f"Request {request.decision.value} successfully processed "
            f"by {request.username}.",
        )
