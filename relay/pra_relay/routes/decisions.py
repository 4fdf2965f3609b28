"""Decision-processing endpoint: forwards approve/deny decisions to PRA."""

import hmac
import logging

from fastapi import APIRouter, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from pra_relay.clients.approval_gateway import ApprovalGatewayClient
from pra_relay.errors import GatewayError
from pra_relay.schemas.approval import (
    DEFAULT_MESSAGE,
    DEFAULT_USERNAME,
    DURATION_ONCE,
    Decision,
    DecisionFailure,
    DecisionResult,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _get_gateway(request: Request) -> ApprovalGatewayClient:
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise HTTPException(status_code=503, detail="Approval gateway not available")
    return gateway


def _key_ok(request: Request, supplied: str | None) -> bool:
    # No configured key means local development; accept everything
    expected = request.app.state.settings.functionapp_key
    if not expected:
        return True
    return hmac.compare_digest(expected.encode(), (supplied or "").encode())


def _failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content=DecisionFailure(error=error).model_dump()
    )


@router.post("/api/handleapproval")
async def handle_approval(
    request: Request,
    decision: str = Query(""),
    request_id: str = Query("", alias="requestId"),
    ticket_id: str = Query("", alias="ticketId"),
    message: str = Query(DEFAULT_MESSAGE),
    duration: str = Query(DURATION_ONCE),
    username: str = Query(DEFAULT_USERNAME),
    approval_url: str = Query("", alias="approvalUrl"),
    auth_key: str = Query("", alias="authKey"),
    function_key: str | None = Header(None, alias="x-functions-key"),
):
    """Submit one decision to the PRA appliance and report the outcome as JSON."""
    if not _key_ok(request, function_key):
        logger.warning("Rejected decision call with invalid function key")
        return _failure(401, "Invalid or missing function key")

    gateway = _get_gateway(request)
    logger.info(
        "Decision %s for request %s (ticket %s, duration %s) by %s",
        decision,
        request_id,
        ticket_id,
        duration,
        username,
    )

    if not approval_url or not auth_key:
        return _failure(500, "Missing required parameters: approvalUrl or authKey")

    parsed = Decision.parse(decision)
    try:
        outcome = await gateway.submit(
            parsed, message or DEFAULT_MESSAGE, approval_url, auth_key
        )
    except GatewayError as e:
        logger.error("Error in decision processing: %s", e)
        return _failure(500, str(e))

    result = DecisionResult(
        message=f"Request {parsed.value} successfully processed",
        details=outcome.detail,
    )
    return JSONResponse(status_code=200, content=result.model_dump())
