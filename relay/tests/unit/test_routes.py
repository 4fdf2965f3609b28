"""Unit tests for the HTTP endpoints, called directly with mocked requests."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from factories import make_activity, make_card_invoke, make_reference

from pra_relay.bot.activity_handler import ApprovalBot
from pra_relay.clients.approval_gateway import ApprovalGatewayClient
from pra_relay.config import Settings
from pra_relay.errors import GatewayRejected, GatewayUnreachable, StorageUnavailable
from pra_relay.routes.decisions import handle_approval
from pra_relay.routes.messages import receive_activity
from pra_relay.routes.webhook import receive_webhook
from pra_relay.schemas.approval import ApprovalOutcome, InvokeResponse
from pra_relay.services.fanout import NotificationDispatcher


def _make_mock_request(**state):
    """Build a mock FastAPI Request with app.state attributes."""
    request = MagicMock()
    request.app = SimpleNamespace(state=SimpleNamespace(**state))
    return request


# ---------------------------------------------------------------------------
# /api/messages
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_messages_invoke_returns_invoke_response():
    bot = AsyncMock()
    bot.on_turn.return_value = InvokeResponse.message(200, "Request approved")
    response = await receive_activity(make_card_invoke(), _make_mock_request(bot=bot))

    assert response.status_code == 200
    body = json.loads(response.body)
    assert body == {
        "statusCode": 200,
        "type": "application/vnd.microsoft.activity.message",
        "value": "Request approved",
    }


@pytest.mark.asyncio
async def test_messages_non_invoke_returns_200():
    bot = AsyncMock()
    bot.on_turn.return_value = None
    response = await receive_activity(
        make_activity("conversationUpdate"), _make_mock_request(bot=bot)
    )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_messages_malformed_activity_is_400():
    response = await receive_activity({"text": "no type"}, _make_mock_request(bot=AsyncMock()))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_messages_turn_error_notifies_and_returns_500(mock_connector):
    bot = ApprovalBot(AsyncMock(), mock_connector, AsyncMock())
    bot.router.handle.side_effect = RuntimeError("boom")
    response = await receive_activity(make_card_invoke(), _make_mock_request(bot=bot))

    assert response.status_code == 500
    mock_connector.reply.assert_awaited_once()
    assert "error or bug" in mock_connector.reply.await_args.args[1]


@pytest.mark.asyncio
async def test_messages_without_bot_is_503():
    with pytest.raises(Exception) as exc_info:
        await receive_activity(make_activity(), _make_mock_request())
    assert exc_info.value.status_code == 503


# ---------------------------------------------------------------------------
# /api/webhook
# ---------------------------------------------------------------------------


def _webhook_request(dispatcher, body):
    request = _make_mock_request(dispatcher=dispatcher)
    if isinstance(body, Exception):
        request.json = AsyncMock(side_effect=body)
    else:
        request.json = AsyncMock(return_value=body)
    return request


@pytest.mark.asyncio
async def test_webhook_success(reference_store, mock_connector):
    await reference_store.upsert(make_reference("conv-1"))
    dispatcher = NotificationDispatcher(reference_store, mock_connector)

    response = await receive_webhook(_webhook_request(dispatcher, {"text": "Approval needed"}))

    assert response.status_code == 200
    assert response.body == b"Notifications sent successfully"
    assert response.media_type == "text/plain"


@pytest.mark.asyncio
async def test_webhook_no_recipients_is_500(reference_store, mock_connector):
    dispatcher = NotificationDispatcher(reference_store, mock_connector)
    response = await receive_webhook(_webhook_request(dispatcher, {"text": "x"}))
    assert response.status_code == 500
    assert response.body == b"No conversation references found"


@pytest.mark.asyncio
async def test_webhook_store_outage_is_500():
    dispatcher = AsyncMock()
    dispatcher.dispatch.side_effect = StorageUnavailable("Reference store unavailable: disk I/O error")
    response = await receive_webhook(_webhook_request(dispatcher, {"text": "x"}))
    assert response.status_code == 500
    assert b"disk I/O error" in response.body


@pytest.mark.asyncio
async def test_webhook_invalid_json_is_400():
    dispatcher = AsyncMock()
    response = await receive_webhook(_webhook_request(dispatcher, ValueError("bad json")))
    assert response.status_code == 400
    dispatcher.dispatch.assert_not_awaited()


# ---------------------------------------------------------------------------
# /api/handleapproval
# ---------------------------------------------------------------------------


def _decision_request(gateway, key="fn-key"):
    return _make_mock_request(
        gateway=gateway, settings=Settings(functionapp_key=key)
    )


def _params(**overrides):
    params = {
        "decision": "approved",
        "request_id": "r1",
        "ticket_id": "t1",
        "message": "Not specified",
        "duration": "Once",
        "username": "Jane Approver",
        "approval_url": "example.com",
        "auth_key": "k",
        "function_key": "fn-key",
    }
    params.update(overrides)
    return params


@pytest.fixture
def mock_gateway():
    gateway = AsyncMock(spec=ApprovalGatewayClient)
    gateway.submit.return_value = ApprovalOutcome(success=True, detail="<html>ok</html>")
    return gateway


@pytest.mark.asyncio
async def test_decision_success(mock_gateway):
    response = await handle_approval(_decision_request(mock_gateway), **_params())

    assert response.status_code == 200
    assert json.loads(response.body) == {
        "message": "Request approved successfully processed",
        "details": "<html>ok</html>",
    }
    args = mock_gateway.submit.await_args.args
    assert args[0].value == "approved"
    assert args[2:] == ("example.com", "k")


@pytest.mark.asyncio
async def test_decision_unknown_value_is_denied(mock_gateway):
    response = await handle_approval(_decision_request(mock_gateway), **_params(decision="no"))
    assert json.loads(response.body)["message"] == "Request denied successfully processed"


@pytest.mark.asyncio
async def test_decision_wrong_function_key_is_401(mock_gateway):
    response = await handle_approval(
        _decision_request(mock_gateway), **_params(function_key="wrong")
    )
    assert response.status_code == 401
    assert "error" in json.loads(response.body)
    mock_gateway.submit.assert_not_awaited()


@pytest.mark.asyncio
async def test_decision_missing_key_accepted_when_unconfigured(mock_gateway):
    response = await handle_approval(
        _decision_request(mock_gateway, key=""), **_params(function_key=None)
    )
    assert response.status_code == 200


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["approval_url", "auth_key"])
async def test_decision_missing_required_params(mock_gateway, missing):
    response = await handle_approval(_decision_request(mock_gateway), **_params(**{missing: ""}))
    assert response.status_code == 500
    assert json.loads(response.body) == {
        "error": "Missing required parameters: approvalUrl or authKey"
    }


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [GatewayRejected(503, "Service Unavailable"), GatewayUnreachable("Approval gateway unreachable")],
)
async def test_decision_gateway_failure_is_500(mock_gateway, error):
    mock_gateway.submit.side_effect = error
    response = await handle_approval(_decision_request(mock_gateway), **_params())
    assert response.status_code == 500
    assert json.loads(response.body)["error"] == str(error)
