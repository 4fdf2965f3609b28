"""Client for the internal decision-processing endpoint."""

import logging
from typing import Any

import httpx

from pra_relay.errors import DecisionServiceError
from pra_relay.schemas.approval import ApprovalActionRequest, ApprovalOutcome

logger = logging.getLogger(__name__)


class DecisionServiceClient:
    """Forwards normalized decisions to the decision-processing endpoint."""

    def __init__(self, url: str, function_key: str, timeout: float = 15.0) -> None:
        self.url = url
        self.function_key = function_key
        self.http = httpx.AsyncClient(timeout=timeout)

    async def submit(self, request: ApprovalActionRequest) -> ApprovalOutcome:
        """Call the endpoint; raises DecisionServiceError on any failure."""
        logger.info(
            "Forwarding %s decision for request %s (ticket %s) by %s",
            request.decision.value,
            request.request_id,
            request.ticket_id,
            request.username,
        )
        try:
            resp = await self.http.post(
                self.url,
                params=request.to_query_params(),
                headers={
                    "Content-Type": "application/json",
                    "x-functions-key": self.function_key,
                },
            )
        except httpx.RequestError as e:
            raise DecisionServiceError(
                f"Decision service unreachable: {type(e).__name__}"
            ) from e

        try:
            data: Any = resp.json()
        except ValueError as e:
            raise DecisionServiceError(
                f"Function call failed with status {resp.status_code}: {resp.text}"
            ) from e

        if not resp.is_success:
            raise DecisionServiceError(f"Function call failed: {_compact(data)}")
        if not isinstance(data, dict):
            raise DecisionServiceError(f"Unexpected function response: {_compact(data)}")

        logger.info("Decision service accepted request %s", request.request_id)
        return ApprovalOutcome(success=True, detail=str(data.get("details", "")))

    async def close(self) -> None:
        await self.http.aclose()


def _compact(data: Any) -> str:
    if isinstance(data, dict) and "error" in data:
        return str(data["error"])
    return str(data)
