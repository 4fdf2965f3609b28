"""BeyondTrust PRA approval gateway client.

Translates a normalized decision into the form POST the PRA jump-approval
page expects. The response body is relayed verbatim; its grammar is not
interpreted here.
"""

import logging

import httpx

from pra_relay.errors import GatewayRejected, GatewayUnreachable
from pra_relay.schemas.approval import ApprovalOutcome, Decision

logger = logging.getLogger(__name__)

APPROVAL_ACTION_PATH = "approve_jump_request"


def normalize_approval_url(url: str) -> str:
    """Canonical approval endpoint for however the caller spelled the URL.

    "example.com" -> "https://example.com/approve_jump_request"; an URL that
    already ends in the action path is returned unchanged.
    """
    url = url.strip()
    if "://" not in url:
        url = f"https://{url}"
    base = url.rstrip("/")
    if base.rsplit("/", 1)[-1] == APPROVAL_ACTION_PATH:
        return base
    return f"{base}/{APPROVAL_ACTION_PATH}"


def build_approval_form(
    decision: Decision, message: str, auth_key: str
) -> dict[str, str]:
    """Form body with exactly one of the approve/deny button values."""
    form = {"authKey": auth_key, "comments": message}
    if decision is Decision.APPROVED:
        form["approved"] = "Approve"
    else:
        form["denied"] = "Deny"
    return form


class ApprovalGatewayClient:
    """Submits approve/deny decisions to the PRA appliance."""

    def __init__(self, timeout: float = 30.0) -> None:
        self.http = httpx.AsyncClient(timeout=timeout)

    async def submit(
        self,
        decision: Decision,
        message: str,
        approval_url: str,
        auth_key: str,
    ) -> ApprovalOutcome:
        """POST the decision; raises GatewayRejected / GatewayUnreachable."""
        url = normalize_approval_url(approval_url)
        form = build_approval_form(decision, message, auth_key)
        logger.info("Submitting %s decision to %s", decision.value, url)
        try:
            resp = await self.http.post(
                url,
                params={"authKey": auth_key},
                data=form,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.RequestError as e:
            logger.error("Approval gateway unreachable at %s: %s", url, type(e).__name__)
            raise GatewayUnreachable(f"Approval gateway unreachable: {e}") from e

        if not resp.is_success:
            logger.warning("Approval gateway rejected request: %s", resp.status_code)
            raise GatewayRejected(resp.status_code, resp.text)

        logger.info("Approval gateway accepted %s decision", decision.value)
        return ApprovalOutcome(success=True, detail=resp.text)

    async def close(self) -> None:
        await self.http.aclose()
