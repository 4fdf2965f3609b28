"""Approval decision audit logging middleware: logs decision calls to JSONL."""

import json
import logging
import time
from pathlib import Path

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

LOG_DIR = Path("/app/logs")
AUDIT_LOG_FILE = LOG_DIR / "decision_audit.jsonl"
AUDITED_PATH = "/api/handleapproval"

# Correlation fields only; approvalUrl and authKey stay out of the log
_AUDITED_PARAMS = {
    "requestId": "request_id",
    "ticketId": "ticket_id",
    "decision": "decision",
    "duration": "duration",
    "username": "username",
}


class DecisionAuditMiddleware(BaseHTTPMiddleware):
    """Writes one audit line per decision-processing call."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path != AUDITED_PATH or request.method != "POST":
            response: Response = await call_next(request)
            return response

        response = await call_next(request)

        entry: dict = {"timestamp": time.time(), "endpoint": AUDITED_PATH}
        for param, key in _AUDITED_PARAMS.items():
            entry[key] = request.query_params.get(param, "")
        entry["status_code"] = response.status_code
        try:
            LOG_DIR.mkdir(parents=True, exist_ok=True)
            with open(AUDIT_LOG_FILE, "a") as f:
                f.write(json.dumps(entry) + "\n")
        except OSError:
            logger.warning("Could not write audit log entry")

        return response
