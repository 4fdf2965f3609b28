"""Error taxonomy for the approvals relay.

Every error is caught at the boundary that owns the HTTP response and turned
into a status + body there; none of them is fatal to the process.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for relay errors."""


class ValidationError(RelayError):
    """An invoke payload is missing required fields or is malformed."""


class StorageUnavailable(RelayError):
    """The conversation reference store could not be reached."""


class DecodeError(RelayError):
    """A stored conversation reference could not be decoded."""


class GatewayError(RelayError):
    """The external approval gateway call failed."""


class GatewayUnreachable(GatewayError):
    """The approval gateway could not be reached at all."""


class GatewayRejected(GatewayError):
    """The approval gateway answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(
            f"Approval request failed with status: {status_code}: {body}"
        )


class DecisionServiceError(RelayError):
    """The decision-processing endpoint call failed or returned garbage."""


class NoRecipients(RelayError):
    """No conversation references are registered for a fan-out."""


class DeliveryFailed(RelayError):
    """An activity could not be delivered into a conversation."""
