"""Schemas for approval decisions and invoke acknowledgements."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

DEFAULT_MESSAGE = "Not specified"
DEFAULT_USERNAME = "Unknown User"
DURATION_ONCE = "Once"
INVOKE_MESSAGE_TYPE = "application/vnd.microsoft.activity.message"


class Decision(str, Enum):
    APPROVED = "approved"
    DENIED = "denied"

    @classmethod
    def parse(cls, value: object) -> Decision:
        """Anything other than the literal "approved" is a denial."""
        if value == cls.APPROVED.value:
            return cls.APPROVED
        return cls.DENIED


class ApprovalActionRequest(BaseModel):
    """A fully-populated decision submitted from an approval card."""

    decision: Decision
    request_id: str
    ticket_id: str = ""
    message: str = DEFAULT_MESSAGE
    duration: str = DURATION_ONCE
    username: str = DEFAULT_USERNAME
    approval_url: str
    auth_key: str = Field(repr=False)

    def to_query_params(self) -> dict[str, str]:
        """Query parameters understood by the decision-processing endpoint."""
        return {
            "decision": self.decision.value,
            "requestId": self.request_id,
            "ticketId": self.ticket_id,
            "message": self.message,
            "duration": self.duration,
            "username": self.username,
            "approvalUrl": self.approval_url,
            "authKey": self.auth_key,
        }


class ApprovalOutcome(BaseModel):
    success: bool
    detail: str = ""


class InvokeResponseBody(BaseModel):
    status_code: int = Field(alias="statusCode")
    type: str = INVOKE_MESSAGE_TYPE
    value: str

    model_config = {"populate_by_name": True}


class InvokeResponse(BaseModel):
    status: int
    body: InvokeResponseBody

    @classmethod
    def message(cls, status: int, text: str) -> InvokeResponse:
        return cls(status=status, body=InvokeResponseBody(status_code=status, value=text))

    def body_json(self) -> dict:
        return self.body.model_dump(by_alias=True)


class DecisionResult(BaseModel):
    message: str
    details: str


class DecisionFailure(BaseModel):
    error: str
