"""Bot Framework activity and conversation reference schemas.

Only the subset of the activity protocol the relay reads is modelled; unknown
fields are kept so references round-trip whatever the channel sent.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class ConversationType(str, Enum):
    PERSONAL = "personal"
    GROUP_CHAT = "groupChat"
    CHANNEL = "channel"


class ChannelAccount(BaseModel):
    id: str
    name: str | None = None

    model_config = {"extra": "allow"}


class ConversationAccount(BaseModel):
    id: str
    name: str | None = None
    conversation_type: ConversationType | None = Field(
        default=None, alias="conversationType"
    )
    is_group: bool | None = Field(default=None, alias="isGroup")
    tenant_id: str | None = Field(default=None, alias="tenantId")

    model_config = {"populate_by_name": True}

    @field_validator("conversation_type", mode="before")
    @classmethod
    def _unknown_type_is_none(cls, value: Any) -> Any:
        # Channels other than Teams send their own conversation types
        valid = {t.value for t in ConversationType}
        if isinstance(value, str) and value not in valid:
            return None
        return value


class ConversationReference(BaseModel):
    """Addressing data for pushing messages into a known conversation."""

    channel_id: str = Field(alias="channelId")
    service_url: str = Field(alias="serviceUrl")
    conversation: ConversationAccount
    bot: ChannelAccount
    tenant_id: str | None = Field(default=None, alias="tenantId")

    model_config = {"populate_by_name": True}

    @property
    def conversation_id(self) -> str:
        return self.conversation.id

    @classmethod
    def from_activity(cls, activity: Activity) -> ConversationReference | None:
        """Build a reference from an inbound activity, or None if it has no conversation."""
        conversation = activity.conversation
        if conversation is None or not conversation.id:
            return None
        if not activity.service_url or not activity.recipient:
            return None
        return cls(
            channel_id=activity.channel_id or "msteams",
            service_url=activity.service_url,
            conversation=conversation.model_copy(),
            bot=activity.recipient.model_copy(),
            tenant_id=conversation.tenant_id,
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class Activity(BaseModel):
    type: str
    id: str | None = None
    name: str | None = None
    action: str | None = None
    text: str | None = None
    channel_id: str | None = Field(default=None, alias="channelId")
    service_url: str | None = Field(default=None, alias="serviceUrl")
    from_: ChannelAccount | None = Field(default=None, alias="from")
    recipient: ChannelAccount | None = None
    conversation: ConversationAccount | None = None
    members_added: list[ChannelAccount] = Field(default=[], alias="membersAdded")
    members_removed: list[ChannelAccount] = Field(default=[], alias="membersRemoved")
    value: Any = None

    model_config = {"populate_by_name": True, "extra": "allow"}

    def bot_in(self, members: list[ChannelAccount]) -> bool:
        """True if the bot itself (the activity recipient) is among members."""
        if self.recipient is None:
            return False
        return any(m.id == self.recipient.id for m in members)
