"""Bot Framework connector client with client-credentials token management."""

import logging
from typing import Any
from urllib.parse import quote

import httpx

from pra_relay.config import Settings
from pra_relay.errors import DeliveryFailed
from pra_relay.schemas.activity import Activity, ConversationReference

logger = logging.getLogger(__name__)

LOGIN_BASE = "https://login.microsoftonline.com"
BOT_FRAMEWORK_SCOPE = "https://api.botframework.com/.default"


class BotConnectorClient:
    """Pushes activities into conversations through the channel's connector service.

    Obtains an OAuth2 token with the bot's app id/secret on first use and
    retries once on 401 (token expiry). Without an app id (local emulator)
    requests go out unauthenticated.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._access_token: str | None = None
        self.http = httpx.AsyncClient(timeout=settings.connector_timeout_seconds)

    # --- OAuth2 ---

    @property
    def auth_enabled(self) -> bool:
        return bool(self.settings.microsoft_app_id)

    async def _token_request(self) -> None:
        """Client-credentials token request."""
        url = (
            f"{LOGIN_BASE}/{self.settings.microsoft_app_tenant_id}"
            "/oauth2/v2.0/token"
        )
        payload = {
            "grant_type": "client_credentials",
            "client_id": self.settings.microsoft_app_id,
            "client_secret": self.settings.microsoft_app_password,
            "scope": BOT_FRAMEWORK_SCOPE,
        }
        resp = await self.http.post(url, data=payload)
        resp.raise_for_status()
        try:
            self._access_token = resp.json()["access_token"]
        except (KeyError, TypeError, ValueError) as e:
            raise DeliveryFailed(
                "Bot Framework token response carried no access token"
            ) from e
        logger.info("Bot Framework token obtained")

    async def _auth_headers(self) -> dict[str, str]:
        if not self.auth_enabled:
            return {}
        if not self._access_token:
            await self._token_request()
        return {"Authorization": f"Bearer {self._access_token}"}

    # --- Delivery ---

    async def send_to_conversation(
        self, ref: ConversationReference, activity: dict[str, Any]
    ) -> dict[str, Any]:
        """POST an activity into the referenced conversation."""
        url = (
            f"{ref.service_url.rstrip('/')}/v3/conversations/"
            f"{quote(ref.conversation_id, safe='')}/activities"
        )
        try:
            resp = await self.http.post(
                url, json=activity, headers=await self._auth_headers()
            )
            if resp.status_code == 401 and self.auth_enabled:
                logger.info("Connector token expired, re-authenticating")
                self._access_token = None
                resp = await self.http.post(
                    url, json=activity, headers=await self._auth_headers()
                )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise DeliveryFailed(
                f"Delivery to {ref.conversation_id} failed: {e}"
            ) from e
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError:
            return {}

    async def continue_conversation(
        self, ref: ConversationReference, payload: Any
    ) -> dict[str, Any]:
        """Send an arbitrary payload into a conversation as a message activity."""
        return await self.send_to_conversation(ref, build_message_activity(ref, payload))

    async def reply(self, activity: Activity, text: str) -> dict[str, Any]:
        """Send a text message back into the conversation an activity came from."""
        ref = ConversationReference.from_activity(activity)
        if ref is None:
            raise DeliveryFailed("Activity carries no conversation to reply to")
        return await self.send_to_conversation(
            ref, build_message_activity(ref, text, reply_to=activity.id)
        )

    async def close(self) -> None:
        await self.http.aclose()


def build_message_activity(
    ref: ConversationReference, payload: Any, reply_to: str | None = None
) -> dict[str, Any]:
    """Address a payload to the referenced conversation as a message activity.

    Dict payloads are treated as partial activities; anything else becomes
    the message text.
    """
    if isinstance(payload, dict):
        activity: dict[str, Any] = {"type": "message", **payload}
    else:
        activity = {"type": "message", "text": str(payload)}
    activity["channelId"] = ref.channel_id
    activity["serviceUrl"] = ref.service_url
    activity["conversation"] = ref.conversation.model_dump(by_alias=True, exclude_none=True)
    activity["from"] = ref.bot.model_dump(by_alias=True, exclude_none=True)
    if reply_to:
        activity["replyToId"] = reply_to
    return activity
