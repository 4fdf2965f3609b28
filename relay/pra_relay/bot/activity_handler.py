"""Teams activity handling for the PRA approvals bot."""

from __future__ import annotations

import logging

from pra_relay.bot.approval_router import ApprovalDecisionRouter
from pra_relay.clients.bot_connector import BotConnectorClient
from pra_relay.errors import DeliveryFailed, StorageUnavailable
from pra_relay.persistence.store import ReferenceStore
from pra_relay.schemas.activity import Activity, ConversationReference
from pra_relay.schemas.approval import InvokeResponse

logger = logging.getLogger(__name__)

WELCOME_TEXT = (
    "Hi! I'm the BeyondTrust PRA approvals bot. "
    "I'll notify you of any approval requests."
)


class ApprovalBot:
    """Registers conversations for notifications and answers approval card invokes."""

    def __init__(
        self,
        store: ReferenceStore,
        connector: BotConnectorClient,
        router: ApprovalDecisionRouter,
    ) -> None:
        self.store = store
        self.connector = connector
        self.router = router

    async def on_turn(self, activity: Activity) -> InvokeResponse | None:
        """Handle one inbound activity. Only invokes produce a response."""
        if activity.type == "installationUpdate":
            await self.on_installation_update(activity)
        elif activity.type == "conversationUpdate":
            await self.on_conversation_update(activity)
        elif activity.type == "invoke":
            logger.info("Invoke activity: %s", activity.name)
            return await self.router.handle(activity)
        else:
            logger.debug("Ignoring %s activity", activity.type)
        return None

    async def on_installation_update(self, activity: Activity) -> None:
        action = activity.action or ""
        logger.info("Installation update: %s", action)
        if action == "add":
            await self.register(activity)
            await self._welcome(activity)
        elif action == "add-upgrade":
            await self.register(activity)
        elif action == "remove":
            await self.unregister(activity)

    async def on_conversation_update(self, activity: Activity) -> None:
        if activity.bot_in(activity.members_removed):
            await self.unregister(activity)
            return
        await self.register(activity)
        if activity.bot_in(activity.members_added):
            await self._welcome(activity)

    async def register(self, activity: Activity) -> None:
        """Best-effort upsert of the activity's conversation reference."""
        ref = ConversationReference.from_activity(activity)
        if ref is None:
            logger.warning("Activity %s has no usable conversation; not registered", activity.id)
            return
        try:
            await self.store.upsert(ref)
        except StorageUnavailable as e:
            logger.error("Error storing conversation reference: %s", e)

    async def unregister(self, activity: Activity) -> None:
        """Prune the reference of a conversation the bot was removed from."""
        conversation = activity.conversation
        if conversation is None or not conversation.id:
            return
        try:
            await self.store.remove(conversation.id)
        except StorageUnavailable as e:
            logger.error("Error removing conversation reference: %s", e)

    async def _welcome(self, activity: Activity) -> None:
        await self.connector.reply(activity, WELCOME_TEXT)

    async def notify_turn_error(self, activity: Activity) -> None:
        """Tell the conversation something went wrong; never raises."""
        try:
            await self.connector.reply(activity, "The bot encountered an error or bug.")
        except DeliveryFailed as e:
            logger.error("Could not report turn error: %s", e)
