"""Notification fan-out to every registered conversation."""

from __future__ import annotations

import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any

from pra_relay.clients.bot_connector import BotConnectorClient
from pra_relay.errors import NoRecipients
from pra_relay.persistence.store import ReferenceStore

logger = logging.getLogger(__name__)


@dataclass
class FanoutReport:
    """Outcome of one fan-out."""

    attempted: int = 0
    delivered: int = 0
    failed: list[str] = field(default_factory=list)


class NotificationDispatcher:
    """Broadcasts a payload to all stored conversations, one at a time.

    A delivery failure is logged and recorded; it never stops delivery to
    the remaining conversations.
    """

    def __init__(self, store: ReferenceStore, connector: BotConnectorClient) -> None:
        self.store = store
        self.connector = connector

    async def dispatch(self, payload: Any) -> FanoutReport:
        """Raises NoRecipients if nothing is registered; StorageUnavailable propagates."""
        report = FanoutReport()
        async with aclosing(self.store.list_all()) as references:
            async for ref in references:
                report.attempted += 1
                logger.info("Sending to conversation: %s", ref.conversation_id)
                try:
                    await self.connector.continue_conversation(ref, payload)
                except Exception:
                    logger.exception("Error sending to conversation %s", ref.conversation_id)
                    report.failed.append(ref.conversation_id)
                    continue
                report.delivered += 1

        if report.attempted == 0:
            raise NoRecipients("No conversation references found")

        logger.info(
            "Fan-out complete: %d delivered, %d failed",
            report.delivered,
            len(report.failed),
        )
        return report
