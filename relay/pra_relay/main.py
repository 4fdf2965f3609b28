"""PRA approvals bot FastAPI application with lifespan-managed store and clients."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from pra_relay.bot.activity_handler import ApprovalBot
from pra_relay.bot.approval_router import ApprovalDecisionRouter
from pra_relay.clients.bot_connector import BotConnectorClient
from pra_relay.clients.decision_service import DecisionServiceClient
from pra_relay.config import settings
from pra_relay.errors import StorageUnavailable
from pra_relay.persistence.store import ReferenceStore
from pra_relay.routes.health import router as health_router
from pra_relay.routes.messages import router as messages_router
from pra_relay.routes.webhook import router as webhook_router
from pra_relay.services.fanout import NotificationDispatcher

logging.basicConfig(level=settings.log_level)
# httpx logs full request URLs, which carry the PRA auth key
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the reference store and clients, wire the bot and dispatcher."""
    store = ReferenceStore(settings.storage_connection_string)
    try:
        await store.ensure_ready()
    except StorageUnavailable as e:
        logger.warning("Reference store not ready (will retry on use): %s", e)

    connector = BotConnectorClient(settings)
    decisions = DecisionServiceClient(
        settings.functionapp_url,
        settings.functionapp_key,
        timeout=settings.decision_timeout_seconds,
    )
    router = ApprovalDecisionRouter(decisions)

    app.state.store = store
    app.state.bot = ApprovalBot(store, connector, router)
    app.state.dispatcher = NotificationDispatcher(store, connector)

    logger.info("PRA approvals bot started on port %s", settings.port)
    yield

    # Cleanup
    await store.close()
    await connector.close()
    await decisions.close()
    logger.info("PRA approvals bot shutdown, clients closed")


app = FastAPI(title="BeyondTrust PRA Approvals Bot", lifespan=lifespan)

app.include_router(health_router)
app.include_router(messages_router)
app.include_router(webhook_router)


def run() -> None:
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
