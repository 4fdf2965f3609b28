"""Decision-processing service: the deployable that talks to the PRA appliance."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from pra_relay.clients.approval_gateway import ApprovalGatewayClient
from pra_relay.config import settings
from pra_relay.middleware.audit_logger import DecisionAuditMiddleware
from pra_relay.routes.decisions import router as decisions_router
from pra_relay.routes.health import router as health_router

logging.basicConfig(level=settings.log_level)
# httpx logs full request URLs, which carry the PRA auth key
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    gateway = ApprovalGatewayClient(timeout=settings.gateway_timeout_seconds)
    app.state.settings = settings
    app.state.gateway = gateway
    if not settings.functionapp_key:
        logger.warning("No function key configured; decision endpoint is unauthenticated")
    logger.info("Decision service started")
    yield

    await gateway.close()
    logger.info("Decision service shutdown, gateway client closed")


app = FastAPI(title="PRA Decision Service", lifespan=lifespan)

app.add_middleware(DecisionAuditMiddleware)

app.include_router(health_router)
app.include_router(decisions_router)
