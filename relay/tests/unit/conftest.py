"""Shared test fixtures for the approvals relay unit tests."""

import os
import tempfile
from unittest.mock import AsyncMock

import pytest

from pra_relay.persistence.store import ReferenceStore


@pytest.fixture
async def reference_store():
    """Temporary SQLite-backed ReferenceStore for tests."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    store = ReferenceStore(db_path)
    await store.ensure_ready()
    yield store
    await store.close()
    os.unlink(db_path)


@pytest.fixture
def mock_connector():
    """AsyncMock of BotConnectorClient that accepts every delivery."""
    connector = AsyncMock()
    connector.continue_conversation.return_value = {"id": "sent-1"}
    connector.reply.return_value = {"id": "reply-1"}
    return connector
