import os
from pathlib import Path

import pytest

# app.main builds a module-level app from config.yaml at import time
os.environ.setdefault("CONFIG_PATH", str(Path(__file__).resolve().parent.parent / "config" / "config.yaml"))

from app.main import create_app
from app.services.session_store import InMemoryTranscriptStore
from app.utils.config import Settings
from app.utils.errors import UpstreamError

TEST_SECRET = "test-secret"


class FakeGateway:
    """Stands in for the completion endpoint; records every query it is asked."""

    def __init__(self, reply="Here are the key points.", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def complete(self, query: str) -> str:
        self.calls.append(query)
        if self.error:
            raise self.error
        return self.reply


@pytest.fixture
def settings():
    return Settings(jwt_secret=TEST_SECRET, store_backend="memory")


@pytest.fixture
def store():
    return InMemoryTranscriptStore()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def failing_gateway():
    return FakeGateway(error=UpstreamError(details="model unavailable"))


@pytest.fixture
def app(settings, store, gateway):
    return create_app(settings=settings, store=store, gateway=gateway)
