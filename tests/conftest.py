# Shared fixtures for the Pelican client tests.
# Created: 2026-10-16

import httpx
import pytest

from pelicanclient.config import Settings
from pelicanclient.session import MemorySessionStore, Session
from tests.fakes import FakeFederation


@pytest.fixture
def fake():
    return FakeFederation()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        redirect_uri="http://localhost:8765/callback",
        session_file=str(tmp_path / "session.json"),
        list_cache_ttl=300,
    )


@pytest.fixture
def session():
    return Session(MemorySessionStore())


@pytest.fixture
async def http(fake):
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake)) as client:
        yield client
