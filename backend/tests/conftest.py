from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from relcis.services.orchestrator import SearchOrchestrator
from relcis.services.stealth import CookieStore
from tests.fakes import NO_DELAY, FakeArtifactStore, FakeSessionManager


@pytest.fixture
def fake_sessions():
    return FakeSessionManager()


@pytest.fixture
def fake_artifacts():
    return FakeArtifactStore()


@pytest.fixture
def cookie_jar(tmp_path):
    return CookieStore(tmp_path / "cookies.json")


@pytest.fixture
def make_orchestrator(fake_sessions, fake_artifacts, cookie_jar):
    """Build an orchestrator whose adapters come from a provider -> adapter map."""

    def _make(adapters, chain=None, last_resort=None, policy=NO_DELAY, sessions=None):
        return SearchOrchestrator(
            sessions=sessions or fake_sessions,
            cookies=cookie_jar,
            artifacts=fake_artifacts,
            policy=policy,
            web_chain=chain if chain is not None else list(adapters),
            last_resort=last_resort,
            adapter_factory=lambda provider: adapters[provider],
            snapshot=AsyncMock(return_value=None),
        )

    return _make


@pytest.fixture
async def client():
    """AsyncClient against the app; tests install service overrides as needed."""
    from relcis.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
