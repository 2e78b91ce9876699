from typing import List

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from console_session.adapters.http.authenticated_transport import AuthenticatedTransport
from console_session.core.config.settings import Settings
from console_session.domain.services.credential_store import CredentialStore
from console_session.domain.services.session_manager import SessionManager
from console_session.infrastructure.repositories.credential_repository import (
    InMemoryCredentialStorage,
)
from console_session.infrastructure.services.auth_api_client import HttpAuthApiClient
from console_session.infrastructure.services.event_publisher import InMemoryEventPublisher
from console_session.infrastructure.services.navigation import CallbackNavigator
from tests.utils.clock import FakeClock
from tests.utils.fake_api import FakeAuthServer

BASE_URL = "http://testserver/api/v1"


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from any .env file, with instant refresh backoff."""
    return Settings(
        _env_file=None,
        API_BASE_URL=BASE_URL,
        REQUEST_TIMEOUT_SECONDS=2.0,
        REFRESH_BACKOFF_INITIAL_SECONDS=0,
        REFRESH_BACKOFF_MAX_SECONDS=0,
        CREDENTIAL_DATABASE_URL="sqlite://",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_server() -> FakeAuthServer:
    return FakeAuthServer()


@pytest_asyncio.fixture(scope="function")
async def http_client(fake_server: FakeAuthServer):
    transport = ASGITransport(app=fake_server.app)
    async with AsyncClient(transport=transport, base_url=BASE_URL) as client:
        yield client


@pytest.fixture
def storage() -> InMemoryCredentialStorage:
    return InMemoryCredentialStorage()


@pytest.fixture
def store(storage, test_settings, clock) -> CredentialStore:
    return CredentialStore(storage, test_settings, clock)


@pytest.fixture
def event_publisher() -> InMemoryEventPublisher:
    return InMemoryEventPublisher()


@pytest.fixture
def navigations() -> List[str]:
    return []


@pytest.fixture
def navigator(navigations) -> CallbackNavigator:
    return CallbackNavigator(navigations.append, initial_path="/dashboard")


@pytest.fixture
def api_client(http_client, test_settings) -> HttpAuthApiClient:
    return HttpAuthApiClient(http_client, test_settings)


@pytest.fixture
def session_manager(store, api_client, event_publisher, navigator, test_settings, clock):
    return SessionManager(
        store=store,
        api_client=api_client,
        event_publisher=event_publisher,
        navigator=navigator,
        app_settings=test_settings,
        clock=clock,
    )


@pytest.fixture
def transport(session_manager, http_client, test_settings) -> AuthenticatedTransport:
    transport = AuthenticatedTransport(session_manager, http_client, test_settings)
    session_manager.bind_transport(transport)
    return transport
