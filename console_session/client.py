"""Composition root for the session client.

`SessionClient` wires the credential store, session manager and authenticated
transport around one shared ``httpx.AsyncClient``. Each instance is an
independent application root with its own state; there are no module level
singletons to reset between tests.

Example:
    async with SessionClient() as client:
        result = await client.login("ops@example.com", "secret")
        if result.success:
            response = (await client.authenticated_fetch("/dashboard")).raise_for_error()
"""

from typing import Any, Callable, Dict, Optional

import httpx
from sqlalchemy.engine import Engine
from structlog import get_logger

from console_session.adapters.http.authenticated_transport import AuthenticatedTransport
from console_session.core.config.settings import Settings, settings as default_settings
from console_session.domain.interfaces.navigation import INavigator
from console_session.domain.interfaces.services import IEventPublisher
from console_session.domain.interfaces.storage import ICredentialStorage
from console_session.domain.services.credential_store import Clock, CredentialStore, utc_now
from console_session.domain.services.session_manager import SessionManager
from console_session.domain.value_objects.auth_result import (
    FetchResult,
    LoginResult,
    RefreshResult,
)
from console_session.domain.value_objects.session_state import SessionState
from console_session.domain.value_objects.token_pair import TokenPair
from console_session.infrastructure.database.database import create_credential_engine
from console_session.infrastructure.repositories.credential_repository import (
    SQLModelCredentialStorage,
)
from console_session.infrastructure.services.auth_api_client import HttpAuthApiClient
from console_session.infrastructure.services.event_publisher import InMemoryEventPublisher
from console_session.infrastructure.services.navigation import NullNavigator

logger = get_logger(__name__)


class SessionClient:
    """Public surface of the session client.

    Args:
        app_settings: Configuration; defaults to the environment-loaded settings.
        http_client: Shared HTTP client. When omitted one is created (with
            ``API_BASE_URL`` as base URL) and closed by `aclose`.
        storage: Credential storage backend. Defaults to the SQLModel store at
            ``CREDENTIAL_DATABASE_URL``.
        navigator: Receives the logout navigation. Defaults to headless.
        event_publisher: Session event sink. Defaults to an in-memory publisher.
        clock: Source of the current UTC time.
    """

    def __init__(
        self,
        app_settings: Optional[Settings] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        storage: Optional[ICredentialStorage] = None,
        navigator: Optional[INavigator] = None,
        event_publisher: Optional[IEventPublisher] = None,
        clock: Clock = utc_now,
    ):
        self.settings = app_settings or default_settings

        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            base_url=self.settings.API_BASE_URL,
            timeout=self.settings.REQUEST_TIMEOUT_SECONDS,
        )

        self._engine: Optional[Engine] = None
        if storage is None:
            self._engine = create_credential_engine(app_settings=self.settings)
            storage = SQLModelCredentialStorage(self._engine)

        self.store = CredentialStore(storage, self.settings, clock)
        self.event_publisher = event_publisher or InMemoryEventPublisher()
        self.navigator = navigator or NullNavigator()
        self.api_client = HttpAuthApiClient(self.http_client, self.settings)
        self.session_manager = SessionManager(
            store=self.store,
            api_client=self.api_client,
            event_publisher=self.event_publisher,
            navigator=self.navigator,
            app_settings=self.settings,
            clock=clock,
        )
        self.transport = AuthenticatedTransport(self.session_manager, self.http_client, self.settings)
        self.session_manager.bind_transport(self.transport)
        self._started = False

    async def start(self) -> Optional[TokenPair]:
        """Restore persisted credentials. Runs once; later calls are no-ops."""
        if self._started:
            return self.store.peek()
        self._started = True
        pair = await self.session_manager.restore()
        logger.info("session_client_started", state=self.state.value)
        return pair

    async def aclose(self) -> None:
        """Release the HTTP client and database engine this instance created."""
        if self._owns_http_client:
            await self.http_client.aclose()
        if self._engine is not None:
            self._engine.dispose()

    async def __aenter__(self) -> "SessionClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # Session lifecycle

    async def login(self, email: str, password: str) -> LoginResult:
        return await self.session_manager.login(email, password)

    async def logout(self) -> None:
        await self.session_manager.logout()

    async def ensure_valid(self) -> bool:
        return await self.session_manager.ensure_valid()

    async def refresh(self) -> RefreshResult:
        return await self.session_manager.refresh()

    # Requests

    async def authenticated_fetch(
        self, url: str, method: str = "GET", **request_kwargs: Any
    ) -> FetchResult:
        """Issue a request through the authenticated transport.

        See `AuthenticatedTransport.fetch` for the retry and error contract.
        """
        return await self.transport.fetch(url, method, **request_kwargs)

    async def get_current_user(self) -> Optional[Dict[str, Any]]:
        return await self.session_manager.get_current_user()

    # Reads

    def peek(self) -> Optional[TokenPair]:
        return self.store.peek()

    def is_authenticated(self) -> bool:
        return self.store.is_authenticated()

    @property
    def state(self) -> SessionState:
        return self.session_manager.state

    def subscribe(self, callback: Callable) -> Callable[[], None]:
        return self.session_manager.subscribe(callback)

    def get_debug_info(self) -> Dict[str, Any]:
        return self.session_manager.get_debug_info()
