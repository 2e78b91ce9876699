"""Session Manager.

Owns the session lifecycle: login, logout and token refresh. It is the only
writer of the credential store besides `load()` at start-up.

Key behaviours:
    - Single-flight refresh: every concurrent caller awaits one shared
      `asyncio.Task`. The handle is dropped as soon as the task settles, so
      the next expiry starts a fresh round-trip.
    - Post-login grace window: for a few seconds after login, expiry checks are
      skipped so the first requests of a new session never race a refresh.
    - Degrade, don't destroy: a failed refresh keeps the expired pair. The
      session is only cleared by logout, or after too many consecutive failed
      refreshes while the token is still expired.
    - Generation check: a refresh that settles after a logout or a new login
      is discarded instead of resurrecting the old session.
"""

import asyncio
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from structlog import get_logger

from console_session.core.config.settings import Settings, settings as default_settings
from console_session.core.exceptions import (
    ConsoleSessionError,
    InvalidCredentialsError,
    MalformedCredentialError,
    RefreshError,
    StorageError,
)
from console_session.domain.events.session_events import (
    BaseDomainEvent,
    CredentialPurgedEvent,
    RefreshFailedEvent,
    SessionEndedEvent,
    SessionStartedEvent,
    TokenRefreshedEvent,
)
from console_session.domain.interfaces.navigation import INavigator
from console_session.domain.interfaces.services import IAuthApiClient, IEventPublisher
from console_session.domain.services.credential_store import Clock, CredentialStore, utc_now
from console_session.domain.value_objects.auth_result import LoginResult, RefreshResult
from console_session.domain.value_objects.credentials import LoginCredentials
from console_session.domain.value_objects.session_state import SessionState
from console_session.domain.value_objects.token_pair import TokenPair, is_valid_token_format

if TYPE_CHECKING:
    from console_session.adapters.http.authenticated_transport import AuthenticatedTransport

logger = get_logger(__name__)


class SessionManager:
    """Coordinates login, logout and refresh on top of the credential store.

    Attributes:
        store: Credential store holding the token pair.
        api_client: Remote authentication endpoints.
        event_publisher: Receives session lifecycle events. Optional.
        navigator: Moves the console to the login surface on logout. Optional.
        transport: Authenticated transport used by `get_current_user`. Bound
            after construction because the transport depends on this manager.
    """

    def __init__(
        self,
        store: CredentialStore,
        api_client: IAuthApiClient,
        event_publisher: Optional[IEventPublisher] = None,
        navigator: Optional[INavigator] = None,
        app_settings: Optional[Settings] = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.api_client = api_client
        self.event_publisher = event_publisher
        self.navigator = navigator
        self.settings = app_settings or default_settings
        self.transport: Optional["AuthenticatedTransport"] = None
        self._clock = clock

        self._refresh_task: Optional["asyncio.Task[RefreshResult]"] = None
        # Bumped on every login/logout; a refresh started under an older value is stale
        self._generation = 0
        self._last_login_at: Optional[datetime] = None
        self._consecutive_failures = 0
        self._last_refresh_error: Optional[ConsoleSessionError] = None

    def bind_transport(self, transport: "AuthenticatedTransport") -> None:
        self.transport = transport

    # ------------------------------------------------------------------
    # Start-up
    # ------------------------------------------------------------------

    async def restore(self) -> Optional[TokenPair]:
        """Load persisted credentials and announce any record that had to be purged."""
        pair = self.store.load()
        for key in self.store.purged_keys:
            await self._publish(
                CredentialPurgedEvent(occurred_at=self._clock(), storage_key=key)
            )
        return pair

    # ------------------------------------------------------------------
    # Login / logout
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> LoginResult:
        """Authenticate against the server and start a session.

        Nothing is written unless every step succeeds. Failures are returned,
        never raised.

        Args:
            email: Account email.
            password: Account password.

        Returns:
            LoginResult: Success with the user payload, or the failure.
        """
        try:
            credentials = LoginCredentials(email=email, password=password)
        except InvalidCredentialsError as e:
            logger.info("login_rejected_locally", reason=e.code)
            return LoginResult.failed(e)

        logger.info("login_attempt", email=credentials.mask_for_logging())
        try:
            response = await self.api_client.login(credentials)
        except ConsoleSessionError as e:
            logger.warning(
                "login_failed", email=credentials.mask_for_logging(), error_code=e.code
            )
            return LoginResult.failed(e)

        if not is_valid_token_format(response.access_token):
            logger.error(
                "login_returned_malformed_token",
                email=credentials.mask_for_logging(),
                token_present=bool(response.access_token),
            )
            return LoginResult.failed(
                MalformedCredentialError("Server returned a malformed access token")
            )

        now = self._clock()
        try:
            pair = TokenPair.issue(
                access_token=response.access_token,
                refresh_token=response.refresh_token,
                token_type=response.token_type,
                expires_in=response.expires_in or self.settings.DEFAULT_TOKEN_TTL_SECONDS,
                now=now,
            )
        except MalformedCredentialError as e:
            logger.error("login_returned_malformed_token", error=str(e))
            return LoginResult.failed(e)

        if not self.store.save(pair):
            return LoginResult.failed(StorageError("Could not persist the new session"))

        self._start_generation()
        self._last_login_at = now
        user = dict(response.user or {})
        self.store.remember_user(user)

        logger.info(
            "login_succeeded",
            email=credentials.mask_for_logging(),
            expires_at=pair.expires_at.isoformat(),
        )
        await self._publish(
            SessionStartedEvent(
                occurred_at=now,
                user_id=self._user_id(user),
                expires_at=pair.expires_at,
                email=credentials.email,
            )
        )
        return LoginResult.ok(user)

    async def logout(self) -> None:
        """End the session.

        Tells the server (best effort), clears all credential state and
        navigates to the login surface unless the console already shows an
        unauthenticated surface. Never raises.
        """
        pair = self.store.peek()
        user_id = self._user_id(self.store.peek_user())
        try:
            if pair is not None:
                await self.api_client.logout(pair.access_token)
        except ConsoleSessionError as e:
            logger.warning("server_logout_failed", error_code=e.code, error=str(e))
        finally:
            self._end_session()

        logger.info("logout_completed", had_session=pair is not None)
        if pair is not None:
            await self._publish(
                SessionEndedEvent(occurred_at=self._clock(), user_id=user_id, reason="logout")
            )
        self._navigate_to_login()

    def _navigate_to_login(self) -> None:
        if self.navigator is None:
            return
        current = self.navigator.current_path
        if current is not None and current in self.settings.UNAUTHENTICATED_SURFACE_PATHS:
            logger.debug("navigation_not_needed", current_path=current)
            return
        try:
            self.navigator.navigate(self.settings.LOGIN_SURFACE_PATH)
        except Exception as e:
            logger.error("navigation_failed", target=self.settings.LOGIN_SURFACE_PATH, error=str(e))

    # ------------------------------------------------------------------
    # Validity and refresh
    # ------------------------------------------------------------------

    async def ensure_valid(self) -> bool:
        """Make sure the held access token is usable, refreshing if needed.

        Returns:
            True inside the post-login grace window or when the token is
            unexpired or was just refreshed; False when there is no session or
            the refresh failed.
        """
        if self._in_grace_period():
            return True
        if self.store.peek() is None:
            return False
        if not self.store.is_expired():
            return True
        result = await self.refresh()
        return result.success

    async def refresh(self) -> RefreshResult:
        """Refresh the token pair, joining a round-trip already in flight.

        The shared task is shielded: a caller that gets cancelled stops
        waiting but does not cancel the refresh for everyone else.
        """
        task = self._refresh_task
        if task is None:
            task = asyncio.create_task(self._run_refresh(self._generation))
            self._refresh_task = task
            logger.debug("refresh_started", generation=self._generation)
        else:
            logger.debug("refresh_joined", generation=self._generation)
        return await asyncio.shield(task)

    async def _run_refresh(self, generation: int) -> RefreshResult:
        try:
            return await self._perform_refresh(generation)
        except Exception as e:
            logger.exception("refresh_crashed", error=str(e))
            return RefreshResult.failed(RefreshError(f"Token refresh failed: {e}"))
        finally:
            if self._refresh_task is asyncio.current_task():
                self._refresh_task = None

    async def _perform_refresh(self, generation: int) -> RefreshResult:
        pair = self.store.peek()
        if pair is None:
            return RefreshResult.failed(RefreshError("No session to refresh", code="no_session"))
        if not pair.refresh_token:
            return await self._record_failure(
                RefreshError("No refresh token available", code="no_refresh_token")
            )

        try:
            response = await self.api_client.refresh(pair.refresh_token)
        except ConsoleSessionError as e:
            error: Optional[ConsoleSessionError] = e
            response = None
        else:
            error = None

        if generation != self._generation:
            logger.info("stale_refresh_discarded", started=generation, current=self._generation)
            return RefreshResult.failed(
                RefreshError("Session changed while refreshing", code="refresh_superseded")
            )
        if error is not None:
            return await self._record_failure(error)

        if not is_valid_token_format(response.access_token):
            return await self._record_failure(
                MalformedCredentialError("Server returned a malformed access token")
            )

        now = self._clock()
        expires_in = response.expires_in or self.settings.DEFAULT_TOKEN_TTL_SECONDS
        try:
            new_pair = pair.rotated(
                access_token=response.access_token,
                refresh_token=response.refresh_token,
                token_type=response.token_type,
                expires_at=now + timedelta(seconds=expires_in),
            )
        except MalformedCredentialError as e:
            return await self._record_failure(e)

        if not self.store.save(new_pair):
            return await self._record_failure(
                StorageError("Could not persist the refreshed session")
            )

        self._consecutive_failures = 0
        self._last_refresh_error = None
        rotated = bool(response.refresh_token) and response.refresh_token != pair.refresh_token
        logger.info(
            "token_refreshed",
            access_token=new_pair.mask_for_logging(),
            expires_at=new_pair.expires_at.isoformat(),
            refresh_token_rotated=rotated,
        )
        await self._publish(
            TokenRefreshedEvent(
                occurred_at=now,
                user_id=self._user_id(self.store.peek_user()),
                expires_at=new_pair.expires_at,
                refresh_token_rotated=rotated,
            )
        )
        return RefreshResult.ok(new_pair.access_token)

    async def _record_failure(self, error: ConsoleSessionError) -> RefreshResult:
        self._consecutive_failures += 1
        self._last_refresh_error = error
        failures = self._consecutive_failures
        user_id = self._user_id(self.store.peek_user())
        logger.warning(
            "token_refresh_failed",
            error_code=error.code,
            error=str(error),
            consecutive_failures=failures,
        )
        await self._publish(
            RefreshFailedEvent(
                occurred_at=self._clock(),
                user_id=user_id,
                reason=error.code,
                consecutive_failures=failures,
            )
        )

        threshold = self.settings.REFRESH_FAILURE_LOGOUT_THRESHOLD
        if threshold is not None and failures >= threshold and self.store.is_expired():
            logger.warning("refresh_attempts_exhausted", consecutive_failures=failures)
            self._end_session()
            await self._publish(
                SessionEndedEvent(
                    occurred_at=self._clock(), user_id=user_id, reason="refresh_exhausted"
                )
            )
        return RefreshResult.failed(error)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        if self.store.peek() is None:
            return SessionState.ANONYMOUS
        if self._refresh_task is not None and not self._refresh_task.done():
            return SessionState.REFRESHING
        if self._in_grace_period() or not self.store.is_expired():
            return SessionState.ACTIVE
        return SessionState.DEGRADED

    async def get_current_user(self) -> Optional[Dict[str, Any]]:
        """Fetch the signed-in user's profile through the authenticated transport.

        Falls back to the cached profile when the request fails.

        Returns:
            The user payload, or None without a session.
        """
        if self.store.peek() is None:
            return None
        if self.transport is None:
            return self.store.peek_user()

        url = f"{self.settings.API_BASE_URL}{self.settings.CURRENT_USER_ENDPOINT}"
        result = await self.transport.fetch(url)
        if not result.ok:
            logger.warning(
                "current_user_fetch_failed",
                status_code=result.status_code,
                error_code=result.error.code if result.error else None,
            )
            return self.store.peek_user()
        try:
            user = result.response.json()
        except ValueError:
            logger.warning("current_user_unreadable")
            return self.store.peek_user()
        if not isinstance(user, dict):
            return self.store.peek_user()
        if self.store.peek() is not None:
            self.store.remember_user(user)
        return user

    def subscribe(self, callback: Callable) -> Callable[[], None]:
        """Register a session event callback; returns its unsubscribe function."""
        if self.event_publisher is None:
            raise RuntimeError("No event publisher configured")
        return self.event_publisher.subscribe(callback)

    def get_debug_info(self) -> Dict[str, Any]:
        """Snapshot of the session for diagnostics. Tokens are masked."""
        pair = self.store.peek()
        now = self._clock()
        return {
            "state": self.state.value,
            "has_tokens": pair is not None,
            "access_token": pair.mask_for_logging() if pair else None,
            "has_refresh_token": bool(pair and pair.refresh_token),
            "expires_at": pair.expires_at.isoformat() if pair else None,
            "seconds_until_expiry": pair.time_until_expiry(now).total_seconds() if pair else None,
            "in_grace_period": self._in_grace_period(),
            "refresh_in_flight": self._refresh_task is not None,
            "consecutive_refresh_failures": self._consecutive_failures,
            "last_refresh_error": self._last_refresh_error.code if self._last_refresh_error else None,
            "last_login_at": self._last_login_at.isoformat() if self._last_login_at else None,
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _in_grace_period(self) -> bool:
        if self._last_login_at is None:
            return False
        elapsed = (self._clock() - self._last_login_at).total_seconds()
        return 0 <= elapsed < self.settings.LOGIN_GRACE_PERIOD_SECONDS

    def _start_generation(self) -> None:
        # An in-flight refresh belongs to the previous session; let it settle unobserved
        self._generation += 1
        self._refresh_task = None
        self._consecutive_failures = 0
        self._last_refresh_error = None

    def _end_session(self) -> None:
        self.store.clear()
        self._start_generation()
        self._last_login_at = None

    async def _publish(self, event: BaseDomainEvent) -> None:
        if self.event_publisher is not None:
            await self.event_publisher.publish(event)

    @staticmethod
    def _user_id(user: Optional[Dict[str, Any]]) -> Optional[str]:
        if not user:
            return None
        user_id = user.get("id")
        return str(user_id) if user_id is not None else None
