"""Unit tests for the SessionManager service.

The remote API is replaced by an AsyncMock so each test controls exactly what
login and refresh return, and when.
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from console_session.adapters.api.schemas import LoginResponse, RefreshResponse
from console_session.core.exceptions import (
    InvalidCredentialsError,
    RefreshError,
    TransportError,
    TransportTimeoutError,
)
from console_session.domain.events import (
    CredentialPurgedEvent,
    RefreshFailedEvent,
    SessionEndedEvent,
    SessionStartedEvent,
    TokenRefreshedEvent,
)
from console_session.domain.interfaces.services import IAuthApiClient
from console_session.domain.services.session_manager import SessionManager
from console_session.domain.value_objects import SessionState
from console_session.infrastructure.repositories.credential_repository import (
    InMemoryCredentialStorage,
)
from tests.factories.token import create_fake_jwt, create_fake_token, create_token_pair
from tests.factories.user import create_fake_user


@pytest.fixture
def mock_api():
    api = AsyncMock(spec=IAuthApiClient)
    api.login.return_value = LoginResponse(
        **create_fake_token(), user=create_fake_user(user_id=42, email="a@b.com")
    )
    refreshed = create_fake_token()
    # Server keeps the refresh token unless a test says otherwise
    refreshed.pop("refresh_token")
    api.refresh.return_value = RefreshResponse(**refreshed)
    return api


@pytest.fixture
def manager(store, mock_api, event_publisher, navigator, test_settings, clock):
    return SessionManager(
        store=store,
        api_client=mock_api,
        event_publisher=event_publisher,
        navigator=navigator,
        app_settings=test_settings,
        clock=clock,
    )


def expired_session(store, clock):
    pair = create_token_pair(expires_at=clock.now - timedelta(seconds=1))
    store.save(pair)
    return pair


async def wait_until_refresh_sent(mock_api):
    """Yield to the loop until the refresh request is in flight."""
    for _ in range(100):
        if mock_api.refresh.await_count:
            return
        await asyncio.sleep(0)
    raise AssertionError("refresh was never sent")


class TestLogin:
    """Test cases for login."""

    async def test_login_scenario_with_literal_token(self, manager, mock_api, store, clock):
        mock_api.login.return_value = LoginResponse(
            access_token="h.p.s", token_type="bearer", expires_in=3600, user={"id": 1}
        )

        result = await manager.login("a@b.com", "x")

        assert result.success is True
        assert store.is_authenticated() is True
        assert store.peek().expires_at == clock.now + timedelta(seconds=3600)

    async def test_successful_login_stores_pair(self, manager, mock_api, store, clock):
        # Act
        result = await manager.login("a@b.com", "pw")

        # Assert
        assert result.success is True
        assert result.user["email"] == "a@b.com"
        pair = store.peek()
        assert pair.access_token == mock_api.login.return_value.access_token
        assert pair.expires_at == clock.now + timedelta(seconds=3600)
        assert store.peek_user()["id"] == 42
        assert manager.state == SessionState.ACTIVE

    async def test_login_without_expires_in_uses_default_ttl(
        self, manager, mock_api, store, clock, test_settings
    ):
        mock_api.login.return_value = LoginResponse(**create_fake_token(expires_in=None))

        result = await manager.login("a@b.com", "pw")

        assert result.success is True
        assert result.user == {}
        assert store.peek().expires_at == clock.now + timedelta(
            seconds=test_settings.DEFAULT_TOKEN_TTL_SECONDS
        )

    @pytest.mark.parametrize("expires_in", [0, -30])
    async def test_non_positive_expires_in_uses_default_ttl(
        self, manager, mock_api, store, clock, test_settings, expires_in
    ):
        mock_api.login.return_value = LoginResponse(**create_fake_token(expires_in=expires_in))

        result = await manager.login("a@b.com", "pw")

        assert result.success is True
        assert store.peek().expires_at == clock.now + timedelta(
            seconds=test_settings.DEFAULT_TOKEN_TTL_SECONDS
        )

    @pytest.mark.parametrize("bad_token", ["undefined", "null", "abc", "abc.def", None])
    async def test_malformed_access_token_is_rejected(self, manager, mock_api, store, bad_token):
        # Arrange
        body = create_fake_token()
        body["access_token"] = bad_token
        mock_api.login.return_value = LoginResponse(**body)

        # Act
        result = await manager.login("a@b.com", "pw")

        # Assert
        assert result.success is False
        assert result.error_code == "malformed_credential"
        assert store.peek() is None
        assert store.peek_user() is None

    async def test_rejected_credentials(self, manager, mock_api, store):
        mock_api.login.side_effect = InvalidCredentialsError()

        result = await manager.login("a@b.com", "wrong")

        assert result.success is False
        assert result.error_code == "invalid_credentials"
        assert store.peek() is None

    async def test_network_failure_is_a_result(self, manager, mock_api):
        mock_api.login.side_effect = TransportTimeoutError()

        result = await manager.login("a@b.com", "pw")

        assert result.success is False
        assert result.error_code == "timeout"

    async def test_empty_email_never_reaches_server(self, manager, mock_api):
        result = await manager.login("", "pw")

        assert result.error_code == "invalid_email"
        mock_api.login.assert_not_called()

    async def test_email_is_sent_as_entered(self, manager, mock_api):
        result = await manager.login("Ops@console.local", "pw")

        assert result.success is True
        mock_api.login.assert_awaited_once()
        sent = mock_api.login.await_args.args[0]
        assert sent.to_payload() == {"email": "Ops@console.local", "password": "pw"}

    async def test_login_publishes_session_started(self, manager, event_publisher):
        await manager.login("a@b.com", "pw")

        events = event_publisher.get_published_events(SessionStartedEvent)
        assert len(events) == 1
        assert events[0].user_id == "42"
        assert events[0].email == "a@b.com"


class TestGracePeriod:
    """Expiry checks are skipped shortly after login."""

    async def test_no_refresh_inside_grace_window(self, manager, mock_api, clock):
        # Arrange
        mock_api.login.return_value = LoginResponse(**create_fake_token(expires_in=1))
        await manager.login("a@b.com", "pw")
        clock.advance(5)

        # Act
        valid = await manager.ensure_valid()

        # Assert
        assert valid is True
        mock_api.refresh.assert_not_called()
        assert manager.state == SessionState.ACTIVE

    async def test_refresh_after_grace_window(self, manager, mock_api, clock):
        mock_api.login.return_value = LoginResponse(**create_fake_token(expires_in=1))
        await manager.login("a@b.com", "pw")
        clock.advance(10)

        valid = await manager.ensure_valid()

        assert valid is True
        mock_api.refresh.assert_awaited_once()


class TestEnsureValid:
    async def test_no_session(self, manager, mock_api):
        assert await manager.ensure_valid() is False
        mock_api.refresh.assert_not_called()

    async def test_unexpired_pair_needs_no_refresh(self, manager, mock_api, store, clock):
        store.save(create_token_pair(expires_at=clock.now + timedelta(minutes=5)))

        assert await manager.ensure_valid() is True
        mock_api.refresh.assert_not_called()

    async def test_expired_pair_is_refreshed(self, manager, mock_api, store, clock):
        old = expired_session(store, clock)

        assert await manager.ensure_valid() is True

        mock_api.refresh.assert_awaited_once_with(old.refresh_token)
        new = store.peek()
        assert new.access_token == mock_api.refresh.return_value.access_token
        # No refresh token issued: the old one is kept
        assert new.refresh_token == old.refresh_token
        assert new.expires_at == clock.now + timedelta(seconds=3600)


class TestSingleFlightRefresh:
    """Concurrent callers share one refresh round-trip."""

    async def test_concurrent_callers_share_one_refresh(self, manager, mock_api, store, clock):
        # Arrange
        expired_session(store, clock)
        release = asyncio.Event()
        response = RefreshResponse(**create_fake_token())

        async def slow_refresh(refresh_token):
            await release.wait()
            return response

        mock_api.refresh.side_effect = slow_refresh

        # Act
        waiters = [asyncio.create_task(manager.ensure_valid()) for _ in range(10)]
        await asyncio.sleep(0)
        assert manager.state == SessionState.REFRESHING
        release.set()
        results = await asyncio.gather(*waiters)

        # Assert
        assert results == [True] * 10
        assert mock_api.refresh.await_count == 1
        assert store.peek().access_token == response.access_token

    async def test_handle_is_cleared_after_settling(self, manager, mock_api, store, clock):
        expired_session(store, clock)
        mock_api.refresh.side_effect = RefreshError(status_code=401)

        first = await manager.refresh()
        second = await manager.refresh()

        assert first.success is False
        assert second.success is False
        assert mock_api.refresh.await_count == 2
        assert manager.get_debug_info()["refresh_in_flight"] is False

    async def test_cancelled_waiter_does_not_cancel_refresh(self, manager, mock_api, store, clock):
        # Arrange
        expired_session(store, clock)
        release = asyncio.Event()
        response = RefreshResponse(**create_fake_token())

        async def slow_refresh(refresh_token):
            await release.wait()
            return response

        mock_api.refresh.side_effect = slow_refresh
        impatient = asyncio.create_task(manager.refresh())
        patient = asyncio.create_task(manager.refresh())
        await asyncio.sleep(0)

        # Act
        impatient.cancel()
        release.set()
        result = await patient

        # Assert
        assert result.success is True
        assert store.peek().access_token == response.access_token
        with pytest.raises(asyncio.CancelledError):
            await impatient


class TestRefreshFailure:
    """A failed refresh degrades the session instead of ending it."""

    async def test_failure_keeps_expired_pair(self, manager, mock_api, store, clock, navigations):
        # Arrange
        old = expired_session(store, clock)
        mock_api.refresh.side_effect = TransportError("connection refused")

        # Act
        result = await manager.refresh()

        # Assert
        assert result.success is False
        assert result.error_code == "transport_error"
        assert store.peek() == old
        assert manager.state == SessionState.DEGRADED
        assert navigations == []

    async def test_missing_refresh_token(self, manager, mock_api, store, clock):
        store.save(create_token_pair(expires_at=clock.now - timedelta(seconds=1), refresh_token=None))

        result = await manager.refresh()

        assert result.error_code == "no_refresh_token"
        mock_api.refresh.assert_not_called()

    async def test_malformed_refreshed_token_is_a_failure(self, manager, mock_api, store, clock):
        old = expired_session(store, clock)
        body = create_fake_token()
        body["access_token"] = "undefined"
        mock_api.refresh.return_value = RefreshResponse(**body)

        result = await manager.refresh()

        assert result.error_code == "malformed_credential"
        assert store.peek() == old

    async def test_failures_are_published(self, manager, mock_api, store, clock, event_publisher):
        expired_session(store, clock)
        mock_api.refresh.side_effect = RefreshError(status_code=401)

        await manager.refresh()
        await manager.refresh()

        events = event_publisher.get_published_events(RefreshFailedEvent)
        assert [e.consecutive_failures for e in events] == [1, 2]

    async def test_threshold_clears_session_without_navigation(
        self, manager, mock_api, store, clock, event_publisher, navigations, test_settings
    ):
        # Arrange
        expired_session(store, clock)
        mock_api.refresh.side_effect = RefreshError(status_code=401)
        threshold = test_settings.REFRESH_FAILURE_LOGOUT_THRESHOLD

        # Act
        for _ in range(threshold - 1):
            await manager.refresh()
        assert store.peek() is not None
        await manager.refresh()

        # Assert
        assert store.peek() is None
        assert manager.state == SessionState.ANONYMOUS
        ended = event_publisher.get_published_events(SessionEndedEvent)
        assert [e.reason for e in ended] == ["refresh_exhausted"]
        assert navigations == []

    async def test_threshold_disabled(self, store, mock_api, test_settings, clock):
        cfg = test_settings.model_copy(update={"REFRESH_FAILURE_LOGOUT_THRESHOLD": None})
        manager = SessionManager(store, mock_api, app_settings=cfg, clock=clock)
        expired_session(store, clock)
        mock_api.refresh.side_effect = RefreshError(status_code=401)

        for _ in range(10):
            await manager.refresh()

        assert store.peek() is not None

    async def test_success_resets_failure_count(self, manager, mock_api, store, clock):
        expired_session(store, clock)
        mock_api.refresh.side_effect = [
            RefreshError(status_code=401),
            RefreshError(status_code=401),
            RefreshResponse(**create_fake_token()),
        ]

        await manager.refresh()
        await manager.refresh()
        result = await manager.refresh()

        assert result.success is True
        assert manager.get_debug_info()["consecutive_refresh_failures"] == 0

    async def test_successful_refresh_publishes_event(self, manager, mock_api, store, clock, event_publisher):
        expired_session(store, clock)
        mock_api.refresh.return_value = RefreshResponse(**create_fake_token())

        await manager.refresh()

        events = event_publisher.get_published_events(TokenRefreshedEvent)
        assert len(events) == 1
        assert events[0].refresh_token_rotated is True


class TestStaleRefresh:
    async def test_refresh_settling_after_logout_is_discarded(self, manager, mock_api, store, clock):
        # Arrange
        expired_session(store, clock)
        release = asyncio.Event()

        async def slow_refresh(refresh_token):
            await release.wait()
            return RefreshResponse(**create_fake_token())

        mock_api.refresh.side_effect = slow_refresh
        pending = asyncio.create_task(manager.refresh())
        await wait_until_refresh_sent(mock_api)

        # Act
        await manager.logout()
        release.set()
        result = await pending

        # Assert
        assert result.success is False
        assert result.error_code == "refresh_superseded"
        assert store.peek() is None

    async def test_login_during_refresh_keeps_new_session(self, manager, mock_api, store, clock):
        expired_session(store, clock)
        release = asyncio.Event()

        async def slow_refresh(refresh_token):
            await release.wait()
            return RefreshResponse(**create_fake_token())

        mock_api.refresh.side_effect = slow_refresh
        pending = asyncio.create_task(manager.refresh())
        await wait_until_refresh_sent(mock_api)

        await manager.login("a@b.com", "pw")
        logged_in = store.peek()
        release.set()
        await pending

        assert store.peek() == logged_in


class TestLogout:
    """Test cases for logout."""

    async def test_logout_clears_and_navigates(self, manager, mock_api, store, navigations):
        # Arrange
        await manager.login("a@b.com", "pw")
        token = store.peek().access_token

        # Act
        await manager.logout()

        # Assert
        mock_api.logout.assert_awaited_once_with(token)
        assert store.peek() is None
        assert manager.state == SessionState.ANONYMOUS
        assert navigations == ["/auth/login"]

    async def test_no_navigation_from_login_surface(self, manager, navigator, navigations):
        await manager.login("a@b.com", "pw")
        navigator.set_current_path("/auth/login")

        await manager.logout()

        assert navigations == []

    async def test_server_failure_does_not_block_logout(self, manager, mock_api, store, event_publisher):
        await manager.login("a@b.com", "pw")
        mock_api.logout.side_effect = TransportError("down")

        await manager.logout()

        assert store.peek() is None
        ended = event_publisher.get_published_events(SessionEndedEvent)
        assert [e.reason for e in ended] == ["logout"]

    async def test_logout_without_session(self, manager, mock_api, navigations):
        await manager.logout()

        mock_api.logout.assert_not_called()
        assert navigations == ["/auth/login"]

    async def test_logout_ends_grace_window(self, manager, store, clock):
        await manager.login("a@b.com", "pw")
        await manager.logout()

        assert await manager.ensure_valid() is False

    async def test_navigation_failure_does_not_escape(self, manager, navigator, store, mocker):
        await manager.login("a@b.com", "pw")
        navigate = mocker.patch.object(navigator, "navigate", side_effect=RuntimeError("router gone"))

        await manager.logout()

        navigate.assert_called_once_with("/auth/login")
        assert store.peek() is None


class TestRestoreAndIntrospection:
    async def test_restore_publishes_purges(self, mock_api, event_publisher, test_settings, clock):
        from console_session.domain.services.credential_store import CredentialStore

        storage = InMemoryCredentialStorage({"access_token": "undefined"})
        store = CredentialStore(storage, test_settings, clock)
        manager = SessionManager(store, mock_api, event_publisher, app_settings=test_settings, clock=clock)

        assert await manager.restore() is None

        events = event_publisher.get_published_events(CredentialPurgedEvent)
        assert [e.storage_key for e in events] == ["access_token"]

    async def test_debug_info_masks_tokens(self, manager, store):
        await manager.login("a@b.com", "pw")
        info = manager.get_debug_info()

        assert info["state"] == "active"
        assert info["has_tokens"] is True
        assert store.peek().access_token not in str(info)
        assert info["in_grace_period"] is True

    async def test_subscribe(self, manager):
        received = []
        unsubscribe = manager.subscribe(received.append)

        await manager.login("a@b.com", "pw")
        unsubscribe()
        await manager.logout()

        assert [type(e) for e in received] == [SessionStartedEvent]

    async def test_current_user_falls_back_to_cache_without_transport(self, manager):
        await manager.login("a@b.com", "pw")

        user = await manager.get_current_user()

        assert user["email"] == "a@b.com"

    def test_fresh_manager_is_anonymous(self, manager):
        assert manager.state == SessionState.ANONYMOUS
        assert create_fake_jwt() not in str(manager.get_debug_info())


class TestLogHygiene:
    async def test_tokens_never_logged_in_clear(self, manager, mock_api, store, clock):
        from structlog.testing import capture_logs

        with capture_logs() as logs:
            await manager.login("a@b.com", "pw")
            clock.advance(3600)
            await manager.ensure_valid()

        events = {entry["event"] for entry in logs}
        assert {"login_succeeded", "token_refreshed"} <= events
        logged = str(logs)
        assert store.peek().access_token not in logged
        assert mock_api.login.return_value.access_token not in logged
