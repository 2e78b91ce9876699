"""HTTP client for the remote authentication endpoints.

Translates HTTP outcomes into the session client's exception taxonomy so the
session manager can reason in domain terms:

===========  ==================  ==========================
Endpoint     Server answer       Raised
===========  ==================  ==========================
login        401/403/400/422     InvalidCredentialsError
login        other 4xx           AuthenticationError
refresh      any 4xx             RefreshError
any          5xx                 TransportError (status set)
any          bad/absent JSON     MalformedCredentialError
===========  ==================  ==========================
"""

from typing import Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError
from structlog import get_logger

from console_session.adapters.api.schemas import (
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RefreshResponse,
)
from console_session.core.config.settings import Settings, settings as default_settings
from console_session.core.exceptions import (
    AuthenticationError,
    InvalidCredentialsError,
    MalformedCredentialError,
    RefreshError,
    TransportError,
)
from console_session.core.http import send_request
from console_session.core.retry import RetryPolicy, call_with_retry
from console_session.domain.interfaces.services import IAuthApiClient
from console_session.domain.value_objects.credentials import LoginCredentials

logger = get_logger(__name__)

ResponseModel = TypeVar("ResponseModel", bound=BaseModel)

_REJECTED_LOGIN_STATUSES = frozenset({400, 401, 403, 422})


def _error_detail(response: httpx.Response) -> Optional[str]:
    """Best-effort extraction of the server's error message."""
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        detail = data.get("error") or data.get("detail") or data.get("message")
        if isinstance(detail, str):
            return detail
        if detail is not None:
            return str(detail)
    return None


def _parse(response: httpx.Response, model: Type[ResponseModel], what: str) -> ResponseModel:
    try:
        return model.model_validate(response.json())
    except (ValueError, ValidationError) as e:
        logger.warning("auth_response_unreadable", endpoint=what, error=str(e))
        raise MalformedCredentialError(f"Unreadable {what} response from server")


class HttpAuthApiClient(IAuthApiClient):
    """httpx implementation of the authentication endpoints.

    Attributes:
        client: Shared async HTTP client. Its lifecycle belongs to the caller.
        settings: Endpoint paths, timeouts and the refresh retry policy.
    """

    def __init__(self, client: httpx.AsyncClient, app_settings: Optional[Settings] = None):
        self.client = client
        self.settings = app_settings or default_settings
        self.refresh_policy = RetryPolicy(
            max_attempts=self.settings.REFRESH_MAX_ATTEMPTS,
            initial_delay=self.settings.REFRESH_BACKOFF_INITIAL_SECONDS,
            max_delay=self.settings.REFRESH_BACKOFF_MAX_SECONDS,
        )

    def _url(self, path: str) -> str:
        return f"{self.settings.API_BASE_URL}{path}"

    async def _post(self, path: str, **kwargs) -> httpx.Response:
        return await send_request(
            self.client,
            "POST",
            self._url(path),
            timeout=self.settings.REQUEST_TIMEOUT_SECONDS,
            **kwargs,
        )

    async def login(self, credentials: LoginCredentials) -> LoginResponse:
        """POST the credentials to the login endpoint.

        Login is never retried: a transient failure is reported and the user
        decides whether to submit again.
        """
        body = LoginRequest(**credentials.to_payload())
        response = await self._post(self.settings.LOGIN_ENDPOINT, json=body.model_dump())

        if response.is_success:
            return _parse(response, LoginResponse, "login")

        detail = _error_detail(response)
        if response.status_code >= 500:
            raise TransportError(
                detail or f"Login failed: HTTP {response.status_code}",
                status_code=response.status_code,
            )
        if response.status_code in _REJECTED_LOGIN_STATUSES:
            raise InvalidCredentialsError(
                detail or "Invalid email or password", status_code=response.status_code
            )
        raise AuthenticationError(
            detail or f"Login failed: HTTP {response.status_code}",
            status_code=response.status_code,
        )

    async def refresh(self, refresh_token: str) -> RefreshResponse:
        """Exchange a refresh token for a new access token.

        Transport failures (including timeouts and 5xx) are retried according
        to the refresh policy. A 4xx rejection is final.
        """
        body = RefreshRequest(refresh_token=refresh_token)
        return await call_with_retry(
            self._refresh_once,
            body,
            policy=self.refresh_policy,
            retry_on=(TransportError,),
            name="token_refresh",
        )

    async def _refresh_once(self, body: RefreshRequest) -> RefreshResponse:
        response = await self._post(self.settings.REFRESH_ENDPOINT, json=body.model_dump())

        if response.is_success:
            return _parse(response, RefreshResponse, "refresh")

        detail = _error_detail(response)
        if response.status_code >= 500:
            raise TransportError(
                detail or f"Token refresh failed: HTTP {response.status_code}",
                status_code=response.status_code,
            )
        raise RefreshError(
            detail or f"Token refresh rejected: HTTP {response.status_code}",
            status_code=response.status_code,
        )

    async def logout(self, access_token: str) -> None:
        """Tell the server the session is over.

        Raises:
            TransportError: On network failure or a 5xx answer.
        """
        response = await self._post(
            self.settings.LOGOUT_ENDPOINT,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if response.status_code >= 500:
            raise TransportError(
                f"Logout failed: HTTP {response.status_code}", status_code=response.status_code
            )
        logger.debug("server_logout_acknowledged", status_code=response.status_code)
