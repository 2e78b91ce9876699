"""Authenticated Transport.

Every outbound API call of the console goes through `fetch`. It attaches the
current bearer token, bounds the wait, and answers a 401 with one refresh and
one retry. A call spends at most one refresh: a 401 for a token that was
already replaced while the request was out goes straight to the retry, and a
401 after this call's own refresh failed is returned as is. Responses are
handed back untouched; the transport never reads a body.
"""

from typing import Any, Mapping, Optional, Tuple

import httpx
from structlog import get_logger

from console_session.core.config.settings import Settings, settings as default_settings
from console_session.core.exceptions import AuthenticationError, TransportError
from console_session.core.http import send_request
from console_session.domain.services.session_manager import SessionManager
from console_session.domain.value_objects.auth_result import FetchResult

logger = get_logger(__name__)


class AuthenticatedTransport:
    """Fetch wrapper that keeps outbound requests authenticated.

    Attributes:
        session_manager: Consulted before each request and on a 401.
        client: Shared async HTTP client. Its lifecycle belongs to the caller.
    """

    def __init__(
        self,
        session_manager: SessionManager,
        client: httpx.AsyncClient,
        app_settings: Optional[Settings] = None,
    ):
        self.session_manager = session_manager
        self.store = session_manager.store
        self.client = client
        self.settings = app_settings or default_settings

    def build_headers(self, headers: Optional[Mapping[str, str]] = None) -> httpx.Headers:
        """Bearer header from the current pair, overridden by caller headers.

        Header names compare case-insensitively, so a caller's
        ``authorization`` replaces ours.
        """
        merged = httpx.Headers()
        pair = self.store.peek()
        if pair is not None:
            merged["Authorization"] = pair.authorization_header
        if headers:
            merged.update(headers)
        return merged

    async def fetch(
        self,
        url: str,
        method: str = "GET",
        *,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        **request_kwargs: Any,
    ) -> FetchResult:
        """Issue an authenticated request.

        Args:
            url: Absolute URL, or a path relative to the client's base URL.
            method: HTTP method.
            headers: Extra headers. They win over the Authorization header.
            timeout: Bounded wait in seconds. Defaults to
                ``REQUEST_TIMEOUT_SECONDS``.
            **request_kwargs: Passed through to ``httpx.AsyncClient.request``
                (``json``, ``params``, ``content`` ...).

        Returns:
            FetchResult: The final response and any error. Never raises for
            network, timeout or auth failures.
        """
        method = method.upper()
        wait = timeout if timeout is not None else self.settings.REQUEST_TIMEOUT_SECONDS

        # A failed check still sends the request; the server has the last word
        session_valid = await self.session_manager.ensure_valid()
        if not session_valid:
            logger.debug("request_without_valid_session", method=method, url=url)

        try:
            response, sent_token = await self._send(method, url, headers, wait, request_kwargs)
        except TransportError as e:
            return FetchResult(error=e)

        if response.status_code != 401:
            return FetchResult(response=response)

        logger.info("request_unauthorized", method=method, url=url)
        current = self.store.peek()
        if current is not None and current.access_token != sent_token:
            logger.debug("token_replaced_while_in_flight", method=method, url=url)
        elif not session_valid:
            return self._session_expired(method, url, response)
        elif not (await self.session_manager.refresh()).success:
            return self._session_expired(method, url, response)

        try:
            retry_response, _ = await self._send(method, url, headers, wait, request_kwargs)
        except TransportError as e:
            return FetchResult(error=e, retried=True)

        if retry_response.status_code == 401:
            logger.warning("request_unauthorized_after_refresh", method=method, url=url)
            return FetchResult(
                response=retry_response,
                error=AuthenticationError(f"{method} {url} rejected after token refresh"),
                retried=True,
            )
        return FetchResult(response=retry_response, retried=True)

    @staticmethod
    def _session_expired(method: str, url: str, response: httpx.Response) -> FetchResult:
        return FetchResult(
            response=response,
            error=AuthenticationError(
                f"{method} {url} rejected and the session could not be refreshed",
                code="session_expired",
            ),
        )

    async def _send(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]],
        timeout: float,
        request_kwargs: dict,
    ) -> Tuple[httpx.Response, Optional[str]]:
        """Send one attempt; returns the response and the access token it carried."""
        # Headers are rebuilt per attempt so a retry carries the refreshed token
        pair = self.store.peek()
        response = await send_request(
            self.client,
            method,
            url,
            timeout=timeout,
            headers=self.build_headers(headers),
            **request_kwargs,
        )
        return response, pair.access_token if pair is not None else None
