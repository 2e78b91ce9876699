"""Credential Store.

The only reader and writer of persisted token state. It validates token format
on the way in, restores state across process restarts, migrates the legacy
single-token record and serves synchronous reads to the request pipeline.

Write discipline:
    `save` and `clear` update the durable storage and the in-memory mirror in
    one synchronous call, with no await point in between, so no coroutine can
    observe the two disagreeing. The mirror is a frozen `TokenPair` replaced
    as a whole, never patched field by field.
"""

import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from structlog import get_logger

from console_session.core.config.settings import Settings, settings as default_settings
from console_session.core.exceptions import MalformedCredentialError, StorageError
from console_session.domain.interfaces.storage import ICredentialStorage
from console_session.domain.value_objects.token_pair import (
    TokenPair,
    is_valid_token_format,
    mask_token,
)

logger = get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# Instant used to mark migrated legacy tokens as already expired
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class CredentialStore:
    """Holds the current token pair and keeps it in sync with durable storage.

    Attributes:
        storage: Durable key/value backend.
        purged_keys: Storage keys removed by the last `load()` because their
            content was corrupt or malformed.
    """

    def __init__(
        self,
        storage: ICredentialStorage,
        app_settings: Optional[Settings] = None,
        clock: Clock = utc_now,
    ):
        self.storage = storage
        self.settings = app_settings or default_settings
        self._clock = clock
        self._pair: Optional[TokenPair] = None
        self._user: Optional[Dict[str, Any]] = None
        self.purged_keys: List[str] = []

    @property
    def _token_key(self) -> str:
        return self.settings.TOKEN_STORAGE_KEY

    @property
    def _legacy_key(self) -> str:
        return self.settings.LEGACY_TOKEN_STORAGE_KEY

    @property
    def _user_key(self) -> str:
        return self.settings.USER_STORAGE_KEY

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def load(self) -> Optional[TokenPair]:
        """Restore credential state from durable storage.

        Called once at process start. Reads the current record; when there is
        none, migrates a legacy single-token record. Any unreadable or
        malformed record is removed and treated as "no session". Never raises.

        Returns:
            The restored pair, or None.
        """
        self.purged_keys = []
        self._pair = None
        self._user = None

        try:
            pair = self._load_current()
            if pair is None:
                pair = self._migrate_legacy()
            self._pair = pair
            if pair is not None:
                self._user = self._load_user()
        except StorageError as e:
            logger.error("credential_load_failed", error=str(e))
            self._pair = None
            self._user = None

        logger.info(
            "credentials_loaded",
            has_session=self._pair is not None,
            purged=self.purged_keys,
        )
        return self._pair

    def _load_current(self) -> Optional[TokenPair]:
        raw = self.storage.get(self._token_key)
        if raw is None:
            return None
        try:
            pair = TokenPair.from_dict(json.loads(raw))
        except (ValueError, TypeError, MalformedCredentialError) as e:
            # json.JSONDecodeError is a ValueError
            logger.warning("corrupt_credentials_purged", key=self._token_key, error=str(e))
            self._purge(self._token_key)
            return None
        logger.debug("credentials_restored", access_token=pair.mask_for_logging())
        return pair

    def _migrate_legacy(self) -> Optional[TokenPair]:
        raw = self.storage.get(self._legacy_key)
        if raw is None:
            return None
        if not is_valid_token_format(raw):
            logger.warning("invalid_legacy_token_purged", key=self._legacy_key, length=len(raw))
            self._purge(self._legacy_key)
            return None

        # Unknown lifetime: mark expired so the first use refreshes it
        pair = TokenPair(
            access_token=raw,
            refresh_token=None,
            token_type=self.settings.DEFAULT_TOKEN_TYPE,
            expires_at=_EPOCH,
        )
        self.storage.set(self._token_key, json.dumps(pair.to_dict()))
        self.storage.delete(self._legacy_key)
        logger.info("legacy_token_migrated", access_token=pair.mask_for_logging())
        return pair

    def _load_user(self) -> Optional[Dict[str, Any]]:
        raw = self.storage.get(self._user_key)
        if raw is None:
            return None
        try:
            user = json.loads(raw)
        except ValueError:
            logger.warning("corrupt_user_cache_purged", key=self._user_key)
            self._purge(self._user_key)
            return None
        return user if isinstance(user, dict) else None

    def _purge(self, key: str) -> None:
        self.storage.delete(key)
        self.purged_keys.append(key)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, pair: TokenPair) -> bool:
        """Persist a token pair and make it the current one.

        The access token is re-validated before anything is written. A rejected
        or failed save is logged and leaves the previous state untouched; it
        never raises, so a bad token cannot crash a caller mid-login.

        Returns:
            True if the pair is now current.
        """
        access_token = getattr(pair, "access_token", None)
        if not isinstance(pair, TokenPair) or not is_valid_token_format(access_token):
            logger.error(
                "credential_save_rejected",
                reason="malformed_access_token",
                access_token=mask_token(access_token) if isinstance(access_token, str) else None,
            )
            return False

        try:
            self.storage.set(self._token_key, json.dumps(pair.to_dict()))
        except StorageError as e:
            logger.error("credential_save_failed", error=str(e))
            return False

        self._pair = pair
        logger.info(
            "credentials_saved",
            access_token=pair.mask_for_logging(),
            expires_at=pair.expires_at.isoformat(),
        )
        return True

    def remember_user(self, user: Optional[Dict[str, Any]]) -> None:
        """Cache the signed-in user's profile next to the tokens."""
        try:
            self.storage.set(self._user_key, json.dumps(user or {}, default=str))
        except StorageError as e:
            logger.error("user_cache_save_failed", error=str(e))
            return
        self._user = dict(user or {})

    def clear(self) -> None:
        """Remove all persisted and in-memory credential state.

        Unconditional and idempotent. A storage failure is logged; the
        in-memory state is cleared regardless.
        """
        had_session = self._pair is not None
        self._pair = None
        self._user = None
        try:
            self.storage.delete(self._token_key, self._legacy_key, self._user_key)
        except StorageError as e:
            logger.error("credential_clear_failed", error=str(e))
        if had_session:
            logger.info("credentials_cleared")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def peek(self) -> Optional[TokenPair]:
        """Current token pair, read synchronously from memory."""
        return self._pair

    def peek_user(self) -> Optional[Dict[str, Any]]:
        """Cached user profile, if any."""
        return dict(self._user) if self._user is not None else None

    def is_expired(self) -> bool:
        """True when there is no pair or its expiry has been reached."""
        pair = self._pair
        if pair is None:
            return True
        return pair.is_expired(self._clock())

    def is_authenticated(self) -> bool:
        """True when a token pair is held, expired or not."""
        return self._pair is not None
