"""Token pair value object.

The pair is the unit of credential state: it is created on login or refresh,
replaced wholesale afterwards and never mutated field by field.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, ClassVar, Dict, FrozenSet, Optional

from console_session.core.exceptions import MalformedCredentialError

PLACEHOLDER_VALUES: FrozenSet[str] = frozenset({"null", "undefined"})


def is_valid_token_format(token: Any) -> bool:
    """Check that a value looks like an encoded JWT.

    The value must be a non-empty string, not a serialized placeholder such as
    ``"null"``, and consist of exactly three non-empty dot-separated segments
    (header.payload.signature). Signatures are not verified; the server owns
    that.
    """
    if not token or not isinstance(token, str):
        return False
    if token in PLACEHOLDER_VALUES:
        return False
    parts = token.split(".")
    return len(parts) == 3 and all(parts)


def mask_token(token: Optional[str]) -> str:
    """Return a token shortened for safe logging."""
    if not token:
        return ""
    if len(token) <= 10:
        return "*" * len(token)
    return token[:10] + "*" * 6


@dataclass(frozen=True)
class TokenPair:
    """Access/refresh token pair with an absolute expiry instant.

    Attributes:
        access_token: Short-lived credential attached to outbound requests.
        refresh_token: Longer-lived credential used to obtain a new access
            token. May be absent (for example after a legacy migration).
        token_type: Scheme announced by the server, usually ``bearer``.
        expires_at: Timezone-aware instant at which the access token expires.
    """

    access_token: str
    refresh_token: Optional[str]
    token_type: str
    expires_at: datetime

    DEFAULT_TOKEN_TYPE: ClassVar[str] = "bearer"

    def __post_init__(self):
        """Validate the tokens and normalize expiry to UTC."""
        if not is_valid_token_format(self.access_token):
            raise MalformedCredentialError("Access token is not a well-formed JWT")
        if self.refresh_token is not None and (
            not isinstance(self.refresh_token, str)
            or not self.refresh_token
            or self.refresh_token in PLACEHOLDER_VALUES
        ):
            raise MalformedCredentialError("Refresh token is empty or a placeholder")
        if not isinstance(self.expires_at, datetime):
            raise MalformedCredentialError("Token expiry must be a datetime")
        if self.expires_at.tzinfo is None:
            object.__setattr__(self, "expires_at", self.expires_at.replace(tzinfo=timezone.utc))
        if not self.token_type:
            object.__setattr__(self, "token_type", self.DEFAULT_TOKEN_TYPE)

    @classmethod
    def issue(
        cls,
        access_token: str,
        refresh_token: Optional[str],
        token_type: Optional[str],
        expires_in: float,
        now: datetime,
    ) -> "TokenPair":
        """Build a pair that expires ``expires_in`` seconds after ``now``."""
        return cls(
            access_token=access_token,
            refresh_token=refresh_token or None,
            token_type=token_type or cls.DEFAULT_TOKEN_TYPE,
            expires_at=now + timedelta(seconds=expires_in),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenPair":
        """Rebuild a pair from its persisted form.

        Raises:
            MalformedCredentialError: If the record is not a valid pair.
        """
        if not isinstance(data, dict):
            raise MalformedCredentialError("Stored credential record is not an object")
        expires_at = data.get("expires_at")
        try:
            if isinstance(expires_at, (int, float)):
                # Millisecond epoch, as written by the browser console
                expires_at = datetime.fromtimestamp(expires_at / 1000, tz=timezone.utc)
            elif isinstance(expires_at, str):
                expires_at = datetime.fromisoformat(expires_at)
        except (ValueError, OverflowError, OSError) as e:
            raise MalformedCredentialError(f"Unreadable token expiry: {e}")
        return cls(
            access_token=data.get("access_token"),
            refresh_token=data.get("refresh_token") or None,
            token_type=data.get("token_type") or cls.DEFAULT_TOKEN_TYPE,
            expires_at=expires_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the pair for persistence."""
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expires_at": self.expires_at.isoformat(),
        }

    def is_expired(self, now: datetime) -> bool:
        """True once ``now`` reaches ``expires_at``. There is no buffer."""
        return now >= self.expires_at

    def time_until_expiry(self, now: datetime) -> timedelta:
        """Remaining lifetime, clamped at zero."""
        remaining = self.expires_at - now
        return remaining if remaining > timedelta(0) else timedelta(0)

    def rotated(
        self,
        access_token: str,
        refresh_token: Optional[str],
        token_type: Optional[str],
        expires_at: datetime,
    ) -> "TokenPair":
        """Return the pair that replaces this one after a refresh.

        A refresh token supplied by the server wins; otherwise the current one
        is carried over.
        """
        return replace(
            self,
            access_token=access_token,
            refresh_token=refresh_token or self.refresh_token,
            token_type=token_type or self.token_type,
            expires_at=expires_at,
        )

    @property
    def authorization_header(self) -> str:
        """Value for the ``Authorization`` header."""
        return f"Bearer {self.access_token}"

    def mask_for_logging(self) -> str:
        """Return masked access token for safe logging."""
        return mask_token(self.access_token)

    def __repr__(self) -> str:
        return (
            f"TokenPair(access_token={self.mask_for_logging()!r}, "
            f"refresh_token={mask_token(self.refresh_token)!r}, "
            f"token_type={self.token_type!r}, expires_at={self.expires_at.isoformat()!r})"
        )
