"""Login credentials value object."""

from dataclasses import dataclass, field

from console_session.core.exceptions import InvalidCredentialsError


@dataclass(frozen=True)
class LoginCredentials:
    """Email/password pair submitted to the login endpoint.

    Only emptiness is checked locally. The email is sent exactly as entered
    and the server decides whether it names an account. The password is kept
    out of repr so it never ends up in a log line.
    """

    email: str
    password: str = field(repr=False)

    def __post_init__(self):
        if not isinstance(self.email, str) or not self.email.strip():
            raise InvalidCredentialsError("Email cannot be empty", code="invalid_email")
        if not isinstance(self.password, str) or not self.password:
            raise InvalidCredentialsError("Password cannot be empty", code="invalid_credentials")

    def to_payload(self) -> dict:
        return {"email": self.email, "password": self.password}

    def mask_for_logging(self) -> str:
        """Return masked email for safe logging."""
        local, at, domain = self.email.partition("@")
        return f"{local[:1]}***{at}{domain}"
