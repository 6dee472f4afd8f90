"""HTTP Basic authentication gate for flatdav.

A single pass/fail decision made once per request before any DAV
handler runs. The outcome is an ``AuthResult`` value placed on
``request.state``; nothing about it is remembered between requests.
"""

import base64
import binascii
import hmac
import logging
from dataclasses import dataclass

from fastapi import Request

from flatdav.config import AuthConfig

logger = logging.getLogger(__name__)

ANONYMOUS = "anonymous"


@dataclass(frozen=True)
class AuthResult:
    """Outcome of the auth gate.

    Attributes:
        authenticated: Whether the request may proceed.
        username: The authenticated identity (``anonymous`` when the gate
            is disabled, empty on failure).
    """

    authenticated: bool
    username: str = ""


def parse_basic_credentials(header: str | None) -> tuple[str, str] | None:
    """Decode a ``Basic`` Authorization header into (username, password).

    The password may itself contain colons; only the first colon splits.

    Args:
        header: The raw Authorization header value.

    Returns:
        The credential pair, or None if the header is absent or malformed.
    """
    if not header:
        return None
    scheme, _, encoded = header.partition(" ")
    if scheme.lower() != "basic" or not encoded:
        return None
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(":")
    if not sep:
        return None
    return username, password


class BasicAuthenticator:
    """Checks requests against one configured username/password pair."""

    def __init__(self, config: AuthConfig) -> None:
        self.config = config

    def authenticate(self, request: Request) -> AuthResult:
        """Decide whether ``request`` may enter the DAV layer.

        When no credentials are configured every request passes as
        ``anonymous``. Comparisons run in constant time.

        Args:
            request: The incoming HTTP request.

        Returns:
            The gate's decision.
        """
        if not self.config.enabled:
            return AuthResult(authenticated=True, username=ANONYMOUS)

        creds = parse_basic_credentials(request.headers.get("authorization"))
        if creds is None:
            return AuthResult(authenticated=False)

        username, password = creds
        user_ok = hmac.compare_digest(username.encode(), self.config.username.encode())
        pass_ok = hmac.compare_digest(password.encode(), self.config.password.encode())
        if user_ok and pass_ok:
            return AuthResult(authenticated=True, username=username)

        logger.debug("Rejected credentials for user %r", username)
        return AuthResult(authenticated=False)
