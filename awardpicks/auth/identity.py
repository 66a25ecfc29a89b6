"""Identity boundary: who the current user is."""

from __future__ import annotations

from typing import Any, Optional, Protocol

from firebase_admin import auth
from flask import current_app, g, has_app_context

from awardpicks.errors import UnauthorizedError


class IdentityProvider(Protocol):
    """Supplies the opaque id of the signed in user."""

    def current_user_id(self) -> Optional[str]:
        """Return the user id, or None when nobody is signed in."""


class StaticIdentity:
    """A fixed identity, e.g. for scripts and tests."""

    def __init__(self, user_id: Optional[str] = None) -> None:
        """Initialize with ``user_id`` (None for signed out)."""
        self.user_id = user_id

    def current_user_id(self) -> Optional[str]:
        """Return the fixed user id."""
        return self.user_id


class RequestIdentity:
    """The identity verified for the current Flask request."""

    def current_user_id(self) -> Optional[str]:
        """Return the user id stored on ``g`` by ``token_required``."""
        if not has_app_context():
            return None
        return g.get("user_id")


def bearer_token(header: Optional[str]) -> str:
    """Extract the token from an ``Authorization: Bearer`` header."""
    if not header:
        raise UnauthorizedError()
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthorizedError("Malformed Authorization header.")
    return token.strip()


def verify_bearer_token(header: Optional[str]) -> dict[str, Any]:
    """Verify the Firebase ID token carried by an Authorization header."""
    token = bearer_token(header)
    try:
        decoded_token = auth.verify_id_token(token)
    except (ValueError, auth.InvalidIdTokenError, auth.ExpiredIdTokenError) as e:
        current_app.logger.warning(f"Rejected ID token: {e}")
        raise UnauthorizedError("Invalid or expired token.") from e
    decoded_token["id_token"] = token
    return decoded_token
