"""Identity of the signed in user."""

from .identity import IdentityProvider, RequestIdentity, StaticIdentity

__all__ = ["IdentityProvider", "RequestIdentity", "StaticIdentity"]
