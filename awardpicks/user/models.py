"""Data models for app users."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from awardpicks.errors import DecodeError
from awardpicks.utils import optional, required

if TYPE_CHECKING:
    from awardpicks.sync.targets import Document


@dataclass(frozen=True)
class AppUser:
    """A user document in Firestore."""

    id: str
    email: str
    display_name: str
    photo_url: Optional[str] = None
    fcm_tokens: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_document(cls, document: Document) -> AppUser:
        """Decode a user document."""
        data = document.data
        tokens = optional(data, "fcmTokens", list) or []
        if not all(isinstance(t, str) for t in tokens):
            raise DecodeError(f"Malformed fcmTokens in {document.path}")
        return cls(
            id=document.id,
            email=required(data, "email", str),
            display_name=required(data, "displayName", str),
            photo_url=optional(data, "photoUrl", str),
            fcm_tokens=tuple(tokens),
        )
