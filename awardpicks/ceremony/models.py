"""Data models for ceremonies and categories."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from awardpicks.errors import DecodeError
from awardpicks.utils import optional, optional_timestamp, required

if TYPE_CHECKING:
    from awardpicks.sync.targets import Document


class CeremonyStatus(str, Enum):
    """Lifecycle of a ceremony."""

    UPCOMING = "upcoming"
    LIVE = "live"
    COMPLETE = "complete"
    COMPLETED = "completed"


def event_matches(left: Optional[str], right: Optional[str]) -> bool:
    """Return True if two event slugs match; an unset side matches anything."""
    if left is None or right is None:
        return True
    return left == right


@dataclass(frozen=True)
class Ceremony:
    """A ceremony document in Firestore."""

    id: str
    name: str
    year: str
    status: CeremonyStatus
    event: Optional[str] = None
    date: Optional[datetime.datetime] = None
    category_count: Optional[int] = None
    hidden: bool = False

    @property
    def is_complete(self) -> bool:
        """Return True once the ceremony has finished."""
        return self.status in (CeremonyStatus.COMPLETE, CeremonyStatus.COMPLETED)

    @classmethod
    def from_document(cls, document: Document) -> Ceremony:
        """Decode a ceremony document."""
        data = document.data
        try:
            status = CeremonyStatus(required(data, "status", str))
        except ValueError as e:
            raise DecodeError(f"Unknown ceremony status in {document.path}") from e
        return cls(
            id=document.id,
            name=required(data, "name", str),
            year=required(data, "year", str),
            status=status,
            event=optional(data, "event", str),
            date=optional_timestamp(data, "date"),
            category_count=optional(data, "categoryCount", int),
            hidden=bool(optional(data, "hidden", bool)),
        )


@dataclass(frozen=True)
class EventType:
    """An entry of the event type reference table."""

    id: str
    slug: str
    display_name: str
    color: Optional[str] = None

    @classmethod
    def from_document(cls, document: Document) -> EventType:
        """Decode an event type document."""
        data = document.data
        return cls(
            id=document.id,
            slug=required(data, "slug", str),
            display_name=required(data, "displayName", str),
            color=optional(data, "color", str),
        )


@dataclass(frozen=True)
class Nominee:
    """A nominee embedded in a category."""

    id: str
    title: str
    image_url: str
    subtitle: Optional[str] = None
    tmdb_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> Nominee:
        """Decode an embedded nominee map."""
        if not isinstance(data, dict):
            raise DecodeError("Nominee is not a map")
        return cls(
            id=required(data, "id", str),
            title=required(data, "title", str),
            image_url=required(data, "imageUrl", str),
            subtitle=optional(data, "subtitle", str),
            tmdb_id=optional(data, "tmdbId", str),
        )


@dataclass(frozen=True)
class Category:
    """A category document in Firestore."""

    id: str
    ceremony_year: str
    name: str
    display_order: int
    nominees: tuple[Nominee, ...] = field(default_factory=tuple)
    event: Optional[str] = None
    winner_id: Optional[str] = None
    voting_locked: bool = False
    hidden: bool = False

    @property
    def has_winner(self) -> bool:
        """Return True once a winner has been announced."""
        return self.winner_id is not None

    @property
    def is_locked(self) -> bool:
        """Return True if votes can no longer change; a winner locks implicitly."""
        return self.voting_locked or self.has_winner

    @property
    def winner(self) -> Optional[Nominee]:
        """Return the winning nominee, if announced."""
        if self.winner_id is None:
            return None
        return next((n for n in self.nominees if n.id == self.winner_id), None)

    def nominee(self, nominee_id: str) -> Optional[Nominee]:
        """Return the nominee with ``nominee_id``."""
        return next((n for n in self.nominees if n.id == nominee_id), None)

    def with_winner(self, winner_id: Optional[str]) -> Category:
        """Return a copy with the winner set."""
        return replace(self, winner_id=winner_id)

    @classmethod
    def from_document(cls, document: Document) -> Category:
        """Decode a category document."""
        data = document.data
        nominees = required(data, "nominees", list)
        return cls(
            id=document.id,
            ceremony_year=required(data, "ceremonyYear", str),
            name=required(data, "name", str),
            display_order=required(data, "displayOrder", int),
            nominees=tuple(Nominee.from_dict(n) for n in nominees),
            event=optional(data, "event", str),
            winner_id=optional(data, "winnerId", str),
            voting_locked=bool(optional(data, "votingLocked", bool)),
            hidden=bool(optional(data, "hidden", bool)),
        )
