"""Data models for competitions."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Optional

from awardpicks.errors import DecodeError
from awardpicks.utils import optional, optional_timestamp, required, required_timestamp

if TYPE_CHECKING:
    from awardpicks.sync.targets import Document


class CompetitionStatus(str, Enum):
    """Lifecycle of a competition."""

    OPEN = "open"
    LOCKED = "locked"
    COMPLETE = "complete"
    CLOSED = "closed"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class Competition:
    """A competition document in Firestore."""

    id: str
    name: str
    created_by: str
    ceremony_year: str
    invite_code: str
    participant_count: int
    status: CompetitionStatus
    created_at: datetime.datetime
    event: Optional[str] = None
    inactivated_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None

    @property
    def can_vote(self) -> bool:
        """Return True if new votes are accepted."""
        return self.status is CompetitionStatus.OPEN

    @property
    def is_active(self) -> bool:
        """Return True while the competition is open or locked."""
        return self.status in (CompetitionStatus.OPEN, CompetitionStatus.LOCKED)

    def is_owned_by(self, user_id: Optional[str]) -> bool:
        """Return True if ``user_id`` created the competition."""
        return user_id is not None and self.created_by == user_id

    def with_status(self, status: CompetitionStatus) -> Competition:
        """Return an optimistic copy with a new status."""
        return replace(self, status=status)

    @classmethod
    def from_document(cls, document: Document) -> Competition:
        """Decode a competition document."""
        data = document.data
        try:
            status = CompetitionStatus(required(data, "status", str))
        except ValueError as e:
            raise DecodeError(f"Unknown competition status in {document.path}") from e
        return cls(
            id=document.id,
            name=required(data, "name", str),
            created_by=required(data, "createdBy", str),
            ceremony_year=required(data, "ceremonyYear", str),
            invite_code=required(data, "inviteCode", str),
            participant_count=required(data, "participantCount", int),
            status=status,
            created_at=required_timestamp(data, "createdAt"),
            event=optional(data, "event", str),
            inactivated_at=optional_timestamp(data, "inactivatedAt"),
            updated_at=optional_timestamp(data, "updatedAt"),
        )


@dataclass(frozen=True)
class Participant:
    """A participant document; its id is the member's user id."""

    id: str
    user_id: str
    display_name: str
    score: int
    joined_at: datetime.datetime
    photo_url: Optional[str] = None
    last_voted_at: Optional[datetime.datetime] = None

    @classmethod
    def from_document(cls, document: Document) -> Participant:
        """Decode a participant document."""
        data = document.data
        return cls(
            id=document.id,
            user_id=required(data, "odUserId", str),
            display_name=required(data, "displayName", str),
            score=required(data, "score", int),
            joined_at=required_timestamp(data, "joinedAt"),
            photo_url=optional(data, "photoUrl", str),
            last_voted_at=optional_timestamp(data, "lastVotedAt"),
        )


@dataclass(frozen=True)
class Vote:
    """A vote document: one user's pick for one category."""

    id: str
    user_id: str
    category_id: str
    nominee_id: str
    voted_at: datetime.datetime
    is_correct: Optional[bool] = None

    @classmethod
    def from_document(cls, document: Document) -> Vote:
        """Decode a vote document."""
        data = document.data
        return cls(
            id=document.id,
            user_id=required(data, "odUserId", str),
            category_id=required(data, "categoryId", str),
            nominee_id=required(data, "nomineeId", str),
            voted_at=required_timestamp(data, "votedAt"),
            is_correct=optional(data, "isCorrect", bool),
        )
