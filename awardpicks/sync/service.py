"""The Reactive Query Service: named live streams consumed by the UI."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from awardpicks.ceremony.models import Category, Ceremony, event_matches
from awardpicks.competition.models import Competition, Participant, Vote
from awardpicks.core.constants import USERS_COLLECTION, WRITE_CONFIRM_TIMEOUT
from awardpicks.errors import SubscriptionError
from awardpicks.user.models import AppUser

from .fanout import FanoutAggregator
from .membership import competition_id_of, membership_target
from .merge import CeremonyVotesStream
from .queries import (
    categories_query,
    ceremonies_query,
    competition_document,
    participants_query,
    votes_query,
)
from .subscription import EmptyStream, LiveStream, SnapshotStream, SubscriptionTracker, decode_all
from .targets import DocumentSpec

if TYPE_CHECKING:
    from awardpicks.auth.identity import IdentityProvider

    from .backend import LiveBackend

logger = logging.getLogger(__name__)

Stream = Union[LiveStream, EmptyStream]


def _first(values: list[Any]) -> Any:
    return values[0] if values else None


def _visible(values: list[Any]) -> list[Any]:
    return [v for v in values if not v.hidden]


class ReactiveQueryService:
    """Composes live queries into the streams the UI renders.

    One instance is built per user scope from the process-wide backend and
    tracker. Every method returns a new, not yet started stream; the caller
    owns it and must close it.
    """

    def __init__(
        self,
        backend: LiveBackend,
        identity: IdentityProvider,
        tracker: Optional[SubscriptionTracker] = None,
        default_event: Optional[str] = None,
    ) -> None:
        """Initialize the service."""
        self.backend = backend
        self.identity = identity
        self.tracker = tracker if tracker is not None else SubscriptionTracker()
        self.default_event = default_event

    @property
    def user_id(self) -> Optional[str]:
        """Return the signed in user's id, if any."""
        return self.identity.current_user_id()

    def _event(self, event: Optional[str]) -> Optional[str]:
        return event if event is not None else self.default_event

    # Ceremonies

    def ceremonies(self) -> SnapshotStream:
        """Stream visible ceremonies, newest first."""
        return SnapshotStream(
            self.backend,
            ceremonies_query(),
            Ceremony.from_document,
            transform=_visible,
            tracker=self.tracker,
            name="ceremonies",
        )

    def categories(
        self, ceremony_year: str, event: Optional[str] = None
    ) -> SnapshotStream:
        """Stream the visible categories of a ceremony in display order.

        Categories without an event belong to every event of the year.
        """
        event = self._event(event)

        def select(categories: list[Category]) -> list[Category]:
            return [
                c
                for c in categories
                if not c.hidden and event_matches(c.event, event)
            ]

        return SnapshotStream(
            self.backend,
            categories_query(ceremony_year),
            Category.from_document,
            transform=select,
            tracker=self.tracker,
            name=f"categories({ceremony_year}, {event})",
        )

    # Competitions

    def my_competitions(self) -> Stream:
        """Stream id → competition for every competition the user is in.

        Ordered by creation time, newest first.
        """
        user_id = self.user_id
        if user_id is None:
            return EmptyStream({})
        return FanoutAggregator(
            self.backend,
            membership_target(user_id),
            competition_id_of,
            child_target=competition_document,
            child_decode=Competition.from_document,
            sort_key=lambda competition: competition.created_at,
            reverse=True,
            tracker=self.tracker,
            name=f"my-competitions({user_id})",
        )

    def participants(self, competition_id: str) -> SnapshotStream:
        """Stream a competition's leaderboard, highest score first."""
        return SnapshotStream(
            self.backend,
            participants_query(competition_id),
            Participant.from_document,
            tracker=self.tracker,
            name=f"participants({competition_id})",
        )

    # Votes

    def my_votes(self, competition_id: str) -> Stream:
        """Stream the user's votes within one competition."""
        user_id = self.user_id
        if user_id is None:
            return EmptyStream([])
        return SnapshotStream(
            self.backend,
            votes_query(competition_id, user_id),
            Vote.from_document,
            tracker=self.tracker,
            name=f"my-votes({competition_id})",
        )

    def my_ceremony_votes(
        self, ceremony_year: str, event: Optional[str] = None
    ) -> Stream:
        """Stream category id → the user's latest vote across a ceremony."""
        user_id = self.user_id
        if user_id is None:
            return EmptyStream({})
        return CeremonyVotesStream(
            self.backend,
            user_id,
            ceremony_year,
            self._event(event),
            tracker=self.tracker,
        )

    # Users

    def current_user(self) -> Stream:
        """Stream the signed in user's profile document (None if missing)."""
        user_id = self.user_id
        if user_id is None:
            return EmptyStream(None)
        return SnapshotStream(
            self.backend,
            DocumentSpec(f"{USERS_COLLECTION}/{user_id}"),
            AppUser.from_document,
            transform=_first,
            tracker=self.tracker,
            name=f"user({user_id})",
        )

    # One-shot reads

    def current_ceremony(self) -> Optional[Ceremony]:
        """Return the most recent ceremony."""
        documents = self.backend.fetch(ceremonies_query(limit=1))
        return _first(decode_all(documents, Ceremony.from_document))

    def ceremonies_list(self) -> list[Ceremony]:
        """Return every ceremony, newest first."""
        documents = self.backend.fetch(ceremonies_query())
        return decode_all(documents, Ceremony.from_document)

    def competition(self, competition_id: str) -> Optional[Competition]:
        """Return a competition, or None if it does not exist."""
        documents = self.backend.fetch(competition_document(competition_id))
        return _first(decode_all(documents, Competition.from_document))


def await_confirmation(
    stream: Stream,
    predicate: Callable[[Any], bool],
    timeout: float = WRITE_CONFIRM_TIMEOUT,
) -> bool:
    """Wait until a snapshot satisfies ``predicate``; closes the stream.

    Returns False when ``timeout`` passes or the stream ends first, in which
    case the caller proceeds optimistically.
    """
    deadline = time.monotonic() + timeout
    with stream:
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            try:
                snapshot = stream.next_snapshot(timeout=remaining)
            except (TimeoutError, StopIteration):
                return False
            except SubscriptionError as e:
                logger.warning("Stopped waiting for confirmation: %s", e.message)
                return False
            if predicate(snapshot):
                return True
