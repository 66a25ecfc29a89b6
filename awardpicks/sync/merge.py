"""Cross-collection merge: a user's votes across every competition of a ceremony."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Hashable, Iterable, Optional

from awardpicks.ceremony.models import event_matches
from awardpicks.competition.models import Competition, Vote

from .fanout import FanoutAggregator
from .membership import competition_id_of, membership_target
from .queries import competition_document, votes_query
from .subscription import _NOTHING, Failure, SubscriptionTracker

if TYPE_CHECKING:
    from .backend import LiveBackend
    from .subscription import Subscription

logger = logging.getLogger(__name__)

VOTES = "votes"


def latest_by_category(votes: Iterable[Vote]) -> dict[str, Vote]:
    """Index votes by category, keeping the latest one per category."""
    return merge_latest_votes({v.category_id: v} for v in votes)


def merge_latest_votes(vote_maps: Iterable[dict[str, Vote]]) -> dict[str, Vote]:
    """Merge category → vote maps; the vote cast last wins.

    On equal timestamps the vote seen first is kept.
    """
    merged: dict[str, Vote] = {}
    for votes in vote_maps:
        for category_id, vote in votes.items():
            current = merged.get(category_id)
            if current is None or vote.voted_at > current.voted_at:
                merged[category_id] = vote
    return merged


class CeremonyVotesStream(FanoutAggregator):
    """Stream of category id → vote over all of a user's ceremony competitions.

    Competitions come from the membership index. Each one is watched to learn
    its ceremony; for those matching ``ceremony_year`` and ``event`` a votes
    listener is opened. Emissions merge the per-competition vote maps.
    """

    def __init__(
        self,
        backend: LiveBackend,
        user_id: str,
        ceremony_year: str,
        event: Optional[str] = None,
        tracker: Optional[SubscriptionTracker] = None,
    ) -> None:
        """Initialize the stream. Nothing is registered until first use."""
        super().__init__(
            backend,
            membership_target(user_id),
            competition_id_of,
            child_target=competition_document,
            child_decode=Competition.from_document,
            tracker=tracker,
            name=f"ceremony-votes({user_id}, {ceremony_year}, {event})",
        )
        self.user_id = user_id
        self.ceremony_year = ceremony_year
        self.event = event
        self._vote_listeners: dict[Hashable, Subscription] = {}
        self._votes: dict[Hashable, dict[str, Vote]] = {}

    @property
    def vote_listener_count(self) -> int:
        """Return the number of open per-competition votes listeners."""
        with self._lock:
            return len(self._vote_listeners)

    def matches(self, competition: Competition) -> bool:
        """Return True if the competition belongs to this stream's ceremony."""
        return competition.ceremony_year == self.ceremony_year and event_matches(
            competition.event, self.event
        )

    def _apply(self, message: Any) -> Any:
        if message.source == VOTES:
            return self._apply_votes(message)
        return super()._apply(message)

    def _on_child_value(self, key: Hashable, value: Any) -> None:
        if value is None or not self.matches(value):
            self._drop_votes(key)
            return
        if key not in self._vote_listeners:
            self._vote_listeners[key] = self._subscribe(
                VOTES, key, votes_query(key, self.user_id), Vote.from_document
            )

    def _apply_votes(self, message: Any) -> Any:
        key = message.key
        listener = self._vote_listeners.get(key)
        if listener is None or listener.generation != message.generation:
            return _NOTHING

        if isinstance(message, Failure):
            logger.warning(
                "%s: dropping votes of %s: %s", self.name, key, message.error
            )
            self._drop_votes(key)
            return self._emit()

        self._votes[key] = latest_by_category(message.values)
        return self._emit()

    def _drop_votes(self, key: Hashable) -> None:
        listener = self._vote_listeners.pop(key, None)
        if listener is not None:
            self._cancel(listener)
        self._votes.pop(key, None)

    def _drop_child(self, key: Hashable) -> None:
        super()._drop_child(key)
        self._drop_votes(key)

    def _combine(self) -> Any:
        return merge_latest_votes(self._votes.values())

    def _teardown(self) -> None:
        super()._teardown()
        for key in list(self._vote_listeners):
            self._drop_votes(key)
