"""Secondary-index join: which competitions a user belongs to."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from awardpicks.core.constants import FIELD_USER_ID, PARTICIPANTS_COLLECTION
from awardpicks.errors import DecodeError

from .subscription import SnapshotStream, SubscriptionTracker
from .targets import QuerySpec

if TYPE_CHECKING:
    from .backend import LiveBackend
    from .targets import Document


def membership_target(user_id: str) -> QuerySpec:
    """Return the collection-group query over a user's participant records."""
    return QuerySpec(
        path=PARTICIPANTS_COLLECTION,
        filters=((FIELD_USER_ID, "==", user_id),),
        collection_group=True,
    )


def competition_id_of(document: Document) -> str:
    """Return the competition owning a participant record."""
    competition_id = document.parent_id
    if not competition_id:
        raise DecodeError(f"Participant record {document.path} has no parent")
    return competition_id


class MembershipIndex(SnapshotStream):
    """Stream of the sets of competition ids a user participates in.

    Each emission is derived from scratch; diffing against earlier sets is
    left to the consumer.
    """

    def __init__(
        self,
        backend: LiveBackend,
        user_id: str,
        tracker: Optional[SubscriptionTracker] = None,
    ) -> None:
        """Initialize the index stream for ``user_id``."""
        super().__init__(
            backend,
            membership_target(user_id),
            competition_id_of,
            transform=frozenset,
            tracker=tracker,
            name=f"membership({user_id})",
        )
        self.user_id = user_id
