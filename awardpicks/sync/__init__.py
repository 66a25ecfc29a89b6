"""Live Firestore queries composed into derived snapshot streams."""

from .backend import FirestoreBackend, LiveBackend
from .fanout import ChildState, FanoutAggregator
from .membership import MembershipIndex
from .merge import CeremonyVotesStream, merge_latest_votes
from .service import ReactiveQueryService, await_confirmation
from .subscription import (
    EmptyStream,
    SnapshotStream,
    Subscription,
    SubscriptionTracker,
)
from .targets import Document, DocumentSpec, QuerySpec

__all__ = [
    "CeremonyVotesStream",
    "ChildState",
    "Document",
    "DocumentSpec",
    "EmptyStream",
    "FanoutAggregator",
    "FirestoreBackend",
    "LiveBackend",
    "MembershipIndex",
    "QuerySpec",
    "ReactiveQueryService",
    "SnapshotStream",
    "Subscription",
    "SubscriptionTracker",
    "await_confirmation",
    "merge_latest_votes",
]
