"""Storage read boundary backed by Cloud Firestore."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Protocol

from google.cloud.firestore import FieldFilter, Query

from .targets import Document, DocumentSpec, QuerySpec, Target

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client

logger = logging.getLogger(__name__)

DocumentsCallback = Callable[[list[Document]], None]
ErrorCallback = Callable[[BaseException], None]


class Registration(Protocol):
    """Handle of one live listener."""

    def unsubscribe(self) -> None:
        """Stop the listener and release its connection."""


class LiveBackend(Protocol):
    """Anything able to run live and one-shot queries against documents."""

    def listen(
        self, target: Target, on_documents: DocumentsCallback, on_error: ErrorCallback
    ) -> Registration:
        """Register a live listener delivering full result sets."""

    def fetch(self, target: Target) -> list[Document]:
        """Run the query once."""


def _to_document(snapshot: Any) -> Document:
    """Normalize a Firestore DocumentSnapshot."""
    return Document(
        id=snapshot.id,
        path=snapshot.reference.path,
        data=snapshot.to_dict() or {},
    )


class FirestoreBackend:
    """LiveBackend implementation over a ``google.cloud.firestore`` client.

    Snapshot callbacks run on the watch threads owned by the Firestore
    client; they only forward the converted documents to ``on_documents``.
    """

    def __init__(self, db: Client) -> None:
        """Initialize the backend with a Firestore client."""
        self.db = db

    def _build(self, target: Target) -> Any:
        if isinstance(target, DocumentSpec):
            return self.db.document(target.path)

        if target.collection_group:
            query = self.db.collection_group(target.path)
        else:
            query = self.db.collection(target.path)
        for field_path, op, value in target.filters:
            query = query.where(filter=FieldFilter(field_path, op, value))
        if target.order_by:
            direction = Query.DESCENDING if target.descending else Query.ASCENDING
            query = query.order_by(target.order_by, direction=direction)
        if target.limit:
            query = query.limit(target.limit)
        return query

    def listen(
        self, target: Target, on_documents: DocumentsCallback, on_error: ErrorCallback
    ) -> Registration:
        """Register ``on_snapshot`` on the query or document."""

        def on_snapshot(snapshots: list[Any], changes: Any, read_time: Any) -> None:
            try:
                documents = [_to_document(s) for s in snapshots if s.exists]
            except Exception as e:  # noqa: BLE001
                on_error(e)
                return
            on_documents(documents)

        logger.debug("Listening to %s", describe(target))
        return self._build(target).on_snapshot(on_snapshot)

    def fetch(self, target: Target) -> list[Document]:
        """Read the target once."""
        ref = self._build(target)
        if isinstance(target, DocumentSpec):
            snapshot = ref.get()
            return [_to_document(snapshot)] if snapshot.exists else []
        return [_to_document(s) for s in ref.stream()]


def describe(target: Target) -> str:
    """Return a short human readable description of a target."""
    if isinstance(target, QuerySpec):
        kind = "group" if target.collection_group else "collection"
        filters = ", ".join(f"{f} {op} {v!r}" for f, op, v in target.filters)
        return f"{kind} {target.path}" + (f" where {filters}" if filters else "")
    return f"document {target.path}"
