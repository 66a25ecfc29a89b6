"""Descriptions of live query targets and the documents they deliver."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union

EQUALITY_OPERATORS = ("==", "!=", "in", "not-in", "array_contains")
RANGE_OPERATORS = ("<", "<=", ">", ">=")


@dataclass(frozen=True)
class QuerySpec:
    """A collection (or collection-group) query.

    ``path`` is a slash separated collection path such as
    ``competitions/abc/votes``. With ``collection_group`` set it is the bare
    collection id matched across every parent document.
    """

    path: str
    filters: tuple[tuple[str, str, Any], ...] = ()
    order_by: Optional[str] = None
    descending: bool = False
    limit: Optional[int] = None
    collection_group: bool = False

    def __post_init__(self) -> None:
        """Reject operators the storage layer does not understand."""
        for field_path, op, _ in self.filters:
            if op not in EQUALITY_OPERATORS + RANGE_OPERATORS:
                raise ValueError(f"Unsupported operator {op!r} on {field_path!r}")
        if self.limit is not None and self.limit < 1:
            raise ValueError("Query limit must be positive.")

    def where(self, field_path: str, op: str, value: Any) -> QuerySpec:
        """Return a copy of the query with one more filter."""
        return QuerySpec(
            path=self.path,
            filters=self.filters + ((field_path, op, value),),
            order_by=self.order_by,
            descending=self.descending,
            limit=self.limit,
            collection_group=self.collection_group,
        )


@dataclass(frozen=True)
class DocumentSpec:
    """A single document, e.g. ``competitions/abc``."""

    path: str

    @property
    def id(self) -> str:
        """Return the document id."""
        return self.path.rsplit("/", 1)[-1]


Target = Union[QuerySpec, DocumentSpec]


@dataclass(frozen=True)
class Document:
    """A document as delivered by the storage boundary."""

    id: str
    path: str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def parent_id(self) -> Optional[str]:
        """Return the id of the document owning this document's collection."""
        parts = self.path.split("/")
        if len(parts) < 4:
            return None
        return parts[-3]
