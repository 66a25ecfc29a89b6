"""Targets of the named live queries."""

from __future__ import annotations

from awardpicks.core.constants import (
    CATEGORIES_COLLECTION,
    CEREMONIES_COLLECTION,
    COMPETITIONS_COLLECTION,
    EVENT_TYPES_COLLECTION,
    FIELD_CEREMONY_YEAR,
    FIELD_DATE,
    FIELD_DISPLAY_ORDER,
    FIELD_SCORE,
    FIELD_USER_ID,
    PARTICIPANTS_COLLECTION,
    VOTES_COLLECTION,
)

from .targets import DocumentSpec, QuerySpec


def ceremonies_query(limit: int | None = None) -> QuerySpec:
    """Return all ceremonies, newest first."""
    return QuerySpec(
        CEREMONIES_COLLECTION, order_by=FIELD_DATE, descending=True, limit=limit
    )


def categories_query(ceremony_year: str) -> QuerySpec:
    """Return the categories of a ceremony year in display order."""
    return QuerySpec(
        CATEGORIES_COLLECTION,
        filters=((FIELD_CEREMONY_YEAR, "==", ceremony_year),),
        order_by=FIELD_DISPLAY_ORDER,
    )


def competition_document(competition_id: str) -> DocumentSpec:
    """Return the competition document."""
    return DocumentSpec(f"{COMPETITIONS_COLLECTION}/{competition_id}")


def participants_query(competition_id: str) -> QuerySpec:
    """Return a competition's leaderboard, highest score first."""
    return QuerySpec(
        f"{COMPETITIONS_COLLECTION}/{competition_id}/{PARTICIPANTS_COLLECTION}",
        order_by=FIELD_SCORE,
        descending=True,
    )


def votes_query(competition_id: str, user_id: str) -> QuerySpec:
    """Return a user's votes within one competition."""
    return QuerySpec(
        f"{COMPETITIONS_COLLECTION}/{competition_id}/{VOTES_COLLECTION}",
        filters=((FIELD_USER_ID, "==", user_id),),
    )


def event_types_query() -> QuerySpec:
    """Return the event type reference table."""
    return QuerySpec(EVENT_TYPES_COLLECTION)
