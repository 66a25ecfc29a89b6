"""Utility functions for decoding Firestore data and encoding JSON."""

from __future__ import annotations

import dataclasses
import datetime
from enum import Enum
from typing import Any, Optional

from .errors import DecodeError


def required(data: dict[str, Any], key: str, kind: type | tuple[type, ...]) -> Any:
    """Return ``data[key]``, which must be present and of type ``kind``.

    Raises:
        DecodeError: If the field is missing or has the wrong type.
    """
    if key not in data or data[key] is None:
        raise DecodeError(f"Missing field {key!r}")
    value = data[key]
    # bool is an int subclass; don't let True pass as a score.
    if isinstance(value, bool) and bool not in _as_tuple(kind):
        raise DecodeError(f"Field {key!r} has type bool")
    if not isinstance(value, kind):
        raise DecodeError(f"Field {key!r} has type {type(value).__name__}")
    return value


def optional(data: dict[str, Any], key: str, kind: type | tuple[type, ...]) -> Any:
    """Return ``data[key]`` or None when absent; a present value must be ``kind``."""
    if data.get(key) is None:
        return None
    return required(data, key, kind)


def required_timestamp(data: dict[str, Any], key: str) -> datetime.datetime:
    """Return a Firestore timestamp field as an aware datetime."""
    return _aware(required(data, key, datetime.datetime))


def optional_timestamp(data: dict[str, Any], key: str) -> Optional[datetime.datetime]:
    """Return an optional Firestore timestamp field."""
    value = optional(data, key, datetime.datetime)
    return _aware(value) if value is not None else None


def _aware(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value


def _as_tuple(kind: type | tuple[type, ...]) -> tuple[type, ...]:
    return kind if isinstance(kind, tuple) else (kind,)


def to_jsonable(value: Any) -> Any:
    """Convert models, datetimes and containers into JSON compatible values."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: to_jsonable(getattr(value, f.name))
            for f in dataclasses.fields(value)
        }
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in value]
    return value
