"""Process-wide cache of the event type reference table."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Optional

from awardpicks.core.constants import UNKNOWN_EVENT_NAME
from awardpicks.sync.queries import event_types_query
from awardpicks.sync.subscription import Subscription, SubscriptionTracker

from .models import EventType

if TYPE_CHECKING:
    from awardpicks.sync.backend import LiveBackend

logger = logging.getLogger(__name__)


class EventTypeCache:
    """Event types kept current by a single live subscription.

    Built once at startup and shared for the life of the process.
    """

    def __init__(
        self, backend: LiveBackend, tracker: Optional[SubscriptionTracker] = None
    ) -> None:
        """Initialize an empty cache."""
        self._backend = backend
        self._tracker = tracker
        self._lock = threading.Lock()
        self._event_types: list[EventType] = []
        self._subscription: Optional[Subscription] = None
        self.is_loaded = False

    @property
    def event_types(self) -> list[EventType]:
        """Return the cached event types."""
        with self._lock:
            return list(self._event_types)

    def start(self) -> None:
        """Start listening; later calls do nothing while listening."""
        with self._lock:
            if self._subscription is not None:
                return
            subscription = self._subscription = Subscription(
                self._backend,
                event_types_query(),
                EventType.from_document,
                self._replace,
                self._failed,
                tracker=self._tracker,
            )
        subscription.start()

    def stop(self) -> None:
        """Stop listening. The cached values stay available."""
        with self._lock:
            subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.cancel()

    def _replace(self, event_types: list[EventType]) -> None:
        with self._lock:
            self._event_types = event_types
            self.is_loaded = True

    def _failed(self, error: BaseException) -> None:
        logger.error("Failed to load event types: %s", error)
        with self._lock:
            self._subscription = None

    def find(self, event_id: Optional[str]) -> Optional[EventType]:
        """Look an event type up by slug, falling back to document id."""
        if event_id is None:
            return None
        event_types = self.event_types
        for event_type in event_types:
            if event_type.slug == event_id:
                return event_type
        return next((e for e in event_types if e.id == event_id), None)

    def display_name(self, event_id: Optional[str]) -> str:
        """Return the display name of an event, or a placeholder."""
        event_type = self.find(event_id)
        return event_type.display_name if event_type else UNKNOWN_EVENT_NAME

    def color(self, event_id: Optional[str]) -> Optional[str]:
        """Return the colour of an event, if known."""
        event_type = self.find(event_id)
        return event_type.color if event_type else None
