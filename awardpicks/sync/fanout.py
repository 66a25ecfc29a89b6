"""Dynamic fan-out: one child subscription per key of a changing key set."""

from __future__ import annotations

import copy
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Hashable, Optional

from awardpicks.errors import SubscriptionError

from .subscription import _NOTHING, Decoder, Failure, LiveStream, SubscriptionTracker

if TYPE_CHECKING:
    from .backend import LiveBackend
    from .subscription import Subscription
    from .targets import Target

logger = logging.getLogger(__name__)

PARENT = "parent"
CHILD = "child"


class ChildState(str, Enum):
    """Lifecycle of one managed key."""

    ABSENT = "absent"
    SUBSCRIBING = "subscribing"
    ACTIVE = "active"


class FanoutAggregator(LiveStream):
    """Merge the live values of a changing set of child documents.

    The parent query yields keys. For every key added to the set a child
    subscription is opened; for every key removed its subscription is
    cancelled and its value dropped. Each emission is the mapping of key to
    latest child value, ordered by ``sort_key``. A failing child only loses
    its own contribution; a failing parent ends the stream.
    """

    def __init__(
        self,
        backend: LiveBackend,
        parent_target: Target,
        parent_decode: Decoder,
        child_target: Callable[[Hashable], Target],
        child_decode: Decoder,
        sort_key: Optional[Callable[[Any], Any]] = None,
        reverse: bool = False,
        tracker: Optional[SubscriptionTracker] = None,
        name: Optional[str] = None,
    ) -> None:
        """Initialize the aggregator. Nothing is registered until first use."""
        super().__init__(backend, tracker, name)
        self.parent_target = parent_target
        self._parent_decode = parent_decode
        self._child_target = child_target
        self._child_decode = child_decode
        self._sort_key = sort_key
        self._reverse = reverse

        self._parent: Optional[Subscription] = None
        self._keys: frozenset[Hashable] = frozenset()
        self._children: dict[Hashable, Subscription] = {}
        self._states: dict[Hashable, ChildState] = {}
        self._values: dict[Hashable, Any] = {}
        self._last: Any = _NOTHING

    @property
    def keys(self) -> frozenset[Hashable]:
        """Return the most recent key set reported by the parent."""
        with self._lock:
            return self._keys

    @property
    def child_count(self) -> int:
        """Return the number of open child subscriptions."""
        with self._lock:
            return len(self._children)

    def state_of(self, key: Hashable) -> ChildState:
        """Return the lifecycle state of ``key``."""
        with self._lock:
            return self._states.get(key, ChildState.ABSENT)

    def _open(self) -> None:
        self._parent = self._subscribe(
            PARENT, None, self.parent_target, self._parent_decode
        )

    def _apply(self, message: Any) -> Any:
        if message.source == PARENT:
            if isinstance(message, Failure):
                raise SubscriptionError(
                    f"{self.name} failed: {message.error}", cause=message.error
                )
            return self._apply_keys(frozenset(message.values))
        return self._apply_child(message)

    def _apply_keys(self, new_keys: frozenset[Hashable]) -> Any:
        removed = self._keys - new_keys
        added = new_keys - self._keys

        for key in removed:
            self._drop_child(key)
        for key in added:
            self._add_child(key)
        self._keys = new_keys

        if removed or not new_keys:
            return self._emit()
        # Additions show up once their children report.
        return _NOTHING

    def _apply_child(self, message: Any) -> Any:
        key = message.key
        child = self._children.get(key)
        if child is None or child.generation != message.generation:
            return _NOTHING

        if isinstance(message, Failure):
            logger.warning(
                "%s: dropping %s after child failure: %s",
                self.name,
                key,
                message.error,
            )
            # Still in the key set, so not reopened until it leaves and rejoins.
            self._drop_child(key)
            return self._emit()

        self._states[key] = ChildState.ACTIVE
        value = self._child_value(message.values)
        if value is None:
            self._values.pop(key, None)
        else:
            self._values[key] = value
        self._on_child_value(key, value)
        return self._emit()

    def _child_value(self, values: list[Any]) -> Any:
        """Reduce a child snapshot to the key's value; None means gone."""
        return values[0] if values else None

    def _on_child_value(self, key: Hashable, value: Any) -> None:
        """Hook for subclasses reacting to a child update."""

    def _add_child(self, key: Hashable) -> None:
        self._states[key] = ChildState.SUBSCRIBING
        self._children[key] = self._subscribe(
            CHILD, key, self._child_target(key), self._child_decode
        )

    def _drop_child(self, key: Hashable) -> None:
        child = self._children.pop(key, None)
        if child is not None:
            self._cancel(child)
        self._values.pop(key, None)
        self._states.pop(key, None)

    def _combine(self) -> Any:
        """Build the emitted value from the current child values."""
        items = list(self._values.items())
        if self._sort_key is not None:
            sort_key = self._sort_key
            items.sort(key=lambda item: sort_key(item[1]), reverse=self._reverse)
        return dict(items)

    def _emit(self) -> Any:
        output = self._combine()
        if self._last is not _NOTHING and output == self._last:
            return _NOTHING
        self._last = copy.copy(output)
        return output

    def _teardown(self) -> None:
        if self._parent is not None:
            self._cancel(self._parent)
        for key in list(self._children):
            self._drop_child(key)
