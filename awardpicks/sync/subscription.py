"""The snapshot subscription primitive and the stream base class."""

from __future__ import annotations

import itertools
import logging
import queue
import threading
import time
import weakref
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional

from awardpicks.errors import DecodeError, SubscriptionError

from .backend import describe

if TYPE_CHECKING:
    from .backend import LiveBackend, Registration
    from .targets import Document, Target

logger = logging.getLogger(__name__)

Decoder = Callable[["Document"], Any]

_NOTHING = object()
_WAKE = object()


def decode_all(documents: list[Document], decode: Decoder) -> list[Any]:
    """Decode documents in order, leaving out the ones that fail to decode."""
    values = []
    for document in documents:
        try:
            values.append(decode(document))
        except DecodeError as e:
            logger.debug("Dropping malformed document %s: %s", document.path, e)
    return values


class SubscriptionTracker:
    """Counts logical subscriptions that are open in this process."""

    def __init__(self) -> None:
        """Initialize an empty tracker."""
        self._lock = threading.Lock()
        self._open: set[Subscription] = set()
        self.total_opened = 0

    def opened(self, subscription: Subscription) -> None:
        """Record a newly registered subscription."""
        with self._lock:
            self._open.add(subscription)
            self.total_opened += 1

    def closed(self, subscription: Subscription) -> None:
        """Record a cancelled subscription."""
        with self._lock:
            self._open.discard(subscription)

    @property
    def open_count(self) -> int:
        """Return the number of subscriptions not yet cancelled."""
        with self._lock:
            return len(self._open)

    def open_targets(self) -> list[Target]:
        """Return the targets of every open subscription."""
        with self._lock:
            return [s.target for s in self._open]


class Subscription:
    """One live query against the storage boundary.

    Every backend snapshot is decoded into values (malformed documents are
    left out) and handed to ``on_values``. A backend error is handed to
    ``on_error`` once and releases the listener. ``cancel`` may be called
    any number of times; nothing is delivered once it has returned.
    """

    def __init__(
        self,
        backend: LiveBackend,
        target: Target,
        decode: Decoder,
        on_values: Callable[[list[Any]], None],
        on_error: Optional[Callable[[BaseException], None]] = None,
        tracker: Optional[SubscriptionTracker] = None,
        generation: int = 0,
    ) -> None:
        """Initialize a subscription. Nothing is registered until ``start``."""
        self.target = target
        self.generation = generation
        self._backend = backend
        self._decode = decode
        self._on_values = on_values
        self._on_error = on_error
        self._tracker = tracker
        self._lock = threading.RLock()
        self._registration: Optional[Registration] = None
        self._started = False
        self._cancelled = False

    @property
    def active(self) -> bool:
        """Return True while the listener is registered and not cancelled."""
        return self._started and not self._cancelled

    def start(self) -> Subscription:
        """Register the listener with the backend."""
        with self._lock:
            if self._started or self._cancelled:
                return self
            self._started = True
        if self._tracker is not None:
            self._tracker.opened(self)

        try:
            registration = self._backend.listen(
                self.target, self._handle_documents, self._handle_error
            )
        except Exception as e:  # noqa: BLE001
            self._handle_error(e)
            return self

        with self._lock:
            if not self._cancelled:
                self._registration = registration
                return self
        # Cancelled while the backend was registering the listener.
        self._release(registration)
        return self

    def cancel(self) -> None:
        """Stop deliveries and release the backend listener."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            registration, self._registration = self._registration, None
            started = self._started
        if registration is not None:
            self._release(registration)
        if started and self._tracker is not None:
            self._tracker.closed(self)

    def _release(self, registration: Registration) -> None:
        try:
            registration.unsubscribe()
        except Exception:  # noqa: BLE001
            logger.exception("Failed to unsubscribe from %s", describe(self.target))

    def _handle_documents(self, documents: list[Document]) -> None:
        values = decode_all(documents, self._decode)
        with self._lock:
            if self._cancelled:
                return
            self._on_values(values)

    def _handle_error(self, error: BaseException) -> None:
        with self._lock:
            if self._cancelled:
                return
            # The owner of on_error decides how loudly to report it.
            if self._on_error is None:
                logger.warning(
                    "Live query on %s failed: %s", describe(self.target), error
                )
            else:
                self._on_error(error)
        self.cancel()


@dataclass(frozen=True)
class Update:
    """Values delivered by one subscription."""

    source: str
    key: Any
    generation: int
    values: list[Any]


@dataclass(frozen=True)
class Failure:
    """Error delivered by one subscription."""

    source: str
    key: Any
    generation: int
    error: BaseException


def _cancel_all(subscriptions: set[Subscription], name: str) -> None:
    """Cancel what an abandoned stream left open."""
    if subscriptions:
        logger.debug(
            "%s was dropped without close(); cancelling %d subscriptions",
            name,
            len(subscriptions),
        )
    for subscription in list(subscriptions):
        subscription.cancel()
    subscriptions.clear()


class LiveStream:
    """Base class of the lazy, infinite snapshot sequences.

    Listener threads only post messages into the mailbox. The consumer
    drains it in ``next_snapshot`` and applies each message while holding the
    stream lock, so the stream state has a single writer. A stream ends only
    when it is closed (``StopIteration``) or when its own query fails
    (``SubscriptionError``).

    Listener callbacks hold only the mailbox, never the stream, so a stream
    dropped without ``close`` can be collected; its subscriptions are then
    cancelled by a finalizer.
    """

    def __init__(
        self,
        backend: LiveBackend,
        tracker: Optional[SubscriptionTracker] = None,
        name: Optional[str] = None,
    ) -> None:
        """Initialize the stream. Listeners are registered on first use."""
        self.name = name or type(self).__name__
        self._backend = backend
        self._tracker = tracker
        self._mailbox: queue.Queue[Any] = queue.Queue()
        self._lock = threading.RLock()
        self._generations = itertools.count(1)
        self._started = False
        self._closed = False
        self._owned: set[Subscription] = set()
        self._finalizer = weakref.finalize(self, _cancel_all, self._owned, self.name)
        self._finalizer.atexit = False

    def __iter__(self) -> LiveStream:
        return self

    def __next__(self) -> Any:
        return self.next_snapshot()

    def __enter__(self) -> LiveStream:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        """Return True once the stream has been closed."""
        return self._closed

    def start(self) -> LiveStream:
        """Register the stream's listeners if not done yet."""
        with self._lock:
            if not self._started and not self._closed:
                self._started = True
                self._open()
        return self

    def next_snapshot(self, timeout: Optional[float] = None) -> Any:
        """Block until the next snapshot and return it.

        Raises ``TimeoutError`` when ``timeout`` seconds pass without one.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        self.start()
        while True:
            if self._closed:
                raise StopIteration
            remaining = None
            if deadline is not None:
                remaining = max(0.0, deadline - time.monotonic())
            try:
                message = self._mailbox.get(timeout=remaining)
            except queue.Empty:
                raise TimeoutError(
                    f"No snapshot from {self.name} within {timeout} seconds"
                ) from None
            if message is _WAKE:
                continue

            with self._lock:
                if self._closed:
                    raise StopIteration
                try:
                    result = self._apply(message)
                except SubscriptionError as e:
                    logger.error("Stream %s ended: %s", self.name, e.message)
                    self._shutdown()
                    raise
            if result is not _NOTHING:
                return result

    def close(self) -> None:
        """Cancel every subscription of the stream. Safe to call repeatedly."""
        with self._lock:
            if self._closed:
                return
            self._shutdown()

    def _shutdown(self) -> None:
        self._closed = True
        self._teardown()
        self._mailbox.put(_WAKE)

    def _subscribe(self, source: str, key: Any, target: Target, decode: Decoder) -> Subscription:
        """Open a subscription whose deliveries land in this stream's mailbox."""
        generation = next(self._generations)
        mailbox = self._mailbox

        def on_values(values: list[Any]) -> None:
            mailbox.put(Update(source, key, generation, values))

        def on_error(error: BaseException) -> None:
            mailbox.put(Failure(source, key, generation, error))

        subscription = Subscription(
            self._backend,
            target,
            decode,
            on_values,
            on_error,
            tracker=self._tracker,
            generation=generation,
        )
        self._owned.add(subscription)
        return subscription.start()

    def _cancel(self, subscription: Subscription) -> None:
        subscription.cancel()
        self._owned.discard(subscription)

    def _open(self) -> None:
        raise NotImplementedError

    def _apply(self, message: Any) -> Any:
        raise NotImplementedError

    def _teardown(self) -> None:
        raise NotImplementedError


class SnapshotStream(LiveStream):
    """A single live query exposed as a stream of full result sets."""

    def __init__(
        self,
        backend: LiveBackend,
        target: Target,
        decode: Decoder,
        transform: Callable[[list[Any]], Any] = list,
        tracker: Optional[SubscriptionTracker] = None,
        name: Optional[str] = None,
    ) -> None:
        """Initialize the stream for ``target``."""
        super().__init__(backend, tracker, name)
        self.target = target
        self._decode = decode
        self._transform = transform
        self._subscription: Optional[Subscription] = None

    def _open(self) -> None:
        self._subscription = self._subscribe("query", None, self.target, self._decode)

    def _apply(self, message: Any) -> Any:
        if isinstance(message, Failure):
            raise SubscriptionError(
                f"{self.name} failed: {message.error}", cause=message.error
            )
        return self._transform(message.values)

    def _teardown(self) -> None:
        if self._subscription is not None:
            self._cancel(self._subscription)


class EmptyStream:
    """A stream that yields one value and then terminates.

    Stands in for every per-user stream when no user is signed in.
    """

    def __init__(self, value: Any) -> None:
        """Initialize the stream with the single value it yields."""
        self._pending = [value]
        self.closed = False

    def __iter__(self) -> EmptyStream:
        return self

    def __next__(self) -> Any:
        return self.next_snapshot()

    def __enter__(self) -> EmptyStream:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def start(self) -> EmptyStream:
        """Nothing to register."""
        return self

    def next_snapshot(self, timeout: Optional[float] = None) -> Any:
        """Return the value once, then stop."""
        if self._pending:
            return self._pending.pop()
        self.closed = True
        raise StopIteration

    def close(self) -> None:
        """Drop the pending value."""
        self._pending.clear()
        self.closed = True
