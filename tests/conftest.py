"""Common fixtures for tests."""

import json
import unittest
from unittest.mock import MagicMock, patch

from awardpicks import create_app
from awardpicks.auth.identity import StaticIdentity
from awardpicks.sync.service import ReactiveQueryService
from awardpicks.sync.subscription import SubscriptionTracker
from tests.helpers import USER_ID
from tests.mock_utils import FakeLiveBackend

SNAPSHOT_TIMEOUT = 1.0
QUIET_TIMEOUT = 0.05

AUTH_HEADERS = {"Authorization": "Bearer test-token"}


def next_snapshot(stream):
    """Return the next snapshot, failing fast if there is none."""
    return stream.next_snapshot(timeout=SNAPSHOT_TIMEOUT)


def assert_quiet(test, stream):
    """Assert that ``stream`` has nothing more to emit right now."""
    with test.assertRaises(TimeoutError):
        stream.next_snapshot(timeout=QUIET_TIMEOUT)


def until(stream, predicate):
    """Pull snapshots until one satisfies ``predicate`` and return it."""
    while True:
        snapshot = next_snapshot(stream)
        if predicate(snapshot):
            return snapshot


def make_service(backend=None, user_id=USER_ID, default_event=None):
    """Build a query service over a fake backend."""
    backend = backend or FakeLiveBackend()
    return ReactiveQueryService(
        backend,
        StaticIdentity(user_id),
        tracker=SubscriptionTracker(),
        default_event=default_event,
    )


def read_events(response, count):
    """Read ``count`` Server-Sent Events from a streaming response.

    Keepalive comments are returned as ``("keepalive", None)``. The response
    is closed afterwards, which closes the stream behind it.
    """
    events = []
    try:
        for chunk in response.response:
            text = chunk.decode() if isinstance(chunk, bytes) else chunk
            if text.startswith(":"):
                events.append(("keepalive", None))
            else:
                name_line, data_line = text.strip().split("\n", 1)
                events.append(
                    (
                        name_line[len("event: ") :],
                        json.loads(data_line[len("data: ") :]),
                    )
                )
            if len(events) == count:
                break
    finally:
        response.close()
    return events


class ApiTestCase(unittest.TestCase):
    """Base class for route tests: a fake backend and a verified token."""

    def setUp(self):
        """Set up a test client and a mocked Firebase Auth."""
        self.backend = FakeLiveBackend()
        self.mock_verify_id_token = MagicMock(return_value={"uid": USER_ID})

        patchers = {
            "verify_id_token": patch(
                "firebase_admin.auth.verify_id_token", new=self.mock_verify_id_token
            ),
        }
        self.mocks = {name: p.start() for name, p in patchers.items()}
        for p in patchers.values():
            self.addCleanup(p.stop)

        self.app = create_app(
            {
                "TESTING": True,
                "LIVE_BACKEND": self.backend,
                "FUNCTIONS_BASE_URL": "https://functions.example.com",
                "AWARDPICKS_WRITE_CONFIRM_TIMEOUT": 0.5,
                "SSE_KEEPALIVE_SECONDS": 0.05,
            }
        )
        self.client = self.app.test_client()
        self.tracker = self.app.extensions["awardpicks"].tracker

    def tearDown(self):
        """Check that no live query outlived its request."""
        self.assertEqual(self.tracker.open_count, 0)
        self.assertEqual(self.backend.open_listeners, 0)
