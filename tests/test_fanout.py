"""Tests for the dynamic fan-out aggregator behind "my competitions"."""

from __future__ import annotations

import gc
import random
import threading
import unittest

from awardpicks.competition.models import CompetitionStatus
from awardpicks.errors import SubscriptionError
from awardpicks.sync.fanout import ChildState
from awardpicks.sync.subscription import EmptyStream
from tests.conftest import (
    QUIET_TIMEOUT,
    assert_quiet,
    make_service,
    next_snapshot,
    until,
)
from tests.helpers import competition_data, join, leave, ts
from tests.mock_utils import FakeLiveBackend


class TestMyCompetitions(unittest.TestCase):
    """Test case for the my-competitions fan-out stream."""

    def setUp(self) -> None:
        self.backend = FakeLiveBackend()
        self.service = make_service(self.backend)
        self.tracker = self.service.tracker
        for competition_id, day in (("c1", 1), ("c2", 3), ("c3", 2)):
            self.backend.set(
                f"competitions/{competition_id}",
                competition_data(name=competition_id.upper(), created_at=ts(day)),
            )

    def tearDown(self) -> None:
        self.assertEqual(self.tracker.open_count, 0)
        self.assertEqual(self.backend.open_listeners, 0)

    def test_empty_membership_emits_empty_immediately(self) -> None:
        """No participant records: emit {} without opening any child."""
        with self.service.my_competitions() as stream:
            self.assertEqual(next_snapshot(stream), {})
            self.assertEqual(stream.child_count, 0)
            self.assertEqual(self.backend.open_listeners, 1)
            assert_quiet(self, stream)

    def test_emits_competitions_newest_first(self) -> None:
        """The merged mapping is ordered by creation time, newest first."""
        for competition_id in ("c1", "c2", "c3"):
            join(self.backend, competition_id)

        with self.service.my_competitions() as stream:
            snapshot = next_snapshot(stream)
            while len(snapshot) < 3:
                snapshot = next_snapshot(stream)
        self.assertEqual(list(snapshot), ["c2", "c3", "c1"])

    def test_child_count_follows_membership(self) -> None:
        """After each membership change there is one child per competition."""
        join(self.backend, "c1")
        with self.service.my_competitions() as stream:
            self.assertEqual(list(next_snapshot(stream)), ["c1"])
            self.assertEqual(stream.child_count, 1)

            join(self.backend, "c2")
            self.assertEqual(set(next_snapshot(stream)), {"c1", "c2"})
            self.assertEqual(stream.child_count, len(stream.keys))

            join(self.backend, "c3")
            self.assertEqual(set(next_snapshot(stream)), {"c1", "c2", "c3"})
            self.assertEqual(stream.child_count, 3)

            leave(self.backend, "c1")
            self.assertEqual(set(next_snapshot(stream)), {"c2", "c3"})
            self.assertEqual(stream.child_count, 2)
            self.assertEqual(stream.state_of("c1"), ChildState.ABSENT)
            self.assertEqual(self.backend.listening_to("competitions/c1"), 0)

            leave(self.backend, "c2")
            leave(self.backend, "c3")
            self.assertEqual(set(next_snapshot(stream)), {"c3"})
            self.assertEqual(next_snapshot(stream), {})
            self.assertEqual(stream.child_count, 0)
            self.assertEqual(self.tracker.open_count, 1)

    def test_child_update_emits_exactly_once(self) -> None:
        """One competition change produces one re-emission."""
        join(self.backend, "c1")
        with self.service.my_competitions() as stream:
            next_snapshot(stream)
            self.backend.update("competitions/c1", status="inactive")

            snapshot = next_snapshot(stream)
            self.assertIs(snapshot["c1"].status, CompetitionStatus.INACTIVE)
            assert_quiet(self, stream)

    def test_deleted_child_is_removed(self) -> None:
        """A competition deleted server-side leaves the output."""
        join(self.backend, "c1")
        join(self.backend, "c2")
        with self.service.my_competitions() as stream:
            snapshot = next_snapshot(stream)
            while len(snapshot) < 2:
                snapshot = next_snapshot(stream)

            self.backend.delete("competitions/c2")
            self.assertEqual(list(next_snapshot(stream)), ["c1"])

    def test_competition_created_after_join(self) -> None:
        """A child that reports no document yet joins the output later."""
        join(self.backend, "c9")
        with self.service.my_competitions() as stream:
            self.assertEqual(next_snapshot(stream), {})
            self.assertEqual(stream.state_of("c9"), ChildState.ACTIVE)

            self.backend.set("competitions/c9", competition_data(name="Late"))
            self.assertEqual(next_snapshot(stream)["c9"].name, "Late")

    def test_failing_child_is_isolated(self) -> None:
        """One child error drops that child only."""
        join(self.backend, "c1")
        join(self.backend, "c2")
        with self.service.my_competitions() as stream:
            snapshot = next_snapshot(stream)
            while len(snapshot) < 2:
                snapshot = next_snapshot(stream)

            with self.assertLogs("awardpicks.sync", level="WARNING") as logs:
                self.backend.fail("competitions/c2", PermissionError("denied"))
                self.assertEqual(list(next_snapshot(stream)), ["c1"])
            self.assertEqual({r.levelname for r in logs.records}, {"WARNING"})
            self.assertEqual(stream.state_of("c2"), ChildState.ABSENT)
            self.assertEqual(stream.child_count, 1)

            self.backend.update("competitions/c1", name="Still here")
            self.assertEqual(next_snapshot(stream)["c1"].name, "Still here")

    def test_malformed_child_is_excluded(self) -> None:
        """A competition that no longer decodes disappears from the output."""
        join(self.backend, "c1")
        with self.service.my_competitions() as stream:
            next_snapshot(stream)
            self.backend.update("competitions/c1", status="archived")
            self.assertEqual(next_snapshot(stream), {})

    def test_parent_failure_closes_everything(self) -> None:
        """An error on the membership index ends the whole stream."""
        join(self.backend, "c1")
        stream = self.service.my_competitions()
        next_snapshot(stream)

        self.backend.fail("participants", PermissionError("denied"))
        with self.assertLogs("awardpicks.sync.subscription", level="ERROR"):
            with self.assertRaises(SubscriptionError):
                next_snapshot(stream)
        self.assertTrue(stream.closed)
        self.assertEqual(stream.child_count, 0)

    def test_close_cancels_every_child(self) -> None:
        """Closing leaves no open subscription, and closing twice is harmless."""
        for competition_id in ("c1", "c2", "c3"):
            join(self.backend, competition_id)
        stream = self.service.my_competitions()
        next_snapshot(stream)
        self.assertEqual(self.tracker.open_count, 4)

        stream.close()
        stream.close()
        self.assertEqual(self.tracker.open_count, 0)
        self.assertEqual(
            [r.unsubscribe_calls for r in self.backend.registrations], [1, 1, 1, 1]
        )

    def test_close_before_children_report(self) -> None:
        """Closing with child updates still queued drops them."""
        join(self.backend, "c1")
        stream = self.service.my_competitions()
        stream.start()
        stream.close()
        with self.assertRaises(StopIteration):
            next(stream)

    def test_signed_out_user_gets_empty_stream(self) -> None:
        """Without an identity the stream yields {} and ends."""
        service = make_service(self.backend, user_id=None)
        stream = service.my_competitions()
        self.assertIsInstance(stream, EmptyStream)
        self.assertEqual(list(stream), [{}])

    def test_dropped_stream_releases_listeners(self) -> None:
        """A stream dropped without close() cancels everything once collected."""
        join(self.backend, "c1")
        join(self.backend, "c2")
        stream = self.service.my_competitions()
        next_snapshot(stream)
        self.assertEqual(self.backend.open_listeners, 3)

        del stream
        gc.collect()
        self.assertEqual(self.backend.open_listeners, 0)
        self.assertEqual(self.tracker.open_count, 0)

    def test_child_count_over_random_membership_changes(self) -> None:
        """Every membership step leaves exactly one child per competition."""
        competition_ids = [f"m{i}" for i in range(8)]
        for competition_id in competition_ids:
            self.backend.set(f"competitions/{competition_id}", competition_data())

        for seed in range(5):
            with self.subTest(seed=seed):
                rng = random.Random(seed)
                members: set[str] = set()
                with self.service.my_competitions() as stream:
                    self.assertEqual(next_snapshot(stream), {})
                    for _ in range(40):
                        competition_id = rng.choice(competition_ids)
                        if competition_id in members:
                            leave(self.backend, competition_id)
                            members.discard(competition_id)
                        else:
                            join(self.backend, competition_id)
                            members.add(competition_id)
                        expected = set(members)

                        until(stream, lambda snapshot: set(snapshot) == expected)
                        self.assertEqual(stream.keys, expected)
                        self.assertEqual(stream.child_count, len(expected))
                        self.assertEqual(self.tracker.open_count, len(expected) + 1)
                for competition_id in members:
                    leave(self.backend, competition_id)


class TestConcurrentFanout(unittest.TestCase):
    """Test case for fan-out with listeners delivering on their own threads."""

    WRITERS = 5
    PER_WRITER = 6
    STEPS = 40

    def setUp(self) -> None:
        self.backend = FakeLiveBackend(threaded=True)
        self.service = make_service(self.backend)
        self.tracker = self.service.tracker

    def tearDown(self) -> None:
        self.assertEqual(self.tracker.open_count, 0)
        self.assertEqual(self.backend.open_listeners, 0)

    def _drain(self, stream, last):
        """Apply everything the backend still has to deliver."""
        while True:
            self.backend.settle()
            before = self.backend.deliveries
            try:
                last = stream.next_snapshot(timeout=QUIET_TIMEOUT)
                continue
            except TimeoutError:
                pass
            self.backend.settle()
            if self.backend.deliveries == before:
                return last

    def _writer(self, index: int, final: dict[str, str]) -> None:
        rng = random.Random(index)
        owned = [f"w{index}-{n}" for n in range(self.PER_WRITER)]
        names = {}
        members = set()
        for step in range(self.STEPS):
            competition_id = rng.choice(owned)
            action = rng.random()
            if action < 0.3 and competition_id in names:
                name = f"{competition_id} v{step}"
                self.backend.update(f"competitions/{competition_id}", name=name)
                names[competition_id] = name
            elif competition_id in members:
                leave(self.backend, competition_id)
                members.discard(competition_id)
            else:
                if competition_id not in names:
                    names[competition_id] = competition_id
                    self.backend.set(
                        f"competitions/{competition_id}",
                        competition_data(name=competition_id),
                    )
                join(self.backend, competition_id)
                members.add(competition_id)
        final.update({c: names[c] for c in members})

    def test_racing_writers_settle_to_final_membership(self) -> None:
        """Joins, leaves and updates from many threads converge."""
        finals = [{} for _ in range(self.WRITERS)]
        writers = [
            threading.Thread(target=self._writer, args=(i, finals[i]))
            for i in range(self.WRITERS)
        ]

        with self.service.my_competitions() as stream:
            last = next_snapshot(stream)
            for writer in writers:
                writer.start()
            while any(writer.is_alive() for writer in writers):
                try:
                    last = stream.next_snapshot(timeout=QUIET_TIMEOUT)
                except TimeoutError:
                    pass
            for writer in writers:
                writer.join()
            last = self._drain(stream, last)

            expected = {}
            for final in finals:
                expected.update(final)
            self.assertEqual({k: v.name for k, v in last.items()}, expected)
            self.assertEqual(stream.keys, set(expected))
            self.assertEqual(stream.child_count, len(expected))
            self.assertEqual(self.backend.open_listeners, len(expected) + 1)
            for competition_id in expected:
                self.assertEqual(
                    self.backend.listening_to(f"competitions/{competition_id}"), 1
                )

    def test_dropped_stream_releases_listeners(self) -> None:
        """Collection cancels a stream whose listeners run on other threads."""
        for competition_id in ("c1", "c2"):
            self.backend.set(f"competitions/{competition_id}", competition_data())
            join(self.backend, competition_id)
        stream = self.service.my_competitions()
        until(stream, lambda snapshot: len(snapshot) == 2)

        del stream
        gc.collect()
        self.assertEqual(self.backend.open_listeners, 0)
        self.assertEqual(self.tracker.open_count, 0)
