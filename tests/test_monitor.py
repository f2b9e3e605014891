"""
Tests for the detection monitor and outgoing event queue
"""
import random
import re

import pytest

from conftest import FakeClock
from proctoring.models import Session
from proctoring.monitor import (
    DetectionMonitor,
    EventQueue,
    is_off_center,
    make_event_id,
)
from proctoring.sessions import append_events_bulk


@pytest.fixture
def monitor(clock):
    counter = iter(range(1000))
    return DetectionMonitor(clock=clock, id_factory=lambda now: f"ev-{next(counter)}")


class TestNoFace:
    """No-face streaks"""

    def test_reports_once_after_ten_seconds(self, monitor, clock):
        assert monitor.observe_faces(0) == []
        clock.advance(9.5)
        assert monitor.observe_faces(0) == []
        reported_at = clock.advance(0.5)
        events = monitor.observe_faces(0)
        clock.advance(20)
        assert monitor.observe_faces(0) == []

        assert len(events) == 1
        assert events[0].description == "No face detected for >10 seconds"
        assert events[0].severity == "error"
        assert events[0].timestamp == reported_at

    def test_face_returning_resets_streak(self, monitor, clock):
        monitor.observe_faces(0)
        clock.advance(8)
        monitor.observe_faces(1)
        clock.advance(1)
        monitor.observe_faces(0)
        clock.advance(8)

        assert monitor.observe_faces(0) == []


class TestLookingAway:
    """Off-center face streaks"""

    def test_reports_after_five_seconds(self, monitor, clock):
        monitor.observe_faces(1, off_center=True)
        clock.advance(5)
        events = monitor.observe_faces(1, off_center=True)

        assert [e.description for e in events] == ["Candidate looking away for >5 seconds"]

    def test_ignored_without_face(self, monitor, clock):
        monitor.observe_faces(0, off_center=True)
        clock.advance(6)

        assert monitor.observe_faces(0, off_center=True) == []


class TestMultipleFaces:
    """Multiple-face detection"""

    def test_once_per_streak(self, monitor):
        first = monitor.observe_faces(2)
        again = monitor.observe_faces(3)
        monitor.observe_faces(1)
        later = monitor.observe_faces(2)

        assert [e.description for e in first] == ["Multiple faces detected (2)"]
        assert again == []
        assert len(later) == 1


class TestObjects:
    """Suspicious object filtering"""

    def test_filters_by_class_and_score(self, monitor):
        events = monitor.observe_objects([
            {"class": "cell phone", "score": 0.91},
            {"class": "person", "score": 0.99},
            {"class": "book", "score": 0.5},
            {"class": "laptop", "score": 0.62},
        ])

        assert len(events) == 1
        assert events[0].description == "Suspicious objects detected: cell phone, laptop"
        assert events[0].severity == "error"

    def test_nothing_suspicious(self, monitor):
        assert monitor.observe_objects([{"class": "person", "score": 0.99}]) == []


class TestEventQueue:
    """Explicit flush of queued events"""

    def test_flush_sends_one_batch(self, monitor):
        monitor.system_event("Camera started successfully")
        monitor.observe_faces(2)
        sent = []

        assert monitor.flush(sent.append) == 2
        assert [e.id for e in sent[0]] == ["ev-0", "ev-1"]
        assert len(monitor.queue) == 0
        assert monitor.flush(sent.append) == 0

    def test_failed_flush_requeues_in_order(self, clock):
        queue = EventQueue()
        monitor = DetectionMonitor(clock=clock, queue=queue)
        monitor.system_event("Recording started")

        def failing(batch):
            monitor.system_event("Event sync failed - will retry")
            raise ConnectionError("offline")

        with pytest.raises(ConnectionError):
            queue.flush(failing)

        assert [e.description for e in queue.pending] == [
            "Recording started",
            "Event sync failed - will retry",
        ]

    def test_flushed_events_feed_the_aggregate(self, monitor, clock):
        session = Session(candidate_name="A", candidate_email="a@example.com", interview_title="T")
        monitor.system_event("AI models loaded successfully")
        monitor.observe_faces(0)
        clock.advance(10)
        monitor.observe_faces(0)

        monitor.flush(lambda batch: append_events_bulk(session, batch))

        assert [e.description for e in session.events] == ["No face detected for >10 seconds"]
        assert session.integrity_score == 90


class TestHelpers:
    """Geometry and id helpers"""

    def test_centered_face(self):
        assert is_off_center((270, 190, 370, 290), 640, 480) is False

    def test_face_at_edge(self):
        assert is_off_center((0, 0, 100, 100), 640, 480) is True

    def test_event_id_shape(self):
        now = FakeClock().now
        event_id = make_event_id(now, random.Random(7))

        assert re.fullmatch(r"\d{13}-[0-9a-z]{9}", event_id)
        assert event_id.startswith(str(int(now.timestamp() * 1000)))
