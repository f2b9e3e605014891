"""
Detection Monitor - turns raw detector observations into session events

The face and object detectors run elsewhere (in the browser); this module
holds the rules that decide when their output becomes an event, plus the
outgoing queue that batches events for the bulk ingestion endpoint.
"""

import logging
import math
import random
import string
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from .models import Event, Severity, utcnow

logger = logging.getLogger(__name__)

NO_FACE_THRESHOLD = timedelta(seconds=10)
LOOKING_AWAY_THRESHOLD = timedelta(seconds=5)
OFF_CENTER_RATIO = 0.3

SUSPICIOUS_CLASSES = ("cell phone", "book", "laptop", "tablet", "remote", "keyboard")
OBJECT_SCORE_THRESHOLD = 0.5

_ID_ALPHABET = string.digits + string.ascii_lowercase


def make_event_id(now: datetime, rng: Optional[random.Random] = None) -> str:
    """Client-style event id: epoch milliseconds plus 9 base36 characters."""
    rng = rng or random
    suffix = "".join(rng.choice(_ID_ALPHABET) for _ in range(9))
    return f"{int(now.timestamp() * 1000)}-{suffix}"


def is_off_center(face_box: Sequence[float], frame_width: float, frame_height: float) -> bool:
    """
    face_box is (x1, y1, x2, y2) in pixels. A face counts as off center when
    its center is further from the frame center than 30% of the shorter side.
    """
    x1, y1, x2, y2 = face_box
    face_cx, face_cy = (x1 + x2) / 2, (y1 + y2) / 2
    distance = math.hypot(face_cx - frame_width / 2, face_cy - frame_height / 2)
    return distance > min(frame_width, frame_height) * OFF_CENTER_RATIO


class EventQueue:
    """Pending events waiting to be sent; only `flush` empties it."""

    def __init__(self) -> None:
        self._pending: List[Event] = []

    def push(self, event: Event) -> None:
        self._pending.append(event)

    @property
    def pending(self) -> List[Event]:
        return list(self._pending)

    def __len__(self) -> int:
        return len(self._pending)

    def flush(self, send: Callable[[List[Event]], Any]) -> int:
        """
        Hand every pending event to `send` in one batch. If `send` raises, the
        batch goes back in front of anything queued meanwhile and the error
        propagates.
        """
        if not self._pending:
            return 0
        batch, self._pending = self._pending, []
        try:
            send(batch)
        except Exception:
            self._pending = batch + self._pending
            raise
        return len(batch)


class _Streak:
    """How long a condition has held, and whether it was already reported."""

    def __init__(self) -> None:
        self.since: Optional[datetime] = None
        self.reported = False

    def update(self, active: bool, now: datetime, threshold: timedelta) -> bool:
        if not active:
            self.since = None
            self.reported = False
            return False
        if self.since is None:
            self.since = now
        if not self.reported and now - self.since >= threshold:
            self.reported = True
            return True
        return False


class DetectionMonitor:
    """
    Session-scoped detection state. Every observation is stamped with the
    injected clock, so streak thresholds are testable without waiting.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = utcnow,
        queue: Optional[EventQueue] = None,
        id_factory: Callable[[datetime], str] = make_event_id,
    ) -> None:
        self.clock = clock
        self.queue = queue if queue is not None else EventQueue()
        self.id_factory = id_factory
        self.face_count = 0
        self._no_face = _Streak()
        self._looking_away = _Streak()
        self._multiple_faces = False

    def _emit(self, event_type: str, description: str, severity: Severity) -> Event:
        now = self.clock()
        event = Event(
            id=self.id_factory(now),
            timestamp=now,
            type=event_type,
            description=description,
            severity=severity,
        )
        self.queue.push(event)
        if event_type == "violation":
            logger.warning("Violation detected: %s", description)
        return event

    def system_event(self, description: str, severity: Severity = Severity.INFO) -> Event:
        return self._emit("system", description, severity)

    def observe_faces(self, face_count: int, off_center: bool = False) -> List[Event]:
        """
        Feed one face-detector result. `off_center` refers to the first face
        and is ignored when no face is visible.
        """
        now = self.clock()
        self.face_count = face_count
        events = []

        if self._no_face.update(face_count == 0, now, NO_FACE_THRESHOLD):
            events.append(self._emit("violation", "No face detected for >10 seconds", Severity.ERROR))

        # One event per multi-face streak
        if face_count > 1 and not self._multiple_faces:
            events.append(
                self._emit("violation", f"Multiple faces detected ({face_count})", Severity.WARNING)
            )
        self._multiple_faces = face_count > 1

        away = face_count > 0 and off_center
        if self._looking_away.update(away, now, LOOKING_AWAY_THRESHOLD):
            events.append(
                self._emit("violation", "Candidate looking away for >5 seconds", Severity.WARNING)
            )
        return events

    def observe_objects(self, detections: Iterable[Dict[str, Any]]) -> List[Event]:
        """
        Feed one object-detector result, a list of {"class": str, "score": float}.
        """
        names = [
            d["class"]
            for d in detections
            if d.get("class") in SUSPICIOUS_CLASSES and d.get("score", 0.0) > OBJECT_SCORE_THRESHOLD
        ]
        if not names:
            return []
        return [
            self._emit("violation", f"Suspicious objects detected: {', '.join(names)}", Severity.ERROR)
        ]

    def flush(self, send: Callable[[List[Event]], Any]) -> int:
        return self.queue.flush(send)
