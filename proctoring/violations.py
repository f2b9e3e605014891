from enum import Enum
from typing import Optional, Tuple

from .models import Violations


VIOLATION_EVENT_TYPE = "violation"


class ViolationKind(str, Enum):
    LOOKING_AWAY = "looking_away"
    NO_FACE_DETECTED = "no_face_detected"
    MULTIPLE_FACES = "multiple_faces"
    SUSPICIOUS_OBJECTS = "suspicious_objects"


# Checked in order, first match wins. Matching is case-sensitive.
VIOLATION_RULES: Tuple[Tuple[str, ViolationKind], ...] = (
    ("looking away", ViolationKind.LOOKING_AWAY),
    ("No face detected", ViolationKind.NO_FACE_DETECTED),
    ("Multiple faces", ViolationKind.MULTIPLE_FACES),
    ("Suspicious objects", ViolationKind.SUSPICIOUS_OBJECTS),
)


def classify_violation(event_type: str, description: str) -> Optional[ViolationKind]:
    """Return the violation category an event counts towards, or None."""
    if event_type != VIOLATION_EVENT_TYPE or not description:
        return None
    for phrase, kind in VIOLATION_RULES:
        if phrase in description:
            return kind
    return None


def record_violation(violations: Violations, kind: ViolationKind) -> None:
    # ViolationKind values double as Violations attribute names
    setattr(violations, kind.value, getattr(violations, kind.value) + 1)
