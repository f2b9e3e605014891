import math
from datetime import datetime

from .models import Session, SessionStatus, ensure_aware_utc
from .report import compute_integrity_score


TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.TERMINATED})


def is_terminal(session: Session) -> bool:
    return session.status in TERMINAL_STATUSES


def duration_seconds(start_time: datetime, end_time: datetime) -> int:
    """Whole seconds between start and end, floored and never negative."""
    elapsed = (ensure_aware_utc(end_time) - ensure_aware_utc(start_time)).total_seconds()
    return max(0, math.floor(elapsed))


def complete(session: Session, video_recorded: bool, now: datetime) -> bool:
    """
    Move an active session to completed. Returns False without touching the
    session when it already reached a terminal status.
    """
    if is_terminal(session):
        return False
    session.end_time = now
    session.duration = duration_seconds(session.start_time, now)
    session.status = SessionStatus.COMPLETED.value
    session.video_recorded = bool(video_recorded)
    session.integrity_score = compute_integrity_score(session.violations)
    session.updated_at = now
    return True
