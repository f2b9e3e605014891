import logging
from datetime import datetime
from typing import Iterable, Optional

from .errors import ValidationError
from .lifecycle import complete
from .models import Event, Session, utcnow
from .report import compute_integrity_score
from .violations import classify_violation, record_violation

logger = logging.getLogger(__name__)

SYSTEM_EVENT_TYPE = "system"
# Emitted by every client when its detectors finish loading; never stored
MODELS_LOADED_PHRASE = "AI models loaded"


def _strip_or_none(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    s = v.strip()
    return s or None


def create_session(
    candidate_name: str,
    candidate_email: str,
    interview_title: str,
    now: Optional[datetime] = None,
) -> Session:
    fields = {
        "candidateName": _strip_or_none(candidate_name),
        "candidateEmail": _strip_or_none(candidate_email),
        "interviewTitle": _strip_or_none(interview_title),
    }
    missing = [name for name, value in fields.items() if value is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    now = now or utcnow()
    return Session(
        candidate_name=fields["candidateName"],
        candidate_email=fields["candidateEmail"],
        interview_title=fields["interviewTitle"],
        start_time=now,
        created_at=now,
        updated_at=now,
    )


def _apply(session: Session, event: Event) -> None:
    session.events.append(event)
    kind = classify_violation(event.type, event.description)
    if kind is not None:
        record_violation(session.violations, kind)


def append_event(session: Session, event: Event) -> Session:
    """Append one event, count it if it is a violation and rescore."""
    _apply(session, event)
    session.integrity_score = compute_integrity_score(session.violations)
    session.updated_at = utcnow()
    return session


def is_models_loaded_notice(event: Event) -> bool:
    return event.type == SYSTEM_EVENT_TYPE and MODELS_LOADED_PHRASE in event.description


def append_events_bulk(session: Session, events: Iterable[Event]) -> int:
    """
    Append every event whose id is not yet in the session, skipping the
    models-loaded system notice. Returns how many events were applied.
    """
    seen = session.event_ids()
    applied = 0
    for event in events:
        if event.id in seen or is_models_loaded_notice(event):
            continue
        seen.add(event.id)
        _apply(session, event)
        applied += 1

    if applied:
        session.integrity_score = compute_integrity_score(session.violations)
        session.updated_at = utcnow()
    return applied


def end_session(session: Session, video_recorded: bool, now: Optional[datetime] = None) -> Session:
    if complete(session, video_recorded, now or utcnow()):
        logger.info(
            "Session %s completed: duration=%ss score=%s",
            session.id, session.duration, session.integrity_score,
        )
    return session
