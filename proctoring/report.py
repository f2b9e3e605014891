from typing import Dict, Optional

from .models import Session, Severity, Violations
from .schemas import CandidateInfo, ReportResponse, SessionDetails, ViolationSummary
from .violations import ViolationKind


# Points deducted per incident
VIOLATION_WEIGHTS: Dict[ViolationKind, int] = {
    ViolationKind.LOOKING_AWAY: 5,
    ViolationKind.NO_FACE_DETECTED: 10,
    ViolationKind.MULTIPLE_FACES: 15,
    ViolationKind.SUSPICIOUS_OBJECTS: 20,
}

MAX_SCORE = 100
PASS_THRESHOLD = 80
REVIEW_THRESHOLD = 60


def summarize_violations(violations: Violations) -> Dict[ViolationKind, int]:
    return {kind: getattr(violations, kind.value) for kind in ViolationKind}


def compute_integrity_score(violations: Violations) -> int:
    """Recompute the score from the full counter set."""
    score = MAX_SCORE
    for kind, count in summarize_violations(violations).items():
        score -= count * VIOLATION_WEIGHTS[kind]
    return max(0, score)


def total_violations(violations: Violations) -> int:
    return sum(summarize_violations(violations).values())


def format_duration(duration: Optional[int]) -> str:
    if duration is None:
        return "N/A"
    return f"{duration // 60}m {duration % 60}s"


def recommendation_for(score: int) -> str:
    if score >= PASS_THRESHOLD:
        return "PASS"
    if score >= REVIEW_THRESHOLD:
        return "REVIEW"
    return "FAIL"


def generate_report(session: Session) -> ReportResponse:
    """
    Build the read-only report for a session in any status.
    Informational events are left out; the rest keep their arrival order.
    """
    v = session.violations
    return ReportResponse(
        session_id=session.id,
        candidate_info=CandidateInfo(
            name=session.candidate_name,
            email=session.candidate_email,
            interview_title=session.interview_title,
        ),
        session_details=SessionDetails(
            start_time=session.start_time,
            end_time=session.end_time,
            duration=session.duration,
            duration_formatted=format_duration(session.duration),
        ),
        violations=ViolationSummary(
            looking_away=v.looking_away,
            no_face_detected=v.no_face_detected,
            multiple_faces=v.multiple_faces,
            suspicious_objects=v.suspicious_objects,
            total=total_violations(v),
        ),
        events=[e for e in session.events if e.severity != Severity.INFO],
        integrity_score=session.integrity_score,
        recommendation=recommendation_for(session.integrity_score),
        video_recorded=session.video_recorded,
        status=session.status,
    )
