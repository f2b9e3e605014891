from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Set

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field


def to_millis(dt: datetime) -> datetime:
    # BSON dates only keep milliseconds
    return dt.replace(microsecond=dt.microsecond // 1000 * 1000)


def utcnow() -> datetime:
    return to_millis(datetime.now(timezone.utc))


def ensure_aware_utc(dt: datetime) -> datetime:
    # Naive datetimes are taken as UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    TERMINATED = "terminated"


class Event(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    id: str = Field(..., min_length=1)
    timestamp: datetime
    type: str
    description: str
    severity: Severity


class Violations(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    looking_away: int = Field(0, alias="lookingAway", ge=0)
    no_face_detected: int = Field(0, alias="noFaceDetected", ge=0)
    multiple_faces: int = Field(0, alias="multipleFaces", ge=0)
    suspicious_objects: int = Field(0, alias="suspiciousObjects", ge=0)


class Session(BaseModel):
    """
    One proctored interview. Mirrors the document stored in the
    `sessions` collection; `_id` is a 24-hex ObjectId string.
    """
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    id: str = Field(default_factory=lambda: str(ObjectId()), alias="_id")
    candidate_name: str = Field(..., alias="candidateName")
    candidate_email: str = Field(..., alias="candidateEmail")
    interview_title: str = Field(..., alias="interviewTitle")
    start_time: datetime = Field(default_factory=utcnow, alias="startTime")
    end_time: Optional[datetime] = Field(None, alias="endTime")
    duration: Optional[int] = None  # seconds
    events: List[Event] = Field(default_factory=list)
    violations: Violations = Field(default_factory=Violations)
    integrity_score: int = Field(100, alias="integrityScore", ge=0, le=100)
    status: SessionStatus = SessionStatus.ACTIVE.value
    video_recorded: bool = Field(False, alias="videoRecorded")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")

    def event_ids(self) -> Set[str]:
        return {e.id for e in self.events}
