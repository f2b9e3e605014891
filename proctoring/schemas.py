from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import Event, SessionStatus, Severity, ensure_aware_utc, to_millis


class CreateSessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    candidate_name: str = Field(..., alias="candidateName")
    candidate_email: str = Field(..., alias="candidateEmail")
    interview_title: str = Field(..., alias="interviewTitle")


class LogEventRequest(BaseModel):
    id: str = Field(..., min_length=1)
    timestamp: datetime
    type: str
    description: str
    severity: Severity

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        # Same shape the value has after a round trip through MongoDB
        return to_millis(ensure_aware_utc(v))

    def to_event(self) -> Event:
        return Event(
            id=self.id,
            timestamp=self.timestamp,
            type=self.type,
            description=self.description,
            severity=self.severity,
        )


class BulkEventsRequest(BaseModel):
    # Optional so that a missing array is reported with the same message as an empty one
    events: Optional[List[LogEventRequest]] = None


class EndSessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    video_recorded: bool = Field(False, alias="videoRecorded")


class ApiResponse(BaseModel):
    success: bool
    data: Optional[Any] = None
    message: str


class CandidateInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    email: str
    interview_title: str = Field(..., alias="interviewTitle")


class SessionDetails(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start_time: datetime = Field(..., alias="startTime")
    end_time: Optional[datetime] = Field(None, alias="endTime")
    duration: Optional[int] = None
    duration_formatted: str = Field(..., alias="durationFormatted")


class ViolationSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    looking_away: int = Field(..., alias="lookingAway")
    no_face_detected: int = Field(..., alias="noFaceDetected")
    multiple_faces: int = Field(..., alias="multipleFaces")
    suspicious_objects: int = Field(..., alias="suspiciousObjects")
    total: int


class ReportResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    session_id: str = Field(..., alias="sessionId")
    candidate_info: CandidateInfo = Field(..., alias="candidateInfo")
    session_details: SessionDetails = Field(..., alias="sessionDetails")
    violations: ViolationSummary
    events: List[Event]
    integrity_score: int = Field(..., alias="integrityScore")
    recommendation: str
    video_recorded: bool = Field(..., alias="videoRecorded")
    status: SessionStatus
