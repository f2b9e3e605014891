import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

import uvicorn
from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .database import CORS_ORIGINS, LOG_LEVEL, client, sessions_collection
from .errors import ProctoringError
from .models import Session
from .schemas import (
    ApiResponse,
    BulkEventsRequest,
    CreateSessionRequest,
    EndSessionRequest,
    LogEventRequest,
)
from .service import ProctoringService, SessionLocks
from .store import SessionStore

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Shared by every request so writers to one session queue behind each other
session_locks = SessionLocks()


def get_store() -> SessionStore:
    return SessionStore(sessions_collection)


def get_service(store: SessionStore = Depends(get_store)) -> ProctoringService:
    return ProctoringService(store, locks=session_locks)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await get_store().create_indexes()
    logger.info("Session indexes ready")
    yield
    client.close()


app = FastAPI(title="Proctoring Backend", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def envelope(data: Any = None, message: str = "", success: bool = True) -> dict:
    body = {"success": success, "message": message}
    if data is not None:
        body["data"] = data
    return body


def dump_session(session: Session) -> dict:
    return session.model_dump(mode="json", by_alias=True)


@app.exception_handler(ProctoringError)
async def proctoring_error_handler(request: Request, exc: ProctoringError):
    return JSONResponse(status_code=exc.status_code, content=envelope(message=exc.message, success=False))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content=envelope(message=message, success=False))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    return JSONResponse(status_code=500, content=envelope(message=str(exc), success=False))


@app.post("/api/sessions", response_model=ApiResponse, status_code=201)
async def create_session(payload: CreateSessionRequest, service: ProctoringService = Depends(get_service)):
    session = await service.create_session(
        payload.candidate_name, payload.candidate_email, payload.interview_title
    )
    return envelope(dump_session(session), "Session created successfully")


@app.get("/api/sessions", response_model=ApiResponse)
async def list_sessions(
    page: int = Query(1),
    limit: int = Query(10),
    status: Optional[str] = Query(None),
    service: ProctoringService = Depends(get_service),
):
    result = await service.list_sessions(page=page, limit=limit, status=status)
    result["sessions"] = [dump_session(s) for s in result["sessions"]]
    return envelope(result, "Sessions retrieved successfully")


@app.get("/api/sessions/{session_id}", response_model=ApiResponse)
async def get_session(session_id: str, service: ProctoringService = Depends(get_service)):
    session = await service.get_session(session_id)
    return envelope(dump_session(session), "Session retrieved successfully")


@app.post("/api/sessions/{session_id}/events", response_model=ApiResponse)
async def add_event(
    session_id: str, payload: LogEventRequest, service: ProctoringService = Depends(get_service)
):
    session = await service.append_event(session_id, payload.to_event())
    return envelope(dump_session(session), "Event added successfully")


@app.post("/api/sessions/{session_id}/events/bulk", response_model=ApiResponse)
async def bulk_add_events(
    session_id: str, payload: BulkEventsRequest, service: ProctoringService = Depends(get_service)
):
    events = [e.to_event() for e in payload.events] if payload.events else None
    applied, session = await service.append_events_bulk(session_id, events)
    message = f"{applied} events added successfully" if applied else "No new events to add"
    return envelope({"appliedCount": applied, "session": dump_session(session)}, message)


@app.put("/api/sessions/{session_id}/end", response_model=ApiResponse)
async def end_session(
    session_id: str,
    payload: Optional[EndSessionRequest] = None,
    service: ProctoringService = Depends(get_service),
):
    video_recorded = payload.video_recorded if payload else False
    already_ended, session = await service.end_session(session_id, video_recorded)
    message = "Session already ended" if already_ended else "Session ended successfully"
    return envelope(dump_session(session), message)


@app.get("/api/sessions/{session_id}/report", response_model=ApiResponse)
async def get_report(session_id: str, service: ProctoringService = Depends(get_service)):
    report = await service.get_report(session_id)
    return envelope(report.model_dump(mode="json", by_alias=True), "Report generated successfully")


@app.get("/api/health", response_model=ApiResponse)
async def health(store: SessionStore = Depends(get_store)):
    try:
        mongo_ok = await store.ping()
        mongo_error = None
    except Exception as e:
        mongo_ok, mongo_error = False, str(e)
    data = {"status": "ok" if mongo_ok else "degraded", "mongo": mongo_ok}
    if mongo_error:
        data["mongoError"] = mongo_error
    return envelope(data, "Proctoring backend running")


@app.get("/")
def root():
    return {"status": "ok", "message": "Proctoring backend running"}


if __name__ == "__main__":
    uvicorn.run("proctoring.main:app", host="0.0.0.0", port=5000, reload=True)
