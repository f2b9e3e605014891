import asyncio
import logging
import math
import re
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Tuple

from . import sessions
from .errors import InternalError, NotFoundError, ProctoringError, ValidationError
from .lifecycle import is_terminal
from .models import Event, Session, SessionStatus, to_millis, utcnow
from .report import generate_report
from .schemas import ReportResponse
from .store import SessionStore

logger = logging.getLogger(__name__)

SESSION_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")
MAX_PAGE_SIZE = 100


def validate_session_id(session_id: Optional[str]) -> str:
    if not session_id or not SESSION_ID_PATTERN.match(session_id):
        raise ValidationError("Invalid session ID format")
    return session_id


class SessionLocks:
    """One asyncio.Lock per session id; writers to a session run one at a time."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        key = session_id.lower()
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class ProctoringService:
    """
    Session operations exposed by the API. Each write loads the aggregate,
    mutates it and saves it back while holding that session's lock.
    """

    def __init__(
        self,
        store: SessionStore,
        locks: Optional[SessionLocks] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.locks = locks or SessionLocks()
        self.clock = clock

    async def _load(self, session_id: str) -> Session:
        session = await self.store.get(validate_session_id(session_id))
        if session is None:
            raise NotFoundError("Session not found")
        return session

    def _now(self) -> datetime:
        return to_millis(self.clock())

    async def create_session(
        self, candidate_name: str, candidate_email: str, interview_title: str
    ) -> Session:
        session = sessions.create_session(
            candidate_name, candidate_email, interview_title, now=self._now()
        )
        await self.store.insert(session)
        logger.info("Session %s created for %s", session.id, session.candidate_email)
        return session

    async def get_session(self, session_id: str) -> Session:
        return await self._load(session_id)

    async def list_sessions(
        self, page: int = 1, limit: int = 10, status: Optional[str] = None
    ) -> Dict[str, Any]:
        if page < 1:
            raise ValidationError("page must be >= 1")
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        if status is not None and status not in {s.value for s in SessionStatus}:
            raise ValidationError(f"Unknown status: {status}")

        items = await self.store.list_page(status, skip=(page - 1) * limit, limit=limit)
        total = await self.store.count(status)
        return {
            "sessions": items,
            "totalPages": math.ceil(total / limit),
            "currentPage": page,
            "total": total,
        }

    async def append_event(self, session_id: str, event: Event) -> Session:
        validate_session_id(session_id)
        async with self.locks.hold(session_id):
            session = await self._load(session_id)
            sessions.append_event(session, event)
            await self.store.save(session)
        return session

    async def append_events_bulk(
        self, session_id: str, events: Optional[List[Event]]
    ) -> Tuple[int, Session]:
        if not events:
            raise ValidationError("Events array is required and must not be empty")
        validate_session_id(session_id)
        async with self.locks.hold(session_id):
            session = await self._load(session_id)
            applied = sessions.append_events_bulk(session, events)
            if applied:
                await self.store.save(session)
        logger.info("Bulk ingest for %s: %d of %d events applied", session_id, applied, len(events))
        return applied, session

    async def end_session(self, session_id: str, video_recorded: bool = False) -> Tuple[bool, Session]:
        """Returns (already_ended, session)."""
        validate_session_id(session_id)
        try:
            async with self.locks.hold(session_id):
                session = await self._load(session_id)
                if is_terminal(session):
                    return True, session
                sessions.end_session(session, video_recorded, now=self._now())
                await self.store.save(session)
        except ProctoringError:
            raise
        except Exception as e:
            logger.exception("Error ending session %s", session_id)
            raise InternalError(f"Failed to end session: {e}") from e
        return False, session

    async def get_report(self, session_id: str) -> ReportResponse:
        return generate_report(await self._load(session_id))
