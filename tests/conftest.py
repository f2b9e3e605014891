"""
Pytest Configuration for Proctoring Backend Tests
"""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from proctoring.models import Event, Session
from proctoring.store import SessionStore, from_document, to_document


class InMemorySessionStore(SessionStore):
    """SessionStore backed by a dict of documents instead of MongoDB"""

    def __init__(self):
        super().__init__(collection=None)
        self.docs: Dict[ObjectId, dict] = {}
        self.saves = 0

    async def create_indexes(self) -> None:
        return None

    async def ping(self) -> bool:
        return True

    async def insert(self, session: Session) -> None:
        self.docs[ObjectId(session.id)] = to_document(session)

    async def get(self, session_id: str) -> Optional[Session]:
        # Yield so concurrent writers interleave like they would against a real database
        await asyncio.sleep(0)
        doc = self.docs.get(ObjectId(session_id))
        return from_document(doc) if doc else None

    async def save(self, session: Session) -> None:
        await asyncio.sleep(0)
        self.saves += 1
        self.docs[ObjectId(session.id)] = to_document(session)

    def _matching(self, status: Optional[str]) -> List[dict]:
        return [d for d in self.docs.values() if not status or d["status"] == status]

    async def list_page(self, status: Optional[str], skip: int, limit: int) -> List[Session]:
        docs = sorted(self._matching(status), key=lambda d: d["createdAt"], reverse=True)
        return [from_document(d) for d in docs[skip:skip + limit]]

    async def count(self, status: Optional[str] = None) -> int:
        return len(self._matching(status))


class FakeClock:
    """Clock that only moves when told to"""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 5, 1, 9, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


def make_event(
    event_id: str,
    description: str,
    event_type: str = "violation",
    severity: str = "warning",
) -> Event:
    return Event(
        id=event_id,
        timestamp=datetime(2024, 5, 1, 9, 0, 5, tzinfo=timezone.utc),
        type=event_type,
        description=description,
        severity=severity,
    )


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client(store):
    """FastAPI test client wired to the in-memory store"""
    from proctoring.main import app, get_store

    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def candidate():
    return {
        "candidateName": "Asha Rao",
        "candidateEmail": "asha@example.com",
        "interviewTitle": "Backend Engineer - Round 1",
    }
