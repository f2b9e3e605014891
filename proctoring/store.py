from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING

from .models import Session


def to_document(session: Session) -> Dict[str, Any]:
    doc = session.model_dump(by_alias=True)
    doc["_id"] = ObjectId(session.id)
    return doc


def from_document(doc: Dict[str, Any]) -> Session:
    doc = dict(doc)
    doc["_id"] = str(doc["_id"])
    return Session.model_validate(doc)


def _status_query(status: Optional[str]) -> Dict[str, Any]:
    return {"status": status} if status else {}


class SessionStore:
    """Persists whole Session aggregates in the `sessions` collection."""

    def __init__(self, collection) -> None:
        self.collection = collection

    async def create_indexes(self) -> None:
        await self.collection.create_index([("createdAt", DESCENDING)])
        await self.collection.create_index([("status", ASCENDING), ("createdAt", DESCENDING)])

    async def ping(self) -> bool:
        await self.collection.database.command("ping")
        return True

    async def insert(self, session: Session) -> None:
        await self.collection.insert_one(to_document(session))

    async def get(self, session_id: str) -> Optional[Session]:
        doc = await self.collection.find_one({"_id": ObjectId(session_id)})
        if not doc:
            return None
        return from_document(doc)

    async def save(self, session: Session) -> None:
        await self.collection.replace_one({"_id": ObjectId(session.id)}, to_document(session))

    async def list_page(self, status: Optional[str], skip: int, limit: int) -> List[Session]:
        cursor = (
            self.collection.find(_status_query(status))
            .sort("createdAt", -1)
            .skip(skip)
            .limit(limit)
        )
        return [from_document(doc) async for doc in cursor]

    async def count(self, status: Optional[str] = None) -> int:
        return await self.collection.count_documents(_status_query(status))
