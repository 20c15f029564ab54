"""
Catalog Agent - Conversation State Store
=========================================
Durable, thread-keyed turn history backed by MongoDB via ``motor``.

Collection schema (``conversations``)::

    {
        "thread_id": str,
        "messages": [{"role": str, "content": str, "timestamp": datetime}, ...],
        "created_at": datetime,
        "updated_at": datetime
    }

Turns are append-only.  A thread document is created lazily by the
first append (upsert); an unknown thread id loads as an empty history.
The client (and its connection pool) is owned by the caller — normally
the FastAPI lifespan — and only the collection handle is injected here.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Literal, Sequence

import motor.motor_asyncio
from pydantic import BaseModel, ConfigDict, Field
from pymongo.errors import PyMongoError

from catalog_agent.config.settings import settings
from catalog_agent.src.core.errors import StorageError
from catalog_agent.src.utils.logger import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Turn(BaseModel):
    """One message in a conversation thread."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)


def create_mongo_client(uri: str | None = None) -> motor.motor_asyncio.AsyncIOMotorClient:
    """Create the process-wide async MongoDB client (one pool per process)."""
    uri = uri or settings.MONGO_URI.get_secret_value()
    timeout_ms = int(settings.EXTERNAL_CALL_TIMEOUT * 1000)
    client = motor.motor_asyncio.AsyncIOMotorClient(uri, serverSelectionTimeoutMS=timeout_ms, socketTimeoutMS=timeout_ms)
    logger.info("MongoDB async client created.")
    return client


class MongoConversationStore:
    """
    Append/load access to conversation threads.

    Parameters
    ----------
    collection
        A motor collection (or anything with the same async
        ``find_one`` / ``update_one`` / ``create_index`` API).
    timeout
        Upper bound in seconds for each database call.
    """

    __slots__ = ("_collection", "_timeout")

    def __init__(self, collection: Any, timeout: float | None = None) -> None:
        self._collection = collection
        self._timeout = settings.EXTERNAL_CALL_TIMEOUT if timeout is None else timeout
        if self._timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self._timeout}")


    @classmethod
    def from_client(cls, client: motor.motor_asyncio.AsyncIOMotorClient, db_name: str | None = None, collection_name: str | None = None) -> "MongoConversationStore":
        db = client[db_name or settings.MONGO_DB_NAME]
        return cls(db[collection_name or settings.CONVERSATION_COLLECTION])


    async def ensure_indexes(self) -> None:
        """Create the unique ``thread_id`` index (idempotent)."""
        await self._call(self._collection.create_index("thread_id", unique=True), "create_index")


    async def ping(self) -> None:
        """Round-trip to the server; raises ``StorageError`` if unreachable."""
        await self._call(self._collection.database.client.admin.command("ping"), "ping")
        logger.info("[THREAD] Successfully connected to MongoDB.")


    async def load(self, thread_id: str) -> list[Turn]:
        """Return every turn of *thread_id* in append order (``[]`` if unknown)."""
        doc = await self._call(self._collection.find_one({"thread_id": thread_id}, {"messages": 1}), "load")
        if doc is None:
            return []
        return [Turn.model_validate(message) for message in doc.get("messages", [])]


    async def append(self, thread_id: str, turn: Turn) -> None:
        """Append a single turn (creates the thread on first write)."""
        await self.append_many(thread_id, [turn])


    async def append_many(self, thread_id: str, turns: Sequence[Turn]) -> None:
        """
        Append *turns* in one atomic update.

        ``$push`` with ``$each`` writes all turns or none, so a user
        message and its reply are never split.
        """
        if not turns:
            return
        now = _utcnow()
        messages = [turn.model_dump() for turn in turns]
        await self._call(
            self._collection.update_one({"thread_id": thread_id}, {"$push": {"messages": {"$each": messages}}, "$set": {"updated_at": now}, "$setOnInsert": {"created_at": now}}, upsert=True),
            "append",
        )
        logger.debug("[THREAD] Appended %d turn(s) to '%s'.", len(messages), thread_id)


    async def _call(self, awaitable: Any, operation: str) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            logger.error("[THREAD] MongoDB %s timed out after %.1fs.", operation, self._timeout)
            raise StorageError(f"conversation store {operation} timed out") from exc
        except PyMongoError as exc:
            logger.error("[THREAD] MongoDB %s failed: %s", operation, exc)
            raise StorageError(f"conversation store {operation} failed") from exc
