"""MongoConversationStore tests against an in-memory collection."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from catalog_agent.src.core.errors import StorageError
from catalog_agent.src.database.conversation_store import MongoConversationStore, Turn


class TestLoadAppend:
    def test_unknown_thread_is_empty(self, conversations):
        assert asyncio.run(conversations.load("nope")) == []

    def test_append_creates_thread(self, conversations, collection):
        asyncio.run(conversations.append("T1", Turn(role="user", content="hi")))
        doc = collection.docs["T1"]
        assert "created_at" in doc
        assert "updated_at" in doc
        assert doc["messages"][0]["content"] == "hi"

    def test_order_preserved(self, conversations):
        async def scenario():
            await conversations.append("T1", Turn(role="user", content="one"))
            await conversations.append_many("T1", [Turn(role="assistant", content="two"), Turn(role="user", content="three")])
            return await conversations.load("T1")

        turns = asyncio.run(scenario())
        assert [(t.role, t.content) for t in turns] == [("user", "one"), ("assistant", "two"), ("user", "three")]

    def test_append_many_is_single_update(self, conversations, collection):
        asyncio.run(conversations.append_many("T1", [Turn(role="user", content="q"), Turn(role="assistant", content="a")]))
        assert collection.update_calls == 1

    def test_empty_append_is_noop(self, conversations, collection):
        asyncio.run(conversations.append_many("T1", []))
        assert collection.update_calls == 0
        assert "T1" not in collection.docs

    def test_threads_are_isolated(self, conversations):
        async def scenario():
            await conversations.append("A", Turn(role="user", content="for A"))
            await conversations.append("B", Turn(role="user", content="for B"))
            return await conversations.load("A")

        assert [t.content for t in asyncio.run(scenario())] == ["for A"]

    def test_created_at_not_overwritten(self, conversations, collection):
        asyncio.run(conversations.append("T1", Turn(role="user", content="one")))
        created = collection.docs["T1"]["created_at"]
        asyncio.run(conversations.append("T1", Turn(role="user", content="two")))
        assert collection.docs["T1"]["created_at"] == created


class TestIndexesAndPing:
    def test_ensure_indexes(self, conversations, collection):
        asyncio.run(conversations.ensure_indexes())
        assert collection.indexes == [("thread_id", {"unique": True})]

    def test_ping_unreachable(self):
        collection = MagicMock()
        collection.database.client.admin.command = AsyncMock(side_effect=ServerSelectionTimeoutError("no servers"))
        store = MongoConversationStore(collection, timeout=1.0)
        with pytest.raises(StorageError):
            asyncio.run(store.ping())


class TestFailures:
    def test_driver_error_becomes_storage_error(self):
        collection = MagicMock()
        collection.find_one = AsyncMock(side_effect=ServerSelectionTimeoutError("down"))
        store = MongoConversationStore(collection, timeout=1.0)
        with pytest.raises(StorageError):
            asyncio.run(store.load("T1"))

    def test_timeout_becomes_storage_error(self):
        async def slow(*args, **kwargs):
            await asyncio.sleep(1)

        collection = MagicMock()
        collection.update_one = slow
        store = MongoConversationStore(collection, timeout=0.01)
        with pytest.raises(StorageError):
            asyncio.run(store.append("T1", Turn(role="user", content="hi")))

    def test_invalid_role_rejected(self):
        with pytest.raises(ValueError):
            Turn(role="system", content="x")
