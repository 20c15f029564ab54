"""Pytest configuration for catalog agent tests."""

import copy
import json
import os

# Settings() is instantiated at import time and needs both secrets.
os.environ.setdefault("GOOGLE_API_KEY", "test-google-key")
os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")
os.environ.setdefault("ENV", "dev")

import pytest
from langchain_core.embeddings import DeterministicFakeEmbedding
from langchain_core.messages import AIMessage

DIMENSION = 768


# ---------------------------------------------------------------------------
# Catalog records
# ---------------------------------------------------------------------------

def make_record_dict(item_id="item-1", item_name="Oak Chair", **overrides):
    record = {
        "item_id": item_id,
        "item_name": item_name,
        "item_description": "solid oak dining chair",
        "brand": "WoodCo",
        "manufacturer_address": {"street": "1 Mill Rd", "city": "Portland", "state": "OR", "postal_code": "97201", "country": "USA"},
        "prices": {"full_price": 120.0, "sale_price": 90.0},
        "categories": ["chairs", "oak"],
        "user_reviews": [{"review_date": "2024-01-01", "rating": 5, "comment": "sturdy"}],
        "notes": "limited edition",
    }
    record.update(overrides)
    return record


@pytest.fixture
def oak_chair_dict():
    return make_record_dict()


@pytest.fixture
def oak_chair(oak_chair_dict):
    from catalog_agent.src.core.schema import parse_records

    return parse_records(json.dumps(oak_chair_dict)).records[0]


@pytest.fixture
def catalog_json():
    """Model output with two valid records wrapped in the batch envelope."""
    items = [make_record_dict(), make_record_dict(item_id="item-2", item_name="Pine Table", item_description="rustic pine table", categories=["tables"])]
    return json.dumps({"items": items})


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

@pytest.fixture
def embedder():
    return DeterministicFakeEmbedding(size=DIMENSION)


@pytest.fixture
def store(tmp_path):
    """A fresh corpus store with an empty, correctly shaped index."""
    from catalog_agent.src.database.vector_store import CorpusStore

    corpus = CorpusStore(db_path=str(tmp_path / "lancedb"), index_name="test_index", metric="cosine", dimension=DIMENSION)
    corpus.create_index()
    return corpus


@pytest.fixture
def indexer(store, embedder):
    from catalog_agent.src.core.indexer import EmbeddingIndexer

    return EmbeddingIndexer(store, embedder, timeout=5.0)


class FakeCollection:
    """In-memory stand-in for a motor collection (only what the store uses)."""

    def __init__(self):
        self.docs = {}
        self.indexes = []
        self.update_calls = 0

    async def find_one(self, filter, projection=None):
        doc = self.docs.get(filter["thread_id"])
        return copy.deepcopy(doc) if doc is not None else None

    async def update_one(self, filter, update, upsert=False):
        self.update_calls += 1
        thread_id = filter["thread_id"]
        doc = self.docs.get(thread_id)
        if doc is None:
            if not upsert:
                return
            doc = {"thread_id": thread_id, **update.get("$setOnInsert", {})}
            self.docs[thread_id] = doc
        doc.update(update.get("$set", {}))
        for key, op in update.get("$push", {}).items():
            doc.setdefault(key, []).extend(copy.deepcopy(op["$each"]))

    async def create_index(self, keys, **kwargs):
        self.indexes.append((keys, kwargs))
        return keys


@pytest.fixture
def collection():
    return FakeCollection()


@pytest.fixture
def conversations(collection):
    from catalog_agent.src.database.conversation_store import MongoConversationStore

    return MongoConversationStore(collection, timeout=5.0)


# ---------------------------------------------------------------------------
# Chat models
# ---------------------------------------------------------------------------

class EchoChatModel:
    """Replies with the full prompt it received, so tests can inspect grounding."""

    def __init__(self):
        self.calls = []

    async def ainvoke(self, input, config=None, **kwargs):
        self.calls.append(input)
        return AIMessage(content="\n".join(message.content for message in input))


@pytest.fixture
def echo_llm():
    return EchoChatModel()


@pytest.fixture
def responder(store, indexer, conversations, echo_llm):
    from catalog_agent.src.core.rag_engine import RAGResponder

    return RAGResponder(store, indexer, conversations, echo_llm, top_k=5, timeout=5.0)
