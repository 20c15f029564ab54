"""EmbeddingIndexer tests."""

import asyncio
import json

import pytest
from langchain_core.embeddings import DeterministicFakeEmbedding

from conftest import make_record_dict

from catalog_agent.src.core.errors import IndexStateError, UpstreamServiceError
from catalog_agent.src.core.indexer import EmbeddingIndexer
from catalog_agent.src.core.schema import parse_records
from catalog_agent.src.core.summary import compile_summary


class FlakyEmbedder(DeterministicFakeEmbedding):
    """Fails for any text mentioning 'Broken'."""

    async def aembed_query(self, text):
        if "Broken" in text:
            raise RuntimeError("quota exceeded")
        return await super().aembed_query(text)


def _records(*names):
    items = [make_record_dict(item_id=f"item-{i}", item_name=name) for i, name in enumerate(names, 1)]
    return list(parse_records(json.dumps(items)).records)


class TestEmbed:
    def test_same_text_same_vector(self, indexer):
        first = asyncio.run(indexer.embed("oak chair"))
        second = asyncio.run(indexer.embed("oak chair"))
        assert first == second
        assert len(first) == 768

    def test_failure_becomes_upstream_error(self, store):
        indexer = EmbeddingIndexer(store, FlakyEmbedder(size=768))
        with pytest.raises(UpstreamServiceError):
            asyncio.run(indexer.embed("Broken lamp"))


class TestIndexRecord:
    def test_document_matches_summary(self, indexer, store, oak_chair, embedder):
        doc = asyncio.run(indexer.index_record(oak_chair))
        assert doc.item_id == "item-1"
        assert doc.embedding_text == compile_summary(oak_chair)
        assert doc.vector == embedder.embed_query(doc.embedding_text)
        assert doc.metadata["brand"] == "WoodCo"
        assert store.count() == 1


class TestIndexRecords:
    def test_all_indexed_in_order(self, indexer, store):
        report = asyncio.run(indexer.index_records(_records("Oak Chair", "Pine Table", "Sofa")))
        assert report.indexed == ["item-1", "item-2", "item-3"]
        assert report.failed == {}
        assert store.count() == 3

    def test_failure_skips_only_that_record(self, store):
        indexer = EmbeddingIndexer(store, FlakyEmbedder(size=768))
        report = asyncio.run(indexer.index_records(_records("Oak Chair", "Broken Lamp", "Sofa")))
        assert report.indexed == ["item-1", "item-3"]
        assert list(report.failed) == ["item-2"]
        assert report.total == 3
        assert store.count() == 2

    def test_fail_fast_stops_batch(self, store):
        indexer = EmbeddingIndexer(store, FlakyEmbedder(size=768))
        with pytest.raises(UpstreamServiceError):
            asyncio.run(indexer.index_records(_records("Oak Chair", "Broken Lamp", "Sofa"), fail_fast=True))
        assert store.count() == 1

    def test_wrong_dimension_aborts_batch(self, store):
        indexer = EmbeddingIndexer(store, DeterministicFakeEmbedding(size=8))
        with pytest.raises(IndexStateError):
            asyncio.run(indexer.index_records(_records("Oak Chair", "Pine Table")))
        assert store.count() == 0

    def test_missing_index_aborts_batch(self, store, embedder):
        store.drop_index()
        indexer = EmbeddingIndexer(store, embedder)
        with pytest.raises(IndexStateError):
            asyncio.run(indexer.index_records(_records("Oak Chair")))

    def test_non_positive_timeout_rejected(self, store, embedder):
        with pytest.raises(ValueError):
            EmbeddingIndexer(store, embedder, timeout=0)


class TestRoundTrip:
    def test_record_found_by_its_own_summary(self, indexer, store, catalog_json):
        records = list(parse_records(catalog_json).records)
        asyncio.run(indexer.index_records(records))
        for record in records:
            vector = asyncio.run(indexer.embed(compile_summary(record)))
            assert record.item_id in [hit.item_id for hit in store.search(vector, k=1)]
