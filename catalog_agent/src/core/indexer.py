"""
Catalog Agent - Embedding Indexer
==================================
Turns catalog records into ``IndexedDocument`` rows:

    CatalogRecord → compile_summary → embed → CorpusStore.upsert

The same ``embed`` coroutine serves ingestion and chat queries, so
corpus and query vectors always share one embedding space.

Writes are per record.  A failure on record *i* never touches records
already written and, unless ``fail_fast`` is set, never stops records
after it.  An ``IndexStateError`` (missing index, vector dimension
different from the index) is not per record: it aborts the batch.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Iterable

from catalog_agent.config.settings import settings
from catalog_agent.src.core.errors import CatalogAgentError, IndexStateError, StorageError, UpstreamServiceError
from catalog_agent.src.core.providers import Embedder
from catalog_agent.src.core.schema import CatalogRecord
from catalog_agent.src.core.summary import compile_summary
from catalog_agent.src.database.vector_store import CorpusStore, IndexedDocument
from catalog_agent.src.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class IndexingReport:
    """Per-record outcome of ``index_records``."""

    indexed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.indexed) + len(self.failed)


class EmbeddingIndexer:
    """
    Parameters
    ----------
    store
        Target ``CorpusStore``; its index must already exist.
    embedder
        LangChain-compatible embedder.
    timeout
        Upper bound in seconds for each embedding and write call.
    """

    __slots__ = ("_store", "_embedder", "_timeout")

    def __init__(self, store: CorpusStore, embedder: Embedder, timeout: float | None = None) -> None:
        self._store = store
        self._embedder = embedder
        self._timeout = settings.EXTERNAL_CALL_TIMEOUT if timeout is None else timeout
        if self._timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self._timeout}")


    async def embed(self, text: str) -> list[float]:
        """Embed *text*.  Raises ``UpstreamServiceError`` on failure or timeout."""
        try:
            vector = await asyncio.wait_for(self._embedder.aembed_query(text), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            logger.error("[INDEX] Embedding timed out after %.1fs.", self._timeout)
            raise UpstreamServiceError("embedding call timed out") from exc
        except Exception as exc:
            logger.error("[INDEX] Embedding failed: %s", exc)
            raise UpstreamServiceError("embedding call failed") from exc
        return list(vector)


    async def index_record(self, record: CatalogRecord) -> IndexedDocument:
        """Compile, embed and upsert one record."""
        text = compile_summary(record)
        vector = await self.embed(text)
        doc = IndexedDocument(item_id=record.item_id, embedding_text=text, vector=vector, metadata=record.to_metadata())
        try:
            await asyncio.wait_for(asyncio.to_thread(self._store.upsert, doc), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise StorageError(f"write of {record.item_id} timed out") from exc
        logger.info("[INDEX] Processed and saved record '%s'.", record.item_id)
        return doc


    async def index_records(self, records: Iterable[CatalogRecord], fail_fast: bool = False) -> IndexingReport:
        """
        Index *records* one at a time.

        Returns
        -------
        IndexingReport
            ``indexed`` lists item ids written in order; ``failed`` maps
            item ids to a short reason.

        Raises
        ------
        IndexStateError
            The index is missing or has a different vector dimension.
            Raised regardless of ``fail_fast``.
        CatalogAgentError
            Only when ``fail_fast`` is set; the first failure propagates.
        """
        report = IndexingReport()
        t_start = time.perf_counter()

        for record in records:
            try:
                await self.index_record(record)
            except IndexStateError:
                logger.error("[INDEX] Index rejected '%s', aborting batch.", record.item_id)
                raise
            except CatalogAgentError as exc:
                if fail_fast:
                    logger.error("[INDEX] Aborting batch at '%s' (fail-fast).", record.item_id)
                    raise
                logger.error("[INDEX] Skipping '%s': %s", record.item_id, exc)
                report.failed[record.item_id] = str(exc)
                continue
            report.indexed.append(record.item_id)

        elapsed_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[INDEX] Batch done — %d indexed, %d failed in %.1fms.", len(report.indexed), len(report.failed), elapsed_ms)
        return report
