"""
Catalog Agent - IngestionPipeline
==================================
Offline maintenance job that rebuilds the catalog corpus from scratch:

    reset index → clear documents → generate → validate → summarise → embed → store

Key design decisions:
    • **Dependency Injection** – receives ``CorpusStore``,
      ``EmbeddingIndexer`` and ``SyntheticDataGenerator``.
    • **Reset-before-build** – the index is dropped and recreated before
      any write so its metric and dimension are exactly as configured.
      A failure here is fatal (``IndexStateError`` propagates), as is an
      embedder whose vectors do not fit the index.
    • **Degrade, don't crash** – generation/parse failures yield zero
      records; per-record indexing failures are logged and reported.
    • **Exclusive** – must not run while the chat server reads the same
      index.

Usage:
    pipeline = IngestionPipeline(store, indexer, generator)
    summary  = await pipeline.run(count=10)
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

from catalog_agent.src.core.errors import IndexStateError
from catalog_agent.src.core.generator import SyntheticDataGenerator
from catalog_agent.src.core.indexer import EmbeddingIndexer, IndexingReport
from catalog_agent.src.database.vector_store import CorpusStore
from catalog_agent.src.utils.logger import get_logger

logger = get_logger(__name__)


class IngestionPipeline:
    """
    End-to-end corpus rebuild.

    Parameters
    ----------
    store
        The corpus store whose index will be recreated.
    indexer
        Embeds and writes records into *store*.
    generator
        Source of validated synthetic records.
    """

    def __init__(self, store: CorpusStore, indexer: EmbeddingIndexer, generator: SyntheticDataGenerator) -> None:
        self._store = store
        self._indexer = indexer
        self._generator = generator

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC ENTRY POINT
    # ══════════════════════════════════════════════════════════════════

    async def run(self, count: int | None = None, fail_fast: bool = False) -> dict[str, Any]:
        """
        Rebuild the index and ingest freshly generated records.

        Returns
        -------
        dict
            Execution summary with keys ``records_generated``,
            ``records_indexed``, ``records_failed``, ``failed``,
            ``index``, ``elapsed_seconds``.

        Raises
        ------
        IndexStateError
            The index could not be (re)created, or rejected the
            embedder's vector dimension.
        """
        t_start = time.perf_counter()

        # ── 1. Reset index ─────────────────────────────────────────────
        await self.reset_index()

        # ── 2. Generate + validate ─────────────────────────────────────
        records = await self._generator.generate(count)
        if not records:
            logger.warning("No records generated — corpus left empty.")
            return self._summary(0, IndexingReport(), time.perf_counter() - t_start)

        # ── 3. Summarise + embed + store ───────────────────────────────
        report = await self._indexer.index_records(records, fail_fast=fail_fast)

        elapsed = time.perf_counter() - t_start
        logger.info("Ingestion complete — %d generated, %d indexed, %d failed in %.2fs.", len(records), len(report.indexed), len(report.failed), elapsed)
        return self._summary(len(records), report, elapsed)


    async def reset_index(self) -> None:
        """Drop and recreate the index, then make sure it holds no documents."""
        t_reset = time.perf_counter()
        try:
            await asyncio.to_thread(self._store.create_index)
            removed = await asyncio.to_thread(self._store.delete_all)
        except IndexStateError:
            logger.error("Index reset failed — aborting ingestion.")
            raise
        logger.info("Index '%s' reset in %.1fms (%d stale document(s) removed).", self._store.index_name, (time.perf_counter() - t_reset) * 1000, removed)

    # ── Summary helper ─────────────────────────────────────────────────

    def _summary(self, generated: int, report: IndexingReport, elapsed: float) -> dict[str, Any]:
        return {
            "records_generated": generated,
            "records_indexed": len(report.indexed),
            "records_failed": len(report.failed),
            "failed": dict(report.failed),
            "index": self._store.describe_index(),
            "elapsed_seconds": round(elapsed, 2),
        }
