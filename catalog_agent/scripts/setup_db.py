"""
Catalog Agent - Corpus Setup & Ingestion Script
================================================
CLI entry point that orchestrates:
    1. Load settings (fail-fast on a missing ``GOOGLE_API_KEY``).
    2. Initialise the embedder, the generator LLM and ``CorpusStore``.
    3. Run the ``IngestionPipeline`` (reset index → generate → index).
    4. Print a structured execution summary with timing breakdown.

Flags:
    --count N    Number of synthetic records to request (default from settings).
    --fail-fast  Stop at the first record that fails to index.
    --drop-only  Drop the index and exit immediately (no ingestion).

Exit status is 1 when the index cannot be (re)created or rejects the
embedding dimension.  Generation or
per-record failures are reported in the summary and do not change it.

Usage:
    python -m catalog_agent.scripts.setup_db
    python -m catalog_agent.scripts.setup_db --count 25
    python -m catalog_agent.scripts.setup_db --drop-only
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from pathlib import Path

# ── Ensure project root is importable when run directly ────────────────
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))


# ── CLI Argument Parsing ───────────────────────────────────────────────

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="setup_db", description="Catalog Agent: rebuild the vector index from freshly generated catalog records.")
    parser.add_argument("--count", type=int, default=None, help="Number of synthetic records to generate.")
    parser.add_argument("--fail-fast", action="store_true", default=False, help="Abort on the first record that fails to index.")
    parser.add_argument("--drop-only", action="store_true", default=False, help="Drop the index and exit (no ingestion).")
    return parser.parse_args(argv)


# ── Main Orchestration ─────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    t_start = time.perf_counter()

    # ── 0. Load settings + .env (timed) ────────────────────────────────
    t_settings = time.perf_counter()
    try:
        from catalog_agent.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error, check your .env file:\n")
        print(f"  {exc}")
        print()
        return 1
    settings_ms = (time.perf_counter() - t_settings) * 1000

    from catalog_agent.src.core.errors import IndexStateError
    from catalog_agent.src.utils.logger import get_logger
    logger = get_logger(__name__)

    logger.info("Settings loaded in %.1fms", settings_ms)
    _print_header(settings, settings.SYNTHETIC_RECORD_COUNT if args.count is None else args.count)

    # ── 1. Initialise model clients (timed) ────────────────────────────
    from catalog_agent.src.core.providers import build_chat_model, build_embedder

    t_models = time.perf_counter()
    try:
        embedder = build_embedder()
        llm = build_chat_model()
    except Exception:
        logger.exception("Failed to initialise model clients.")
        return 1
    models_ms = (time.perf_counter() - t_models) * 1000
    logger.info("Model clients initialised in %.1fms", models_ms)

    # ── 2. Open the corpus store (timed) ───────────────────────────────
    from catalog_agent.src.database.vector_store import CorpusStore

    t_lancedb = time.perf_counter()
    store = CorpusStore()
    lancedb_ms = (time.perf_counter() - t_lancedb) * 1000
    logger.info("LanceDB connection established in %.1fms", lancedb_ms)
    startup_ms = settings_ms + models_ms + lancedb_ms

    if args.drop_only:
        logger.warning("Dropping index '%s' as requested.", store.index_name)
        store.drop_index()
        _print_footer(None, time.perf_counter() - t_start, settings_ms, models_ms, lancedb_ms, startup_ms)
        return 0

    # ── 3. Run IngestionPipeline ───────────────────────────────────────
    from catalog_agent.src.core.generator import SyntheticDataGenerator
    from catalog_agent.src.core.indexer import EmbeddingIndexer
    from catalog_agent.src.core.ingestor import IngestionPipeline

    pipeline = IngestionPipeline(store, EmbeddingIndexer(store, embedder), SyntheticDataGenerator(llm))
    try:
        summary = asyncio.run(pipeline.run(count=args.count, fail_fast=args.fail_fast))
    except IndexStateError as exc:
        logger.error("Index setup failed: %s", exc)
        return 1

    # ── 4. Print execution summary ─────────────────────────────────────
    _print_footer(summary, time.perf_counter() - t_start, settings_ms, models_ms, lancedb_ms, startup_ms)
    return 0


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: object, count: int) -> None:
    api_key_val = settings.GOOGLE_API_KEY.get_secret_value()  # type: ignore[attr-defined]
    masked = f"****{api_key_val[-4:]}" if len(api_key_val) > 4 else "****"

    print()
    print("=" * 60)
    print("  CATALOG AGENT  Corpus Setup & Ingestion")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")                   # type: ignore[attr-defined]
    print(f"  Embedding    : {settings.EMBEDDING_MODEL}")       # type: ignore[attr-defined]
    print(f"  Generator    : {settings.LLM_MODEL}")             # type: ignore[attr-defined]
    print(f"  LanceDB path : {settings.LANCEDB_PATH}")          # type: ignore[attr-defined]
    print(f"  Index        : {settings.INDEX_NAME} ({settings.SIMILARITY_METRIC}, {settings.VECTOR_DIMENSION} dims)")  # type: ignore[attr-defined]
    print(f"  Records      : {count}")
    print(f"  API Key      : {masked}")
    print("=" * 60)
    print()


def _print_footer(summary: dict | None, elapsed: float, settings_ms: float, models_ms: float, lancedb_ms: float, startup_ms: float) -> None:
    processing_s = elapsed - (startup_ms / 1000)

    print()
    print("=" * 60)
    print("  EXECUTION SUMMARY")
    print("-" * 60)
    if summary is None:
        print("  Index dropped, no ingestion run.")
    else:
        print(f"  Records generated    : {summary['records_generated']}")
        print(f"  Records indexed      : {summary['records_indexed']}")
        print(f"  Records failed       : {summary['records_failed']}")
        for item_id, reason in summary["failed"].items():
            print(f"    - {item_id}: {reason}")
        print(f"  Documents in index   : {summary['index'].get('rows', 0)}")
    print("-" * 60)
    print("  TIMING BREAKDOWN")
    print("-" * 60)
    print(f"  Settings + .env load : {settings_ms:>8.1f}ms")
    print(f"  Model clients init   : {models_ms:>8.1f}ms")
    print(f"  LanceDB connection   : {lancedb_ms:>8.1f}ms")
    print(f"  Startup time (total) : {startup_ms:>8.1f}ms")
    print(f"  Processing time      : {processing_s:>8.2f}s")
    print(f"  Total elapsed        : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    sys.exit(main())
