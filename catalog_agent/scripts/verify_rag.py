"""
verify_rag.py — Retrieval check against the catalog index.

Embeds a query with the ingestion embedder and prints the nearest
catalog documents with their distance and stored metadata.

Run:  python -m catalog_agent.scripts.verify_rag "wooden dining chair" --k 3
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from catalog_agent.config.settings import settings
from catalog_agent.src.core.errors import CatalogAgentError
from catalog_agent.src.core.indexer import EmbeddingIndexer
from catalog_agent.src.core.providers import build_embedder
from catalog_agent.src.database.vector_store import CorpusStore, SearchHit


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="verify_rag", description="Search the catalog index and print the nearest items.")
    parser.add_argument("query", nargs="?", default="a comfortable chair for a small apartment")
    parser.add_argument("--k", type=int, default=settings.SEARCH_TOP_K)
    return parser.parse_args(argv)


async def search(indexer: EmbeddingIndexer, store: CorpusStore, query: str, k: int) -> list[SearchHit]:
    vector = await indexer.embed(query)
    return await asyncio.to_thread(store.search, vector, k)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    store = CorpusStore()
    if store.count() == 0:
        print(f"Index '{store.index_name}' is empty or missing. Run 'python -m catalog_agent.scripts.setup_db' first.")
        return 1

    print(f"Index '{store.index_name}' has {store.count()} document(s).\n")
    print(f"Query: {args.query}")
    print("=" * 60)

    try:
        hits = asyncio.run(search(EmbeddingIndexer(store, build_embedder()), store, args.query, args.k))
    except CatalogAgentError as exc:
        print(f"Search failed: {exc}")
        return 1

    for i, hit in enumerate(hits, 1):
        print(f"\n--- Result {i} ---")
        print(f"  Item:      {hit.item_id} ({hit.metadata.get('item_name', 'N/A')})")
        print(f"  Distance:  {hit.distance:.4f}")
        print(f"  Brand:     {hit.metadata.get('brand', 'N/A')}")
        print("  Text:")
        print(f"    {hit.embedding_text}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
