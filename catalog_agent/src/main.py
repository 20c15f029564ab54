"""
Catalog Agent - Application Entry Point
========================================
FastAPI application factory.  Registers the chat routes, configures
CORS, and owns the shared resources for the process lifetime:

  • one ``AsyncIOMotorClient`` (connection pool) — pinged at startup;
    an unreachable MongoDB aborts startup.
  • one ``CorpusStore`` (LanceDB connection).
  • the embedder and chat model clients.

All of them are created in the lifespan, injected into a single
``RAGResponder`` on ``app.state``, and released on shutdown.

Run:
    uvicorn catalog_agent.src.main:app --port 8000
    python -m catalog_agent.src.main
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from catalog_agent.config.settings import settings
from catalog_agent.src.api.routes import router
from catalog_agent.src.core.errors import StorageError
from catalog_agent.src.core.rag_engine import RAGResponder
from catalog_agent.src.utils.logger import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Acquire shared resources unless a responder was injected."""
    if app.state.responder is not None:
        yield
        return

    from catalog_agent.src.core.indexer import EmbeddingIndexer
    from catalog_agent.src.core.providers import build_chat_model, build_embedder
    from catalog_agent.src.database.conversation_store import MongoConversationStore, create_mongo_client
    from catalog_agent.src.database.vector_store import CorpusStore

    client = create_mongo_client()
    try:
        conversations = MongoConversationStore.from_client(client)
        try:
            await conversations.ping()
            await conversations.ensure_indexes()
        except StorageError:
            logger.critical("Error connecting to MongoDB — refusing to start.")
            raise

        store = CorpusStore()
        indexer = EmbeddingIndexer(store, build_embedder())
        app.state.responder = RAGResponder(store, indexer, conversations, build_chat_model())
        logger.info("Catalog agent ready (index '%s', %d document(s)).", store.index_name, store.count())
        yield
    finally:
        app.state.responder = None
        client.close()
        logger.info("MongoDB client closed.")


def create_app(responder: RAGResponder | None = None) -> FastAPI:
    """Build the FastAPI app.  Pass *responder* to skip resource setup (tests)."""
    app = FastAPI(title="Catalog Agent", lifespan=lifespan)
    app.state.responder = responder
    app.add_middleware(CORSMiddleware, allow_origins=settings.CORS_ORIGINS, allow_methods=["*"], allow_headers=["*"])
    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run("catalog_agent.src.main:app", host="0.0.0.0", port=settings.PORT)


if __name__ == "__main__":
    run()
