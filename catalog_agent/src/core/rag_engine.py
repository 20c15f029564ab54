"""
Catalog Agent - Retrieval-Augmented Responder
==============================================
Turns a user message plus the thread's stored history into a grounded
answer.

Pipeline (one invocation):
    1. RECEIVE   — normalise the message.
    2. LOAD      — full thread history from the conversation store.
    3. EMBED     — same embedder as ingestion (shared ``EmbeddingIndexer``).
    4. SEARCH    — top-K nearest catalog documents (+ optional distance cut-off).
    5. COMPOSE   — system prompt + catalog context + history + message.
    6. GENERATE  — async LLM call.
    7. APPEND    — user turn and reply, atomically.
    8. RETURN    — reply text.

Terminal states: REPLIED, or FAILED (``ChatFailedError`` with a generic
message).  Nothing is appended unless step 6 succeeded, so a failed or
cancelled generation leaves the thread exactly as it was.

Every external call is bounded by ``settings.EXTERNAL_CALL_TIMEOUT``.

Usage:
    responder = RAGResponder(store, indexer, conversations, llm)
    reply = await responder.respond("T1", "recommend a chair")
"""

from __future__ import annotations

import asyncio
import time

from langchain_core.messages import HumanMessage, SystemMessage

from catalog_agent.config.prompt_templates import GENERIC_ERROR_MESSAGE, NO_CONTEXT_BLOCK, NO_HISTORY_BLOCK, RAG_PROMPT_TEMPLATE, SYSTEM_PROMPT
from catalog_agent.config.settings import settings
from catalog_agent.src.core.errors import CatalogAgentError, ChatFailedError, StorageError, UpstreamServiceError
from catalog_agent.src.core.indexer import EmbeddingIndexer
from catalog_agent.src.core.providers import ChatModel, message_text
from catalog_agent.src.database.conversation_store import MongoConversationStore, Turn
from catalog_agent.src.database.vector_store import CorpusStore, SearchHit
from catalog_agent.src.utils.logger import get_logger
from catalog_agent.src.utils.text_utils import normalize_message

logger = get_logger(__name__)


class RAGResponder:
    """
    Parameters
    ----------
    store
        Corpus to search.
    indexer
        Provides ``embed`` — must wrap the embedder used at ingestion.
    conversations
        Thread history store.
    llm
        Chat model exposing ``ainvoke``.
    top_k, relevance_threshold, timeout
        Override the matching settings.
    """

    __slots__ = ("_store", "_indexer", "_conversations", "_llm", "_top_k", "_threshold", "_timeout")

    def __init__(self, store: CorpusStore, indexer: EmbeddingIndexer, conversations: MongoConversationStore, llm: ChatModel, top_k: int | None = None, relevance_threshold: float | None = None, timeout: float | None = None) -> None:
        self._store = store
        self._indexer = indexer
        self._conversations = conversations
        self._llm = llm
        self._top_k = settings.SEARCH_TOP_K if top_k is None else top_k
        self._threshold = relevance_threshold if relevance_threshold is not None else settings.RELEVANCE_THRESHOLD
        self._timeout = settings.EXTERNAL_CALL_TIMEOUT if timeout is None else timeout
        if self._top_k < 1 or self._timeout <= 0:
            raise ValueError(f"top_k must be >= 1 and timeout > 0, got top_k={self._top_k}, timeout={self._timeout}")


    async def respond(self, thread_id: str, message: str) -> str:
        """
        Run the full pipeline for one message.

        Raises
        ------
        ChatFailedError
            Any step failed.  The message is generic and safe to show;
            the thread history is unchanged.
        """
        try:
            return await self._respond(thread_id, message)
        except ChatFailedError:
            raise
        except CatalogAgentError as exc:
            logger.error("[RAG] Thread '%s' failed: %s", thread_id, exc)
            raise ChatFailedError(GENERIC_ERROR_MESSAGE) from exc
        except Exception as exc:
            logger.exception("[RAG] Unexpected failure in thread '%s'.", thread_id)
            raise ChatFailedError(GENERIC_ERROR_MESSAGE) from exc


    async def _respond(self, thread_id: str, message: str) -> str:
        t_start = time.perf_counter()

        # ── 1. Receive ────────────────────────────────────────────────
        question = normalize_message(message)
        if not question:
            logger.warning("[RAG] Thread '%s': empty message rejected.", thread_id)
            raise ChatFailedError(GENERIC_ERROR_MESSAGE)

        # ── 2. Load history ───────────────────────────────────────────
        t_history = time.perf_counter()
        history = await self._conversations.load(thread_id)
        history_ms = (time.perf_counter() - t_history) * 1000
        logger.info("[RAG] Thread '%s': %d prior turn(s) loaded in %.1fms", thread_id, len(history), history_ms)

        # ── 3. Embed ──────────────────────────────────────────────────
        t_search = time.perf_counter()
        query_vector = await self._indexer.embed(question)

        # ── 4. Search ─────────────────────────────────────────────────
        hits = await self._search(query_vector)
        search_ms = (time.perf_counter() - t_search) * 1000
        logger.info("[RAG] Retrieved %d item(s) in %.1fms: %s", len(hits), search_ms, [hit.item_id for hit in hits])

        # ── 5. Compose ────────────────────────────────────────────────
        messages = self.compose_messages(question, hits, history)

        # ── 6. Generate ───────────────────────────────────────────────
        t_llm = time.perf_counter()
        answer = await self._generate(messages)
        llm_ms = (time.perf_counter() - t_llm) * 1000
        logger.info("[RAG] LLM response: %.1fms (%d chars)", llm_ms, len(answer))

        # ── 7. Append ─────────────────────────────────────────────────
        await self._conversations.append_many(thread_id, [Turn(role="user", content=question), Turn(role="assistant", content=answer)])

        # ── 8. Return ─────────────────────────────────────────────────
        total_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[RAG] Pipeline total: %.1fms (history=%.1f, search=%.1f, llm=%.1f)", total_ms, history_ms, search_ms, llm_ms)
        return answer


    async def _search(self, query_vector: list[float]) -> list[SearchHit]:
        try:
            hits = await asyncio.wait_for(asyncio.to_thread(self._store.search, query_vector, self._top_k), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise StorageError("vector search timed out") from exc

        if self._threshold is None:
            return hits
        kept = [hit for hit in hits if hit.distance <= self._threshold]
        logger.debug("[RAG] %d/%d hit(s) within distance %.3f.", len(kept), len(hits), self._threshold)
        return kept


    async def _generate(self, messages: list) -> str:
        try:
            response = await asyncio.wait_for(self._llm.ainvoke(messages), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise UpstreamServiceError("LLM call timed out") from exc
        except Exception as exc:
            raise UpstreamServiceError(f"LLM call failed: {type(exc).__name__}") from exc

        answer = message_text(response).strip()
        if not answer:
            raise UpstreamServiceError("LLM returned an empty answer")
        return answer

    # ══════════════════════════════════════════════════════════════════
    #  PROMPT FORMATTING
    # ══════════════════════════════════════════════════════════════════

    @classmethod
    def compose_messages(cls, question: str, hits: list[SearchHit], history: list[Turn]) -> list:
        """Build the ``[SystemMessage, HumanMessage]`` pair sent to the model."""
        prompt = RAG_PROMPT_TEMPLATE.format(context=cls._format_context(hits), history=cls._format_history(history), question=question)
        return [SystemMessage(content=SYSTEM_PROMPT), HumanMessage(content=prompt)]


    @staticmethod
    def _format_context(hits: list[SearchHit]) -> str:
        """Numbered catalog blocks with item id and distance."""
        if not hits:
            return NO_CONTEXT_BLOCK

        blocks: list[str] = []
        for i, hit in enumerate(hits, 1):
            blocks.append(f"[{i}] Item: {hit.item_id} (distance: {hit.distance:.4f})\n{hit.embedding_text}")
        return "\n\n".join(blocks)


    @staticmethod
    def _format_history(turns: list[Turn]) -> str:
        if not turns:
            return NO_HISTORY_BLOCK
        return "\n".join(f"{'User' if turn.role == 'user' else 'Assistant'}: {turn.content}" for turn in turns)
