"""
Catalog Agent - Model Providers
================================
Factories for the two black-box model services, plus the structural
types the rest of the code depends on.

Both the ingestion script and the chat server build their embedder via
``build_embedder()`` so query and corpus vectors always come from the
same model.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from catalog_agent.config.settings import settings
from catalog_agent.src.utils.logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class Embedder(Protocol):
    """Anything that can produce embedding vectors from text (LangChain ``Embeddings``)."""

    def embed_documents(self, texts: list[str]) -> list[list[float]]: ...

    def embed_query(self, text: str) -> list[float]: ...

    async def aembed_query(self, text: str) -> list[float]: ...


@runtime_checkable
class ChatModel(Protocol):
    """Anything with LangChain's async ``ainvoke`` (chat models, runnables)."""

    async def ainvoke(self, input: Any, config: Any = None, **kwargs: Any) -> Any: ...


def build_embedder() -> Embedder:
    """Create the Gemini embedding client configured in settings."""
    from langchain_google_genai import GoogleGenerativeAIEmbeddings

    embedder = GoogleGenerativeAIEmbeddings(model=settings.EMBEDDING_MODEL, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
    logger.info("Embedder initialised: %s", settings.EMBEDDING_MODEL)
    return embedder


def build_chat_model(temperature: float | None = None) -> ChatModel:
    """Create the Gemini chat model via LangChain."""
    from langchain_google_genai import ChatGoogleGenerativeAI

    temperature = settings.LLM_TEMPERATURE if temperature is None else temperature
    llm = ChatGoogleGenerativeAI(model=settings.LLM_MODEL, temperature=temperature, google_api_key=settings.GOOGLE_API_KEY.get_secret_value(), timeout=settings.EXTERNAL_CALL_TIMEOUT)
    logger.info("LLM initialised: %s (temperature=%.1f)", settings.LLM_MODEL, temperature)
    return llm


def message_text(response: Any) -> str:
    """Extract plain text from a LangChain message (or anything printable)."""
    content = response.content if hasattr(response, "content") else response
    if isinstance(content, list):
        # Gemini may return content blocks: [{"type": "text", "text": ...}, ...]
        return "".join(part.get("text", "") if isinstance(part, dict) else str(part) for part in content)
    return str(content)
