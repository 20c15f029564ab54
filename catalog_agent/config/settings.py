"""
Catalog Agent - Centralized Configuration
==========================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``GOOGLE_API_KEY`` is typed as ``SecretStr`` and has **no default value**.
  If the key is missing at startup, Pydantic raises a ``ValidationError``.
  The raw value is never exposed in repr, logs, or tracebacks.
- ``MONGO_URI`` is also ``SecretStr`` — connection strings carry credentials.

Search Index
------------
``INDEX_NAME``, ``SIMILARITY_METRIC`` and ``VECTOR_DIMENSION`` together
version the vector index.  Changing any of them requires re-running the
ingestion script, which drops and recreates the index.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings.

    Fields *without* a default are **required** — the app will refuse
    to start until they are provided.

    Attributes
    ----------
    GOOGLE_API_KEY : SecretStr
        API key for Google AI Studio (Gemini chat + embeddings).  **Required.**
    MONGO_URI : SecretStr
        MongoDB connection string.  **Required.**
    MONGO_DB_NAME : str
        Database holding the conversation collection.
    CONVERSATION_COLLECTION : str
        Collection with one document per conversation thread.
    EMBEDDING_MODEL : str
        Model identifier passed to ``GoogleGenerativeAIEmbeddings``.
    LLM_MODEL, LLM_TEMPERATURE
        Chat model used for both answering and synthetic data generation.
    INDEX_NAME : str
        Name of the LanceDB table that acts as the vector search index.
    VECTOR_FIELD, TEXT_FIELD : str
        Column names for the embedding vector and its source text.
    SIMILARITY_METRIC : {"cosine", "l2", "dot"}
        Distance used by similarity search.
    VECTOR_DIMENSION : int
        Embedding length; must match ``EMBEDDING_MODEL``.
    SEARCH_TOP_K : int
        Number of catalog records retrieved per chat turn.
    RELEVANCE_THRESHOLD : float | None
        Optional maximum distance; hits farther away are discarded.
    SYNTHETIC_RECORD_COUNT : int
        Records requested from the generator during ingestion.
    EXTERNAL_CALL_TIMEOUT : float
        Upper bound (seconds) on every embedding, search, LLM and Mongo call.
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent
    LANCEDB_PATH: Path = BASE_DIR / "data" / "lancedb"

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"

    # ── API Keys (REQUIRED — no default) ───────────────────────────────
    GOOGLE_API_KEY: SecretStr

    # ── MongoDB (REQUIRED — no default) ────────────────────────────────
    MONGO_URI: SecretStr
    MONGO_DB_NAME: str = "inventory_database"
    CONVERSATION_COLLECTION: str = "conversations"

    # ── Model Configuration ────────────────────────────────────────────
    EMBEDDING_MODEL: str = "models/text-embedding-004"
    LLM_MODEL: str = "gemini-2.5-flash"
    LLM_TEMPERATURE: float = 0.7

    # ── Search Index ───────────────────────────────────────────────────
    INDEX_NAME: str = "vector_index"
    VECTOR_FIELD: str = "embedding"
    TEXT_FIELD: str = "embedding_text"
    SIMILARITY_METRIC: Literal["cosine", "l2", "dot"] = "cosine"
    VECTOR_DIMENSION: int = 768

    # ── Retrieval ──────────────────────────────────────────────────────
    SEARCH_TOP_K: int = 5
    RELEVANCE_THRESHOLD: float | None = None

    # ── Ingestion ──────────────────────────────────────────────────────
    SYNTHETIC_RECORD_COUNT: int = 10

    # ── Timeouts ───────────────────────────────────────────────────────
    EXTERNAL_CALL_TIMEOUT: float = 30.0

    # ── HTTP ───────────────────────────────────────────────────────────
    CORS_ORIGINS: list[str] = ["*"]
    PORT: int = 8000

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("VECTOR_DIMENSION", "SEARCH_TOP_K", "SYNTHETIC_RECORD_COUNT")
    @classmethod
    def _positive_int(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"value must be ≥ 1, got {v}")
        return v


    @field_validator("EXTERNAL_CALL_TIMEOUT")
    @classmethod
    def _timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"EXTERNAL_CALL_TIMEOUT must be > 0, got {v}")
        return v

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent / ".env", env_file_encoding="utf-8", extra="ignore")


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from catalog_agent.config.settings import settings
settings = Settings()
