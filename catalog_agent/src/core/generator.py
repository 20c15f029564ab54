"""
Catalog Agent - Synthetic Data Generator
=========================================
Asks the chat model for N furniture store items in the schema's JSON
format and hands the raw answer to the validator.

Runs offline, at setup time, under human supervision, so there is no
retry loop: a failed generation or a rejected batch is logged and
yields an empty list.
"""

from __future__ import annotations

import asyncio
import time

from catalog_agent.config.prompt_templates import SYNTHETIC_DATA_PROMPT
from catalog_agent.config.settings import settings
from catalog_agent.src.core.providers import ChatModel, message_text
from catalog_agent.src.core.schema import CatalogRecord, format_instructions, parse_records
from catalog_agent.src.utils.logger import get_logger

logger = get_logger(__name__)


class SyntheticDataGenerator:
    """
    Parameters
    ----------
    llm
        Chat model exposing ``ainvoke``.
    timeout
        Upper bound in seconds for the generation call.
    """

    __slots__ = ("_llm", "_timeout")

    def __init__(self, llm: ChatModel, timeout: float | None = None) -> None:
        self._llm = llm
        self._timeout = settings.EXTERNAL_CALL_TIMEOUT if timeout is None else timeout
        if self._timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self._timeout}")


    @staticmethod
    def build_prompt(count: int) -> str:
        return SYNTHETIC_DATA_PROMPT.format(count=count, format_instructions=format_instructions())


    async def generate(self, count: int | None = None) -> list[CatalogRecord]:
        """Return up to *count* validated records, or ``[]`` on any failure."""
        count = settings.SYNTHETIC_RECORD_COUNT if count is None else count
        if count < 1:
            raise ValueError(f"count must be >= 1, got {count}")
        logger.info("[GEN] Generating %d synthetic record(s)…", count)

        t_start = time.perf_counter()
        try:
            response = await asyncio.wait_for(self._llm.ainvoke(self.build_prompt(count)), timeout=self._timeout)
        except Exception:
            logger.exception("[GEN] Generation call failed.")
            return []
        llm_ms = (time.perf_counter() - t_start) * 1000

        result = parse_records(message_text(response))
        if not result.ok:
            logger.error("[GEN] Failed to parse synthetic data — returning no records.")
            return []

        if len(result.records) != count:
            logger.warning("[GEN] Asked for %d record(s), model returned %d.", count, len(result.records))
        logger.info("[GEN] %d record(s) generated in %.1fms.", len(result.records), llm_ms)
        return list(result.records)
