"""
Catalog Agent - Record Schema & Validator
==========================================
Defines the shape of a catalog item and parses raw model output into
immutable ``CatalogRecord`` instances.

Validation is **strict** and **fails closed**:
  • A missing required field, a wrong type (``"120"`` is not a price),
    or a malformed nested object rejects the record.
  • Two records sharing an ``item_id`` reject the batch.
  • One rejected record rejects the whole batch — ``parse_records``
    returns an empty ``ParseResult`` instead of a partial one.
  • Nothing raises across the module boundary; callers inspect
    ``ParseResult.ok`` / ``ParseResult.error``.

The generation-format contract (``format_instructions``) is derived
from these models, so schema edits propagate to the generator prompt.
"""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass
from functools import lru_cache

from langchain_core.output_parsers import PydanticOutputParser
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from catalog_agent.src.core.errors import RecordValidationError
from catalog_agent.src.utils.logger import get_logger
from catalog_agent.src.utils.text_utils import strip_code_fence

logger = get_logger(__name__)

MIN_RATING = 0.0
MAX_RATING = 5.0


class _Strict(BaseModel):
    model_config = ConfigDict(strict=True, frozen=True, extra="ignore")


class ManufacturerAddress(_Strict):
    """Postal address of the item's manufacturer."""

    street: str
    city: str
    state: str
    postal_code: str
    country: str


class Prices(_Strict):
    """Full and sale price in USD.  ``sale_price <= full_price`` is advised, not enforced."""

    full_price: float = Field(ge=0)
    sale_price: float = Field(ge=0)


class UserReview(_Strict):
    review_date: str
    rating: float = Field(ge=MIN_RATING, le=MAX_RATING)
    comment: str


class CatalogRecord(_Strict):
    """A single furniture store item, immutable once validated."""

    item_id: str
    item_name: str
    item_description: str
    brand: str
    manufacturer_address: ManufacturerAddress
    prices: Prices
    categories: tuple[str, ...]
    user_reviews: tuple[UserReview, ...]
    notes: str

    def to_metadata(self) -> dict:
        """Plain JSON-compatible dict, stored next to the vector."""
        return self.model_dump(mode="json")


class CatalogBatch(_Strict):
    """Envelope the generator is asked to produce."""

    items: tuple[CatalogRecord, ...]


@dataclass(frozen=True)
class ParseResult:
    """Outcome of ``parse_records``: either all records or none."""

    records: tuple[CatalogRecord, ...] = ()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


_RECORDS_ADAPTER: TypeAdapter[list[CatalogRecord]] = TypeAdapter(list[CatalogRecord])


@lru_cache(maxsize=1)
def format_instructions() -> str:
    """Return the JSON-schema format instructions for ``CatalogBatch``."""
    return PydanticOutputParser(pydantic_object=CatalogBatch).get_format_instructions()


def parse_records(raw_text: str) -> ParseResult:
    """
    Parse raw model output into validated catalog records.

    Accepted shapes (optionally inside a Markdown code fence):
        • ``{"items": [ {...}, ... ]}``
        • ``[ {...}, ... ]``
        • ``{...}`` — a single record

    Returns
    -------
    ParseResult
        ``records`` holds every record when all of them validate,
        otherwise ``records`` is empty and ``error`` describes why.
    """
    try:
        records = _validate(_load_payload(raw_text))
    except RecordValidationError as exc:
        logger.error("[SCHEMA] Rejected model output: %s", exc)
        return ParseResult(error=str(exc))

    for record in records:
        if record.prices.sale_price > record.prices.full_price:
            logger.warning("[SCHEMA] Item '%s' has sale_price %.2f above full_price %.2f.", record.item_id, record.prices.sale_price, record.prices.full_price)

    logger.info("[SCHEMA] Parsed %d catalog record(s).", len(records))
    return ParseResult(records=tuple(records))


def _load_payload(raw_text: str) -> list:
    """Decode *raw_text* and normalise it to a list of candidate records."""
    if not isinstance(raw_text, str):
        raise RecordValidationError(f"expected text, got {type(raw_text).__name__}")
    try:
        payload = json.loads(strip_code_fence(raw_text))
    except json.JSONDecodeError as exc:
        raise RecordValidationError(f"invalid JSON: {exc}") from exc

    if isinstance(payload, dict) and "items" in payload:
        payload = payload["items"]
    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list):
        raise RecordValidationError(f"unexpected top-level type {type(payload).__name__}")
    return payload


def _validate(payload: list) -> list[CatalogRecord]:
    try:
        # JSON-mode validation keeps nested objects valid under strict typing.
        records = _RECORDS_ADAPTER.validate_json(json.dumps(payload))
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise RecordValidationError(f"{exc.error_count()} error(s) in batch of {len(payload)}; first at '{location}': {first['msg']}") from exc

    counts = Counter(record.item_id for record in records)
    duplicates = sorted(item_id for item_id, n in counts.items() if n > 1)
    if duplicates:
        raise RecordValidationError(f"duplicate item_id(s) in batch: {', '.join(duplicates)}")
    return records
