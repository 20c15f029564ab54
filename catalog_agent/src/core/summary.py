"""
Catalog Agent - Summary Compiler
=================================
Renders a ``CatalogRecord`` into the single paragraph that gets embedded.

Pure and deterministic: no I/O, no randomness, fixed field order.  An
attribute left out of this paragraph cannot be found by similarity
search (it is still available as structured metadata).
"""

from __future__ import annotations

from catalog_agent.src.core.schema import CatalogRecord, UserReview


def format_number(value: float) -> str:
    """Render ``120.0`` as ``"120"`` and ``89.99`` as ``"89.99"``."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def format_review(review: UserReview) -> str:
    return f"Rated {format_number(review.rating)} on {review.review_date}: {review.comment}"


def compile_summary(record: CatalogRecord) -> str:
    """
    Build the embeddable text for *record*.

    Order: basic info, provenance, categories, reviews, prices, notes.
    """
    basic_info = f"{record.item_name} {record.item_description} from the brand {record.brand}"
    manufacturer = f"Made in {record.manufacturer_address.country}"
    categories = ",".join(record.categories)
    reviews = " ".join(format_review(review) for review in record.user_reviews)
    price = f"At full price it costs: ${format_number(record.prices.full_price)} USD, On sale it costs ${format_number(record.prices.sale_price)} USD"
    return f"{basic_info}, Manufacturer: {manufacturer}, Categories: {categories}, Reviews: {reviews}, Price: {price}, Notes: {record.notes}"
