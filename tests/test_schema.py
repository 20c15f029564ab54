"""
Record schema & validator tests.

  Layer 1 — Accepted payload shapes
  Layer 2 — Strict rejection (whole batch fails closed)
  Layer 3 — Format instructions
"""

import json

import pytest
from pydantic import ValidationError

from conftest import make_record_dict

from catalog_agent.src.core.schema import CatalogRecord, ParseResult, format_instructions, parse_records


# ============================================================================
# Layer 1 — Accepted shapes
# ============================================================================

class TestAcceptedShapes:
    def test_batch_envelope(self, catalog_json):
        result = parse_records(catalog_json)
        assert result.ok
        assert [r.item_id for r in result.records] == ["item-1", "item-2"]

    def test_bare_list(self):
        result = parse_records(json.dumps([make_record_dict()]))
        assert result.ok
        assert len(result.records) == 1

    def test_single_object(self):
        result = parse_records(json.dumps(make_record_dict()))
        assert result.ok
        assert result.records[0].item_name == "Oak Chair"

    def test_code_fenced_output(self, catalog_json):
        result = parse_records(f"```json\n{catalog_json}\n```")
        assert result.ok
        assert len(result.records) == 2

    def test_nested_objects_are_typed(self, oak_chair):
        assert oak_chair.manufacturer_address.country == "USA"
        assert oak_chair.prices.full_price == 120.0
        assert oak_chair.user_reviews[0].rating == 5
        assert oak_chair.categories == ("chairs", "oak")

    def test_integer_prices_accepted(self):
        result = parse_records(json.dumps(make_record_dict(prices={"full_price": 120, "sale_price": 90})))
        assert result.ok

    def test_unknown_fields_ignored(self):
        result = parse_records(json.dumps(make_record_dict(warehouse="B7")))
        assert result.ok
        assert "warehouse" not in result.records[0].to_metadata()

    def test_sale_above_full_still_accepted(self):
        result = parse_records(json.dumps(make_record_dict(prices={"full_price": 50.0, "sale_price": 80.0})))
        assert result.ok

    def test_empty_batch(self):
        result = parse_records(json.dumps({"items": []}))
        assert result.ok
        assert result.records == ()

    def test_records_are_immutable(self, oak_chair):
        with pytest.raises(ValidationError):
            oak_chair.item_name = "Pine Chair"

    def test_metadata_is_json_compatible(self, oak_chair):
        metadata = oak_chair.to_metadata()
        assert json.loads(json.dumps(metadata)) == metadata
        assert metadata["categories"] == ["chairs", "oak"]


# ============================================================================
# Layer 2 — Strict rejection
# ============================================================================

class TestRejection:
    def test_string_price_rejects_record(self):
        result = parse_records(json.dumps(make_record_dict(prices={"full_price": "120", "sale_price": 90.0})))
        assert not result.ok
        assert result.records == ()
        assert "prices" in result.error

    def test_missing_required_field(self):
        record = make_record_dict()
        del record["brand"]
        result = parse_records(json.dumps(record))
        assert not result.ok

    def test_malformed_nested_address(self):
        result = parse_records(json.dumps(make_record_dict(manufacturer_address={"country": "USA"})))
        assert not result.ok

    def test_rating_out_of_range(self):
        review = {"review_date": "2024-01-01", "rating": 7, "comment": "too good"}
        result = parse_records(json.dumps(make_record_dict(user_reviews=[review])))
        assert not result.ok

    def test_negative_price(self):
        result = parse_records(json.dumps(make_record_dict(prices={"full_price": -1.0, "sale_price": 0.0})))
        assert not result.ok

    def test_one_bad_record_rejects_batch(self):
        good = make_record_dict()
        bad = make_record_dict(item_id="item-2", categories="chairs")
        result = parse_records(json.dumps({"items": [good, bad]}))
        assert not result.ok
        assert result.records == ()

    def test_duplicate_item_ids_reject_batch(self):
        first = make_record_dict(item_id="SKU1")
        second = make_record_dict(item_id="SKU1", item_name="Pine Table")
        result = parse_records(json.dumps({"items": [first, second]}))
        assert not result.ok
        assert result.records == ()
        assert "SKU1" in result.error

    def test_invalid_json(self):
        result = parse_records("Here are your items: {oops")
        assert not result.ok
        assert "invalid JSON" in result.error

    def test_scalar_payload(self):
        result = parse_records("42")
        assert not result.ok

    def test_non_text_input(self):
        result = parse_records(None)
        assert isinstance(result, ParseResult)
        assert not result.ok


# ============================================================================
# Layer 3 — Format instructions
# ============================================================================

class TestFormatInstructions:
    def test_mentions_every_field(self):
        instructions = format_instructions()
        for name in CatalogRecord.model_fields:
            assert name in instructions
        assert "items" in instructions

    def test_cached(self):
        assert format_instructions() is format_instructions()
