"""Summary compiler tests."""

import json

from conftest import make_record_dict

from catalog_agent.src.core.schema import parse_records
from catalog_agent.src.core.summary import compile_summary, format_number


def _record(**overrides):
    return parse_records(json.dumps(make_record_dict(**overrides))).records[0]


class TestFormatNumber:
    def test_whole_numbers_drop_decimals(self):
        assert format_number(120.0) == "120"

    def test_fractions_keep_significant_digits(self):
        assert format_number(89.5) == "89.5"
        assert format_number(89.99) == "89.99"

    def test_rounding_up_to_whole(self):
        assert format_number(89.999) == "90"


class TestCompileSummary:
    def test_oak_chair(self, oak_chair):
        summary = compile_summary(oak_chair)
        assert summary == (
            "Oak Chair solid oak dining chair from the brand WoodCo, "
            "Manufacturer: Made in USA, "
            "Categories: chairs,oak, "
            "Reviews: Rated 5 on 2024-01-01: sturdy, "
            "Price: At full price it costs: $120 USD, On sale it costs $90 USD, "
            "Notes: limited edition"
        )

    def test_contains_searchable_attributes(self, oak_chair):
        summary = compile_summary(oak_chair)
        for fragment in ("Made in USA", "chairs,oak", "Rated 5 on 2024-01-01: sturdy", "$120", "$90", "limited edition"):
            assert fragment in summary

    def test_deterministic(self, oak_chair):
        assert compile_summary(oak_chair) == compile_summary(oak_chair)

    def test_reviews_joined_in_order(self):
        reviews = [
            {"review_date": "2024-01-01", "rating": 5, "comment": "sturdy"},
            {"review_date": "2024-02-01", "rating": 3.5, "comment": "creaks"},
        ]
        summary = compile_summary(_record(user_reviews=reviews))
        assert "Reviews: Rated 5 on 2024-01-01: sturdy Rated 3.5 on 2024-02-01: creaks," in summary

    def test_empty_lists(self):
        summary = compile_summary(_record(categories=[], user_reviews=[]))
        assert "Categories: , Reviews: , Price:" in summary

    def test_street_address_not_embedded(self, oak_chair):
        assert "1 Mill Rd" not in compile_summary(oak_chair)
