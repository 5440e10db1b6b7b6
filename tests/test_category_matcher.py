"""Tests for category response parsing and matching."""

import pytest

from prcat.category_matcher import (
    CategorySuggestion,
    match_category,
    parse_category_response,
    similarity,
)


class TestParseCategoryResponse:
    """Test extracting category and confidence from model output."""

    def test_comma_separated(self):
        assert parse_category_response("Category: Bug Fix, Confidence: 0.85") == CategorySuggestion(
            "Bug Fix", 0.85
        )

    def test_newline_separated(self):
        suggestion = parse_category_response("Category: Feature\nConfidence: 0.7")
        assert suggestion == CategorySuggestion("Feature", 0.7)

    def test_surrounding_text_and_markdown(self):
        text = "Sure! Here you go:\n**Category: \"Bug Fix\"**, Confidence: 0.9\nThanks"
        suggestion = parse_category_response(text)
        assert suggestion is not None
        assert suggestion.name == "Bug Fix"

    def test_name_containing_comma(self):
        suggestion = parse_category_response("Category: Docs, Tests, Confidence: 0.85")
        assert suggestion == CategorySuggestion("Docs, Tests", 0.85)

    def test_name_containing_comma_newline_separated(self):
        suggestion = parse_category_response("Category: Docs, Tests\nConfidence: 0.6")
        assert suggestion == CategorySuggestion("Docs, Tests", 0.6)

    def test_case_insensitive_labels(self):
        assert parse_category_response("category: Docs, confidence: .5").name == "Docs"

    def test_confidence_clamped(self):
        assert parse_category_response("Category: Docs, Confidence: 7").confidence == 1.0

    @pytest.mark.parametrize(
        "text",
        ["", None, "I think this is a bug fix", "Category: Bug Fix", "Confidence: 0.9"],
    )
    def test_unparseable(self, text):
        assert parse_category_response(text) is None


class TestSimilarity:
    """Test the fuzzy score."""

    def test_case_insensitive_equality(self):
        assert similarity("  bug fix ", "Bug Fix") == 1.0

    def test_containment(self):
        assert similarity("bugfix", "Bug Fix") == 0.8
        assert similarity("Docs", "Docs and Examples") == 0.8

    def test_character_overlap(self):
        assert similarity("xyz", "Feature") == 0.0
        assert similarity("refactr", "Feature") == pytest.approx(6 / 7)


class TestMatchCategory:
    """Test exact-then-fuzzy matching."""

    names = ["Bug Fix", "Feature"]

    def test_exact_match(self):
        assert match_category("Feature", self.names) == "Feature"

    def test_exact_match_wins_over_fuzzy(self):
        assert match_category("Bug", ["Bug Fix", "Bug"]) == "Bug"

    def test_fuzzy_containment(self):
        assert match_category("bugfix", self.names) == "Bug Fix"

    def test_fuzzy_case(self):
        assert match_category("FEATURE", self.names) == "Feature"

    def test_below_threshold(self):
        assert match_category("Documentation", self.names) is None

    def test_threshold_is_strict(self):
        # 3 of 5 characters overlap: exactly 0.6 does not match
        assert similarity("abcxy", "abcde") == 0.6
        assert match_category("abcxy", ["abcde"]) is None

    def test_empty_categories(self):
        assert match_category("Bug Fix", []) is None
