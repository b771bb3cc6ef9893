"""Tests for the heuristic relationship string parser."""

import logging

import pytest

from src.utils.relationship_parser import (
    STRATEGIES,
    ParseResult,
    braced_object,
    clean_pairs,
    delimiter_tokens,
    parse_relationship_string,
    quote_aware_split,
    regex_pairs,
    unescape_relationship_text,
)


class TestCleanPairs:
    """Tests for clean_pairs."""

    def test_strips_names_and_labels(self):
        """Test surrounding whitespace is removed."""
        assert clean_pairs({"  Alfred ": " Friendly  "}) == {"Alfred": "Friendly"}

    def test_drops_empty_entries(self):
        """Test entries with a blank name or label are dropped."""
        assert clean_pairs({"": "Friendly", "Alfred": "  ", "Mayor": None}) == {}

    def test_stringifies_scalars_and_skips_containers(self):
        """Test numeric labels become strings and nested containers are skipped."""
        result = clean_pairs({"Alfred": 3, "Mayor": {"x": "y"}, "Guard": ["a"]})
        assert result == {"Alfred": "3"}


class TestUnescape:
    """Tests for unescape_relationship_text."""

    def test_escaped_quotes_become_plain(self):
        """Test backslash-quote sequences are turned into quotes."""
        assert unescape_relationship_text('Alfred\\": \\"Standoffish') == 'Alfred": "Standoffish'

    def test_stray_backslashes_removed(self):
        """Test remaining backslashes are dropped."""
        assert unescape_relationship_text("Al\\fred") == "Alfred"


class TestStrategies:
    """Tests for the individual parsing strategies."""

    def test_regex_pairs_repairs_outer_quotes(self):
        """Test the truncated escaped pair from game clients is read."""
        result = regex_pairs('Alfred\\": \\"Standoffish')
        assert result.success
        assert result.pairs == {"Alfred": "Standoffish"}
        assert result.strategy == "regex_pairs"

    def test_regex_pairs_reads_several_pairs(self):
        """Test every quoted pair is extracted."""
        result = regex_pairs('"Alfred": "Standoffish", "Mayor": "Loyal"')
        assert result.pairs == {"Alfred": "Standoffish", "Mayor": "Loyal"}

    def test_braced_object_decodes_json_body(self):
        """Test an unbraced JSON object body is decoded."""
        result = braced_object('"Alfred": "Friend", "Guard": 2')
        assert result.pairs == {"Alfred": "Friend", "Guard": "2"}

    def test_braced_object_fails_on_invalid_json(self):
        """Test invalid JSON yields an unsuccessful result."""
        result = braced_object("Alfred: Friend")
        assert not result
        assert result.pairs == {}

    def test_quote_aware_split_reads_unquoted_segments(self):
        """Test colon-separated segments without quotes are read."""
        result = quote_aware_split("Alfred: Friend, Mayor: Rival")
        assert result.pairs == {"Alfred": "Friend", "Mayor": "Rival"}

    def test_quote_aware_split_keeps_commas_inside_quotes(self):
        """Test commas inside a quoted label do not split the segment."""
        result = quote_aware_split('"Alfred": "Friend, mostly"')
        assert result.pairs == {"Alfred": "Friend, mostly"}

    def test_delimiter_tokens_pairs_alternately(self):
        """Test tokens are paired up as name then label."""
        result = delimiter_tokens("Alfred;Friend;Mayor;Rival")
        assert result.pairs == {"Alfred": "Friend", "Mayor": "Rival"}

    def test_delimiter_tokens_ignores_odd_trailing_token(self):
        """Test an unpaired trailing token is ignored."""
        result = delimiter_tokens("Alfred:Friend:Mayor")
        assert result.pairs == {"Alfred": "Friend"}

    def test_strategy_order(self):
        """Test the strategies run from most to least precise."""
        assert [name for name, _ in STRATEGIES] == [
            "regex_pairs",
            "braced_object",
            "quote_aware_split",
            "delimiter_tokens",
        ]


class TestParseRelationshipString:
    """Tests for parse_relationship_string."""

    def test_escaped_pair_scenario(self):
        """Test the escaped client string maps to a single relationship."""
        result = parse_relationship_string('Alfred\\": \\"Standoffish')
        assert result.pairs == {"Alfred": "Standoffish"}
        assert result.strategies_tried == ["regex_pairs"]

    def test_falls_through_to_later_strategy(self):
        """Test a string the early strategies cannot read is still parsed."""
        result = parse_relationship_string("Alfred: Friend")
        assert result.pairs == {"Alfred": "Friend"}
        assert result.strategy == "quote_aware_split"
        assert result.strategies_tried == ["regex_pairs", "braced_object", "quote_aware_split"]

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_input(self, text):
        """Test blank input returns an empty, unsuccessful result."""
        result = parse_relationship_string(text)
        assert isinstance(result, ParseResult)
        assert not result
        assert result.strategies_tried == []

    def test_unreadable_text_logs_warning(self, caplog):
        """Test text with no pairs is reported at WARNING."""
        with caplog.at_level(logging.WARNING, logger="src.utils.relationship_parser"):
            result = parse_relationship_string("nobody")
        assert result.pairs == {}
        assert len(result.strategies_tried) == len(STRATEGIES)
        assert "No relationship pairs found" in caplog.text
