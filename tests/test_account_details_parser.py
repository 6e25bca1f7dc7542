"""
Tests for the key:value account details parser, including property-based checks
"""
import pytest
from hypothesis import given, settings as hypothesis_settings, strategies as st

from app.domain.services.account_details import (
    format_account_details,
    looks_like_account_details,
    parse_account_details,
)


class TestParseAccountDetails:

    @pytest.mark.unit
    def test_basic_lines(self):
        text = "account_name: John Doe\naccount_number: 0123456789\nbank: Example Bank"
        assert parse_account_details(text) == {
            "account_name": "John Doe",
            "account_number": "0123456789",
            "bank": "Example Bank",
        }

    @pytest.mark.unit
    def test_splits_at_first_separator_only(self):
        assert parse_account_details("url: https://bank.example") == {"url": "https://bank.example"}

    @pytest.mark.unit
    def test_skips_lines_without_key_or_separator(self):
        text = "just a note\n: orphan value\n   \nbank: X"
        assert parse_account_details(text) == {"bank": "X"}

    @pytest.mark.unit
    def test_empty_value_is_kept(self):
        assert parse_account_details("memo:") == {"memo": ""}

    @pytest.mark.unit
    def test_last_duplicate_wins(self):
        assert parse_account_details("bank: A\nbank: B") == {"bank": "B"}

    @pytest.mark.unit
    def test_windows_line_endings(self):
        assert parse_account_details("a: 1\r\nb: 2\r\n") == {"a": "1", "b": "2"}

    @pytest.mark.unit
    @pytest.mark.parametrize("text", ["", "no separator here", ":", "  :  "])
    def test_nothing_parseable(self, text):
        assert parse_account_details(text) == {}

    @pytest.mark.unit
    def test_looks_like_details(self):
        assert looks_like_account_details("a: b")
        assert not looks_like_account_details("CONFIRM")

    @pytest.mark.unit
    def test_format(self):
        assert format_account_details({"a": "1", "b": "2"}) == "a: 1\nb: 2"


_keys = st.text(
    alphabet=st.characters(blacklist_categories=("Cs", "Cc", "Zl", "Zp"), blacklist_characters=":"),
    min_size=1,
    max_size=20,
).map(str.strip).filter(bool)
_values = st.text(
    alphabet=st.characters(blacklist_categories=("Cs", "Cc", "Zl", "Zp")),
    max_size=30,
).map(str.strip)


class TestParserProperties:

    @pytest.mark.unit
    @hypothesis_settings(max_examples=100)
    @given(st.dictionaries(_keys, _values, max_size=8))
    def test_format_then_parse_restores_mapping(self, details):
        assert parse_account_details(format_account_details(details)) == details

    @pytest.mark.unit
    @hypothesis_settings(max_examples=100)
    @given(st.text(max_size=200))
    def test_keys_and_values_are_trimmed(self, text):
        for key, value in parse_account_details(text).items():
            assert key and key == key.strip()
            assert value == value.strip()
            assert ":" not in key
