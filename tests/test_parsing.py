"""Tests for value parsers."""

import math

import pytest

from listing_crawler.utils.parsing import (
    clean_text,
    extract_id_from_url,
    normalize_url,
    parse_number,
    parse_rating_count_from_text,
    parse_sizes,
    to_absolute_url,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, None),
        ("", None),
        ("   ", None),
        ("1,234.5 units", 1234.5),
        ("Rs. 1,299", 1299.0),
        ("(45% OFF)", 45.0),
        ("-3.5 stars", -3.5),
        ("no digits here", None),
        (42, 42),
        (4.5, 4.5),
        (True, None),
        (float("nan"), None),
        (float("inf"), None),
    ],
)
def test_parse_number(value, expected):
    assert parse_number(value) == expected


def test_parse_number_passes_numbers_through_unchanged():
    assert parse_number(7) == 7
    assert isinstance(parse_number(7), int)


@pytest.mark.parametrize("value", [None, "", "1,234.5 units", "Rs. 999", 12, 3.25, "x"])
def test_parse_number_is_idempotent(value):
    once = parse_number(value)
    assert parse_number(once) == once


def test_parse_number_results_are_finite():
    for value in ["1e400", "99999999999999999999", "12.5"]:
        result = parse_number(value)
        assert result is None or math.isfinite(result)


def test_parse_sizes():
    assert parse_sizes("S, M, L") == ["S", "M", "L"]
    assert parse_sizes("XL,, XXL ,") == ["XL", "XXL"]
    assert parse_sizes("   ") is None
    assert parse_sizes(",,") is None
    assert parse_sizes(None) is None


def test_parse_rating_count_from_text():
    assert parse_rating_count_from_text("4.3 | 1,204") == 1204
    assert parse_rating_count_from_text("4.3") is None
    assert parse_rating_count_from_text("") is None
    assert parse_rating_count_from_text("4.3 | ") is None


def test_clean_text_collapses_whitespace():
    assert clean_text("  Roadster \n\t Men  Tee ") == "Roadster Men Tee"
    assert clean_text(None) == ""


def test_to_absolute_url():
    base = "https://shop.example.com/men/tshirts?p=2"
    assert to_absolute_url("/p/123", base) == "https://shop.example.com/p/123"
    assert to_absolute_url("//cdn.example.com/a.jpg", base) == "https://cdn.example.com/a.jpg"
    assert to_absolute_url("https://other.example.com/x", base) == "https://other.example.com/x"
    assert to_absolute_url("", base) is None
    assert to_absolute_url(None, base) is None
    assert to_absolute_url("javascript:void(0)", base) is None
    assert to_absolute_url("/p/1", "not a url") is None


def test_extract_id_from_url():
    assert extract_id_from_url("https://shop.example.com/tshirts/roadster/12345/buy") == "12345"
    assert extract_id_from_url("https://shop.example.com/tshirts/roadster") is None
    assert extract_id_from_url(None) is None


def test_normalize_url_strips_fragment():
    assert normalize_url("https://shop.example.com/a?p=2#top") == "https://shop.example.com/a?p=2"
