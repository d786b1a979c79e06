"""
Tests for input sanitization utilities.
"""
import pytest
from insight_engine.core.sanitization import (
    clean_column_name,
    dedupe_column_names,
    sanitize_for_logging,
    sanitize_query,
    validate_column_name
)


def test_sanitize_query():
    """Test question normalisation."""
    # Whitespace collapsed
    assert sanitize_query("  GDP \n trend\tover   time ") == "GDP trend over time"

    # Control characters removed
    assert "\x00" not in sanitize_query("gdp\x00 trend")

    # Length limit
    assert len(sanitize_query("a" * 600)) == 500

    # Empty input
    assert sanitize_query("") == ""
    assert sanitize_query(None) == ""


def test_sanitize_for_logging():
    """Test logging sanitization."""
    # Newlines removed
    assert "\n" not in sanitize_for_logging("test\nlog")
    assert "\r" not in sanitize_for_logging("test\rlog")

    # Control characters removed
    assert "\x00" not in sanitize_for_logging("test\x00log")

    # Length limit with ellipsis
    long_string = "a" * 600
    sanitized = sanitize_for_logging(long_string)
    assert len(sanitized) <= 503  # 500 + "..."
    assert sanitized.endswith("...")


@pytest.mark.parametrize("raw,expected", [
    ("  Revenue ", "Revenue"),
    ("Total\nSales", "Total Sales"),
    ("a   b", "a b"),
    (None, ""),
    (2024, "2024"),
])
def test_clean_column_name(raw, expected):
    assert clean_column_name(raw) == expected


def test_validate_column_name():
    """Test column name validation."""
    # Valid names
    assert validate_column_name("valid_column") is True
    assert validate_column_name("GDP growth (%)") is True

    # Invalid names
    assert validate_column_name("") is False
    assert validate_column_name("../../../etc/passwd") is False
    assert validate_column_name("col\x00name") is False

    # Too long
    assert validate_column_name("a" * 1001) is False


@pytest.mark.parametrize("names,expected", [
    (["a", "b"], ["a", "b"]),
    (["a", "a", "a"], ["a", "a.1", "a.2"]),
    (["a", "a", "a.1"], ["a", "a.2", "a.1"]),
    (["a.1", "a", "a"], ["a.1", "a", "a.2"]),
])
def test_dedupe_column_names(names, expected):
    """Repeated headers are suffixed without colliding with existing ones."""
    assert dedupe_column_names(names) == expected
