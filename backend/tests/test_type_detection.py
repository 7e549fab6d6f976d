"""
Tests for value parsing and column type inference.
"""
import pytest
import pandas as pd
from studio.core.config import Settings
from studio.services.type_detection import (
    detect_column_type,
    display_string,
    is_id_name,
    is_missing,
    looks_like_date,
    parse_date,
    parse_number,
)


@pytest.mark.unit
def test_is_missing():
    assert is_missing(None)
    assert is_missing("")
    assert is_missing("   ")
    assert is_missing(float("nan"))
    assert not is_missing(0)
    assert not is_missing("0")
    assert not is_missing(False)


@pytest.mark.unit
def test_display_string():
    assert display_string(1.0) == "1"
    assert display_string(1.5) == "1.5"
    assert display_string(True) == "true"
    assert display_string("abc") == "abc"


@pytest.mark.unit
def test_parse_number():
    assert parse_number("42") == 42
    assert parse_number("1,234") == 1234
    assert parse_number("3.5") == 3.5
    assert parse_number("-0.25") == -0.25
    assert parse_number("1e3") == 1000.0
    assert parse_number("0x1F") == 31
    assert parse_number(7) == 7
    assert parse_number(2.5) == 2.5

    assert parse_number("abc") is None
    assert parse_number("12abc") is None
    assert parse_number("") is None
    assert parse_number(True) is None
    assert parse_number("Infinity") is None
    assert parse_number(float("inf")) is None


@pytest.mark.unit
def test_parse_date():
    assert parse_date("2024-01-15") == pd.Timestamp("2024-01-15")
    assert parse_date("not a date") is None
    assert parse_date("") is None
    assert parse_date(None) is None


@pytest.mark.unit
def test_parse_date_timezone_converted_to_utc():
    parsed = parse_date("2024-01-01T10:00:00+02:00")
    assert parsed.tzinfo is None
    assert parsed == pd.Timestamp("2024-01-01 08:00:00")


@pytest.mark.unit
def test_looks_like_date():
    assert looks_like_date("2024-01-31")
    assert looks_like_date("2024/1/31")
    assert looks_like_date("01/31/2024")
    assert looks_like_date("January 31, 2024")
    assert not looks_like_date("abc")
    assert not looks_like_date("12")


@pytest.mark.unit
def test_is_id_name():
    assert is_id_name("id")
    assert is_id_name("customer_id")
    assert is_id_name("UserID")
    assert is_id_name("index")
    assert not is_id_name("name")


@pytest.mark.unit
def test_detect_id_column():
    values = [f"c{i}" for i in range(30)]
    assert detect_column_type(values, "customer_id") == "id"
    assert detect_column_type(list(range(30)), "index") == "id"


@pytest.mark.unit
def test_id_requires_unique_values():
    assert detect_column_type(["a", "a", "b", "b"], "user_id") == "categorical"


@pytest.mark.unit
def test_detect_numeric_column():
    assert detect_column_type(["1", "2.5", "3", "1,000"], "amount") == "numeric"


@pytest.mark.unit
def test_numeric_threshold_is_inclusive():
    # exactly 80% parse as numbers
    assert detect_column_type(["1", "2", "3", "4", "x"], "amount") == "numeric"


@pytest.mark.unit
def test_detect_datetime_column():
    values = ["01/15/2024", "02/20/2024", "March 3, 2024"]
    assert detect_column_type(values, "joined") == "datetime"


@pytest.mark.unit
def test_detect_categorical_column():
    assert detect_column_type(["a", "b"] * 10, "grade") == "categorical"


@pytest.mark.unit
def test_detect_text_column():
    values = [
        f"customer left a long free form comment about delivery number {chr(97 + i)} in the survey"
        for i in range(5)
    ]
    assert detect_column_type(values, "comment") == "text"


@pytest.mark.unit
def test_empty_column_is_text():
    assert detect_column_type([None, "", "  "], "notes") == "text"


@pytest.mark.unit
def test_sample_size_limits_inference():
    settings = Settings(type_sample_size=2)
    values = ["1", "2", "x", "y", "z"]
    assert detect_column_type(values, "mixed", settings) == "numeric"
    assert detect_column_type(values, "mixed", Settings()) == "categorical"


@pytest.mark.unit
def test_detection_is_deterministic():
    values = ["3", "1", "", "2", "x", "1"]
    first = detect_column_type(values, "score")
    assert all(detect_column_type(values, "score") == first for _ in range(5))


@pytest.mark.unit
def test_parse_date_requires_a_year():
    assert parse_date("March") is None
    assert parse_date("today") is None
    assert parse_date("now") is None
    assert parse_date("March 5") is None
    assert parse_date("12:30") is None
    assert parse_date("March 5, 2024") == pd.Timestamp("2024-03-05")
    assert parse_date("1/31/24") == pd.Timestamp("2024-01-31")


@pytest.mark.unit
def test_relative_words_are_not_dates():
    assert not looks_like_date("today")
    assert not looks_like_date("August")
    assert detect_column_type(["today", "now", "today", "now"], "when") == "categorical"


@pytest.mark.unit
def test_month_name_column_is_categorical():
    months = ["March", "April", "", "August", "October", "December", "March"]
    assert detect_column_type(months, "month") == "categorical"
