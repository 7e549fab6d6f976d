"""
Per-value primitives and column type inference.

A column gets exactly one semantic type for the whole dataset:
'id', 'numeric', 'datetime', 'categorical' or 'text'. The rules are
evaluated in that order and the first one that matches wins.
"""
import math
import re
import warnings
import pandas as pd
from datetime import datetime
from typing import Any, List, Optional, Sequence, Union
from studio.core.config import Settings, get_settings

Number = Union[int, float]

DECIMAL_PATTERN = re.compile(r'^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$')
HEX_PATTERN = re.compile(r'^0[xX][0-9a-fA-F]+$')

DATE_PATTERNS = [
    re.compile(r'^\d{4}[-/]\d{1,2}[-/]\d{1,2}'),       # 2024-01-31, 2024/1/31
    re.compile(r'^\d{1,2}[-/]\d{1,2}[-/]\d{2,4}'),      # 1/31/24, 01-31-2024
    re.compile(r'^\w+ \d{1,2},? \d{4}', re.ASCII),     # January 31, 2024
]
YEAR_PATTERN = re.compile(r'\d{4}')


def is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return display_string(value).strip() == ''


def display_string(value: Any) -> str:
    """String form used for uniqueness and frequency counts."""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def parse_number(value: Any) -> Optional[Number]:
    """
    Parse a value as a number after dropping thousands separators.

    Returns an int for integral literals ("1,200" -> 1200), a float for
    decimal or exponent literals, and None when the text is not a finite
    number. Booleans are not numbers.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None

    text = display_string(value).replace(',', '').strip()
    if HEX_PATTERN.match(text):
        return int(text, 16)
    if not DECIMAL_PATTERN.match(text):
        return None
    if '.' not in text and 'e' not in text.lower():
        return int(text)
    number = float(text)
    return number if math.isfinite(number) else None




def _names_full_date(text: str) -> bool:
    """True when the text carries a year, either as four digits or in a numeric d/m/y date."""
    # dateutil fills a missing year or day from today
    return bool(YEAR_PATTERN.search(text)) or any(pattern.match(text) for pattern in DATE_PATTERNS[:2])


def parse_date(value: Any) -> Optional[pd.Timestamp]:
    """
    Parse a value as a timestamp; timezone-aware values are moved to naive UTC.

    Text without a year ("March", "today", "12:30") is not a date.
    """
    if isinstance(value, bool) or is_missing(value):
        return None
    text = display_string(value).strip()
    if not _names_full_date(text):
        return None
    with warnings.catch_warnings():
        # pandas warns when it has to guess the format of a lone string
        warnings.simplefilter("ignore", UserWarning)
        try:
            parsed = pd.to_datetime(text, errors='coerce')
        except (ValueError, TypeError, OverflowError):
            return None
    if parsed is None or pd.isna(parsed):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.tz_convert('UTC').tz_localize(None)
    return parsed


def looks_like_date(value: Any) -> bool:
    text = display_string(value).strip()
    if any(pattern.match(text) for pattern in DATE_PATTERNS):
        return True
    return len(text) > 4 and parse_date(text) is not None


def is_id_name(column_name: str) -> bool:
    # substring match also covers "_id" and "*_id"
    name = column_name.lower()
    return 'id' in name or name == 'index'


def detect_column_type(values: Sequence[Any], column_name: str, settings: Optional[Settings] = None) -> str:
    """
    Infer the semantic type of a column from its values and name.

    Args:
        values: every value of the column (missing values are ignored)
        column_name: used by the 'id' rule
        settings: thresholds; defaults to the application settings

    Returns:
        One of 'id', 'numeric', 'datetime', 'categorical', 'text'
    """
    settings = settings or get_settings()
    non_empty: List[Any] = [v for v in values if not is_missing(v)]
    if not non_empty:
        return 'text'

    sample = non_empty[:settings.type_sample_size]
    distinct = len({display_string(v) for v in non_empty})
    unique_ratio = distinct / len(non_empty)

    if unique_ratio > settings.id_unique_ratio and is_id_name(column_name):
        return 'id'

    numeric_count = sum(1 for v in sample if parse_number(v) is not None)
    if numeric_count / len(sample) >= settings.numeric_ratio:
        return 'numeric'

    date_count = sum(1 for v in sample if looks_like_date(v))
    if date_count / len(sample) >= settings.datetime_ratio:
        return 'datetime'

    if unique_ratio < settings.categorical_unique_ratio or (
        len(non_empty) > 10 and distinct < settings.categorical_max_distinct
    ):
        return 'categorical'

    avg_length = sum(len(display_string(v)) for v in non_empty) / len(non_empty)
    if avg_length > settings.text_min_avg_length:
        return 'text'

    return 'categorical'
