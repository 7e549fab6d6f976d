"""
Sanitizers for user-supplied names that end up in logs, headers and keys.
"""
import re

_CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f-\x9f]')
_UNSAFE_COLUMN_PATTERNS = [
    re.compile(r'\.\.'),
    # tabs and newlines are common in spreadsheet headers
    re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f]'),
    re.compile(r'^(CON|PRN|AUX|NUL|COM[1-9]|LPT[1-9])$', re.IGNORECASE),
]


def sanitize_filename(filename: str, max_length: int = 255) -> str:
    """Strip directories, control characters and surrounding dots from a filename."""
    if not filename:
        return "unknown"
    filename = re.split(r'[\\/]', filename)[-1]
    filename = _CONTROL_CHARS.sub('', filename).strip('. ')
    return filename[:max_length] or "unknown"


def sanitize_for_logging(value: str, max_length: int = 500) -> str:
    """Collapse a value onto one line so it cannot forge log records."""
    if not value:
        return ""
    value = _CONTROL_CHARS.sub('', re.sub(r'[\r\n]', ' ', value))
    if len(value) > max_length:
        value = value[:max_length] + "..."
    return value


def validate_column_name(name: str) -> bool:
    """True when a column name is non-empty, bounded and free of unsafe patterns."""
    if not name or len(name) > 1000:
        return False
    return not any(pattern.search(name) for pattern in _UNSAFE_COLUMN_PATTERNS)
