"""
Input sanitization utilities for user-provided text and column headers.
"""
import re
from typing import List


def sanitize_query(value: str, max_length: int = 500) -> str:
    """
    Normalise a free-text question before it is tokenized or echoed back.

    Args:
        value: Raw question text
        max_length: Maximum length

    Returns:
        Question with control characters removed and whitespace collapsed
    """
    if not value:
        return ""

    value = re.sub(r'[\x00-\x08\x0b-\x0c\x0e-\x1f\x7f-\x9f]', '', value)
    value = ' '.join(value.split())

    if len(value) > max_length:
        value = value[:max_length]

    return value


def sanitize_for_logging(value: str, max_length: int = 500) -> str:
    """
    Sanitize value for safe logging (prevents log injection).

    Args:
        value: Value to sanitize
        max_length: Maximum length

    Returns:
        Sanitized value safe for logging
    """
    if not value:
        return ""

    # Remove newlines and carriage returns
    value = re.sub(r'[\r\n]', ' ', value)

    # Remove other control characters
    value = re.sub(r'[\x00-\x1f\x7f-\x9f]', '', value)

    if len(value) > max_length:
        value = value[:max_length] + "..."

    return value


def clean_column_name(name) -> str:
    """Trim a header and collapse embedded newlines and repeated whitespace."""
    if name is None:
        return ""
    name = str(name).replace('\n', ' ').replace('\r', ' ')
    return ' '.join(name.split())


def validate_column_name(name: str) -> bool:
    """
    Validate that a column name is safe.

    Args:
        name: Column name to validate

    Returns:
        True if safe, False otherwise
    """
    if not name or len(name) > 1000:
        return False

    dangerous_patterns = [
        r'\.\.',  # Path traversal
        r'[\x00-\x08\x0b\x0c\x0e-\x1f]',
    ]

    for pattern in dangerous_patterns:
        if re.search(pattern, name):
            return False

    return True


def dedupe_column_names(names) -> List[str]:
    """
    Make cleaned headers unique.

    Repeats get `.1`, `.2`, ... suffixes in order of appearance, skipping
    any suffix already taken by another header.
    """
    names = list(names)
    taken = set(names)
    seen = set()
    result = []
    for name in names:
        candidate = name
        if candidate in seen:
            n = 1
            while f"{name}.{n}" in seen or f"{name}.{n}" in taken:
                n += 1
            candidate = f"{name}.{n}"
        seen.add(candidate)
        result.append(candidate)
    return result
