"""Utility functions for the Synapse knowledge base."""
import hashlib
from typing import Iterable, List, TypeVar

T = TypeVar("T")

DEFAULT_SLUG_LENGTH = 50


def slugify(title: str, max_length: int = DEFAULT_SLUG_LENGTH) -> str:
    """Derive a filesystem-safe slug from a note title.

    Lowercases the title, turns every run of non-alphanumeric characters
    into a single hyphen, trims hyphens from both ends and caps the result
    at ``max_length`` characters.

    Examples:
        "Quarterly Report" -> "quarterly-report"
        "  Hello,   World!! " -> "hello-world"
        "***" -> ""

    Args:
        title: The note title.
        max_length: Maximum slug length.

    Returns:
        The slug, possibly empty.
    """
    if not title:
        return ""

    chars = []
    for c in title.lower():
        if c.isalnum():
            chars.append(c)
        elif chars and chars[-1] != "-":
            chars.append("-")

    return "".join(chars).strip("-")[:max_length]


def count_words(content: str) -> int:
    """Count whitespace-delimited tokens."""
    return len(content.split())


def content_hash(data: bytes) -> str:
    """SHA-256 hex digest of a payload, used for attachment deduplication."""
    return hashlib.sha256(data).hexdigest()


def escape_like_pattern(value: str) -> str:
    """Escape SQL LIKE wildcards to treat them as literals.

    Prevents SQL LIKE pattern injection where user input containing
    '%' or '_' could match unintended patterns.

    Args:
        value: User input string that may contain LIKE wildcards

    Returns:
        String with '%', '_', and '\\' escaped for safe use in LIKE clauses

    Example:
        >>> escape_like_pattern("100% complete")
        '100\\% complete'
        >>> escape_like_pattern("file_name")
        'file\\_name'
    """
    escape_table = str.maketrans(
        {
            "\\": "\\\\",  # Escape backslash first
            "%": "\\%",
            "_": "\\_",
        }
    )
    return value.translate(escape_table)


def ordered_by_ids(ids: Iterable[str], records: Iterable[T]) -> List[T]:
    """Arrange records to follow ``ids``, dropping ids with no record."""
    by_id = {r.id: r for r in records}
    return [by_id[i] for i in ids if i in by_id]
