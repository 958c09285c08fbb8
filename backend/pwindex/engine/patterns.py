"""Shell-glob matching over canonical node and connection text."""
from fnmatch import fnmatchcase
from typing import Callable, Iterable, TypeVar

T = TypeVar("T")

MATCH_ALL = "*"


def _glob_only(pattern: str) -> str:
    # fnmatch treats [...] as a character class; here only * and ? are special.
    return pattern.replace("[", "[[]")


def matches(text: str, pattern: str) -> bool:
    """Anchored, case-sensitive glob match supporting ``*`` and ``?``."""
    return fnmatchcase(text, _glob_only(pattern))


def has_wildcards(text: str) -> bool:
    return "*" in text or "?" in text


def filter_matching(
    items: Iterable[T],
    pattern: str | None,
    key: Callable[[T], str] = str,
) -> list[T]:
    """Items whose ``key`` text matches ``pattern`` (None or "" matches all)."""
    pattern = pattern or MATCH_ALL
    return [item for item in items if matches(key(item), pattern)]
