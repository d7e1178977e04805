"""Ordered first-match pattern cascades."""
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional, Pattern, Sequence, Tuple, TypeVar

T = TypeVar('T')


@dataclass(frozen=True)
class Rule:
    """
    One step of a cascade.

    ``extract`` receives the match and the caller's context and returns the
    value, or None to let the cascade continue with the next rule.
    """
    pattern: Pattern
    extract: Callable[[re.Match, Any], Any]

    @classmethod
    def of(cls, pattern: str, extract: Callable[[re.Match, Any], Any], flags: int = 0) -> 'Rule':
        return cls(pattern=re.compile(pattern, flags), extract=extract)


def first_match(rules: Sequence[Rule], text: str, context: Any = None) -> Optional[Any]:
    """
    Run rules in order against a text and return the first extracted value.

    Args:
        rules: Ordered cascade
        text: Text to search
        context: Extra data handed to each extractor

    Returns:
        First non-None extracted value, or None if no rule produced one
    """
    for rule in rules:
        match = rule.pattern.search(text)
        if match is None:
            continue
        value = rule.extract(match, context)
        if value is not None:
            return value
    return None


def lookup_exception(table: Sequence[Tuple[str, T]], title: str) -> Optional[T]:
    """
    Find the override for a title.

    Args:
        table: Ordered (title substring, value) pairs
        title: Thread title

    Returns:
        Value of the first entry whose key occurs in the title, or None
    """
    title = title.strip()
    for key, value in table:
        if key in title:
            return value
    return None
