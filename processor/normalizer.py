"""Text normalization for raw forum lines."""
import re

# UTF-8 text that was decoded as Windows-1252
MOJIBAKE = (
    ("â€“", "-"),
    ("â€”", "-"),
    ("Ã¤", "ä"),
    ("Ã¼", "ü"),
    ("Ã¶", "ö"),
    ("ÃŸ", "ß"),
    ("Ãœ", "Ü"),
    ("Ã„", "Ä"),
    ("Ã–", "Ö"),
    ("Ã§", "c"),
    ("Ã¢", "a"),
)

ENTITIES = (
    ("&#39;", "'"),
    ("&quot;", '"'),
    ("&nbsp;", " "),
)

DASHES = re.compile("[–—‑−]")

MARKUP = re.compile(
    r"</?(?:strong|b|i|em|u)>|<(?:font|span)(?:\s[^<>]*)?>|</(?:font|span)>",
    re.IGNORECASE
)


def fix_encoding(line: str) -> str:
    """
    Repair encoding artifacts and entities in a line.

    Args:
        line: Raw line of a forum page

    Returns:
        Line with umlauts, quotes, dashes and spaces restored
    """
    for broken, fixed in MOJIBAKE:
        line = line.replace(broken, fixed)
    for entity, char in ENTITIES:
        line = line.replace(entity, char)
    line = DASHES.sub("-", line)
    return line.replace(" ", " ")


def strip_markup(line: str) -> str:
    """
    Remove decorative inline tags, keeping line breaks and structure tags.

    Args:
        line: Line possibly containing bold, italic, underline, font or span tags

    Returns:
        Line without decorative tags
    """
    while True:
        stripped = MARKUP.sub("", line)
        if stripped == line:
            return stripped
        line = stripped


def normalize(line: str) -> str:
    """
    Strip decorative markup, then fix encoding, until the line is stable.

    Removing a tag can join the halves of a broken umlaut or an entity.
    """
    while True:
        normalized = fix_encoding(strip_markup(line))
        if normalized == line:
            return normalized
        line = normalized
