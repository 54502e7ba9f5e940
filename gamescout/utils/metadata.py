"""Text helpers for provider metadata."""

import html
import re
from typing import Any, Iterable, List, Optional


def sanitize_description(text: Optional[str], max_length: int = 2000) -> str:
    """Clean up provider descriptions for display.

    Strips HTML tags and markdown markers, decodes entities, restores missing
    sentence spacing and collapses whitespace.

    Args:
        text: Raw description from an API (HTML from Steam/RAWG, plain text from IGDB)
        max_length: Maximum length to truncate to

    Returns:
        Cleaned description text
    """
    if not text:
        return ""

    # Paragraph and line breaks become spaces before tags are dropped
    text = re.sub(r"<\s*(br|/p|/li|/h\d)\s*/?>", " ", text, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    text = html.unescape(text)
    text = re.sub(r"^#{1,6}\s*", "", text, flags=re.MULTILINE)
    text = re.sub(r"\*{1,3}([^*]+)\*{1,3}", r"\1", text)
    text = re.sub(r"([.!?])([A-Z])", r"\1 \2", text)
    text = re.sub(r"\s+", " ", text).strip()
    if len(text) > max_length:
        text = text[:max_length].rsplit(" ", 1)[0] + "..."
    return text


def names_of(items: Optional[Iterable[Any]], key: str = 'name') -> List[str]:
    """Pull names out of a list of {'name': ...} objects, skipping blanks.

    Examples:
        [{"name": "Action"}, {"name": ""}] -> ["Action"]
        ["RPG", "Indie"] -> ["RPG", "Indie"]
    """
    names = []
    for item in items or []:
        value = item.get(key) if isinstance(item, dict) else item
        if isinstance(value, str) and value.strip() and value.strip() not in names:
            names.append(value.strip())
    return names
