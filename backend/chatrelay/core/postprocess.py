"""
Post-processing of generated replies before they enter the chat log.
"""

import re
from typing import List

FALLBACK_RESPONSE = "I understand your message. How can I help you further?"
TRUNCATION_MARKER = "..."

_WHITESPACE = re.compile(r"\s")


def dedupe_lines(text: str, lookback: int = 2) -> str:
    """Drop blank lines and lines repeating one of the last ``lookback`` kept lines."""
    kept: List[str] = []
    for line in text.split("\n"):
        line = line.strip()
        if line and line not in kept[-lookback:]:
            kept.append(line)
    return "\n".join(kept)


def truncate_at_word(text: str, max_length: int = 800, window: int = 200,
                     marker: str = TRUNCATION_MARKER) -> str:
    """
    Shorten ``text`` to at most ``max_length`` characters including ``marker``.

    The cut moves back to the last whitespace when one exists within
    ``window`` characters of the truncation point, so words are not split.
    """
    if len(text) <= max_length:
        return text

    budget = max(max_length - len(marker), 0)
    head = text[:budget]

    if not text[budget].isspace():
        last_space = -1
        for match in _WHITESPACE.finditer(head):
            last_space = match.start()
        if last_space >= 0 and budget - last_space <= window:
            head = head[:last_space]

    return head.rstrip() + marker


def clean_response(text: str, max_length: int = 800, window: int = 200) -> str:
    """Trim, de-duplicate repeated lines and bound the length of a reply."""
    cleaned = dedupe_lines((text or "").strip())
    cleaned = truncate_at_word(cleaned, max_length=max_length, window=window)
    return cleaned if cleaned.strip() else FALLBACK_RESPONSE
