"""Anchor construction and fast hashing for decoration spans."""
from __future__ import annotations

from typing import TypeVar

from anchorscan.models.spans import SpanBase, TextQuoteSelector

CONTEXT_LEN = 32

S = TypeVar("S", bound=SpanBase)


def create_anchor(text: str, start: int, end: int, context_len: int = CONTEXT_LEN) -> TextQuoteSelector:
    """Capture the quote at ``[start, end)`` and up to ``context_len`` chars around it.

    Out-of-range coordinates are clamped, never rejected.
    """
    length = len(text)
    start = min(max(0, start), length)
    end = min(max(start, end), length)

    return TextQuoteSelector(
        exact=text[start:end],
        prefix=text[max(0, start - context_len):start],
        suffix=text[end:min(length, end + context_len)],
    )


def attach_anchor(span: S, text: str, context_len: int = CONTEXT_LEN) -> S:
    """Return ``span`` with a selector computed against ``text``; existing selectors are kept."""
    if span.selector is not None:
        return span
    return span.with_selector(create_anchor(text, span.start, span.end, context_len))


def _djb2(value: str) -> str:
    digest = 5381
    for char in value:
        digest = ((digest << 5) + digest + ord(char)) & 0xFFFFFFFF
    return format(digest, "x")


def compute_selector_hash(selector: TextQuoteSelector) -> str:
    """Deterministic lookup key for a selector."""
    return _djb2(f"{selector.exact}|{selector.prefix}|{selector.suffix}")


def hash_content(text: str) -> str:
    """Non-cryptographic digest of flattened text, only used to detect "unchanged"."""
    return f"{len(text):x}-{_djb2(text)}"
