"""Per-document generation tokens for discarding stale scan results."""
from __future__ import annotations

from typing import Dict


class GenerationCounter:
    """
    Monotonic counter per document.

    Every dispatch takes a fresh token with ``next``; a result may only be
    applied while ``is_current`` still holds for its token.
    """

    def __init__(self):
        self._generations: Dict[str, int] = {}

    def next(self, document_id: str) -> int:
        generation = self._generations.get(document_id, 0) + 1
        self._generations[document_id] = generation
        return generation

    def current(self, document_id: str) -> int:
        return self._generations.get(document_id, 0)

    def is_current(self, document_id: str, generation: int) -> bool:
        return self._generations.get(document_id, 0) == generation

    def forget(self, document_id: str) -> None:
        """Invalidate every outstanding token for the document."""
        if document_id in self._generations:
            self._generations[document_id] = self._generations[document_id] + 1
