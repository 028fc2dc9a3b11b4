"""Structured document accessor and the flattened-text coordinate types."""
from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Sequence


class DocumentNode(Protocol):
    """Anything a traversal hands back; only literal text nodes matter here."""

    @property
    def is_text(self) -> bool: ...

    @property
    def text(self) -> Optional[str]: ...


class StructuredDocument(Protocol):
    """Document that enumerates its nodes with their start positions, in order."""

    def traverse(self, callback: Callable[[DocumentNode, int], None]) -> None: ...


@dataclass(frozen=True, slots=True)
class TextNode:
    """A run of literal text, or a container when ``is_text`` is false."""

    text: Optional[str] = None
    is_text: bool = True


@dataclass(slots=True)
class BlockDocument:
    """Minimal block/inline document with ProseMirror-style positions.

    Each block occupies ``content_size + 2`` positions: one for its opening
    token, its inline text, and one for its closing token.
    """

    blocks: List[List[str]] = field(default_factory=list)

    @classmethod
    def from_paragraphs(cls, *paragraphs: str) -> "BlockDocument":
        return cls(blocks=[[p] if p else [] for p in paragraphs])

    def traverse(self, callback: Callable[[DocumentNode, int], None]) -> None:
        pos = 0
        for runs in self.blocks:
            callback(TextNode(text=None, is_text=False), pos)
            inner = pos + 1
            for run in runs:
                callback(TextNode(text=run), inner)
                inner += len(run)
            pos = inner + 1

    def text_between(self, start: int, end: int) -> str:
        """Literal text covering document positions ``[start, end)``."""
        pieces: List[str] = []

        def collect(node: DocumentNode, pos: int) -> None:
            if not node.is_text or not node.text:
                return
            lo = max(start, pos)
            hi = min(end, pos + len(node.text))
            if lo < hi:
                pieces.append(node.text[lo - pos:hi - pos])

        self.traverse(collect)
        return "".join(pieces)


@dataclass(frozen=True, slots=True)
class Segment:
    """One contiguous run of literal text, known in both coordinate spaces."""

    segment_id: int
    document_position: int
    flat_offset: int
    length: int
    text: str

    @property
    def flat_end(self) -> int:
        return self.flat_offset + self.length

    def contains(self, flat_offset: int) -> bool:
        return self.flat_offset <= flat_offset < self.flat_end

    def to_document(self, flat_offset: int) -> int:
        return self.document_position + (flat_offset - self.flat_offset)


@dataclass(frozen=True, slots=True)
class FlattenedDocument:
    """The concatenated text the extraction engine sees, plus its segment table."""

    text: str
    segments: Sequence[Segment] = ()

    def __len__(self) -> int:
        return len(self.text)

    def segment_at(self, flat_offset: int) -> Optional[Segment]:
        return find_segment(self.segments, flat_offset)


@dataclass(frozen=True, slots=True)
class DocumentRange:
    """A mapped span range in document coordinates."""

    start: int
    end: int
    crossed_boundary: bool = False


def find_segment(segments: Sequence[Segment], flat_offset: int) -> Optional[Segment]:
    """Binary search for the segment containing ``flat_offset``."""
    if flat_offset < 0 or not segments:
        return None
    index = bisect_right([s.flat_offset for s in segments], flat_offset) - 1
    if index < 0:
        return None
    segment = segments[index]
    return segment if segment.contains(flat_offset) else None
