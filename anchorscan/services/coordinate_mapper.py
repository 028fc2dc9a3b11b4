"""Mapping between flattened text offsets and structured document positions."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, TypeVar

from anchorscan.core.config import CrossingPolicy
from anchorscan.core.errors import SpanOutOfBoundsError
from anchorscan.core.logging import LogEvent, get_logger
from anchorscan.models.document import (
    DocumentNode,
    DocumentRange,
    FlattenedDocument,
    Segment,
    StructuredDocument,
    find_segment,
)
from anchorscan.models.spans import SpanBase
from anchorscan.services.anchors import CONTEXT_LEN, create_anchor

logger = get_logger(__name__)

S = TypeVar("S", bound=SpanBase)


def flatten(document: StructuredDocument) -> FlattenedDocument:
    """Concatenate every literal text node, recording where each one came from."""
    segments: List[Segment] = []
    pieces: List[str] = []
    flat_offset = 0

    def visit(node: DocumentNode, position: int) -> None:
        nonlocal flat_offset
        if not node.is_text or not node.text:
            return
        segments.append(
            Segment(
                segment_id=len(segments),
                document_position=position,
                flat_offset=flat_offset,
                length=len(node.text),
                text=node.text,
            )
        )
        pieces.append(node.text)
        flat_offset += len(node.text)

    document.traverse(visit)
    return FlattenedDocument(text="".join(pieces), segments=tuple(segments))


def map_offsets_to_document(
    flat_from: int,
    flat_to: int,
    segments: Sequence[Segment],
    *,
    policy: CrossingPolicy,
) -> Optional[DocumentRange]:
    """Translate a half-open flat range into document coordinates.

    Returns ``None`` when either endpoint falls outside every segment, or when
    ``policy`` is strict and the range straddles two segments.
    """
    if flat_from >= flat_to:
        return None

    start_segment = find_segment(segments, flat_from)
    end_segment = find_segment(segments, flat_to - 1)
    if start_segment is None or end_segment is None:
        return None

    crossed = start_segment.segment_id != end_segment.segment_id
    if crossed and policy is CrossingPolicy.STRICT:
        return None

    return DocumentRange(
        start=start_segment.to_document(flat_from),
        end=end_segment.to_document(flat_to - 1) + 1,
        crossed_boundary=crossed,
    )


@dataclass
class MappingStats:
    """Diagnostics for one mapping pass."""
    mapped: int = 0
    dropped: int = 0
    crossed: int = 0

    def to_dict(self) -> dict:
        return {"mapped": self.mapped, "dropped": self.dropped, "crossed": self.crossed}


class CoordinateMapper:
    """Maps span collections with one explicitly chosen crossing policy."""

    def __init__(self, policy: CrossingPolicy, context_len: int = CONTEXT_LEN):
        self.policy = policy
        self.context_len = context_len
        self.last_stats = MappingStats()

    def map_span(self, span: S, flattened: FlattenedDocument) -> Tuple[Optional[S], bool]:
        """Return the span in document coordinates and whether it crossed a boundary."""
        mapped = map_offsets_to_document(span.start, span.end, flattened.segments, policy=self.policy)
        if mapped is None:
            return None, False
        return span.relocated(mapped.start, mapped.end), mapped.crossed_boundary

    def require(self, span: S, flattened: FlattenedDocument) -> S:
        """Like ``map_span`` but raises ``SpanOutOfBoundsError`` instead of returning ``None``."""
        mapped, _ = self.map_span(span, flattened)
        if mapped is None:
            reason = "crosses a segment boundary" if span.end <= len(flattened.text) else "past end of text"
            raise SpanOutOfBoundsError(span.start, span.end, reason)
        return mapped

    def map_spans(self, spans: Sequence[S], flattened: FlattenedDocument) -> List[S]:
        stats = MappingStats()
        results: List[S] = []
        for span in spans:
            mapped, crossed = self.map_span(span, flattened)
            if mapped is None:
                stats.dropped += 1
                logger.debug(LogEvent.SPAN_OUT_OF_BOUNDS, label=span.label, start=span.start, end=span.end)
                continue
            if crossed:
                stats.crossed += 1
            stats.mapped += 1
            results.append(mapped)

        self.last_stats = stats
        logger.debug(LogEvent.SPANS_MAPPED, policy=self.policy.value, **stats.to_dict())
        return results

    def localize(self, span: S, flattened: FlattenedDocument) -> Optional[S]:
        """Validate a raw flat-space span against the segment table and anchor it.

        Uses the same crossing policy as ``map_spans`` so every span kept in
        flat space can later be displayed.
        """
        if span.end > len(flattened.text):
            return None
        if map_offsets_to_document(span.start, span.end, flattened.segments, policy=self.policy) is None:
            return None
        if span.selector is not None:
            return span
        return span.with_selector(create_anchor(flattened.text, span.start, span.end, self.context_len))
