"""Resolution Ladder: re-locate anchored spans in edited text."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, TypeVar

from anchorscan.core.errors import AnchorNotFoundError
from anchorscan.core.logging import LogEvent, get_logger
from anchorscan.models.spans import SpanBase, expected_text

logger = get_logger(__name__)

S = TypeVar("S", bound=SpanBase)


class ResolutionTier(str, Enum):
    """Which rung of the ladder resolved a span."""
    POSITION = "position"
    UNIQUE = "unique"
    DISAMBIGUATED = "disambiguated"
    LEGACY = "legacy"
    NOT_FOUND = "not_found"


@dataclass
class RealignReport:
    """Outcome of realigning a batch of spans."""
    spans: List[SpanBase] = field(default_factory=list)
    tiers: Dict[ResolutionTier, int] = field(default_factory=dict)

    @property
    def dropped(self) -> int:
        return self.tiers.get(ResolutionTier.NOT_FOUND, 0)

    def to_dict(self) -> Dict[str, int]:
        return {tier.value: count for tier, count in self.tiers.items()}


class TextAlignmentService:
    """Locate anchored text again after the surrounding text changed"""

    def realign_with_outcome(self, span: S, text: str) -> Tuple[Optional[S], ResolutionTier]:
        """Run the ladder and report which tier produced the result."""
        selector = span.selector
        if selector is None:
            # Legacy span: trust the position only if the text there still matches
            expected = expected_text(span)
            if expected and text[span.start:span.end] == expected:
                return span, ResolutionTier.LEGACY
            return None, ResolutionTier.NOT_FOUND

        exact, prefix, suffix = selector.exact, selector.prefix, selector.suffix
        if not exact:
            return None, ResolutionTier.NOT_FOUND

        length = len(text)
        if span.start < length and span.end <= length and text[span.start:span.end] == exact:
            current_prefix = text[max(0, span.start - len(prefix)):span.start]
            current_suffix = text[span.end:min(length, span.end + len(suffix))]
            if self._is_context_compatible(prefix, current_prefix) and self._is_context_compatible(
                suffix, current_suffix
            ):
                return span, ResolutionTier.POSITION

        candidates = self._find_all(text, exact)
        if not candidates:
            logger.debug(LogEvent.ANCHOR_NOT_FOUND, label=span.label, exact=exact)
            return None, ResolutionTier.NOT_FOUND

        if len(candidates) == 1:
            start = candidates[0]
            return span.relocated(start, start + len(exact)), ResolutionTier.UNIQUE

        best_start = candidates[0]
        best_score = -1
        for start in candidates:
            end = start + len(exact)
            candidate_prefix = text[max(0, start - len(prefix)):start]
            candidate_suffix = text[end:min(length, end + len(suffix))]
            score = self._match_score(prefix, candidate_prefix) + self._match_score(suffix, candidate_suffix)
            if score > best_score:
                best_score = score
                best_start = start

        logger.info(
            LogEvent.ANCHOR_AMBIGUOUS_RESOLVED,
            label=span.label,
            candidates=len(candidates),
            chosen=best_start,
            score=best_score,
        )
        return span.relocated(best_start, best_start + len(exact)), ResolutionTier.DISAMBIGUATED

    def realign(self, span: S, text: str) -> Optional[S]:
        resolved, _ = self.realign_with_outcome(span, text)
        return resolved

    def realign_or_raise(self, span: S, text: str) -> S:
        resolved = self.realign(span, text)
        if resolved is None:
            exact = span.selector.exact if span.selector else expected_text(span)
            raise AnchorNotFoundError(exact, span.label or None)
        return resolved

    def realign_batch(self, spans: Sequence[S], text: str) -> List[S]:
        """Realign every span, silently omitting the ones that cannot be found."""
        return self.realign_report(spans, text).spans  # type: ignore[return-value]

    def realign_report(self, spans: Sequence[SpanBase], text: str) -> RealignReport:
        report = RealignReport()
        for span in spans:
            resolved, tier = self.realign_with_outcome(span, text)
            report.tiers[tier] = report.tiers.get(tier, 0) + 1
            if resolved is not None:
                report.spans.append(resolved)

        logger.debug(LogEvent.REALIGN_COMPLETED, total=len(spans), kept=len(report.spans), **report.to_dict())
        return report

    @staticmethod
    def _find_all(text: str, search: str) -> List[int]:
        """All start offsets of ``search``, overlapping occurrences included."""
        indices = []
        pos = text.find(search)
        while pos != -1:
            indices.append(pos)
            pos = text.find(search, pos + 1)
        return indices

    @staticmethod
    def _is_context_compatible(stored: str, current: str) -> bool:
        """One context is a prefix or suffix of the other (document edges truncate context)."""
        if not stored or not current:
            return True
        return (
            stored.endswith(current)
            or current.endswith(stored)
            or stored.startswith(current)
            or current.startswith(stored)
        )

    @staticmethod
    def _match_score(stored: str, current: str) -> int:
        """Positional character overlap, 0-100."""
        if not stored or not current:
            return 0
        if stored == current:
            return 100

        matches = sum(1 for a, b in zip(stored, current) if a == b)
        ratio = matches / max(len(stored), len(current))
        return math.floor(ratio * 100 + 0.5)


_default_service = TextAlignmentService()


def realign(span: S, text: str) -> Optional[S]:
    """Re-locate ``span`` in ``text``; ``None`` when its quote is gone."""
    return _default_service.realign(span, text)


def realign_batch(spans: Sequence[S], text: str) -> List[S]:
    return _default_service.realign_batch(spans, text)
