"""
Annotation session - keeps one open document's decoration spans current.

Spans live in flattened-text coordinates together with a selector anchored
against the flattened text. ``document_spans`` projects them into document
positions on demand.
"""
import time
from typing import Awaitable, Callable, List, Optional, Sequence

from anchorscan.core.config import Settings, get_settings
from anchorscan.core.errors import PersistenceError
from anchorscan.core.logging import LogEvent, get_logger
from anchorscan.models.document import FlattenedDocument, StructuredDocument
from anchorscan.models.spans import SpanBase, is_entity_span, is_relationship_span
from anchorscan.repositories.annotation_cache import AnnotationCache, CacheRow
from anchorscan.services.anchors import hash_content
from anchorscan.services.coordinate_mapper import CoordinateMapper, flatten
from anchorscan.services.scan_coordinator import ScanCoordinator
from anchorscan.services.scan_metrics import SessionStats
from anchorscan.services.text_alignment import TextAlignmentService

SpanScanner = Callable[[str], Awaitable[Sequence[SpanBase]]]
SpansListener = Callable[[List[SpanBase]], None]


class AnnotationSession:
    """One open document: cache restore, realignment and generation-checked rescans"""

    def __init__(
        self,
        document_id: str,
        span_scanner: SpanScanner,
        coordinator: ScanCoordinator,
        cache: Optional[AnnotationCache] = None,
        settings: Optional[Settings] = None,
        alignment: Optional[TextAlignmentService] = None,
    ):
        self.document_id = document_id
        self.settings = settings or get_settings()
        self.span_scanner = span_scanner
        self.coordinator = coordinator
        self.cache = cache
        self.alignment = alignment or TextAlignmentService()
        self.mapper = CoordinateMapper(self.settings.segment_crossing_policy, self.settings.context_window)
        self.stats = SessionStats()
        self.logger = get_logger(__name__, document_id=document_id)

        self._spans: List[SpanBase] = []
        self._flattened: Optional[FlattenedDocument] = None
        self._document: Optional[StructuredDocument] = None
        self._listeners: List[SpansListener] = []

    @property
    def spans(self) -> List[SpanBase]:
        """Current spans in flattened-text coordinates"""
        return list(self._spans)

    @property
    def flattened(self) -> Optional[FlattenedDocument]:
        return self._flattened

    def document_spans(self) -> List[SpanBase]:
        """Current spans mapped to document positions"""
        if self._flattened is None:
            return []
        return self.mapper.map_spans(self._spans, self._flattened)

    def subscribe(self, listener: SpansListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def refresh(self, document: StructuredDocument) -> List[SpanBase]:
        """
        Load spans for a (possibly edited) document.

        A cache row whose content hash still matches is adopted as is. A stale
        row is realigned against the new text and shown right away, then a
        fresh scan replaces it. The refresh takes a generation up front so an
        older scan still in flight cannot overwrite what it publishes.
        """
        self.stats.refreshes += 1
        generations = self.coordinator.generations
        generation = generations.next(self.document_id)
        flattened = flatten(document)
        self._document = document
        content_hash = hash_content(flattened.text)

        cached = await self._read_cache()
        if not generations.is_current(self.document_id, generation):
            self.stats.scans_superseded += 1
            self.logger.debug(
                LogEvent.SCAN_SUPERSEDED,
                generation=generation,
                current=generations.current(self.document_id),
            )
            return self.spans

        self._flattened = flattened
        if cached is not None:
            if cached.content_hash == content_hash:
                self.stats.cache_hits += 1
                self.logger.debug(LogEvent.CACHE_HIT, spans=len(cached.spans))
                self._publish(cached.spans)
                return self.spans

            report = self.alignment.realign_report(cached.spans, flattened.text)
            self.stats.spans_realigned += len(report.spans)
            self.stats.spans_dropped += report.dropped
            self.logger.info(LogEvent.CACHE_STALE, kept=len(report.spans), tiers=report.to_dict())
            self._publish(report.spans)

        return await self.rescan(flattened, generation)

    async def force_rescan(self) -> List[SpanBase]:
        if self._document is None:
            return self.spans
        flattened = flatten(self._document)
        return await self.rescan(flattened)

    async def rescan(self, flattened: FlattenedDocument, generation: Optional[int] = None) -> List[SpanBase]:
        """
        Scan ``flattened`` and apply the result only if no newer scan was dispatched.

        ``generation`` is the token already taken by the caller; a new one is
        taken when it is omitted.
        """
        generations = self.coordinator.generations
        if generation is None:
            generation = generations.next(self.document_id)
        self.stats.scans_dispatched += 1
        self.logger.debug(LogEvent.SCAN_DISPATCHED, generation=generation, text_length=len(flattened.text))

        try:
            raw_spans = await self.span_scanner(flattened.text)
        except Exception as e:
            self.stats.scan_errors += 1
            self.logger.error(LogEvent.SCAN_FAILED, generation=generation, error=str(e))
            return self.spans

        localized: List[SpanBase] = []
        for span in raw_spans:
            placed = self.mapper.localize(span, flattened)
            if placed is None:
                self.stats.spans_dropped += 1
                self.logger.debug(LogEvent.SPAN_OUT_OF_BOUNDS, label=span.label, start=span.start, end=span.end)
                continue
            localized.append(placed)

        if not generations.is_current(self.document_id, generation):
            self.stats.scans_superseded += 1
            self.logger.debug(
                LogEvent.SCAN_SUPERSEDED,
                generation=generation,
                current=generations.current(self.document_id),
            )
            return self.spans

        self._flattened = flattened
        self._publish(localized)
        self.stats.scans_applied += 1
        self.stats.last_scan_at = time.time()
        self.logger.info(LogEvent.SCAN_COMPLETED, generation=generation, spans=len(localized))

        for span in localized:
            if is_entity_span(span) or is_relationship_span(span):
                self.coordinator.on_entity_decoration(span, self.document_id)

        await self._write_cache(localized, hash_content(flattened.text))
        return self.spans

    def close(self) -> None:
        """Detach listeners and discard any scan still in flight"""
        self.coordinator.generations.forget(self.document_id)
        self._listeners.clear()

    def _publish(self, spans: Sequence[SpanBase]) -> None:
        new_spans = list(spans)
        if new_spans == self._spans:
            return
        self._spans = new_spans
        for listener in list(self._listeners):
            try:
                listener(self.spans)
            except Exception as e:
                self.logger.error(LogEvent.OBSERVER_ERROR, error=str(e))

    async def _read_cache(self) -> Optional[CacheRow]:
        if self.cache is None:
            return None
        try:
            return await self.cache.get_cached(self.document_id)
        except PersistenceError as e:
            self.stats.cache_errors += 1
            self.logger.warning(LogEvent.CACHE_READ_FAILED, **e.to_dict())
            return None
        except Exception as e:
            self.stats.cache_errors += 1
            self.logger.warning(LogEvent.CACHE_READ_FAILED, error=str(e))
            return None

    async def _write_cache(self, spans: Sequence[SpanBase], content_hash: str) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.save_cached(self.document_id, spans, content_hash)
        except PersistenceError as e:
            self.stats.cache_errors += 1
            self.logger.warning(LogEvent.CACHE_WRITE_FAILED, **e.to_dict())
        except Exception as e:
            self.stats.cache_errors += 1
            self.logger.warning(LogEvent.CACHE_WRITE_FAILED, error=str(e))
