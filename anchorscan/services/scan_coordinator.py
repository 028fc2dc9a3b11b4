"""
Scan coordinator - orchestration between entity events, delta scans and the graph registry.

Entity decorations arrive on the hot path and are registered immediately;
the event bus decides when a sentence is worth scanning, the delta scanner
builds the payload, and extracted relations are upserted into the registry.
"""
import asyncio
import time
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Set

from anchorscan.core.config import Settings, get_settings
from anchorscan.core.errors import ExternalExtractionError
from anchorscan.core.logging import LogEvent, create_service_logger
from anchorscan.models.relations import ExtractedRelation, ExtractionEntity
from anchorscan.models.spans import EntitySpan, RelationshipSpan, SpanBase
from anchorscan.repositories.graph_registry import GraphRegistry
from anchorscan.services.delta_scanner import DeltaScanner, build_entity_payload
from anchorscan.services.event_bus import EntityEventBus, ScanRequest
from anchorscan.services.generations import GenerationCounter
from anchorscan.services.scan_metrics import ScanStats


class RelationExtractor(Protocol):
    """External relation extraction engine"""

    async def extract_relations(
        self, content: str, entities: List[ExtractionEntity]
    ) -> Sequence[ExtractedRelation]: ...


RelationsCallback = Callable[[List[ExtractedRelation]], None]


class ScanCoordinator:
    """
    Incremental scan orchestrator.

    Idle timers and scan tasks are scheduled on ``loop``. When it is omitted
    the loop running at construction time is captured; a coordinator built
    outside a loop must be driven from inside one.
    """

    def __init__(
        self,
        extractor: RelationExtractor,
        registry: GraphRegistry,
        on_new_relations: Optional[RelationsCallback] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], float]] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.settings = settings or get_settings()
        self.extractor = extractor
        self.registry = registry
        self._on_new_relations = on_new_relations
        self._clock = clock or time.monotonic
        self.logger = create_service_logger("scan_coordinator")

        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
        self._loop = loop

        self.generations = GenerationCounter()
        self._scanner = DeltaScanner(retry_attempts=self.settings.extraction_retry_attempts)
        self._bus = EntityEventBus(self._handle_scan_request, settings=self.settings, loop=self._loop)
        self._stats = ScanStats()
        self._recent_full_scans: Dict[str, float] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._disposed = False

    @property
    def bus(self) -> EntityEventBus:
        return self._bus

    @property
    def disposed(self) -> bool:
        return self._disposed

    # ------------------------------------------------------------------
    # Editor-facing API
    # ------------------------------------------------------------------

    def on_entity_decoration(self, span: SpanBase, document_id: str) -> None:
        """Hot path: register what the span describes, then hand it to the bus"""
        if self._disposed:
            return
        self._stats.entity_events_received += 1

        try:
            if isinstance(span, EntitySpan):
                self.registry.register_entity(span.label, span.kind, document_id, {"source": "extraction"})
            elif isinstance(span, RelationshipSpan):
                if span.source_entity and span.target_entity and span.label:
                    self.registry.upsert_relationship({
                        "source": span.source_entity,
                        "target": span.target_entity,
                        "type": span.label,
                        "source_note": document_id,
                    })
        except Exception as e:
            self._stats.errors += 1
            self.logger.error(LogEvent.REGISTRY_ERROR, document_id=document_id, label=span.label, error=str(e))

        self._bus.on_entity_observed(span, document_id)

    def on_keystroke(
        self,
        char: str,
        cursor_pos: int,
        context_text: str,
        document_id: Optional[str] = None,
    ) -> None:
        if self._disposed:
            return
        self._bus.on_keystroke(char, cursor_pos, context_text, document_id)

    def flush(self, document_id: str) -> None:
        if self._disposed:
            return
        self._bus.flush(document_id)

    async def on_note_open(self, document_id: str, content: str, entities: Sequence[SpanBase]) -> None:
        """Full-document scan when a note is opened, debounced per document"""
        if self._disposed:
            return

        now = self._clock()
        last_scan = self._recent_full_scans.get(document_id)
        if last_scan is not None and now - last_scan < self.settings.note_open_debounce_seconds:
            self.logger.debug(LogEvent.FULL_SCAN_DEBOUNCED, document_id=document_id, since=now - last_scan)
            return
        self._recent_full_scans[document_id] = now

        generation = self.generations.current(document_id)
        payload = build_entity_payload(entities, with_positions=True)
        self.logger.info(
            LogEvent.SCAN_DISPATCHED,
            document_id=document_id,
            trigger="note_open",
            generation=generation,
            content_length=len(content),
            entities=len(payload),
        )

        try:
            relations = await self.extractor.extract_relations(content, payload)
        except Exception as e:
            self._stats.errors += 1
            self._recent_full_scans.pop(document_id, None)
            self.logger.error(LogEvent.EXTRACTION_ERROR, document_id=document_id, trigger="note_open", error=str(e))
            return

        if self._disposed:
            return
        self._apply_relations(document_id, [r.for_document(document_id) for r in relations or []])

    def get_stats(self) -> ScanStats:
        return self._stats.snapshot()

    async def drain(self) -> None:
        """Wait for every in-flight incremental scan"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._bus.dispose()
        self.logger.info("scan_coordinator_disposed", stats=self._stats.to_dict())

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _handle_scan_request(self, request: ScanRequest) -> None:
        """Bus callback; the scan itself runs as a task on the loop"""
        if self._disposed:
            return
        if not request.sentence_text:
            self.logger.debug(
                LogEvent.SCAN_REQUEST_SKIPPED,
                document_id=request.document_id,
                trigger=request.trigger.value,
                entities=len(request.entities),
                reason="empty_sentence_text",
            )
            return

        self._stats.scans_triggered += 1
        generation = self.generations.current(request.document_id)
        task = (self._loop or asyncio.get_running_loop()).create_task(self._run_scan(request, generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_scan(self, request: ScanRequest, generation: int) -> None:
        self.logger.debug(
            LogEvent.SCAN_DISPATCHED,
            document_id=request.document_id,
            trigger=request.trigger.value,
            generation=generation,
            entities=len(request.entities),
        )
        try:
            relations = await self._scanner.run(request, self.extractor.extract_relations)
        except ExternalExtractionError as e:
            self._stats.errors += 1
            self.logger.error(LogEvent.EXTRACTION_ERROR, document_id=request.document_id, **e.to_dict())
            return
        except Exception as e:
            self._stats.errors += 1
            self.logger.error(LogEvent.SCAN_FAILED, document_id=request.document_id, error=str(e))
            return

        if self._disposed:
            return
        self._apply_relations(request.document_id, relations)

    def _apply_relations(self, document_id: str, relations: List[ExtractedRelation]) -> None:
        if not relations:
            self.logger.debug(LogEvent.SCAN_COMPLETED, document_id=document_id, relations=0)
            return

        self._stats.relations_extracted += len(relations)
        for relation in relations:
            try:
                self.registry.upsert_relationship(relation)
            except Exception as e:
                self._stats.errors += 1
                self.logger.error(
                    LogEvent.REGISTRY_ERROR,
                    document_id=document_id,
                    source=relation.source,
                    target=relation.target,
                    error=str(e),
                )

        if self._on_new_relations is not None:
            try:
                self._on_new_relations(relations)
            except Exception as e:
                self._stats.errors += 1
                self.logger.error(LogEvent.OBSERVER_ERROR, document_id=document_id, error=str(e))

        self.logger.info(LogEvent.SCAN_COMPLETED, document_id=document_id, relations=len(relations))
