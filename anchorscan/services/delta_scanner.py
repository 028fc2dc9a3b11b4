"""Delta scanner - turns a scan request into the minimal extraction payload."""
from __future__ import annotations

from typing import Awaitable, Callable, Dict, List, Sequence

from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from anchorscan.core.errors import ExternalExtractionError
from anchorscan.core.logging import LogEvent, get_logger
from anchorscan.models.relations import ExtractedRelation, ExtractionEntity
from anchorscan.models.spans import EntitySpan, SpanBase
from anchorscan.services.event_bus import ScanRequest

logger = get_logger(__name__)

ExtractFn = Callable[[str, List[ExtractionEntity]], Awaitable[Sequence[ExtractedRelation]]]


def entity_id_for(span: SpanBase) -> str:
    if isinstance(span, EntitySpan) and span.entity_id:
        return span.entity_id
    return span.label


def build_entity_payload(spans: Sequence[SpanBase], with_positions: bool = False) -> List[ExtractionEntity]:
    """Entity list for the engine, one entry per id, first occurrence wins."""
    entities: Dict[str, ExtractionEntity] = {}
    for span in spans:
        entity_id = entity_id_for(span)
        if not entity_id or entity_id in entities:
            continue
        entities[entity_id] = ExtractionEntity(
            id=entity_id,
            label=span.label,
            start=span.start if with_positions else 0,
            end=span.end if with_positions else 0,
        )
    return list(entities.values())


class DeltaScanner:
    """Stateless adapter between scan requests and the extraction engine."""

    def __init__(self, retry_attempts: int = 1, retry_wait_min: float = 0.5, retry_wait_max: float = 10.0):
        self.retry_attempts = max(1, retry_attempts)
        self.retry_wait_min = retry_wait_min
        self.retry_wait_max = retry_wait_max

    async def run(self, request: ScanRequest, extract: ExtractFn) -> List[ExtractedRelation]:
        """Extract relations for ``request``.

        An empty ``sentence_text`` short-circuits without calling the engine.
        Engine failures are raised as ``ExternalExtractionError``.
        """
        if not request.sentence_text:
            logger.debug(
                LogEvent.SCAN_REQUEST_SKIPPED,
                document_id=request.document_id,
                trigger=request.trigger.value,
                entities=len(request.entities),
                reason="empty_sentence_text",
            )
            return []

        entities = build_entity_payload(request.entities)
        logger.debug(
            LogEvent.EXTRACTION_CALL,
            document_id=request.document_id,
            trigger=request.trigger.value,
            entities=len(entities),
            text_length=len(request.sentence_text),
        )

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retry_attempts),
                wait=wait_exponential(multiplier=self.retry_wait_min, min=self.retry_wait_min, max=self.retry_wait_max),
                reraise=True,
            ):
                with attempt:
                    relations = await extract(request.sentence_text, entities)
        except ExternalExtractionError:
            raise
        except Exception as e:
            raise ExternalExtractionError(str(e) or type(e).__name__, e, trigger=request.trigger.value) from e

        return [relation.for_document(request.document_id) for relation in relations or []]

