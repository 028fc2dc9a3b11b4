"""Entity event bus - batches entity observations and decides when to scan."""
from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from anchorscan.core.config import Settings, get_settings
from anchorscan.core.logging import LogEvent, get_logger
from anchorscan.models.spans import SpanBase

logger = get_logger(__name__)


class ScanTrigger(str, Enum):
    """Why a scan request was emitted."""
    PUNCTUATION = "punctuation"
    IDLE = "idle"
    EXPLICIT = "explicit"


class BusState(str, Enum):
    """Per-document accumulation state."""
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    FLUSHING = "flushing"
    DISPOSED = "disposed"


@dataclass(frozen=True, slots=True)
class ScanRequest:
    """Minimal unit of work handed to the delta scanner."""
    trigger: ScanTrigger
    entities: Tuple[SpanBase, ...]
    sentence_text: str
    document_id: str


class IdleTimer:
    """Single-owner, cancel-and-rearm timer on the running event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def arm(self, delay: float, callback: Callable[[], None]) -> None:
        """Cancel any pending fire and schedule ``callback`` after ``delay`` seconds."""
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(delay, self._fire, callback)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, callback: Callable[[], None]) -> None:
        self._handle = None
        callback()


@dataclass
class _DocumentBuffer:
    timer: IdleTimer
    state: BusState = BusState.IDLE
    entities: List[SpanBase] = field(default_factory=list)
    context_text: str = ""


class EntityEventBus:
    """
    Accumulates entity observations per document and emits a ScanRequest when
    a sentence ends, the writer pauses, or a flush is requested.

    Observations never trigger extraction themselves; they only arm the idle
    timer. Emission is synchronous through ``on_scan_request``.
    """

    def __init__(
        self,
        on_scan_request: Callable[[ScanRequest], None],
        settings: Optional[Settings] = None,
        idle_timeout_ms: Optional[int] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.settings = settings or get_settings()
        self._on_scan_request = on_scan_request
        timeout_ms = idle_timeout_ms if idle_timeout_ms is not None else self.settings.idle_timeout_ms
        self._idle_timeout = timeout_ms / 1000.0
        self._terminal = re.compile(self.settings.sentence_terminal_pattern)
        self._loop = loop
        self._buffers: Dict[str, _DocumentBuffer] = {}
        self._active_document: Optional[str] = None
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def state(self, document_id: str) -> BusState:
        if self._disposed:
            return BusState.DISPOSED
        buffer = self._buffers.get(document_id)
        return buffer.state if buffer else BusState.IDLE

    def pending(self, document_id: str) -> int:
        buffer = self._buffers.get(document_id)
        return len(buffer.entities) if buffer else 0

    def on_entity_observed(self, span: SpanBase, document_id: str) -> None:
        """Hot path: buffer the observation and (re)arm the idle timer."""
        if self._disposed:
            return
        buffer = self._buffer(document_id)
        buffer.entities.append(span)
        buffer.state = BusState.ACCUMULATING
        self._active_document = document_id
        self._arm_idle(document_id, buffer)

    def on_keystroke(
        self,
        char: str,
        cursor_pos: int,
        context_text: str,
        document_id: Optional[str] = None,
    ) -> None:
        if self._disposed:
            return
        document_id = document_id or self._active_document
        if document_id is None:
            return

        self._active_document = document_id
        buffer = self._buffer(document_id)
        buffer.context_text = context_text

        if self.is_sentence_terminal(char):
            buffer.timer.cancel()
            self._flush(document_id, ScanTrigger.PUNCTUATION, cursor_pos=cursor_pos)
        elif buffer.entities:
            self._arm_idle(document_id, buffer)

    def flush(self, document_id: str) -> None:
        """Explicit scan request for ``document_id``."""
        if self._disposed:
            return
        buffer = self._buffers.get(document_id)
        if buffer is not None:
            buffer.timer.cancel()
        self._flush(document_id, ScanTrigger.EXPLICIT)

    def is_sentence_terminal(self, char: str) -> bool:
        return bool(char) and self._terminal.fullmatch(char) is not None

    def dispose(self) -> None:
        if self._disposed:
            return
        for buffer in self._buffers.values():
            buffer.timer.cancel()
            buffer.state = BusState.DISPOSED
        self._buffers.clear()
        self._disposed = True
        logger.debug(LogEvent.BUS_DISPOSED)

    def _buffer(self, document_id: str) -> _DocumentBuffer:
        buffer = self._buffers.get(document_id)
        if buffer is None:
            buffer = _DocumentBuffer(timer=IdleTimer(self._loop))
            self._buffers[document_id] = buffer
        return buffer

    def _arm_idle(self, document_id: str, buffer: _DocumentBuffer) -> None:
        buffer.timer.arm(self._idle_timeout, lambda: self._flush(document_id, ScanTrigger.IDLE))

    def _flush(self, document_id: str, trigger: ScanTrigger, cursor_pos: Optional[int] = None) -> None:
        if self._disposed:
            return
        buffer = self._buffers.get(document_id)
        if buffer is None or not buffer.entities:
            if buffer is not None:
                buffer.state = BusState.IDLE
            logger.debug(LogEvent.SCAN_REQUEST_SKIPPED, document_id=document_id, trigger=trigger.value)
            return

        buffer.state = BusState.FLUSHING
        request = ScanRequest(
            trigger=trigger,
            entities=tuple(buffer.entities),
            sentence_text=buffer.context_text,
            document_id=document_id,
        )
        buffer.entities = []

        logger.debug(
            LogEvent.SCAN_REQUEST_EMITTED,
            document_id=document_id,
            trigger=trigger.value,
            entities=len(request.entities),
            cursor_pos=cursor_pos,
        )
        try:
            self._on_scan_request(request)
        except Exception as e:
            logger.error(LogEvent.SCAN_FAILED, document_id=document_id, trigger=trigger.value, error=str(e))
        finally:
            if not self._disposed:
                buffer.state = BusState.IDLE
