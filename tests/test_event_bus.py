"""
Unit tests for the entity event bus and its idle timer.
"""
import asyncio

import pytest

from anchorscan.services.event_bus import BusState, EntityEventBus, IdleTimer, ScanTrigger
from tests.fakes import entity


class TestIdleTimer:
    """Test suite for IdleTimer."""

    @pytest.mark.asyncio
    async def test_rearm_replaces_pending_fire(self):
        fired = []
        timer = IdleTimer()

        timer.arm(0.02, lambda: fired.append("first"))
        timer.arm(0.02, lambda: fired.append("second"))
        await asyncio.sleep(0.06)

        assert fired == ["second"]
        assert not timer.armed

    @pytest.mark.asyncio
    async def test_cancel(self):
        fired = []
        timer = IdleTimer()

        timer.arm(0.02, lambda: fired.append(1))
        assert timer.armed
        timer.cancel()
        await asyncio.sleep(0.05)

        assert fired == []


class TestEntityEventBus:
    """Test suite for EntityEventBus."""

    def setup_method(self):
        self.requests = []

    def make_bus(self, settings) -> EntityEventBus:
        return EntityEventBus(self.requests.append, settings=settings)

    @pytest.mark.asyncio
    async def test_punctuation_emits_exactly_one_request(self, settings):
        """Test that a sentence terminal flushes once and cancels the idle timer."""
        bus = self.make_bus(settings)
        span = entity("Aragorn", 0, 7)

        bus.on_entity_observed(span, "doc-1")
        assert bus.state("doc-1") is BusState.ACCUMULATING

        bus.on_keystroke(".", 20, "Aragorn met Gandalf.", "doc-1")
        await asyncio.sleep(0.12)

        assert len(self.requests) == 1
        request = self.requests[0]
        assert request.trigger is ScanTrigger.PUNCTUATION
        assert request.sentence_text == "Aragorn met Gandalf."
        assert request.entities == (span,)
        assert request.document_id == "doc-1"
        assert bus.state("doc-1") is BusState.IDLE
        assert bus.pending("doc-1") == 0

    @pytest.mark.asyncio
    async def test_idle_emits_exactly_one_request(self, settings):
        bus = self.make_bus(settings)

        bus.on_entity_observed(entity("Aragorn", 0, 7), "doc-1")
        bus.on_keystroke("t", 11, "Aragorn met", "doc-1")
        assert self.requests == []

        await asyncio.sleep(0.12)
        assert len(self.requests) == 1
        assert self.requests[0].trigger is ScanTrigger.IDLE
        assert self.requests[0].sentence_text == "Aragorn met"

        await asyncio.sleep(0.1)
        assert len(self.requests) == 1

    @pytest.mark.asyncio
    async def test_typing_postpones_idle_flush(self, settings):
        bus = self.make_bus(settings)
        bus.on_entity_observed(entity("Aragorn", 0, 7), "doc-1")

        for i in range(4):
            bus.on_keystroke("a", 8 + i, "Aragorn " + "a" * (i + 1), "doc-1")
            await asyncio.sleep(0.01)
        assert self.requests == []

        await asyncio.sleep(0.1)
        assert len(self.requests) == 1
        assert self.requests[0].sentence_text == "Aragorn aaaa"

    @pytest.mark.asyncio
    async def test_observation_alone_arms_idle(self, settings):
        bus = self.make_bus(settings)
        bus.on_entity_observed(entity("Aragorn", 0, 7), "doc-1")

        await asyncio.sleep(0.12)

        assert len(self.requests) == 1
        assert self.requests[0].trigger is ScanTrigger.IDLE
        assert self.requests[0].sentence_text == ""

    @pytest.mark.asyncio
    async def test_empty_buffer_emits_nothing(self, settings):
        bus = self.make_bus(settings)

        bus.on_keystroke(".", 5, "Done.", "doc-1")
        bus.flush("doc-1")
        await asyncio.sleep(0.08)

        assert self.requests == []
        assert bus.state("doc-1") is BusState.IDLE

    @pytest.mark.asyncio
    async def test_explicit_flush(self, settings):
        bus = self.make_bus(settings)
        bus.on_entity_observed(entity("Aragorn", 0, 7), "doc-1")

        bus.flush("doc-1")
        await asyncio.sleep(0.08)

        assert [r.trigger for r in self.requests] == [ScanTrigger.EXPLICIT]

    @pytest.mark.asyncio
    async def test_keystroke_without_document_uses_last_active(self, settings):
        bus = self.make_bus(settings)
        bus.on_entity_observed(entity("Aragorn", 0, 7), "doc-1")
        bus.on_entity_observed(entity("Frodo", 0, 5), "doc-2")

        bus.on_keystroke("!", 6, "Frodo!", None)

        assert len(self.requests) == 1
        assert self.requests[0].document_id == "doc-2"
        assert bus.pending("doc-1") == 1
        bus.dispose()

    @pytest.mark.asyncio
    async def test_documents_are_independent(self, settings):
        bus = self.make_bus(settings)
        bus.on_entity_observed(entity("Aragorn", 0, 7), "doc-1")
        bus.on_entity_observed(entity("Frodo", 0, 5), "doc-2")

        bus.on_keystroke(".", 8, "Aragorn.", "doc-1")

        assert [r.document_id for r in self.requests] == ["doc-1"]
        assert bus.state("doc-2") is BusState.ACCUMULATING
        bus.dispose()

    @pytest.mark.asyncio
    async def test_dispose_ignores_later_events(self, settings):
        bus = self.make_bus(settings)
        bus.on_entity_observed(entity("Aragorn", 0, 7), "doc-1")

        bus.dispose()
        bus.on_entity_observed(entity("Frodo", 0, 5), "doc-1")
        bus.on_keystroke(".", 1, "x.", "doc-1")
        await asyncio.sleep(0.08)

        assert self.requests == []
        assert bus.state("doc-1") is BusState.DISPOSED

    @pytest.mark.asyncio
    async def test_callback_failure_returns_to_idle(self, settings):
        def explode(request):
            raise RuntimeError("boom")

        bus = EntityEventBus(explode, settings=settings)
        bus.on_entity_observed(entity("Aragorn", 0, 7), "doc-1")
        bus.on_keystroke(".", 8, "Aragorn.", "doc-1")

        assert bus.state("doc-1") is BusState.IDLE
        assert bus.pending("doc-1") == 0

    def test_sentence_terminals(self, settings):
        bus = self.make_bus(settings)

        assert bus.is_sentence_terminal(".")
        assert bus.is_sentence_terminal("?")
        assert bus.is_sentence_terminal("!")
        assert not bus.is_sentence_terminal(",")
        assert not bus.is_sentence_terminal("")
