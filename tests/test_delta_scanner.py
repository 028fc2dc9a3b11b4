"""
Unit tests for the delta scanner.
"""
import pytest

from anchorscan.core.errors import ErrorCode, ExternalExtractionError
from anchorscan.models.relations import ExtractedRelation
from anchorscan.services.delta_scanner import DeltaScanner, build_entity_payload
from anchorscan.services.event_bus import ScanRequest, ScanTrigger
from tests.fakes import FakeExtractor, entity


def make_request(sentence_text: str, *spans, trigger: ScanTrigger = ScanTrigger.PUNCTUATION) -> ScanRequest:
    return ScanRequest(trigger=trigger, entities=tuple(spans), sentence_text=sentence_text, document_id="doc-1")


class TestBuildEntityPayload:
    """Test suite for build_entity_payload."""

    def test_dedupes_by_id(self):
        spans = [
            entity("Aragorn", 0, 7, entity_id="character:aragorn"),
            entity("Aragorn", 30, 37, entity_id="character:aragorn"),
            entity("Gandalf", 12, 19),
        ]

        payload = build_entity_payload(spans)

        assert [(e.id, e.label) for e in payload] == [("character:aragorn", "Aragorn"), ("Gandalf", "Gandalf")]
        assert all(e.start == 0 and e.end == 0 for e in payload)

    def test_positions_on_request(self):
        payload = build_entity_payload([entity("Gandalf", 12, 19)], with_positions=True)
        assert (payload[0].start, payload[0].end) == (12, 19)


class TestDeltaScanner:
    """Test suite for DeltaScanner.run."""

    @pytest.mark.asyncio
    async def test_empty_sentence_skips_engine(self):
        extractor = FakeExtractor()

        result = await DeltaScanner().run(make_request("", entity("Aragorn", 0, 7)), extractor.extract_relations)

        assert result == []
        assert extractor.calls == []

    @pytest.mark.asyncio
    async def test_returns_relations_stamped_with_document(self):
        relation = ExtractedRelation(source="Aragorn", target="Gandalf", type="ALLY_OF")
        extractor = FakeExtractor([relation])

        result = await DeltaScanner().run(
            make_request("Aragorn met Gandalf.", entity("Aragorn", 0, 7), entity("Gandalf", 12, 19)),
            extractor.extract_relations,
        )

        content, entities = extractor.calls[0]
        assert content == "Aragorn met Gandalf."
        assert [e.label for e in entities] == ["Aragorn", "Gandalf"]
        assert result[0].relation_type == "ALLY_OF"
        assert result[0].source_note == "doc-1"

    @pytest.mark.asyncio
    async def test_failure_is_wrapped(self):
        extractor = FakeExtractor(error=RuntimeError("engine down"))

        with pytest.raises(ExternalExtractionError) as exc_info:
            await DeltaScanner().run(make_request("Aragorn left.", entity("Aragorn", 0, 7)), extractor.extract_relations)

        error = exc_info.value
        assert error.error_code is ErrorCode.EXTRACTION_FAILED
        assert "engine down" in error.message
        assert error.details["trigger"] == "punctuation"
        assert len(extractor.calls) == 1

    @pytest.mark.asyncio
    async def test_retries_when_configured(self):
        attempts = []

        async def flaky(content, entities):
            attempts.append(content)
            if len(attempts) == 1:
                raise ConnectionError("reset")
            return [ExtractedRelation(source="A", target="B", type="KNOWS")]

        scanner = DeltaScanner(retry_attempts=2, retry_wait_min=0, retry_wait_max=0)
        result = await scanner.run(make_request("A knows B.", entity("A", 0, 1)), flaky)

        assert len(attempts) == 2
        assert len(result) == 1
