"""
Unit tests for the HTTP relation extraction client.
"""
import json

import httpx
import pytest

from anchorscan.core.errors import ExternalExtractionError
from anchorscan.models.relations import ExtractionEntity
from anchorscan.services.extraction_client import HttpRelationExtractor

ENTITIES = [ExtractionEntity(id="character:aragorn", label="Aragorn"), ExtractionEntity(id="Gandalf", label="Gandalf")]


class TestHttpRelationExtractor:
    """Test suite for HttpRelationExtractor."""

    @pytest.mark.asyncio
    async def test_posts_payload_and_parses_relations(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"relations": [
                {"source": "Aragorn", "target": "Gandalf", "type": "ALLY_OF", "confidence": 0.9},
            ]})

        client = HttpRelationExtractor("http://engine.local/", api_key="secret", transport=httpx.MockTransport(handler))
        relations = await client.extract_relations("Aragorn met Gandalf.", ENTITIES)
        await client.aclose()

        assert seen["url"] == "http://engine.local/relations"
        assert seen["auth"] == "Bearer secret"
        assert seen["body"]["content"] == "Aragorn met Gandalf."
        assert seen["body"]["entities"][0] == {"id": "character:aragorn", "label": "Aragorn", "start": 0, "end": 0}
        assert relations[0].relation_type == "ALLY_OF"
        assert relations[0].confidence == 0.9

    @pytest.mark.asyncio
    async def test_no_auth_header_without_key(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"relations": []})

        client = HttpRelationExtractor("http://engine.local", transport=httpx.MockTransport(handler))

        assert await client.extract_relations("text", []) == []
        assert seen["auth"] is None
        await client.aclose()

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        client = HttpRelationExtractor(
            "http://engine.local",
            transport=httpx.MockTransport(lambda request: httpx.Response(500, text="overloaded")),
        )

        with pytest.raises(ExternalExtractionError) as exc_info:
            await client.extract_relations("text", ENTITIES)

        assert "HTTP 500" in exc_info.value.message
        await client.aclose()

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            if len(attempts) < 3:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, json={"relations": []})

        client = HttpRelationExtractor(
            "http://engine.local", retry_wait_min=0, transport=httpx.MockTransport(handler)
        )

        assert await client.extract_relations("text", ENTITIES) == []
        assert len(attempts) == 3
        await client.aclose()

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = HttpRelationExtractor(
            "http://engine.local", max_attempts=2, retry_wait_min=0, transport=httpx.MockTransport(handler)
        )

        with pytest.raises(ExternalExtractionError):
            await client.extract_relations("text", ENTITIES)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_malformed_response_raises(self):
        client = HttpRelationExtractor(
            "http://engine.local",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"relations": [{"source": "A"}]})),
        )

        with pytest.raises(ExternalExtractionError):
            await client.extract_relations("text", ENTITIES)
        await client.aclose()
