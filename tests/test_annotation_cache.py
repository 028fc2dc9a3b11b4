"""
Unit tests for the annotation cache repositories.
"""
import pytest

from anchorscan.core.errors import ErrorCode, PersistenceError
from anchorscan.models.spans import LinkSpan, TextQuoteSelector
from anchorscan.repositories.annotation_cache import CacheRow, InMemoryAnnotationCache, RedisAnnotationCache
from tests.fakes import FakeRedis, entity


def sample_spans():
    return [
        entity("Gondor", 18, 24, selector=TextQuoteSelector(exact="Gondor", prefix="to ", suffix=".")),
        LinkSpan(start=0, end=7, label="Aragorn", target="Aragorn"),
    ]


class TestCacheRow:
    """Test suite for CacheRow serialization."""

    def test_json_uses_wire_names(self):
        row = CacheRow(document_id="doc-1", spans=sample_spans(), content_hash="19-abc")
        raw = row.to_json()

        assert '"documentId":"doc-1"' in raw
        assert '"contentHash":"19-abc"' in raw
        assert '"from":18' in raw
        assert CacheRow.from_json(raw) == row


class TestInMemoryAnnotationCache:
    """Test suite for InMemoryAnnotationCache."""

    @pytest.mark.asyncio
    async def test_miss_then_hit(self):
        cache = InMemoryAnnotationCache()

        assert await cache.get_cached("doc-1") is None
        await cache.save_cached("doc-1", sample_spans(), "19-abc")
        row = await cache.get_cached("doc-1")

        assert row.content_hash == "19-abc"
        assert row.spans == sample_spans()
        assert await cache.delete("doc-1")
        assert await cache.get_cached("doc-1") is None


class TestRedisAnnotationCache:
    """Test suite for RedisAnnotationCache."""

    def setup_method(self):
        self.redis = FakeRedis()

    @pytest.mark.asyncio
    async def test_save_uses_prefix_and_ttl(self, settings):
        cache = RedisAnnotationCache(redis_client=self.redis, settings=settings)

        await cache.save_cached("doc-1", sample_spans(), "19-abc")

        assert list(self.redis.store) == ["decorations:doc-1"]
        assert self.redis.expiry["decorations:doc-1"] == 86400
        row = await cache.get_cached("doc-1")
        assert row.spans == sample_spans()

    @pytest.mark.asyncio
    async def test_miss(self, settings):
        cache = RedisAnnotationCache(redis_client=self.redis, settings=settings)
        assert await cache.get_cached("missing") is None

    @pytest.mark.asyncio
    async def test_read_failure_is_wrapped(self, settings):
        cache = RedisAnnotationCache(redis_client=FakeRedis(error=ConnectionError("refused")), settings=settings)

        with pytest.raises(PersistenceError) as exc_info:
            await cache.get_cached("doc-1")

        assert exc_info.value.error_code is ErrorCode.PERSISTENCE_FAILED
        assert exc_info.value.details == {"operation": "get", "document_id": "doc-1"}

    @pytest.mark.asyncio
    async def test_write_failure_is_wrapped(self, settings):
        cache = RedisAnnotationCache(redis_client=FakeRedis(error=ConnectionError("refused")), settings=settings)

        with pytest.raises(PersistenceError):
            await cache.save_cached("doc-1", sample_spans(), "19-abc")

    @pytest.mark.asyncio
    async def test_corrupt_row(self, settings):
        self.redis.store["decorations:doc-1"] = "{not json"
        cache = RedisAnnotationCache(redis_client=self.redis, settings=settings)

        with pytest.raises(PersistenceError) as exc_info:
            await cache.get_cached("doc-1")

        assert exc_info.value.details["operation"] == "decode"

    @pytest.mark.asyncio
    async def test_missing_url(self, settings):
        cache = RedisAnnotationCache(settings=settings)

        with pytest.raises(PersistenceError):
            await cache.get_cached("doc-1")

    @pytest.mark.asyncio
    async def test_health_check(self, settings):
        healthy = RedisAnnotationCache(redis_client=self.redis, settings=settings)
        broken = RedisAnnotationCache(redis_client=FakeRedis(error=ConnectionError("refused")), settings=settings)

        assert (await healthy.health_check())["status"] == "healthy"
        assert (await broken.health_check())["status"] == "unhealthy"
        assert await healthy.connect()
