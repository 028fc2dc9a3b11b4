"""
装饰缓存 - 跨会话恢复 span 的持久化层
行以 JSON 保存: {documentId, spans: [...], contentHash}
"""
from typing import Any, Dict, List, Optional, Protocol, Sequence

import redis.asyncio as redis
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from anchorscan.core.config import Settings, get_settings
from anchorscan.core.errors import PersistenceError
from anchorscan.core.logging import get_logger
from anchorscan.models.spans import DecorationSpan, SpanBase

logger = get_logger(__name__)


class CacheRow(BaseModel):
    """单个文档的装饰快照"""
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    document_id: str
    spans: List[DecorationSpan] = Field(default_factory=list)
    content_hash: str

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_json(cls, raw: str) -> "CacheRow":
        return cls.model_validate_json(raw)


class AnnotationCache(Protocol):
    """标注会话使用的持久化接口"""

    async def get_cached(self, document_id: str) -> Optional[CacheRow]: ...

    async def save_cached(self, document_id: str, spans: Sequence[SpanBase], content_hash: str) -> None: ...


class InMemoryAnnotationCache:
    """内存缓存实现 - 用于测试和单进程场景; 以序列化形式保存以模拟持久化"""

    def __init__(self):
        self._rows: Dict[str, str] = {}

    async def get_cached(self, document_id: str) -> Optional[CacheRow]:
        raw = self._rows.get(document_id)
        return CacheRow.from_json(raw) if raw is not None else None

    async def save_cached(self, document_id: str, spans: Sequence[SpanBase], content_hash: str) -> None:
        row = CacheRow(document_id=document_id, spans=list(spans), content_hash=content_hash)
        self._rows[document_id] = row.to_json()

    async def delete(self, document_id: str) -> bool:
        return self._rows.pop(document_id, None) is not None


class RedisAnnotationCache:
    """Redis缓存仓库 - 异步操作，JSON序列化和TTL管理"""

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self._client = redis_client
        self._connected = False
        self.ttl = self.settings.redis_ttl
        self.prefix = self.settings.cache_key_prefix

    @property
    def client(self) -> redis.Redis:
        """获取Redis客户端，延迟连接"""
        if self._client is None:
            if not self.settings.redis_url:
                raise PersistenceError("redis_url is not configured", "connect")
            self._client = redis.from_url(
                self.settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                retry_on_timeout=True,
                socket_connect_timeout=5,
                socket_timeout=5
            )
        return self._client

    def _key(self, document_id: str) -> str:
        return f"{self.prefix}:{document_id}"

    async def connect(self) -> bool:
        """建立Redis连接"""
        try:
            await self.client.ping()
            self._connected = True
            logger.info("Redis连接成功", url=self.settings.redis_url)
            return True
        except Exception as e:
            logger.error("Redis连接失败", error=str(e))
            self._connected = False
            return False

    async def disconnect(self) -> None:
        """关闭Redis连接"""
        if self._client:
            await self._client.aclose()
            self._connected = False
            logger.info("Redis连接已关闭")

    async def get_cached(self, document_id: str) -> Optional[CacheRow]:
        key = self._key(document_id)
        try:
            value = await self.client.get(key)
        except PersistenceError:
            raise
        except Exception as e:
            logger.error("缓存获取失败", key=key, error=str(e))
            raise PersistenceError(str(e), "get", document_id) from e

        if value is None:
            logger.debug("缓存未命中", key=key)
            return None

        try:
            row = CacheRow.from_json(value)
        except ValueError as e:
            raise PersistenceError(f"corrupt cache row: {e}", "decode", document_id) from e

        logger.debug("缓存命中", key=key, spans=len(row.spans))
        return row

    async def save_cached(self, document_id: str, spans: Sequence[SpanBase], content_hash: str) -> None:
        key = self._key(document_id)
        row = CacheRow(document_id=document_id, spans=list(spans), content_hash=content_hash)
        try:
            await self.client.set(key, row.to_json(), ex=self.ttl)
        except PersistenceError:
            raise
        except Exception as e:
            logger.error("缓存设置失败", key=key, error=str(e))
            raise PersistenceError(str(e), "set", document_id) from e

        logger.debug("缓存设置成功", key=key, ttl=self.ttl, spans=len(spans))

    async def delete(self, document_id: str) -> bool:
        """删除缓存键"""
        key = self._key(document_id)
        try:
            return bool(await self.client.delete(key))
        except Exception as e:
            logger.error("缓存删除失败", key=key, error=str(e))
            raise PersistenceError(str(e), "delete", document_id) from e

    async def health_check(self) -> Dict[str, Any]:
        """健康检查"""
        try:
            await self.client.ping()
            return {"status": "healthy", "connected": True}
        except Exception as e:
            logger.error("Redis健康检查失败", error=str(e))
            return {"status": "unhealthy", "connected": False, "error": str(e)}

