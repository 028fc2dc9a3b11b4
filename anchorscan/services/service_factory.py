"""
服务工厂 - 统一的服务创建和组装
所有组件都由显式的 Settings 实例构建, 这里没有模块级单例
"""
from typing import TYPE_CHECKING, Optional

from anchorscan.core.config import Settings, get_settings
from anchorscan.core.errors import InvalidInputError

# 避免循环导入，使用TYPE_CHECKING
if TYPE_CHECKING:
    from anchorscan.repositories.annotation_cache import AnnotationCache
    from anchorscan.repositories.graph_registry import GraphRegistry
    from anchorscan.services.annotation_session import AnnotationSession, SpanScanner
    from anchorscan.services.extraction_client import HttpRelationExtractor
    from anchorscan.services.scan_coordinator import RelationExtractor, RelationsCallback, ScanCoordinator


class ServiceFactory:
    """
    服务工厂 - 提供统一的服务组装接口

    同一编辑器的所有会话共享一个协调器; 每个打开的文档创建一个会话
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def create_extractor(self) -> 'HttpRelationExtractor':
        """获取HTTP关系抽取客户端"""
        from anchorscan.services.extraction_client import HttpRelationExtractor
        if not self.settings.extraction_base_url:
            raise InvalidInputError("extraction_base_url is not configured", field="extraction_base_url")
        return HttpRelationExtractor(
            base_url=self.settings.extraction_base_url,
            api_key=self.settings.extraction_api_key,
            timeout=self.settings.extraction_timeout,
        )

    def create_registry(self) -> 'GraphRegistry':
        """获取内存图谱注册表"""
        from anchorscan.repositories.graph_registry import InMemoryGraphRegistry
        return InMemoryGraphRegistry()

    def create_cache(self) -> 'AnnotationCache':
        """配置了Redis时使用Redis, 否则使用内存缓存"""
        from anchorscan.repositories.annotation_cache import InMemoryAnnotationCache, RedisAnnotationCache
        if self.settings.cache_enabled:
            return RedisAnnotationCache(settings=self.settings)
        return InMemoryAnnotationCache()

    def create_coordinator(
        self,
        extractor: Optional['RelationExtractor'] = None,
        registry: Optional['GraphRegistry'] = None,
        on_new_relations: Optional['RelationsCallback'] = None,
    ) -> 'ScanCoordinator':
        """获取扫描协调器"""
        from anchorscan.services.scan_coordinator import ScanCoordinator
        return ScanCoordinator(
            extractor=extractor or self.create_extractor(),
            registry=registry or self.create_registry(),
            on_new_relations=on_new_relations,
            settings=self.settings,
        )

    def create_session(
        self,
        document_id: str,
        span_scanner: 'SpanScanner',
        coordinator: 'ScanCoordinator',
        cache: Optional['AnnotationCache'] = None,
    ) -> 'AnnotationSession':
        """获取单文档标注会话"""
        from anchorscan.services.annotation_session import AnnotationSession
        return AnnotationSession(
            document_id=document_id,
            span_scanner=span_scanner,
            coordinator=coordinator,
            cache=cache,
            settings=self.settings,
        )
