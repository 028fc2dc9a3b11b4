"""
数据访问层 - 图谱注册表与装饰缓存
"""
from anchorscan.repositories.annotation_cache import (
    AnnotationCache,
    CacheRow,
    InMemoryAnnotationCache,
    RedisAnnotationCache,
)
from anchorscan.repositories.graph_registry import GraphRegistry, InMemoryGraphRegistry, generate_entity_id

__all__ = [
    'AnnotationCache',
    'CacheRow',
    'InMemoryAnnotationCache',
    'RedisAnnotationCache',
    'GraphRegistry',
    'InMemoryGraphRegistry',
    'generate_entity_id',
]
