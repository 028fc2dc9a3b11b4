"""
数据模型 - span 记录、关系记录与文档坐标类型
"""
from anchorscan.models.document import (
    BlockDocument,
    DocumentRange,
    FlattenedDocument,
    Segment,
    StructuredDocument,
    TextNode,
)
from anchorscan.models.relations import ExtractedRelation, ExtractionEntity
from anchorscan.models.spans import (
    CandidateSpan,
    DecorationSpan,
    EntityKind,
    EntitySpan,
    LinkSpan,
    RelationshipSpan,
    SpanBase,
    SpanType,
    TextQuoteSelector,
    dump_spans,
    parse_span,
    parse_spans,
)

__all__ = [
    'BlockDocument',
    'DocumentRange',
    'FlattenedDocument',
    'Segment',
    'StructuredDocument',
    'TextNode',
    'ExtractedRelation',
    'ExtractionEntity',
    'CandidateSpan',
    'DecorationSpan',
    'EntityKind',
    'EntitySpan',
    'LinkSpan',
    'RelationshipSpan',
    'SpanBase',
    'SpanType',
    'TextQuoteSelector',
    'dump_spans',
    'parse_span',
    'parse_spans',
]
