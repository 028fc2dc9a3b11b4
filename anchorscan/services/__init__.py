"""
服务层 - 锚点对齐、坐标映射、事件总线与扫描编排
"""
from anchorscan.services.anchors import CONTEXT_LEN, attach_anchor, compute_selector_hash, create_anchor, hash_content
from anchorscan.services.coordinate_mapper import CoordinateMapper, flatten, map_offsets_to_document
from anchorscan.services.text_alignment import ResolutionTier, TextAlignmentService, realign, realign_batch

__all__ = [
    'CONTEXT_LEN',
    'attach_anchor',
    'compute_selector_hash',
    'create_anchor',
    'hash_content',
    'CoordinateMapper',
    'flatten',
    'map_offsets_to_document',
    'ResolutionTier',
    'TextAlignmentService',
    'realign',
    'realign_batch',
]
