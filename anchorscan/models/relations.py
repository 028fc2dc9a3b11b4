"""
关系抽取数据模型 - 发送给抽取引擎的实体与引擎返回的关系
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ExtractionEntity(BaseModel):
    """发送给抽取引擎的实体"""
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    id: str
    label: str
    start: int = 0
    end: int = 0


class ExtractedRelation(BaseModel):
    """抽取引擎返回的关系"""
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    source: str
    target: str
    relation_type: str = Field(alias="type")
    verb: Optional[str] = None
    confidence: float = 1.0
    source_sentence: Optional[str] = None
    source_note: Optional[str] = None

    def for_document(self, document_id: str) -> "ExtractedRelation":
        """引擎未填写来源文档时补上文档ID"""
        if self.source_note:
            return self
        return self.model_copy(update={"source_note": document_id})


class RelationExtractionResponse(BaseModel):
    """抽取引擎响应格式"""
    relations: List[ExtractedRelation] = Field(default_factory=list)
