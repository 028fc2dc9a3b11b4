"""
Decoration span records - tagged variants keyed by the ``type`` field.

Spans are immutable. Moving a span produces a new record via ``relocated``;
the JSON shape (``from``/``to`` plus camelCase optional fields) is what the
annotation cache stores and what scanners hand back.
"""
from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Iterable, List, Literal, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic.alias_generators import to_camel


class SpanType(str, Enum):
    """Types of detected spans"""
    ENTITY = "entity"
    ENTITY_REF = "entity_ref"
    WIKILINK = "wikilink"
    RELATIONSHIP = "relationship"
    PREDICATE = "predicate"
    ENTITY_IMPLICIT = "entity_implicit"
    ENTITY_CANDIDATE = "entity_candidate"


class EntityKind(str, Enum):
    """Entity kinds understood by the registry"""
    CHARACTER = "CHARACTER"
    LOCATION = "LOCATION"
    ORGANIZATION = "ORGANIZATION"
    ITEM = "ITEM"
    CONCEPT = "CONCEPT"
    EVENT = "EVENT"
    FACTION = "FACTION"
    CREATURE = "CREATURE"
    NPC = "NPC"
    SCENE = "SCENE"
    ARC = "ARC"
    ACT = "ACT"
    CHAPTER = "CHAPTER"
    BEAT = "BEAT"
    TIMELINE = "TIMELINE"
    NARRATIVE = "NARRATIVE"
    NETWORK = "NETWORK"
    CUSTOM = "CUSTOM"
    UNKNOWN = "UNKNOWN"


class TextQuoteSelector(BaseModel):
    """Exact quote plus bounded surrounding context (Web Annotation model)."""

    model_config = ConfigDict(frozen=True)

    exact: str
    prefix: str = ""
    suffix: str = ""


class SpanBase(BaseModel):
    """Fields shared by every span variant."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    start: int = Field(alias="from", ge=0)
    end: int = Field(alias="to", ge=0)
    label: str = ""
    selector: Optional[TextQuoteSelector] = None

    @model_validator(mode="after")
    def _check_range(self) -> "SpanBase":
        if self.start >= self.end:
            raise ValueError(f"span range must be non-empty, got [{self.start}, {self.end})")
        return self

    @property
    def length(self) -> int:
        return self.end - self.start

    def relocated(self, start: int, end: int):
        """Return a copy of this span moved to ``[start, end)``."""
        if start < 0 or start >= end:
            raise ValueError(f"span range must be non-empty, got [{start}, {end})")
        if start == self.start and end == self.end:
            return self
        return self.model_copy(update={"start": start, "end": end})

    def with_selector(self, selector: TextQuoteSelector):
        return self.model_copy(update={"selector": selector})

    def to_record(self) -> dict[str, Any]:
        """JSON-compatible record, omitting unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class EntitySpan(SpanBase):
    """Plain entity, explicit entity reference, or implicitly detected entity."""

    type: Literal["entity", "entity_ref", "entity_implicit"] = "entity"
    kind: Optional[EntityKind] = None
    entity_id: Optional[str] = None
    matched_text: Optional[str] = None
    resolved: Optional[bool] = None


class LinkSpan(SpanBase):
    """Cross-document ``[[target|alias]]`` link."""

    type: Literal["wikilink"] = "wikilink"
    target: Optional[str] = None
    display_text: Optional[str] = None
    note_id: Optional[str] = None
    resolved: Optional[bool] = None


class RelationshipSpan(SpanBase):
    """Relationship or predicate fragment between two entities."""

    type: Literal["relationship", "predicate"] = "relationship"
    source_entity: Optional[str] = None
    target_entity: Optional[str] = None
    verb: Optional[str] = None
    direction: Optional[Literal["forward", "backward", "bidirectional"]] = None


class CandidateSpan(SpanBase):
    """Unconfirmed entity candidate surfaced by discovery."""

    type: Literal["entity_candidate"] = "entity_candidate"
    kind: EntityKind = EntityKind.UNKNOWN
    score: Optional[float] = None
    candidate_ids: Optional[List[str]] = None
    candidate_labels: Optional[List[str]] = None
    resolved: bool = False


DecorationSpan = Annotated[
    Union[EntitySpan, LinkSpan, RelationshipSpan, CandidateSpan],
    Field(discriminator="type"),
]

_span_adapter: TypeAdapter = TypeAdapter(DecorationSpan)
_span_list_adapter: TypeAdapter = TypeAdapter(List[DecorationSpan])


def parse_span(payload: Any) -> SpanBase:
    """Validate one span record into its variant."""
    return _span_adapter.validate_python(payload)


def parse_spans(payload: Iterable[Any]) -> List[SpanBase]:
    return _span_list_adapter.validate_python(list(payload))


def dump_spans(spans: Sequence[SpanBase]) -> List[dict[str, Any]]:
    return [span.to_record() for span in spans]


def is_entity_span(span: SpanBase) -> bool:
    return isinstance(span, EntitySpan)


def is_relationship_span(span: SpanBase) -> bool:
    return isinstance(span, RelationshipSpan)


def expected_text(span: SpanBase) -> str:
    """Literal text a span claims to cover, used when it carries no selector."""
    if isinstance(span, EntitySpan):
        return span.matched_text or span.label
    if isinstance(span, (LinkSpan, RelationshipSpan, CandidateSpan)):
        return span.label
    raise TypeError(f"Unsupported span variant: {type(span).__name__}")
