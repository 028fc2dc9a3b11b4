"""
Graph registry - external store for entities and relationships.

The scanning core only consumes this protocol; InMemoryGraphRegistry is the
reference implementation used for composition and tests.
"""
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple, Union

from anchorscan.core.logging import get_logger
from anchorscan.models.relations import ExtractedRelation
from anchorscan.models.spans import EntityKind

logger = get_logger(__name__)


@dataclass
class RegisteredEntity:
    """Entity known to the registry"""
    id: str
    label: str
    kind: EntityKind
    first_note: str
    aliases: List[str] = field(default_factory=list)
    mentions_by_note: Dict[str, int] = field(default_factory=dict)
    total_mentions: int = 0
    created_by: str = "user"
    registered_at: float = field(default_factory=time.time)
    last_seen_at: float = field(default_factory=time.time)


@dataclass
class Edge:
    """Directed relationship between two registered entities"""
    source_id: str
    target_id: str
    relation_type: str
    source_note: Optional[str] = None
    weight: int = 1


RelationLike = Union[ExtractedRelation, Mapping[str, Any]]


class GraphRegistry(Protocol):
    """Registry operations the scanning core relies on"""

    def register_entity(
        self,
        label: str,
        kind: Optional[EntityKind],
        document_id: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Any: ...

    def upsert_relationship(self, relation: RelationLike) -> Any: ...

    def is_registered_entity(self, label: str) -> bool: ...

    def find_entity_by_label(self, label: str) -> Optional[Any]: ...


def generate_entity_id(label: str, kind: Optional[EntityKind]) -> str:
    """Stable slug id derived from label and kind"""
    normalized = re.sub(r"[^a-z0-9]+", "_", label.lower().strip()).strip("_")
    prefix = (kind or EntityKind.UNKNOWN).value.lower()
    return f"{prefix}:{normalized}"


def _relation_fields(relation: RelationLike) -> Tuple[str, str, str, Optional[str]]:
    if isinstance(relation, ExtractedRelation):
        return relation.source, relation.target, relation.relation_type, relation.source_note
    relation_type = relation.get("type") or relation.get("relation_type") or ""
    source_note = relation.get("source_note") or relation.get("sourceNote")
    return str(relation.get("source", "")), str(relation.get("target", "")), str(relation_type), source_note


class InMemoryGraphRegistry:
    """In-memory registry; label lookup is case-insensitive and upserts are idempotent"""

    def __init__(self):
        self._entities: Dict[str, RegisteredEntity] = {}
        self._label_index: Dict[str, str] = {}
        self._edges: Dict[Tuple[str, str, str], Edge] = {}

    def register_entity(
        self,
        label: str,
        kind: Optional[EntityKind],
        document_id: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> RegisteredEntity:
        options = dict(options or {})
        existing = self.find_entity_by_label(label)
        now = time.time()

        if existing is not None:
            existing.last_seen_at = now
            existing.mentions_by_note[document_id] = existing.mentions_by_note.get(document_id, 0) + 1
            for alias in options.get("aliases", []):
                if alias not in existing.aliases:
                    existing.aliases.append(alias)
            return existing

        source = options.get("source", "user")
        entity = RegisteredEntity(
            id=generate_entity_id(label, kind),
            label=label,
            kind=kind or EntityKind.UNKNOWN,
            first_note=document_id,
            aliases=list(options.get("aliases", [])),
            mentions_by_note={document_id: 1},
            total_mentions=0 if source == "auto" else 1,
            created_by=source,
            registered_at=now,
            last_seen_at=now,
        )
        self._entities[entity.id] = entity
        self._label_index[label.lower()] = entity.id
        logger.debug("entity_registered", entity_id=entity.id, label=label, document_id=document_id)
        return entity

    def upsert_relationship(self, relation: RelationLike) -> Optional[Edge]:
        """Create or reinforce an edge; both endpoints must already be registered"""
        source_label, target_label, relation_type, source_note = _relation_fields(relation)
        source = self.find_entity_by_label(source_label)
        target = self.find_entity_by_label(target_label)
        if source is None or target is None or not relation_type:
            return None

        key = (source.id, target.id, relation_type)
        edge = self._edges.get(key)
        if edge is None:
            edge = Edge(source_id=source.id, target_id=target.id, relation_type=relation_type, source_note=source_note)
            self._edges[key] = edge
        else:
            edge.weight += 1
        return edge

    def is_registered_entity(self, label: str) -> bool:
        return label.lower() in self._label_index

    def find_entity_by_label(self, label: str) -> Optional[RegisteredEntity]:
        entity_id = self._label_index.get(label.lower())
        return self._entities.get(entity_id) if entity_id else None

    def entities(self) -> List[RegisteredEntity]:
        return list(self._entities.values())

    def edges(self) -> List[Edge]:
        return list(self._edges.values())

    def edges_for_entity(self, entity_id: str) -> List[Edge]:
        return [e for e in self._edges.values() if entity_id in (e.source_id, e.target_id)]
