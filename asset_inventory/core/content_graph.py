"""
Content-graph accessor.

The inventory never inspects entity kinds by name. Every entity exposes a
small set of capabilities instead:

    IsRoot       the entity is a top-level page-like entity
    HasChildren  the entity declares child references per field
    HasParent    the entity is a component that points at its parent

An entity with neither IsRoot nor HasParent has no parent indirection and is
treated as a root as well (menu links, blocks, users, ...).

ContentGraph is the read interface the reachability resolver walks;
InMemoryContentGraph implements it for site snapshots and tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence


@dataclass(frozen=True)
class EntityRef:
    """Type + id of a content entity."""
    entity_type: str
    entity_id: str

    @classmethod
    def parse(cls, value: str) -> "EntityRef":
        """Parse "type/id" (e.g. "node/12")."""
        entity_type, sep, entity_id = str(value).partition("/")
        if not sep or not entity_type or not entity_id:
            raise ValueError(f"Invalid entity reference: {value!r} (expected 'type/id')")
        return cls(entity_type, entity_id)

    def __str__(self) -> str:
        return f"{self.entity_type}/{self.entity_id}"


@dataclass(frozen=True)
class ParentLink:
    """Where a component claims to live: its parent and the parent's field."""
    parent: EntityRef
    field_name: str


# =========================================================================
# CAPABILITIES
# =========================================================================


class ContentEntity(ABC):
    """Any loadable content entity."""

    ref: EntityRef
    bundle: Optional[str] = None
    revision_id: Optional[str] = None


class IsRoot(ABC):
    """Marker: the entity is a live root (page-like) entity."""


class HasChildren(ABC):
    @abstractmethod
    def child_refs(self, field_name: str) -> Sequence[EntityRef]:
        """Children currently declared in `field_name` (empty when the field is absent)."""


class HasParent(ABC):
    @abstractmethod
    def parent_link(self) -> Optional[ParentLink]:
        """The component's parent pointer, or None when it has none."""


class ContentGraph(ABC):
    """Read-only access to the content graph."""

    @abstractmethod
    async def load(self, ref: EntityRef) -> Optional[ContentEntity]:
        """Load an entity, or None when it does not exist."""


# =========================================================================
# IN-MEMORY IMPLEMENTATION
# =========================================================================


@dataclass
class RootEntity(ContentEntity, IsRoot, HasChildren):
    ref: EntityRef
    bundle: Optional[str] = None
    revision_id: Optional[str] = None
    fields: Dict[str, List[EntityRef]] = field(default_factory=dict)

    def child_refs(self, field_name: str) -> Sequence[EntityRef]:
        return self.fields.get(field_name, [])


@dataclass
class ComponentEntity(ContentEntity, HasParent, HasChildren):
    ref: EntityRef
    parent: Optional[ParentLink] = None
    bundle: Optional[str] = None
    revision_id: Optional[str] = None
    fields: Dict[str, List[EntityRef]] = field(default_factory=dict)

    def parent_link(self) -> Optional[ParentLink]:
        return self.parent

    def child_refs(self, field_name: str) -> Sequence[EntityRef]:
        return self.fields.get(field_name, [])


@dataclass
class StandaloneEntity(ContentEntity):
    """Entity without parent indirection or children (menu links, blocks)."""
    ref: EntityRef
    bundle: Optional[str] = None
    revision_id: Optional[str] = None


class InMemoryContentGraph(ContentGraph):
    """Dictionary-backed content graph."""

    def __init__(self, entities: Optional[Iterable[ContentEntity]] = None):
        self._entities: Dict[EntityRef, ContentEntity] = {}
        for entity in entities or ():
            self.add(entity)

    def add(self, entity: ContentEntity) -> ContentEntity:
        self._entities[entity.ref] = entity
        return entity

    def remove(self, ref: EntityRef) -> None:
        self._entities.pop(ref, None)

    async def load(self, ref: EntityRef) -> Optional[ContentEntity]:
        return self._entities.get(ref)

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, ref: EntityRef) -> bool:
        return ref in self._entities
