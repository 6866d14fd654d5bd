"""
Sources of truth read by the scanners.

Each source is paged: count() gives the total number of records and
fetch(offset, limit) returns one bounded chunk in a stable order. Any source
may raise TransientSourceError; the scanners retry it.

Record types:
    ManagedFile       row of the file registry plus its declared usages
    ContentField      one text or link field value on some entity
    RemoteMedia       media entity wrapping a remote (oEmbed) URL
    MenuLink          navigation link

SiteSnapshot loads every source plus the content graph from one YAML file,
which is how the CLI scans a site exported by an external tool.
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Generic, List, Optional, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .content_graph import (
    ComponentEntity,
    ContentGraph,
    EntityRef,
    InMemoryContentGraph,
    ParentLink,
    RootEntity,
    StandaloneEntity,
)

logger = logging.getLogger("asset_inventory.sources")

T = TypeVar("T")

MENU_LINK_ENTITY_TYPE = "menu_link_content"


# =========================================================================
# RECORDS
# =========================================================================


@dataclass(frozen=True)
class EntityUsage:
    """An entity field that declares a reference to a file or media item."""
    host: EntityRef
    field_name: str
    count: int = 1


@dataclass
class ManagedFile:
    fid: int
    uri: str
    filename: str
    filemime: Optional[str] = None
    filesize: Optional[int] = None
    media_id: Optional[int] = None
    usages: List[EntityUsage] = field(default_factory=list)


@dataclass
class ContentField:
    host: EntityRef
    field_name: str
    field_type: str  # "text" or "link"
    value: Optional[str]


@dataclass
class RemoteMedia:
    media_id: int
    source_url: str
    name: Optional[str] = None
    bundle: Optional[str] = None
    usages: List[EntityUsage] = field(default_factory=list)


@dataclass
class MenuLink:
    link_id: str
    menu_name: str
    uri: str
    title: Optional[str] = None

    @property
    def ref(self) -> EntityRef:
        return EntityRef(MENU_LINK_ENTITY_TYPE, str(self.link_id))


# =========================================================================
# SOURCE INTERFACES
# =========================================================================


class RecordSource(ABC, Generic[T]):
    """Paged, stably ordered access to one kind of record."""

    @abstractmethod
    async def count(self) -> int:
        """Total number of records."""

    @abstractmethod
    async def fetch(self, offset: int, limit: int) -> Sequence[T]:
        """Records [offset, offset + limit) in stable order."""


class InMemoryRecordSource(RecordSource[T]):
    """List-backed source."""

    def __init__(self, records: Optional[Sequence[T]] = None):
        self.records: List[T] = list(records or [])

    async def count(self) -> int:
        return len(self.records)

    async def fetch(self, offset: int, limit: int) -> Sequence[T]:
        return self.records[offset:offset + limit]


ManagedFileSource = RecordSource[ManagedFile]
ContentFieldSource = RecordSource[ContentField]
RemoteMediaSource = RecordSource[RemoteMedia]
MenuLinkSource = RecordSource[MenuLink]


@dataclass
class ScanSources:
    """Everything a scan reads."""
    graph: ContentGraph
    managed_files: RecordSource = field(default_factory=InMemoryRecordSource)
    content_fields: RecordSource = field(default_factory=InMemoryRecordSource)
    remote_media: RecordSource = field(default_factory=InMemoryRecordSource)
    menu_links: RecordSource = field(default_factory=InMemoryRecordSource)
    scan_filesystem: bool = True


# =========================================================================
# YAML SITE SNAPSHOT
# =========================================================================


def _entity_ref(value: str) -> EntityRef:
    return EntityRef.parse(value)


class SnapshotUsage(BaseModel):
    model_config = ConfigDict(extra='forbid')

    entity: str = Field(description="Hosting entity as type/id")
    field: str
    count: int = 1


class SnapshotEntity(BaseModel):
    """
    One content-graph entity.

    root=True marks a page-like entity. Otherwise, an entity with a parent is a
    component; an entity with neither is standalone.
    """
    model_config = ConfigDict(extra='forbid')

    type: str
    id: str
    bundle: Optional[str] = None
    revision_id: Optional[str] = None
    root: bool = False
    parent: Optional[str] = Field(default=None, description="Parent as type/id")
    parent_field: Optional[str] = None
    fields: Dict[str, List[str]] = Field(default_factory=dict, description="Child refs per field")

    @field_validator("id", "revision_id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return None if v is None else str(v)


class SnapshotManagedFile(BaseModel):
    model_config = ConfigDict(extra='forbid')

    fid: int
    uri: str
    filename: Optional[str] = None
    filemime: Optional[str] = None
    filesize: Optional[int] = None
    media_id: Optional[int] = None
    usages: List[SnapshotUsage] = Field(default_factory=list)


class SnapshotContentField(BaseModel):
    model_config = ConfigDict(extra='forbid')

    entity: str
    field: str
    type: str = "text"
    value: Optional[str] = None

    @field_validator("type")
    @classmethod
    def known_type(cls, v: str) -> str:
        if v not in ("text", "link"):
            raise ValueError(f"content field type must be 'text' or 'link', got {v!r}")
        return v


class SnapshotRemoteMedia(BaseModel):
    model_config = ConfigDict(extra='forbid')

    media_id: int
    source_url: str
    name: Optional[str] = None
    bundle: Optional[str] = None
    usages: List[SnapshotUsage] = Field(default_factory=list)


class SnapshotMenuLink(BaseModel):
    model_config = ConfigDict(extra='forbid')

    id: str
    menu: str = "main"
    uri: str
    title: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v)


class SiteSnapshot(BaseModel):
    """
    Root model of a site snapshot file.

    Usage:
        sources = SiteSnapshot.from_yaml("site.yml").to_sources()
    """
    model_config = ConfigDict(extra='forbid')

    entities: List[SnapshotEntity] = Field(default_factory=list)
    managed_files: List[SnapshotManagedFile] = Field(default_factory=list)
    content_fields: List[SnapshotContentField] = Field(default_factory=list)
    remote_media: List[SnapshotRemoteMedia] = Field(default_factory=list)
    menu_links: List[SnapshotMenuLink] = Field(default_factory=list)

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "SiteSnapshot":
        """
        Load and validate a snapshot file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If YAML is invalid or validation fails
        """
        import yaml

        if not os.path.exists(yaml_path):
            raise FileNotFoundError(f"Site snapshot not found: {yaml_path}")

        with open(yaml_path, 'r') as f:
            raw = yaml.safe_load(f) or {}

        return cls(**raw)

    def build_graph(self) -> InMemoryContentGraph:
        graph = InMemoryContentGraph()
        for item in self.entities:
            ref = EntityRef(item.type, item.id)
            fields = {name: [_entity_ref(v) for v in values] for name, values in item.fields.items()}
            if item.root:
                graph.add(RootEntity(ref=ref, bundle=item.bundle, revision_id=item.revision_id, fields=fields))
            elif item.parent is not None or item.parent_field is not None:
                parent = None
                if item.parent:
                    parent = ParentLink(_entity_ref(item.parent), item.parent_field or "")
                graph.add(
                    ComponentEntity(
                        ref=ref, parent=parent, bundle=item.bundle, revision_id=item.revision_id, fields=fields
                    )
                )
            else:
                graph.add(StandaloneEntity(ref=ref, bundle=item.bundle, revision_id=item.revision_id))

        # Menu links host their own references
        for link in self.menu_links:
            ref = EntityRef(MENU_LINK_ENTITY_TYPE, link.id)
            if ref not in graph:
                graph.add(StandaloneEntity(ref=ref, bundle=link.menu))
        return graph

    def to_sources(self) -> ScanSources:
        def usages(items: List[SnapshotUsage]) -> List[EntityUsage]:
            return [EntityUsage(_entity_ref(u.entity), u.field, u.count) for u in items]

        managed = [
            ManagedFile(
                fid=f.fid,
                uri=f.uri,
                filename=f.filename or f.uri.rsplit("/", 1)[-1],
                filemime=f.filemime,
                filesize=f.filesize,
                media_id=f.media_id,
                usages=usages(f.usages),
            )
            for f in sorted(self.managed_files, key=lambda f: f.fid)
        ]
        content = [
            ContentField(_entity_ref(c.entity), c.field, c.type, c.value) for c in self.content_fields
        ]
        remote = [
            RemoteMedia(m.media_id, m.source_url, m.name, m.bundle, usages(m.usages))
            for m in sorted(self.remote_media, key=lambda m: m.media_id)
        ]
        menu = [MenuLink(link.id, link.menu, link.uri, link.title) for link in self.menu_links]

        logger.info(
            f"Snapshot loaded: {len(self.entities)} entities, {len(managed)} files, "
            f"{len(content)} fields, {len(remote)} remote media, {len(menu)} menu links"
        )
        return ScanSources(
            graph=self.build_graph(),
            managed_files=InMemoryRecordSource(managed),
            content_fields=InMemoryRecordSource(content),
            remote_media=InMemoryRecordSource(remote),
            menu_links=InMemoryRecordSource(menu),
        )
