"""
Reachability resolution for asset sightings.

A sighting is hosted by some content entity. The resolver walks from that
entity up its parent chain until it reaches a root, verifying at every hop
that the parent still declares the child in the expected field. Storage
presence alone is not attachment: a component that exists but was dropped
from its parent's field is detached.

Outcomes form a closed set of variants:

    Reachable(root, chain)      attribute usage to `root`
    Orphan(source, reason)      record an orphan reference on `source`
    NotFound(ref)               the host no longer exists, record nothing

Result objects refuse truth-testing so callers must match on the variant:

    result = await resolver.resolve(ref)
    if isinstance(result, Reachable): ...
    elif isinstance(result, Orphan): ...
    else: ...  # NotFound

Visibility and publication state play no part; attachment is structural.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from ..config import settings
from .content_graph import ContentGraph, EntityRef, HasChildren, HasParent, IsRoot

logger = logging.getLogger("asset_inventory.reachability")


class OrphanReason(str, Enum):
    MISSING_PARENT = "missing_parent_entity"
    DETACHED = "detached_component"


class Resolution:
    """Base of the resolution variants."""

    __slots__ = ()

    def __bool__(self):
        raise TypeError(
            f"{type(self).__name__} cannot be truth-tested; match on Reachable, Orphan or NotFound"
        )


@dataclass(frozen=True)
class Reachable(Resolution):
    root: EntityRef
    chain: Tuple[EntityRef, ...] = ()


@dataclass(frozen=True)
class Orphan(Resolution):
    source: EntityRef
    reason: OrphanReason
    bundle: Optional[str] = None
    revision_id: Optional[str] = None
    detail: str = ""


@dataclass(frozen=True)
class NotFound(Resolution):
    ref: EntityRef


class ReachabilityResolver:
    """
    Iterative parent-chain walker.

    Results are memoized per resolver instance; create one resolver per scan
    so the cache never outlives the graph state it was computed from.

    Attributes:
        graph: Content-graph accessor
        max_depth: Parent hops walked before the chain is declared detached
    """

    def __init__(self, graph: ContentGraph, max_depth: Optional[int] = None):
        self.graph = graph
        self.max_depth = max_depth if max_depth is not None else settings.max_reachability_depth
        self._cache: Dict[EntityRef, Resolution] = {}

    async def resolve(self, ref: EntityRef) -> Resolution:
        """
        Classify the entity hosting a sighting.

        Args:
            ref: Entity hosting the reference

        Returns:
            Reachable, Orphan or NotFound
        """
        cached = self._cache.get(ref)
        if cached is not None:
            return cached
        result = await self._walk(ref)
        self._cache[ref] = result
        return result

    async def _walk(self, ref: EntityRef) -> Resolution:
        source = await self.graph.load(ref)
        if source is None:
            return NotFound(ref)

        def orphan(reason: OrphanReason, detail: str) -> Orphan:
            return Orphan(
                source=source.ref,
                reason=reason,
                bundle=getattr(source, "bundle", None),
                revision_id=getattr(source, "revision_id", None),
                detail=detail,
            )

        current = source
        chain = [source.ref]
        visited = {source.ref}

        while True:
            if isinstance(current, IsRoot) or not isinstance(current, HasParent):
                return Reachable(root=current.ref, chain=tuple(chain))

            link = current.parent_link()
            if link is None:
                return orphan(OrphanReason.MISSING_PARENT, f"{current.ref} has no parent")

            if link.parent in visited:
                logger.warning(f"Parent cycle detected resolving {ref}: {link.parent} already visited")
                return orphan(OrphanReason.DETACHED, f"cycle at {link.parent}")

            if len(chain) > self.max_depth:
                logger.warning(f"Parent chain for {ref} exceeds {self.max_depth} hops; treating as detached")
                return orphan(OrphanReason.DETACHED, "maximum depth exceeded")

            parent = await self.graph.load(link.parent)
            if parent is None:
                return orphan(OrphanReason.MISSING_PARENT, f"parent {link.parent} not found")

            if not isinstance(parent, HasChildren) or current.ref not in parent.child_refs(link.field_name):
                return orphan(
                    OrphanReason.DETACHED,
                    f"{current.ref} not listed in {parent.ref}.{link.field_name}",
                )

            visited.add(parent.ref)
            chain.append(parent.ref)
            current = parent

    def clear_cache(self) -> None:
        self._cache.clear()
