"""
Tests for the reachability resolver.

The content graph is built in memory; each test wires up the parent chain
it needs.
"""

import pytest

from asset_inventory.core.content_graph import (
    ComponentEntity,
    EntityRef,
    InMemoryContentGraph,
    ParentLink,
    RootEntity,
    StandaloneEntity,
)
from asset_inventory.core.reachability import (
    NotFound,
    Orphan,
    OrphanReason,
    Reachable,
    ReachabilityResolver,
)

NODE = EntityRef("node", "1")
PARA = EntityRef("paragraph", "10")
NESTED = EntityRef("paragraph", "11")


def attached_graph() -> InMemoryContentGraph:
    """node/1 -> field_body -> paragraph/10 -> field_items -> paragraph/11"""
    return InMemoryContentGraph(
        [
            RootEntity(ref=NODE, bundle="page", fields={"field_body": [PARA]}),
            ComponentEntity(
                ref=PARA,
                parent=ParentLink(NODE, "field_body"),
                bundle="accordion",
                fields={"field_items": [NESTED]},
            ),
            ComponentEntity(ref=NESTED, parent=ParentLink(PARA, "field_items"), bundle="text", revision_id="77"),
        ]
    )


class CountingGraph(InMemoryContentGraph):
    def __init__(self, entities):
        super().__init__(entities)
        self.loads = 0

    async def load(self, ref):
        self.loads += 1
        return await super().load(ref)


class TestReachable:
    @pytest.mark.asyncio
    async def test_root_hosts_itself(self):
        """A root entity is its own root."""
        result = await ReachabilityResolver(attached_graph()).resolve(NODE)
        assert isinstance(result, Reachable)
        assert result.root == NODE

    @pytest.mark.asyncio
    async def test_component_chain(self):
        """Nested components resolve to the top-level root."""
        result = await ReachabilityResolver(attached_graph()).resolve(NESTED)
        assert isinstance(result, Reachable)
        assert result.root == NODE
        assert result.chain == (NESTED, PARA, NODE)

    @pytest.mark.asyncio
    async def test_standalone_entity_is_root(self):
        """Entities without parent indirection (menu links) count as roots."""
        link = EntityRef("menu_link_content", "5")
        graph = InMemoryContentGraph([StandaloneEntity(ref=link, bundle="main")])
        result = await ReachabilityResolver(graph).resolve(link)
        assert isinstance(result, Reachable)
        assert result.root == link


class TestOrphans:
    @pytest.mark.asyncio
    async def test_detached_component(self):
        """A component that still exists but was removed from its parent's field."""
        graph = attached_graph()
        graph.add(RootEntity(ref=NODE, bundle="page", fields={"field_body": []}))

        result = await ReachabilityResolver(graph).resolve(PARA)
        assert isinstance(result, Orphan)
        assert result.reason == OrphanReason.DETACHED
        assert result.source == PARA
        assert result.bundle == "accordion"

    @pytest.mark.asyncio
    async def test_detachment_anywhere_in_chain(self):
        """Detaching an ancestor orphans every descendant, reported on the original host."""
        graph = attached_graph()
        graph.add(RootEntity(ref=NODE, fields={"field_body": []}))

        result = await ReachabilityResolver(graph).resolve(NESTED)
        assert isinstance(result, Orphan)
        assert result.reason == OrphanReason.DETACHED
        assert result.source == NESTED
        assert result.revision_id == "77"

    @pytest.mark.asyncio
    async def test_listed_in_wrong_field(self):
        graph = attached_graph()
        graph.add(RootEntity(ref=NODE, fields={"field_sidebar": [PARA]}))
        result = await ReachabilityResolver(graph).resolve(PARA)
        assert isinstance(result, Orphan)
        assert result.reason == OrphanReason.DETACHED

    @pytest.mark.asyncio
    async def test_missing_parent(self):
        """The parent pointer leads to an entity that no longer exists."""
        graph = attached_graph()
        graph.remove(NODE)
        result = await ReachabilityResolver(graph).resolve(PARA)
        assert isinstance(result, Orphan)
        assert result.reason == OrphanReason.MISSING_PARENT

    @pytest.mark.asyncio
    async def test_component_without_parent_pointer(self):
        orphan = EntityRef("paragraph", "99")
        graph = InMemoryContentGraph([ComponentEntity(ref=orphan, parent=None)])
        result = await ReachabilityResolver(graph).resolve(orphan)
        assert isinstance(result, Orphan)
        assert result.reason == OrphanReason.MISSING_PARENT

    @pytest.mark.asyncio
    async def test_cycle_is_detached(self):
        """A parent cycle never terminates at a root."""
        a = EntityRef("paragraph", "a")
        b = EntityRef("paragraph", "b")
        graph = InMemoryContentGraph(
            [
                ComponentEntity(ref=a, parent=ParentLink(b, "field_items"), fields={"field_items": [b]}),
                ComponentEntity(ref=b, parent=ParentLink(a, "field_items"), fields={"field_items": [a]}),
            ]
        )
        result = await ReachabilityResolver(graph).resolve(a)
        assert isinstance(result, Orphan)
        assert result.reason == OrphanReason.DETACHED

    @pytest.mark.asyncio
    async def test_depth_limit(self):
        """Chains longer than max_depth are treated as detached."""
        graph = attached_graph()
        assert isinstance(await ReachabilityResolver(graph, max_depth=2).resolve(NESTED), Reachable)

        deeper = EntityRef("paragraph", "12")
        graph.add(ComponentEntity(ref=NESTED, parent=ParentLink(PARA, "field_items"), fields={"field_items": [deeper]}))
        graph.add(ComponentEntity(ref=deeper, parent=ParentLink(NESTED, "field_items")))
        result = await ReachabilityResolver(graph, max_depth=2).resolve(deeper)
        assert isinstance(result, Orphan)
        assert result.reason == OrphanReason.DETACHED


class TestNotFound:
    @pytest.mark.asyncio
    async def test_missing_host(self):
        ghost = EntityRef("node", "404")
        result = await ReachabilityResolver(attached_graph()).resolve(ghost)
        assert isinstance(result, NotFound)
        assert result.ref == ghost


class TestResolverBehaviour:
    @pytest.mark.asyncio
    async def test_results_refuse_truth_testing(self):
        """Callers must match on the variant instead of truthiness."""
        result = await ReachabilityResolver(attached_graph()).resolve(NODE)
        with pytest.raises(TypeError):
            bool(result)

    @pytest.mark.asyncio
    async def test_memoized_per_instance(self):
        graph = CountingGraph(list(attached_graph()._entities.values()))
        resolver = ReachabilityResolver(graph)

        await resolver.resolve(NESTED)
        loads = graph.loads
        await resolver.resolve(NESTED)
        assert graph.loads == loads

        resolver.clear_cache()
        await resolver.resolve(NESTED)
        assert graph.loads == loads * 2

    def test_entity_ref_parse(self):
        assert EntityRef.parse("node/12") == EntityRef("node", "12")
        assert str(EntityRef("node", "12")) == "node/12"
        with pytest.raises(ValueError):
            EntityRef.parse("node")
