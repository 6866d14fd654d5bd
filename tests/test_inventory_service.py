"""
Tests for usage and orphan lookups over the live generation.
"""

import uuid

import pytest

from asset_inventory.core.path_resolver import url_hash
from asset_inventory.exceptions import RecordNotFoundError
from asset_inventory.services.inventory_service import InventoryService


@pytest.fixture
def inventory():
    return InventoryService()


class TestUsageSummary:
    @pytest.mark.asyncio
    async def test_in_use(self, session, inventory, make_asset, add_usage, add_orphan):
        asset = await make_asset()
        await add_usage(asset)
        await add_usage(asset, entity_id="2")
        await add_orphan(asset)

        summary = await inventory.get_usage_summary(session, asset.id)
        assert summary == {"usage_count": 2, "orphan_count": 1, "classification": "in_use"}

    @pytest.mark.asyncio
    async def test_orphan_only(self, session, inventory, make_asset, add_orphan):
        """Orphan references never count as usage."""
        asset = await make_asset()
        await add_orphan(asset)

        summary = await inventory.get_usage_summary(session, asset.id)
        assert summary["usage_count"] == 0
        assert summary["classification"] == "orphan_only"

    @pytest.mark.asyncio
    async def test_unused(self, session, inventory, make_asset):
        asset = await make_asset()
        summary = await inventory.get_usage_summary(session, asset.id)
        assert summary == {"usage_count": 0, "orphan_count": 0, "classification": "unused"}


class TestLiveGeneration:
    @pytest.mark.asyncio
    async def test_staged_rows_are_invisible(self, session, inventory, make_asset, add_usage):
        """Counts by identity only look at the live generation."""
        staged = await make_asset(is_temp=True)
        await add_usage(staged)

        h = url_hash("public://docs/report.pdf")
        assert await inventory.find_live_asset(session, h) is None
        assert await inventory.usage_count_for_hash(session, h) == 0
        assert await inventory.count_assets(session) == 0

    @pytest.mark.asyncio
    async def test_counts_by_hash(self, session, inventory, make_asset, add_usage, add_orphan):
        live = await make_asset()
        staged = await make_asset(is_temp=True)
        await add_usage(live)
        await add_usage(staged, entity_id="7")
        await add_orphan(live)

        h = url_hash("public://docs/report.pdf")
        assert await inventory.usage_count_for_hash(session, h) == 1
        assert await inventory.orphan_count_for_hash(session, h) == 1
        assert (await inventory.find_live_asset(session, h)).id == live.id

    @pytest.mark.asyncio
    async def test_unknown_hash_counts_zero(self, session, inventory):
        assert await inventory.usage_count_for_hash(session, url_hash("public://nowhere.pdf")) == 0

    @pytest.mark.asyncio
    async def test_get_live_asset_rejects_staged(self, session, inventory, make_asset):
        staged = await make_asset(is_temp=True)
        with pytest.raises(RecordNotFoundError):
            await inventory.get_live_asset(session, staged.id)
        with pytest.raises(RecordNotFoundError):
            await inventory.get_live_asset(session, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_find_by_fid(self, session, inventory, make_asset):
        asset = await make_asset(fid=42)
        assert (await inventory.find_live_asset_by_fid(session, 42)).id == asset.id
        assert await inventory.find_live_asset_by_fid(session, 43) is None


class TestListing:
    @pytest.mark.asyncio
    async def test_ordered_by_category_then_name(self, session, inventory, make_asset):
        await make_asset("public://b.pdf", fid=1)
        await make_asset("public://a.pdf", fid=2)
        await make_asset("public://clip.mp4", fid=3, asset_type="mp4", category="Videos")

        names = [a.file_name for a in await inventory.list_assets(session)]
        assert names == ["a.pdf", "b.pdf", "clip.mp4"]

    @pytest.mark.asyncio
    async def test_filters_and_paging(self, session, inventory, make_asset):
        await make_asset("public://a.pdf", fid=1)
        await make_asset("public://b.pdf", fid=2)
        await make_asset("public://clip.mp4", fid=3, asset_type="mp4", category="Videos")

        videos = await inventory.list_assets(session, category="Videos")
        assert [a.file_name for a in videos] == ["clip.mp4"]
        page = await inventory.list_assets(session, limit=1, offset=1)
        assert [a.file_name for a in page] == ["b.pdf"]
        assert await inventory.count_assets(session, category="Documents") == 2

    @pytest.mark.asyncio
    async def test_list_usages_and_orphans(self, session, inventory, make_asset, add_usage, add_orphan):
        asset = await make_asset()
        await add_usage(asset, entity_id="2")
        await add_usage(asset, entity_id="1")
        await add_orphan(asset)

        usages = await inventory.list_usages(session, asset.id)
        assert [u.entity_id for u in usages] == ["1", "2"]
        orphans = await inventory.list_orphans(session, asset.id)
        assert orphans[0].reference_context == "detached_component"
