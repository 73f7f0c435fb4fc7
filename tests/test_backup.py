"""
Unit tests for configuration export, import and reset
"""

import pytest

from core.errors import StorageError
from storage.areas import create_memory_areas
from storage.context import StorageContext


class TestExport:
    """Tests for BackupManager.export_configuration"""

    @pytest.mark.asyncio
    async def test_export_contains_profiles_and_tabs(self, ctx, sample_tabs):
        # Arrange
        profile = await ctx.profiles.create_profile("Work")
        await ctx.profiles.switch_active_profile(profile.id)
        await ctx.profiles.save_tabs(sample_tabs)

        # Act
        backup = await ctx.backup.export_configuration("1.4.0")

        # Assert
        data = backup.to_storage()
        assert data["version"] == "1.4.0"
        assert [p["id"] for p in data["profiles"]] == [profile.id]
        assert data["profileTabs"] == {profile.id: sample_tabs}
        assert data["customTabs"] == sample_tabs
        assert data["userSettings"]["activeProfileId"] == profile.id
        assert data["exportedAt"].endswith("Z")


class TestImport:
    """Tests for BackupManager.import_configuration"""

    @pytest.mark.asyncio
    async def test_round_trip_into_fresh_storage(self, ctx, sample_tabs):
        """Test an export restores profiles, tabs and settings elsewhere"""
        # Arrange
        profile = await ctx.profiles.create_profile("Work", ["https://a.example.com"])
        await ctx.profiles.switch_active_profile(profile.id)
        await ctx.profiles.save_tabs(sample_tabs)
        exported = (await ctx.backup.export_configuration("1.4.0")).to_storage()

        areas = create_memory_areas()
        target = StorageContext.from_areas(areas["sync"], areas["local"])

        # Act
        summary = await target.backup.import_configuration(exported)

        # Assert
        assert summary == {"profiles": 1, "tabRecords": 1, "useSyncStorage": True}
        restored = await target.profiles.get_profiles()
        assert [(p.id, p.name, p.url_patterns) for p in restored] == [
            (profile.id, "Work", ["https://a.example.com"])
        ]
        assert await target.profiles.get_tabs() == sample_tabs

    @pytest.mark.asyncio
    async def test_legacy_backup(self, ctx, sync_area, sample_tabs):
        """Test a customTabs-only backup restores the legacy record"""
        await ctx.backup.import_configuration({
            "version": "2.0.0",
            "customTabs": sample_tabs,
            "userSettings": {"themeMode": "dark"},
        })

        assert await ctx.record_store.load("customTabs", sync_area) == sample_tabs
        assert (await ctx.settings.get_user_settings()).theme_mode == "dark"

    @pytest.mark.asyncio
    async def test_import_replaces_existing_data(self, ctx, sample_tabs):
        """Test existing profiles are gone after an import"""
        await ctx.profiles.create_profile("Old")

        await ctx.backup.import_configuration({"version": "2.0.0", "customTabs": sample_tabs})

        assert await ctx.profiles.get_profiles() == []

    @pytest.mark.asyncio
    async def test_invalid_document(self, ctx):
        with pytest.raises(StorageError, match="missing customTabs"):
            await ctx.backup.import_configuration({"version": "2.0.0"})

    @pytest.mark.asyncio
    async def test_invalid_document_leaves_storage_untouched(self, ctx, sync_area):
        await ctx.profiles.create_profile("Work")
        before = sync_area.snapshot()

        with pytest.raises(StorageError):
            await ctx.backup.import_configuration({"customTabs": []})

        assert sync_area.snapshot() == before


class TestClearAllStorage:
    """Tests for BackupManager.clear_all_storage"""

    @pytest.mark.asyncio
    async def test_full_reset(self, ctx, sync_area, local_area, sample_tabs):
        """Test both areas are emptied, including migration state"""
        await sync_area.set({"customTabs": sample_tabs})
        await local_area.set({"migrationCompleted": "1.4.0"})

        await ctx.backup.clear_all_storage()

        assert sync_area.snapshot() == {}
        assert local_area.snapshot() == {}
