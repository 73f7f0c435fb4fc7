"""
Unit tests for storage areas

Tests the in-memory area, quota enforcement, change notifications and probing.
"""

import pytest
from unittest.mock import AsyncMock, Mock

from core.config import AreaQuota, SYNC_QUOTA
from core.errors import QuotaExceededError
from storage.areas import MemoryStorageArea, StorageChange, item_bytes, probe_area


class TestMemoryStorageArea:
    """Tests for MemoryStorageArea get/set/remove/clear"""

    @pytest.mark.asyncio
    async def test_get_omits_missing_keys(self, local_area):
        """Test absent keys are missing from the result, not None"""
        # Arrange
        await local_area.set({"a": 1})

        # Act
        result = await local_area.get(["a", "b"])

        # Assert
        assert result == {"a": 1}

    @pytest.mark.asyncio
    async def test_get_single_key_and_all(self, local_area):
        """Test get accepts a single key or None"""
        await local_area.set({"a": 1, "b": [2]})

        assert await local_area.get("b") == {"b": [2]}
        assert await local_area.get(None) == {"a": 1, "b": [2]}

    @pytest.mark.asyncio
    async def test_values_are_copies(self, local_area):
        """Test mutating a returned value does not change the stored one"""
        # Arrange
        await local_area.set({"tabs": [{"id": "x"}]})

        # Act
        result = await local_area.get("tabs")
        result["tabs"].append({"id": "y"})

        # Assert
        assert await local_area.get("tabs") == {"tabs": [{"id": "x"}]}

    @pytest.mark.asyncio
    async def test_remove_and_clear(self, local_area):
        """Test remove ignores absent keys and clear empties the area"""
        await local_area.set({"a": 1, "b": 2, "c": 3})

        await local_area.remove(["a", "missing"])
        assert local_area.snapshot() == {"b": 2, "c": 3}

        await local_area.clear()
        assert local_area.snapshot() == {}

    @pytest.mark.asyncio
    async def test_bytes_in_use(self, local_area):
        """Test usage is key bytes plus serialized value bytes"""
        await local_area.set({"ab": "x"})

        assert await local_area.get_bytes_in_use() == 2 + 3
        assert item_bytes("ab", "x") == 5


class TestQuota:
    """Tests for quota enforcement"""

    @pytest.mark.asyncio
    async def test_per_item_limit_rejects_whole_batch(self):
        """Test an oversized item rejects the batch before anything is written"""
        # Arrange
        area = MemoryStorageArea("sync", SYNC_QUOTA)

        # Act & Assert
        with pytest.raises(QuotaExceededError, match="QUOTA_BYTES_PER_ITEM"):
            await area.set({"ok": 1, "big": "x" * 9000})
        assert area.snapshot() == {}

    @pytest.mark.asyncio
    async def test_total_limit(self):
        """Test the total byte quota"""
        area = MemoryStorageArea("test", AreaQuota(quota_bytes=100))
        await area.set({"a": "x" * 40})

        with pytest.raises(QuotaExceededError, match="QUOTA_BYTES"):
            await area.set({"b": "y" * 60})
        assert "b" not in area.snapshot()

    @pytest.mark.asyncio
    async def test_replacing_a_key_frees_its_bytes(self):
        """Test overwriting a key is measured against its old size"""
        # Arrange
        area = MemoryStorageArea("test", AreaQuota(quota_bytes=100))
        await area.set({"a": "x" * 80})

        # Act
        await area.set({"a": "y" * 80})

        # Assert
        assert area.snapshot() == {"a": "y" * 80}

    @pytest.mark.asyncio
    async def test_max_items(self):
        """Test the item-count quota counts only new keys"""
        area = MemoryStorageArea("test", AreaQuota(max_items=2))
        await area.set({"a": 1, "b": 2})

        with pytest.raises(QuotaExceededError, match="MAX_ITEMS"):
            await area.set({"c": 3})

        await area.set({"a": 10})
        assert area.snapshot() == {"a": 10, "b": 2}


class TestChangeListeners:
    """Tests for change notifications"""

    @pytest.mark.asyncio
    async def test_listener_receives_changed_keys(self, sync_area):
        """Test listeners get (changes, area_name) after a write"""
        # Arrange
        listener = Mock()
        sync_area.add_listener(listener)

        # Act
        await sync_area.set({"a": 1})

        # Assert
        listener.assert_called_once()
        changes, area_name = listener.call_args[0]
        assert area_name == "sync"
        assert changes == {"a": StorageChange(old_value=None, new_value=1)}
        assert changes["a"].to_dict() == {"newValue": 1}

    @pytest.mark.asyncio
    async def test_unchanged_values_do_not_notify(self, sync_area):
        """Test writing the same value again produces no notification"""
        await sync_area.set({"a": 1})
        listener = Mock()
        sync_area.add_listener(listener)

        await sync_area.set({"a": 1})

        listener.assert_not_called()

    @pytest.mark.asyncio
    async def test_remove_notifies_existing_keys_only(self, local_area):
        """Test remove reports only keys that existed"""
        await local_area.set({"a": 1})
        listener = Mock()
        local_area.add_listener(listener)

        await local_area.remove(["a", "b"])

        changes, _ = listener.call_args[0]
        assert list(changes) == ["a"]
        assert changes["a"].to_dict() == {"oldValue": 1}

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(self, local_area):
        """Test one raising listener does not stop delivery or the write"""
        # Arrange
        failing = Mock(side_effect=RuntimeError("listener bug"))
        healthy = Mock()
        local_area.add_listener(failing)
        local_area.add_listener(healthy)

        # Act
        await local_area.set({"a": 1})

        # Assert
        healthy.assert_called_once()
        assert local_area.snapshot() == {"a": 1}

    @pytest.mark.asyncio
    async def test_remove_listener(self, local_area):
        """Test a removed listener is no longer called"""
        listener = Mock()
        local_area.add_listener(listener)
        local_area.remove_listener(listener)

        await local_area.set({"a": 1})

        listener.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_write_does_not_notify(self, sync_area):
        """Test nothing is emitted when the quota rejects a write"""
        listener = Mock()
        sync_area.add_listener(listener)

        with pytest.raises(QuotaExceededError):
            await sync_area.set({"big": "x" * 9000})

        listener.assert_not_called()


class TestProbeArea:
    """Tests for probe_area"""

    @pytest.mark.asyncio
    async def test_usable_area(self, sync_area):
        """Test a working area reports available and keeps no probe key"""
        result = await probe_area(sync_area)

        assert result == {"available": True}
        assert sync_area.snapshot() == {}

    @pytest.mark.asyncio
    async def test_failing_area(self):
        """Test a failing write reports unavailable with the error"""
        # Arrange
        area = Mock()
        area.name = "sync"
        area.set = AsyncMock(side_effect=RuntimeError("storage disabled"))

        # Act
        result = await probe_area(area)

        # Assert
        assert result == {"available": False, "error": "storage disabled"}
