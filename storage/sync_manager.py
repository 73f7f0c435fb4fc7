"""
Sync Manager
============

Moves profile data between the sync and local areas when the device's
storage preference changes.

Transfer Strategy:
- Read each profile's tab record from the source area
- Save it to the destination area (chunked as needed)
- Clear it from the source area
- Finally move the profile list itself

userSettings are not moved: synced settings always live in the sync area
and the device preference always lives in the local area.
"""

import logging
from typing import Any, Dict, Optional

from core.config import STORAGE_CONFIG, StorageConfig
from core.storage_types import Profile

from .record_store import ChunkedRecordStore
from .resolver import profile_tabs_key
from .settings_store import SettingsStore

logger = logging.getLogger(__name__)


class SyncManager:
    """
    Transfers profiles and their tabs between storage areas.

    Not atomic: a failure halfway leaves already-moved profiles in the
    destination and the rest in the source. Every step is a full overwrite,
    so running the same transfer again completes it.
    """

    def __init__(
        self,
        settings_store: SettingsStore,
        record_store: ChunkedRecordStore,
        config: Optional[StorageConfig] = None,
    ):
        self.settings_store = settings_store
        self.record_store = record_store
        self.config = config or STORAGE_CONFIG

    async def transfer(self, from_sync: bool, to_sync: bool) -> Dict[str, Any]:
        """
        Move profiles and their tab records from one area to the other.

        Args:
            from_sync: Source is the sync area
            to_sync: Destination is the sync area

        Returns:
            Transfer result with counts
        """
        source = self.settings_store.area_for(from_sync)
        destination = self.settings_store.area_for(to_sync)

        result: Dict[str, Any] = {
            "from": source.name,
            "to": destination.name,
            "profiles": 0,
            "tabRecords": 0,
        }

        if source is destination:
            return result

        stored = await self.record_store.load(self.config.profiles_key, source)
        if not stored:
            logger.info(f"No profiles in {source.name} storage; nothing to transfer")
            return result

        profiles = [Profile.model_validate(item) for item in stored]

        for profile in profiles:
            key = profile_tabs_key(profile.id)
            tabs = await self.record_store.load(key, source)
            if not tabs:
                continue

            await self.record_store.save(key, tabs, destination)
            await self.record_store.clear(key, source)
            result["tabRecords"] += 1

        await self.record_store.save(
            self.config.profiles_key,
            [profile.to_storage() for profile in profiles],
            destination,
        )
        await self.record_store.clear(self.config.profiles_key, source)
        result["profiles"] = len(profiles)

        logger.info(
            f"Transferred {result['profiles']} profiles ({result['tabRecords']} tab records) "
            f"from {source.name} to {destination.name} storage"
        )
        return result

    async def change_storage_preference(self, use_sync_storage: bool) -> Dict[str, Any]:
        """
        Switch this device's storage preference, moving data first.

        Returns:
            Transfer result (zero counts when the preference is unchanged)
        """
        current = await self.settings_store.get_storage_preference()

        if current == use_sync_storage:
            area = self.settings_store.area_for(current)
            return {"from": area.name, "to": area.name, "profiles": 0, "tabRecords": 0}

        result = await self.transfer(from_sync=current, to_sync=use_sync_storage)
        await self.settings_store.update_user_settings(use_sync_storage=use_sync_storage)
        return result
