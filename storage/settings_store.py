"""
User and device settings.

Settings are split by scope:
- deviceSettings (local): the per-device useSyncStorage preference
- userSettings (sync): everything else, shared across devices
- userSettings (local): full merged copy cached for quick access

All three are plain direct writes; settings are never chunked.
"""

import logging
from typing import Any, Dict, Optional

from core.config import STORAGE_CONFIG, StorageConfig
from core.storage_types import DeviceSettings, UserSettings

from .areas import StorageArea

logger = logging.getLogger(__name__)


class SettingsStore:
    """Reads and writes user settings across the two areas"""

    def __init__(
        self,
        sync_area: StorageArea,
        local_area: StorageArea,
        config: Optional[StorageConfig] = None,
    ):
        self.sync_area = sync_area
        self.local_area = local_area
        self.config = config or STORAGE_CONFIG

    async def get_storage_preference(self) -> bool:
        """
        Whether this device stores profiles and tabs in the sync area.

        Priority: deviceSettings, then the legacy copy in local userSettings,
        then the configured default.
        """
        device_key = self.config.device_settings_key
        settings_key = self.config.user_settings_key
        local = await self.local_area.get([device_key, settings_key])

        for key in (device_key, settings_key):
            stored = local.get(key)
            if isinstance(stored, dict) and isinstance(stored.get("useSyncStorage"), bool):
                return stored["useSyncStorage"]

        return self.config.default_use_sync_storage

    def area_for(self, use_sync_storage: bool) -> StorageArea:
        """Storage area selected by a preference value"""
        return self.sync_area if use_sync_storage else self.local_area

    async def get_preferred_area(self) -> StorageArea:
        """Storage area selected by this device's preference"""
        return self.area_for(await self.get_storage_preference())

    async def get_user_settings(self) -> UserSettings:
        """Defaults, overlaid with synced settings, overlaid with the device preference"""
        use_sync_storage = await self.get_storage_preference()

        key = self.config.user_settings_key
        synced = (await self.sync_area.get(key)).get(key)
        merged: Dict[str, Any] = dict(synced) if isinstance(synced, dict) else {}
        merged["useSyncStorage"] = use_sync_storage

        return UserSettings.model_validate(merged)

    async def save_user_settings(self, settings: UserSettings) -> UserSettings:
        """
        Persist settings.

        Args:
            settings: Full settings (full overwrite, not a patch)

        Returns:
            The saved settings
        """
        stored = settings.to_storage()
        synced = {key: value for key, value in stored.items() if key != "useSyncStorage"}

        await self.local_area.set({
            self.config.device_settings_key: DeviceSettings(use_sync_storage=settings.use_sync_storage).to_storage(),
            self.config.user_settings_key: stored,
        })
        await self.sync_area.set({self.config.user_settings_key: synced})

        logger.info(f"Saved user settings (useSyncStorage={settings.use_sync_storage})")
        return settings

    async def update_user_settings(self, **changes: Any) -> UserSettings:
        """Read-modify-write helper; not atomic across contexts"""
        settings = await self.get_user_settings()
        updated = settings.model_copy(update=changes)
        return await self.save_user_settings(updated)
