"""
Configuration export, import and full reset.
"""

import logging
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from core.errors import StorageError
from core.storage_types import ConfigurationBackup, UserSettings

from .profile_storage import ProfileStorage, prepare_tabs
from .settings_store import SettingsStore

logger = logging.getLogger(__name__)


class BackupManager:
    """Exports and restores the whole user configuration"""

    def __init__(self, settings_store: SettingsStore, profile_storage: ProfileStorage):
        self.settings_store = settings_store
        self.profile_storage = profile_storage

    async def export_configuration(self, version: str, export_type: Optional[str] = None) -> ConfigurationBackup:
        """
        Snapshot settings, profiles and every profile's tabs.

        Args:
            version: Extension version recorded in the backup
            export_type: Optional tag, e.g. "pre-migration-backup"
        """
        settings = await self.settings_store.get_user_settings()
        profiles = await self.profile_storage.get_profiles()

        profile_tabs = {}
        for profile in profiles:
            profile_tabs[profile.id] = await self.profile_storage.get_profile_tabs(profile.id)

        custom_tabs = prepare_tabs(await self.profile_storage.get_tabs())

        backup = ConfigurationBackup(
            version=version,
            user_settings=settings.to_storage(),
            profiles=profiles,
            profile_tabs=profile_tabs,
            custom_tabs=custom_tabs,
            export_type=export_type,
        )
        logger.info(f"Exported configuration: {len(profiles)} profiles, {len(custom_tabs)} active tabs")
        return backup

    async def clear_all_storage(self) -> None:
        """
        Full reset of both areas.

        This is the only operation that clears migrationCompleted.
        """
        await self.settings_store.local_area.clear()
        await self.settings_store.sync_area.clear()
        logger.warning("Cleared all sync and local storage")

    async def import_configuration(self, data: Union[ConfigurationBackup, Dict[str, Any]]) -> Dict[str, Any]:
        """
        Replace the whole configuration with a backup.

        Args:
            data: Backup document (as exported) or ConfigurationBackup

        Returns:
            Import summary

        Raises:
            StorageError: The document is not a valid backup
        """
        if isinstance(data, dict):
            if not isinstance(data.get("customTabs"), list) and not data.get("profiles"):
                raise StorageError("Invalid configuration format: missing customTabs array")
            try:
                backup = ConfigurationBackup.model_validate(data)
            except ValidationError as e:
                raise StorageError(f"Invalid configuration format: {e}") from e
        else:
            backup = data

        # Keep this device's preference unless the backup carries one
        use_sync_storage = await self.settings_store.get_storage_preference()

        await self.clear_all_storage()

        settings_data = {"useSyncStorage": use_sync_storage, **backup.user_settings}
        settings = UserSettings.model_validate(settings_data)

        if backup.profiles:
            known_ids = {profile.id for profile in backup.profiles}
            if settings.active_profile_id not in known_ids:
                settings = settings.model_copy(update={"active_profile_id": None})
            if settings.default_profile_id not in known_ids:
                default = next((p for p in backup.profiles if p.is_default), backup.profiles[0])
                settings = settings.model_copy(update={"default_profile_id": default.id})
        else:
            settings = settings.model_copy(update={"active_profile_id": None, "default_profile_id": None})

        await self.settings_store.save_user_settings(settings)

        tab_records = 0
        if backup.profiles:
            await self.profile_storage.save_profiles(backup.profiles)
            for profile in backup.profiles:
                await self.profile_storage.save_profile_tabs(profile.id, backup.profile_tabs.get(profile.id, []))
                tab_records += 1
        elif backup.custom_tabs:
            await self.profile_storage.save_tabs(backup.custom_tabs)
            tab_records = 1

        logger.info(f"Imported configuration: {len(backup.profiles)} profiles, {tab_records} tab records")
        return {
            "profiles": len(backup.profiles),
            "tabRecords": tab_records,
            "useSyncStorage": settings.use_sync_storage,
        }
