"""
Migration Engine
================

One-time move from the legacy flat tab record ("customTabs") to the
profile-scoped layout ("profiles" + "profile_<id>_tabs").

State machine:

    UNKNOWN --detect--> NOT_NEEDED | NEEDED | SKIPPED
    NEEDED --perform--> IN_PROGRESS --> COMPLETED | FAILED
    FAILED --perform--> IN_PROGRESS (retry)

The persisted part of the state is three scalars in the local area
(extensionVersion, migrationCompleted, migrationPending). The area has no
compare-and-set, so every transition is a plain read followed by a write;
two contexts migrating at once can both run, and the last write wins.
Every write made by perform() is a full overwrite, so that outcome is still
a single Default profile.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from core.config import STORAGE_CONFIG, StorageConfig
from core.errors import InvalidMigrationState, MigrationFailure
from core.storage_types import MigrationStateRecord, Profile

from .areas import StorageArea
from .profile_storage import generate_profile_id, prepare_tabs
from .record_store import ChunkedRecordStore
from .resolver import profile_tabs_key
from .settings_store import SettingsStore

logger = logging.getLogger(__name__)


class MigrationStatus(str, Enum):
    """Migration state"""
    UNKNOWN = "unknown"
    NOT_NEEDED = "not_needed"
    NEEDED = "needed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


# States perform() may start from
PERFORMABLE_STATES = (MigrationStatus.NEEDED, MigrationStatus.FAILED, MigrationStatus.COMPLETED)

DEFAULT_PROFILE_NAME = "Default"


class MigrationEngine:
    """
    Detects and performs the profiles migration.

    The in-memory status is per engine instance; the persisted scalars are
    what other contexts see.
    """

    def __init__(
        self,
        record_store: ChunkedRecordStore,
        settings_store: SettingsStore,
        config: Optional[StorageConfig] = None,
    ):
        self.record_store = record_store
        self.settings_store = settings_store
        self.config = config or STORAGE_CONFIG

        self.status = MigrationStatus.UNKNOWN
        self.current_version: Optional[str] = None
        self.last_error: Optional[str] = None

    @property
    def sync_area(self) -> StorageArea:
        return self.settings_store.sync_area

    @property
    def local_area(self) -> StorageArea:
        return self.settings_store.local_area

    async def read_state(self) -> MigrationStateRecord:
        """Read the persisted migration scalars from the local area"""
        keys = [
            self.config.extension_version_key,
            self.config.migration_completed_key,
            self.config.migration_pending_key,
        ]
        stored = await self.local_area.get(keys)
        return MigrationStateRecord(
            extension_version=stored.get(self.config.extension_version_key),
            migration_completed=stored.get(self.config.migration_completed_key),
            migration_pending=stored.get(self.config.migration_pending_key) is True,
        )

    async def _write_state(self, **values: Any) -> None:
        names = {
            "extension_version": self.config.extension_version_key,
            "migration_completed": self.config.migration_completed_key,
            "migration_pending": self.config.migration_pending_key,
        }
        await self.local_area.set({names[field]: value for field, value in values.items()})

    async def find_legacy_tabs(self) -> Tuple[List[Dict[str, Any]], Optional[StorageArea]]:
        """
        Locate the legacy tab list.

        The preferred area is tried first, then the other one.

        Returns:
            (tabs, area holding them); ([], None) when neither holds any
        """
        use_sync = await self.settings_store.get_storage_preference()
        preferred = self.settings_store.area_for(use_sync)
        other = self.settings_store.area_for(not use_sync)

        for area in (preferred, other):
            tabs = await self.record_store.load(self.config.legacy_tabs_key, area)
            if tabs:
                return tabs, area
        return [], None

    async def _has_profiles(self) -> bool:
        for area in (self.sync_area, self.local_area):
            if await self.record_store.load(self.config.profiles_key, area):
                return True
        return False

    async def detect(self, current_version: str) -> MigrationStatus:
        """
        Decide whether the migration must run for this version.

        NEEDED is persisted as migrationPending=true; NOT_NEEDED records
        extensionVersion=current_version. While migrationPending is set and
        legacy tabs remain, the result stays NEEDED even if profiles exist.
        """
        self.current_version = current_version
        state = await self.read_state()

        if state.migration_completed == current_version:
            self.status = MigrationStatus.NOT_NEEDED
        elif (
            state.migration_completed is False
            and not state.migration_pending
            and state.extension_version == current_version
        ):
            self.status = MigrationStatus.SKIPPED
        else:
            legacy_tabs, area = await self.find_legacy_tabs()
            # A pending migration that failed after writing profiles is still unfinished
            if legacy_tabs and (state.migration_pending or not await self._has_profiles()):
                await self._write_state(migration_pending=True)
                logger.info(
                    f"Migration needed: {len(legacy_tabs)} legacy tabs in {area.name} storage"
                    + (" (retrying unfinished attempt)" if state.migration_pending else "")
                )
                self.status = MigrationStatus.NEEDED
            else:
                await self._write_state(extension_version=current_version)
                self.status = MigrationStatus.NOT_NEEDED

        logger.debug(f"Migration status for {current_version}: {self.status.value}")
        return self.status

    async def _migrate(self, enable_profiles: bool, use_sync_storage: bool) -> Profile:
        # 1. legacy tabs
        legacy_tabs, source = await self.find_legacy_tabs()
        logger.info(
            f"Migrating {len(legacy_tabs)} legacy tabs"
            + (f" from {source.name} storage" if source else "")
        )

        # 2. Default profile
        profile = Profile(
            id=generate_profile_id(),
            name=DEFAULT_PROFILE_NAME,
            is_default=True,
            url_patterns=[],
        )

        # 3-4. full overwrites in the area the new preference selects
        target = self.settings_store.area_for(use_sync_storage)
        await self.record_store.save(self.config.profiles_key, [profile.to_storage()], target)
        await self.record_store.save(profile_tabs_key(profile.id), prepare_tabs(legacy_tabs), target)

        # 5. settings
        settings = await self.settings_store.get_user_settings()
        changes: Dict[str, Any] = {
            "active_profile_id": profile.id,
            "default_profile_id": profile.id,
            "use_sync_storage": use_sync_storage,
        }
        if enable_profiles:
            changes["profiles_enabled"] = True
        await self.settings_store.save_user_settings(settings.model_copy(update=changes))

        return profile

    async def perform(
        self,
        enable_profiles: bool = False,
        use_sync_storage: bool = True,
        current_version: Optional[str] = None,
    ) -> Profile:
        """
        Run the migration.

        Args:
            enable_profiles: Turn the profiles UI on afterwards
            use_sync_storage: Storage preference to apply (and area to write to)
            current_version: Version to record; defaults to the one given to detect()

        Returns:
            The new Default profile

        Raises:
            InvalidMigrationState: Not in NEEDED, FAILED or COMPLETED
            MigrationFailure: A step failed; nothing was marked completed
        """
        if self.status not in PERFORMABLE_STATES:
            raise InvalidMigrationState(f"Cannot perform migration from state: {self.status.value}")

        version = current_version or self.current_version
        if not version:
            raise InvalidMigrationState("Current extension version is unknown; run detect first")

        self.status = MigrationStatus.IN_PROGRESS
        self.last_error = None

        try:
            profile = await self._migrate(enable_profiles, use_sync_storage)

            # 6. commit; skipped entirely if any step above raised
            await self._write_state(
                extension_version=version,
                migration_completed=version,
                migration_pending=False,
            )
        except Exception as e:
            self.status = MigrationStatus.FAILED
            self.last_error = str(e)
            logger.error(f"Migration to {version} failed: {e}", exc_info=True)
            raise MigrationFailure(f"Migration failed: {e}") from e

        self.status = MigrationStatus.COMPLETED
        self.current_version = version
        logger.info(f"Migration to {version} completed (profile {profile.id})")
        return profile

    async def skip(self, current_version: Optional[str] = None) -> None:
        """
        Opt out of the migration for this version.

        Unlike a failed attempt this is permanent: detect() reports SKIPPED
        until the version changes or storage is reset.
        """
        if self.status == MigrationStatus.IN_PROGRESS:
            raise InvalidMigrationState("Cannot skip a migration that is in progress")

        version = current_version or self.current_version
        values: Dict[str, Any] = {"migration_completed": False, "migration_pending": False}
        if version:
            values["extension_version"] = version
        await self._write_state(**values)

        self.status = MigrationStatus.SKIPPED
        logger.info(f"Migration skipped for version {version}")

    async def status_report(self, current_version: Optional[str] = None) -> Dict[str, Any]:
        """Persisted flags plus the engine state, for display"""
        version = current_version or self.current_version
        state = await self.read_state()
        return {
            "status": self.status.value,
            "currentVersion": version,
            "storedVersion": state.extension_version,
            "migrationCompleted": version is not None and state.migration_completed == version,
            "migrationPending": state.migration_pending,
            "lastError": self.last_error,
        }

    async def estimate_duration(self) -> str:
        """Rough duration shown before migrating, by legacy tab count"""
        tabs, _ = await self.find_legacy_tabs()
        count = len(tabs)
        if count == 0:
            return "less than 1 second"
        if count < 20:
            return "1-2 seconds"
        if count < 50:
            return "2-3 seconds"
        return "3-5 seconds"
