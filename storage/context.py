"""
Storage context: the two areas plus every service built on them.

Each surface (native host, CLI, tests) builds one context and shares it, so
all of them use the same record store, settings and migration logic.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from core.config import LOCAL_AREA, LOCAL_QUOTA, STORAGE_BACKEND, STORAGE_CONFIG, SYNC_AREA, SYNC_QUOTA, StorageConfig
from core.secrets import get_secrets

from .areas import StorageArea, create_memory_areas
from .arango_area import ArangoStorageArea
from .backup import BackupManager
from .migration import MigrationEngine
from .profile_storage import ProfileStorage
from .record_store import ChunkedRecordStore
from .settings_store import SettingsStore
from .sync_manager import SyncManager

logger = logging.getLogger(__name__)


@dataclass
class StorageContext:
    """Areas and services sharing one configuration"""

    sync_area: StorageArea
    local_area: StorageArea
    config: StorageConfig
    record_store: ChunkedRecordStore
    settings: SettingsStore
    profiles: ProfileStorage
    migration: MigrationEngine
    sync_manager: SyncManager
    backup: BackupManager

    @classmethod
    def from_areas(
        cls,
        sync_area: StorageArea,
        local_area: StorageArea,
        config: Optional[StorageConfig] = None,
    ) -> "StorageContext":
        """Wire every service on top of the given areas"""
        config = config or STORAGE_CONFIG
        record_store = ChunkedRecordStore(config)
        settings = SettingsStore(sync_area, local_area, config)
        profiles = ProfileStorage(settings, record_store, config)

        return cls(
            sync_area=sync_area,
            local_area=local_area,
            config=config,
            record_store=record_store,
            settings=settings,
            profiles=profiles,
            migration=MigrationEngine(record_store, settings, config),
            sync_manager=SyncManager(settings, record_store, config),
            backup=BackupManager(settings, profiles),
        )

    @property
    def areas(self) -> Dict[str, StorageArea]:
        return {self.sync_area.name: self.sync_area, self.local_area.name: self.local_area}

    def get_area(self, name: Any) -> StorageArea:
        """Area by name ("sync" or "local")"""
        if name not in self.areas:
            raise ValueError(f"Unknown storage area: {name}")
        return self.areas[name]


def create_storage_context(
    backend: Optional[str] = None,
    config: Optional[StorageConfig] = None,
) -> StorageContext:
    """
    Build a context for a storage backend.

    Args:
        backend: "memory" or "arango"; defaults to SFTABS_STORAGE_BACKEND,
            then STORAGE_BACKEND
        config: Storage configuration (default: STORAGE_CONFIG)
    """
    backend = backend or get_secrets().storage_backend or STORAGE_BACKEND

    if backend == "memory":
        areas = create_memory_areas()
        sync_area, local_area = areas[SYNC_AREA], areas[LOCAL_AREA]
    elif backend == "arango":
        sync_area = ArangoStorageArea(SYNC_AREA, SYNC_QUOTA)
        local_area = ArangoStorageArea(LOCAL_AREA, LOCAL_QUOTA)
    else:
        raise ValueError(f"Unknown storage backend: {backend}")

    logger.info(f"Storage context created ({backend} backend)")
    return StorageContext.from_areas(sync_area, local_area, config)


# Global singleton
_storage_context: Optional[StorageContext] = None


def get_storage_context() -> StorageContext:
    """Get global storage context instance"""
    global _storage_context
    if _storage_context is None:
        _storage_context = create_storage_context()
    return _storage_context
