"""
Storage Module
==============

Chunked key-value persistence and profile migration for SF Tabs.

Storage Strategy:
- Two areas: "sync" (small quota, shared across devices) and "local"
  (larger quota, this device only)
- Records too large for one item are split into byte-bounded chunks
- Profiles and their tabs live in the area the device preference selects

Storage Backends:
- memory: in-process areas (tests, dry runs)
- arango: one ArangoDB collection per area (native host)

Components:
- areas.py - StorageArea interface, in-memory areas, quota rules
- arango_area.py / database.py - ArangoDB-backed areas
- chunking.py - chunk codec
- record_store.py - chunked record save/load/clear
- resolver.py - active tab record resolution
- settings_store.py - user and device settings
- profile_storage.py - profiles and their tabs
- migration.py - legacy tabs to profiles migration
- sync_manager.py - moving data between areas
- backup.py - export/import/reset
- context.py - wiring of all of the above
"""

from .areas import MemoryStorageArea, StorageArea, StorageChange, create_memory_areas, probe_area
from .arango_area import ArangoStorageArea
from .backup import BackupManager
from .context import StorageContext, create_storage_context, get_storage_context
from .database import Database, get_database
from .migration import MigrationEngine, MigrationStatus
from .profile_storage import ProfileStorage, clean_tab_for_storage
from .record_store import ChunkedRecordStore
from .resolver import LEGACY_TABS_KEY, profile_tabs_key, resolve_tabs_key
from .settings_store import SettingsStore
from .sync_manager import SyncManager

__all__ = [
    "StorageArea",
    "StorageChange",
    "MemoryStorageArea",
    "ArangoStorageArea",
    "create_memory_areas",
    "probe_area",
    "Database",
    "get_database",
    "ChunkedRecordStore",
    "LEGACY_TABS_KEY",
    "profile_tabs_key",
    "resolve_tabs_key",
    "SettingsStore",
    "ProfileStorage",
    "clean_tab_for_storage",
    "MigrationEngine",
    "MigrationStatus",
    "SyncManager",
    "BackupManager",
    "StorageContext",
    "create_storage_context",
    "get_storage_context",
]
