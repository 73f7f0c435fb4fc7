# SF Tabs Native Host Configuration
"""
Strongly typed configuration for the storage core and the native host.
"""

from typing import Literal, Optional
from dataclasses import dataclass


# Logging configuration
LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
LOG_FILE: str = "sftabs_host.log"

# Maximum native message size (bytes). Chrome caps host-bound messages at 1MB.
MAX_MESSAGE_SIZE: int = 1024 * 1024  # 1MB

# Which StorageArea implementation backs the "sync" and "local" areas
STORAGE_BACKEND: Literal["memory", "arango"] = "arango"

# Area names as the extension addresses them
SYNC_AREA: str = "sync"
LOCAL_AREA: str = "local"


@dataclass(frozen=True)
class AreaQuota:
    """Byte/item limits of one storage area (None = unlimited)"""

    quota_bytes: Optional[int] = None
    quota_bytes_per_item: Optional[int] = None
    max_items: Optional[int] = None


# chrome.storage.sync limits
SYNC_QUOTA = AreaQuota(
    quota_bytes=102400,
    quota_bytes_per_item=8192,
    max_items=512,
)

# chrome.storage.local limits
LOCAL_QUOTA = AreaQuota(
    quota_bytes=10 * 1024 * 1024,
)


@dataclass
class StorageConfig:
    """Chunked record store and key layout configuration"""

    # Chunking
    chunk_size: int = 7000  # bytes; leaves headroom under the 8192 per-item limit
    max_chunks: int = 50    # writes needing more chunks are rejected
    orphan_sweep_limit: int = 50  # chunk indices swept on clear (0..limit-1)

    # Storage preference when no device setting exists yet
    default_use_sync_storage: bool = True

    # Record names
    legacy_tabs_key: str = "customTabs"
    profiles_key: str = "profiles"
    user_settings_key: str = "userSettings"
    device_settings_key: str = "deviceSettings"

    # Migration scalars (local area only)
    extension_version_key: str = "extensionVersion"
    migration_completed_key: str = "migrationCompleted"
    migration_pending_key: str = "migrationPending"


# Global storage configuration instance
STORAGE_CONFIG = StorageConfig()
