"""
Core types shared by the storage layer and its surfaces.
"""

from .config import (
    AreaQuota,
    StorageConfig,
    STORAGE_CONFIG,
    SYNC_QUOTA,
    LOCAL_QUOTA,
    SYNC_AREA,
    LOCAL_AREA,
)
from .errors import (
    ErrorCode,
    StorageError,
    QuotaExceededError,
    MissingChunkError,
    RecordParseError,
    MigrationFailure,
    InvalidMigrationState,
    ProfileError,
)
from .storage_types import (
    RecordMetadata,
    SaveResult,
    StorageFormat,
    FormatInfo,
    Profile,
    UserSettings,
    DeviceSettings,
    MigrationStateRecord,
    ConfigurationBackup,
    utc_now_iso,
)

__all__ = [
    # Config
    "AreaQuota",
    "StorageConfig",
    "STORAGE_CONFIG",
    "SYNC_QUOTA",
    "LOCAL_QUOTA",
    "SYNC_AREA",
    "LOCAL_AREA",
    # Errors
    "ErrorCode",
    "StorageError",
    "QuotaExceededError",
    "MissingChunkError",
    "RecordParseError",
    "MigrationFailure",
    "InvalidMigrationState",
    "ProfileError",
    # Types
    "RecordMetadata",
    "SaveResult",
    "StorageFormat",
    "FormatInfo",
    "Profile",
    "UserSettings",
    "DeviceSettings",
    "MigrationStateRecord",
    "ConfigurationBackup",
    "utc_now_iso",
]
