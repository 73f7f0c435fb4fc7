"""
Persisted data model for the SF Tabs storage core.

Field names are snake_case in Python and camelCase on disk, so documents
written here are byte-compatible with what the extension reads.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    """Current UTC time formatted like JavaScript's Date.toISOString()"""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class StorageModel(BaseModel):
    """Base model: accepts snake_case or camelCase, dumps camelCase"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_storage(self) -> Dict[str, Any]:
        """Dump as a JSON-ready dict with on-disk (camelCase) names"""
        return self.model_dump(mode="json", by_alias=True)


class StorageFormat(str, Enum):
    """Where and how a record is currently stored"""
    SYNC_CHUNKED = "sync-chunked"
    SYNC_DIRECT = "sync-direct"
    LOCAL = "local"
    NONE = "none"


class RecordMetadata(StorageModel):
    """Metadata stored at <record>_metadata"""
    chunked: bool
    chunk_count: Optional[int] = Field(default=None, ge=0)
    byte_size: int = Field(ge=0)  # advisory only
    saved_at: str = Field(default_factory=utc_now_iso)

    def to_storage(self) -> Dict[str, Any]:
        # chunkCount is omitted for direct records
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SaveResult(StorageModel):
    """Outcome of a record save"""
    chunked: bool
    chunk_count: int


class FormatInfo(StorageModel):
    """Result of format detection for a record name"""
    location: StorageFormat
    metadata: Optional[RecordMetadata] = None


class Profile(StorageModel):
    """A named, user-scoped bundle of tabs"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    name: str = Field(min_length=1)
    is_default: bool = False
    url_patterns: List[str] = Field(default_factory=list)
    created_at: str = Field(default_factory=utc_now_iso)
    last_active: Optional[str] = None


class DeviceSettings(StorageModel):
    """Per-device settings, stored in the local area only"""
    use_sync_storage: bool


class UserSettings(StorageModel):
    """User settings; unknown keys written by UI collaborators are preserved"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    theme_mode: str = "light"
    compact_mode: bool = False
    skip_delete_confirmation: bool = False
    use_sync_storage: bool = True
    active_profile_id: Optional[str] = None
    default_profile_id: Optional[str] = None
    profiles_enabled: bool = False


class MigrationStateRecord(StorageModel):
    """Migration scalars as read back from the local area"""
    extension_version: Optional[str] = None
    # version string = completed for that version; False = explicitly skipped
    migration_completed: Union[Literal[False], str, None] = None
    migration_pending: bool = False


class ConfigurationBackup(StorageModel):
    """Exported configuration document"""
    version: str
    exported_at: str = Field(default_factory=utc_now_iso)
    user_settings: Dict[str, Any] = Field(default_factory=dict)
    profiles: List[Profile] = Field(default_factory=list)
    profile_tabs: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict)
    custom_tabs: List[Dict[str, Any]] = Field(default_factory=list)
    export_type: Optional[str] = None
