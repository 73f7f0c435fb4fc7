"""
Message types and data structures for native host communication.
Strongly typed protocol definitions matching extension expectations.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from .config import LOCAL_AREA, SYNC_AREA


# Action Types (from extension)
class ActionType(str, Enum):
    """Actions that can be received from extension"""
    PING = "ping"

    # Raw area access (backend adapter)
    STORAGE_GET = "storage_get"
    STORAGE_SET = "storage_set"
    STORAGE_REMOVE = "storage_remove"
    STORAGE_CLEAR = "storage_clear"
    PROBE_AREA = "probe_area"

    # Chunked records
    RECORD_SAVE = "record_save"
    RECORD_LOAD = "record_load"
    RECORD_CLEAR = "record_clear"
    RECORD_VERIFY = "record_verify"
    DETECT_FORMAT = "detect_format"

    # Settings, profiles and tabs
    RESOLVE_TABS_KEY = "resolve_tabs_key"
    GET_SETTINGS = "get_settings"
    SAVE_SETTINGS = "save_settings"
    GET_PROFILES = "get_profiles"
    CREATE_PROFILE = "create_profile"
    DELETE_PROFILE = "delete_profile"
    SWITCH_PROFILE = "switch_profile"
    GET_TABS = "get_tabs"
    SAVE_TABS = "save_tabs"

    # Migration
    MIGRATION_DETECT = "migration_detect"
    MIGRATION_PERFORM = "migration_perform"
    MIGRATION_SKIP = "migration_skip"
    MIGRATION_STATUS = "migration_status"

    # Backup
    EXPORT_CONFIG = "export_config"
    IMPORT_CONFIG = "import_config"


# Event Types (to extension)
class EventType(str, Enum):
    """Events sent to extension"""
    STORAGE_CHANGED = "storageChanged"
    ERROR = "error"


AreaLiteral = Literal["sync", "local"]


# Pydantic Models for Request validation

class StorageGetRequest(BaseModel):
    """Read keys from an area (None = everything)"""
    action: Optional[ActionType] = None
    area: AreaLiteral = LOCAL_AREA
    keys: Optional[Union[str, List[str]]] = None


class StorageSetRequest(BaseModel):
    """Write a batch of items to an area"""
    action: Optional[ActionType] = None
    area: AreaLiteral = LOCAL_AREA
    items: Dict[str, Any]


class StorageRemoveRequest(BaseModel):
    """Remove keys from an area"""
    action: Optional[ActionType] = None
    area: AreaLiteral = LOCAL_AREA
    keys: Union[str, List[str]]


class RecordRequest(BaseModel):
    """Load, clear or verify a named record"""
    action: Optional[ActionType] = None
    record: str = Field(..., min_length=1)
    area: AreaLiteral = SYNC_AREA


class RecordSaveRequest(BaseModel):
    """Save a named record"""
    action: Optional[ActionType] = None
    record: str = Field(..., min_length=1)
    area: AreaLiteral = SYNC_AREA
    data: Any


class CreateProfileRequest(BaseModel):
    """Create a new profile"""
    action: Optional[ActionType] = None
    name: str = Field(..., min_length=1)
    urlPatterns: List[str] = Field(default_factory=list)


class ProfileIdRequest(BaseModel):
    """Operate on an existing profile"""
    action: Optional[ActionType] = None
    profileId: str = Field(..., min_length=1)


class SaveTabsRequest(BaseModel):
    """Save the tab list of the active profile"""
    action: Optional[ActionType] = None
    tabs: List[Dict[str, Any]]


class MigrationRequest(BaseModel):
    """Detect / skip / report migration for the given version"""
    action: Optional[ActionType] = None
    version: str = Field(..., min_length=1)


class PerformMigrationRequest(BaseModel):
    """Run the migration"""
    action: Optional[ActionType] = None
    version: str = Field(..., min_length=1)
    enableProfiles: bool = False
    useSyncStorage: bool = True


# Response Types

class BaseResponse(BaseModel):
    """Base response structure"""
    status: Literal["success", "error"]


class ErrorResponse(BaseResponse):
    """Error response"""
    status: Literal["error"]
    message: str
    code: Optional[str] = None


class SuccessResponse(BaseResponse):
    """Success response"""
    status: Literal["success"]


class StorageChangedEvent(BaseModel):
    """Pushed to the extension after a successful write"""
    event: Literal[EventType.STORAGE_CHANGED] = EventType.STORAGE_CHANGED
    area: str
    changedKeys: List[str]
