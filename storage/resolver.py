"""
Profile-aware resolution of the active tab record.

Every surface that reads or writes the tab list resolves the record name
here first, so all execution contexts agree on one source of truth.
"""

from typing import Any, Mapping, Optional, Union

from core.config import STORAGE_CONFIG
from core.storage_types import UserSettings

LEGACY_TABS_KEY = STORAGE_CONFIG.legacy_tabs_key


def profile_tabs_key(profile_id: str) -> str:
    """Record name of a profile's tab list"""
    return f"profile_{profile_id}_tabs"


def resolve_tabs_key(settings: Optional[Union[UserSettings, Mapping[str, Any]]]) -> str:
    """
    Record name of the active tab list.

    Args:
        settings: UserSettings (or its stored dict form)

    Returns:
        "profile_<activeProfileId>_tabs" when a profile is active,
        otherwise the legacy "customTabs" record
    """
    if settings is None:
        return LEGACY_TABS_KEY

    if isinstance(settings, UserSettings):
        active_profile_id = settings.active_profile_id
    else:
        active_profile_id = settings.get("activeProfileId", settings.get("active_profile_id"))

    if active_profile_id:
        return profile_tabs_key(active_profile_id)
    return LEGACY_TABS_KEY
