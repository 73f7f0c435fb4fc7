"""
Profile Storage
===============

Profiles and their tab lists, stored through the chunked record store in
the area selected by the device's storage preference.

- profiles               array<Profile>, full overwrite on every save
- profile_<id>_tabs      array<Tab>, chunked like any other record

Tabs are plain dicts owned by the UI; only transient editing fields are
stripped before they are persisted.
"""

import logging
import time
import uuid
from typing import Any, Dict, List, Optional

from core.config import STORAGE_CONFIG, StorageConfig
from core.errors import ProfileError
from core.storage_types import Profile, utc_now_iso

from .record_store import ChunkedRecordStore
from .resolver import profile_tabs_key, resolve_tabs_key
from .settings_store import SettingsStore

logger = logging.getLogger(__name__)

Tab = Dict[str, Any]

# UI-only fields that must never be persisted
TRANSIENT_TAB_FIELDS = (
    "stagedDropdownItems",
    "stagedPromotions",
    "pendingDropdownItems",
    # legacy dropdown implementation
    "autoSetupDropdown",
    "children",
    "isExpanded",
    "cachedNavigation",
    "navigationLastUpdated",
    "needsNavigationRefresh",
)


def _default_tab(tab_id: str, label: str, path: str, position: int) -> Tab:
    return {
        "id": tab_id,
        "label": label,
        "path": path,
        "openInNewTab": False,
        "isObject": False,
        "isCustomUrl": False,
        "isSetupObject": False,
        "hasDropdown": False,
        "parentId": None,
        "position": position,
    }


DEFAULT_TABS: List[Tab] = [
    _default_tab("default_tab_flows", "Flows", "Flows", 0),
    _default_tab("default_tab_packages", "Installed Packages", "ImportedPackage", 1),
    _default_tab("default_tab_users", "Users", "ManageUsers", 2),
    _default_tab("default_tab_profiles", "Profiles", "EnhancedProfiles", 3),
    _default_tab("default_tab_permsets", "Permission Sets", "PermSets", 4),
]


def _unique_suffix() -> str:
    return f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def generate_profile_id() -> str:
    """Fresh profile id"""
    return f"profile_{_unique_suffix()}"


def generate_tab_id() -> str:
    """Fresh tab id"""
    return f"tab_{_unique_suffix()}"


def clean_tab_for_storage(tab: Tab) -> Tab:
    """
    Copy of a tab without transient UI state.

    parentId is kept (nested tabs need it); "_expanded" markers are removed
    from dropdown items two levels deep.
    """
    cleaned = {key: value for key, value in tab.items() if key not in TRANSIENT_TAB_FIELDS}

    items = cleaned.get("dropdownItems")
    if isinstance(items, list):
        cleaned_items = []
        for item in items:
            if not isinstance(item, dict):
                cleaned_items.append(item)
                continue
            cleaned_item = {key: value for key, value in item.items() if key != "_expanded"}
            nested = cleaned_item.get("dropdownItems")
            if isinstance(nested, list):
                cleaned_item["dropdownItems"] = [
                    {key: value for key, value in n.items() if key != "_expanded"} if isinstance(n, dict) else n
                    for n in nested
                ]
            cleaned_items.append(cleaned_item)
        cleaned["dropdownItems"] = cleaned_items

    return cleaned


def prepare_tabs(tabs: List[Tab]) -> List[Tab]:
    """Sort by position and strip transient fields"""
    ordered = sorted(tabs, key=lambda tab: tab.get("position") or 0)
    return [clean_tab_for_storage(tab) for tab in ordered]


class ProfileStorage:
    """
    Profile manager.

    Every method re-reads storage; nothing is cached between calls, since
    other contexts may have written in between.
    """

    def __init__(
        self,
        settings_store: SettingsStore,
        record_store: ChunkedRecordStore,
        config: Optional[StorageConfig] = None,
    ):
        self.settings_store = settings_store
        self.record_store = record_store
        self.config = config or STORAGE_CONFIG

    # Profiles list

    async def get_profiles(self) -> List[Profile]:
        """All profiles (empty list when none exist)"""
        area = await self.settings_store.get_preferred_area()
        stored = await self.record_store.load(self.config.profiles_key, area)
        if not stored:
            return []
        return [Profile.model_validate(item) for item in stored]

    async def save_profiles(self, profiles: List[Profile]) -> List[Profile]:
        """Overwrite the profile list (sorted by creation date)"""
        ordered = sorted(profiles, key=lambda profile: profile.created_at)
        area = await self.settings_store.get_preferred_area()
        await self.record_store.save(
            self.config.profiles_key,
            [profile.to_storage() for profile in ordered],
            area,
        )
        logger.info(f"Saved {len(ordered)} profiles to {area.name} storage")
        return ordered

    async def get_profile(self, profile_id: str) -> Profile:
        """Look up one profile"""
        for profile in await self.get_profiles():
            if profile.id == profile_id:
                return profile
        raise ProfileError(f"Profile not found: {profile_id}")

    # Tabs

    async def get_profile_tabs(self, profile_id: str) -> List[Tab]:
        """Tab list of a profile (empty list when none stored)"""
        area = await self.settings_store.get_preferred_area()
        return await self.record_store.load(profile_tabs_key(profile_id), area) or []

    async def save_profile_tabs(self, profile_id: str, tabs: List[Tab]) -> List[Tab]:
        """Overwrite the tab list of a profile"""
        cleaned = prepare_tabs(tabs)
        area = await self.settings_store.get_preferred_area()
        await self.record_store.save(profile_tabs_key(profile_id), cleaned, area)
        return cleaned

    async def get_tabs(self) -> List[Tab]:
        """Tab list of the active profile (legacy record when none is active)"""
        settings = await self.settings_store.get_user_settings()
        area = self.settings_store.area_for(settings.use_sync_storage)
        return await self.record_store.load(resolve_tabs_key(settings), area) or []

    async def save_tabs(self, tabs: List[Tab]) -> List[Tab]:
        """Overwrite the tab list of the active profile"""
        settings = await self.settings_store.get_user_settings()
        area = self.settings_store.area_for(settings.use_sync_storage)
        cleaned = prepare_tabs(tabs)
        await self.record_store.save(resolve_tabs_key(settings), cleaned, area)
        return cleaned

    # Profile lifecycle

    @staticmethod
    def _check_url_patterns(
        profiles: List[Profile],
        url_patterns: List[str],
        exclude_id: Optional[str] = None,
    ) -> None:
        for pattern in url_patterns:
            for profile in profiles:
                if profile.id != exclude_id and pattern in profile.url_patterns:
                    raise ProfileError(f"URL already used by {profile.name}")

    async def create_profile(self, name: str, url_patterns: Optional[List[str]] = None) -> Profile:
        """
        Create a profile with an empty tab list.

        The first profile ever created becomes the default.
        """
        name = name.strip()
        if not name:
            raise ProfileError("Profile name is required")

        url_patterns = [pattern.strip() for pattern in url_patterns or [] if pattern.strip()]
        profiles = await self.get_profiles()
        self._check_url_patterns(profiles, url_patterns)

        profile = Profile(
            id=generate_profile_id(),
            name=name,
            is_default=not profiles,
            url_patterns=url_patterns,
        )

        await self.save_profile_tabs(profile.id, [])
        await self.save_profiles(profiles + [profile])

        if profile.is_default:
            await self.settings_store.update_user_settings(default_profile_id=profile.id)

        logger.info(f"Created profile {profile.name} ({profile.id})")
        return profile

    async def update_profile(
        self,
        profile_id: str,
        name: Optional[str] = None,
        url_patterns: Optional[List[str]] = None,
    ) -> Profile:
        """Rename a profile and/or replace its URL patterns"""
        profiles = await self.get_profiles()
        profile = next((p for p in profiles if p.id == profile_id), None)
        if profile is None:
            raise ProfileError(f"Profile not found: {profile_id}")

        if name is not None:
            if not name.strip():
                raise ProfileError("Profile name is required")
            profile.name = name.strip()

        if url_patterns is not None:
            url_patterns = [pattern.strip() for pattern in url_patterns if pattern.strip()]
            self._check_url_patterns(profiles, url_patterns, exclude_id=profile_id)
            profile.url_patterns = url_patterns

        await self.save_profiles(profiles)
        return profile

    async def delete_profile(self, profile_id: str) -> List[Profile]:
        """
        Delete a profile and its tab record.

        Active/default ids pointing at it move to the first remaining
        profile, or are unset when none remain.

        Returns:
            Remaining profiles
        """
        profiles = await self.get_profiles()
        remaining = [profile for profile in profiles if profile.id != profile_id]
        if len(remaining) == len(profiles):
            raise ProfileError(f"Profile not found: {profile_id}")

        remaining = await self.save_profiles(remaining)

        area = await self.settings_store.get_preferred_area()
        await self.record_store.clear(profile_tabs_key(profile_id), area)

        settings = await self.settings_store.get_user_settings()
        fallback_id = remaining[0].id if remaining else None
        changes: Dict[str, Any] = {}
        if settings.active_profile_id == profile_id:
            changes["active_profile_id"] = fallback_id
        if settings.default_profile_id == profile_id:
            changes["default_profile_id"] = fallback_id
        if changes:
            await self.settings_store.update_user_settings(**changes)

        logger.info(f"Deleted profile {profile_id}")
        return remaining

    async def switch_active_profile(self, profile_id: str) -> List[Tab]:
        """
        Make a profile active and stamp its lastActive time.

        Returns:
            The newly active profile's tabs
        """
        profiles = await self.get_profiles()
        profile = next((p for p in profiles if p.id == profile_id), None)
        if profile is None:
            raise ProfileError(f"Profile not found: {profile_id}")

        await self.settings_store.update_user_settings(active_profile_id=profile_id)

        profile.last_active = utc_now_iso()
        await self.save_profiles(profiles)

        logger.info(f"Switched to profile: {profile.name}")
        return await self.get_profile_tabs(profile_id)

    async def set_default_profile(self, profile_id: str) -> List[Profile]:
        """Mark exactly one profile as default"""
        profiles = await self.get_profiles()
        if not any(profile.id == profile_id for profile in profiles):
            raise ProfileError(f"Profile not found: {profile_id}")

        for profile in profiles:
            profile.is_default = profile.id == profile_id

        profiles = await self.save_profiles(profiles)
        await self.settings_store.update_user_settings(default_profile_id=profile_id)
        return profiles

    async def _active_profile_id(self) -> str:
        settings = await self.settings_store.get_user_settings()
        if not settings.active_profile_id:
            raise ProfileError("No active profile")
        return settings.active_profile_id

    async def clone_profile_tabs(self, source_id: str, target_id: Optional[str] = None) -> List[Tab]:
        """
        Copy another profile's tabs into a profile (default: the active one).

        Cloned tabs get fresh ids.
        """
        target_id = target_id or await self._active_profile_id()

        source_tabs = await self.get_profile_tabs(source_id)
        if not source_tabs:
            raise ProfileError("Source profile has no tabs to clone")

        cloned = [{**tab, "id": generate_tab_id()} for tab in source_tabs]
        saved = await self.save_profile_tabs(target_id, cloned)
        logger.info(f"Cloned {len(saved)} tabs from {source_id} into {target_id}")
        return saved

    async def initialize_profile_with_defaults(self, profile_id: Optional[str] = None) -> List[Tab]:
        """Fill a profile (default: the active one) with the built-in tabs"""
        profile_id = profile_id or await self._active_profile_id()
        return await self.save_profile_tabs(profile_id, [dict(tab) for tab in DEFAULT_TABS])
