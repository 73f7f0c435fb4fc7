"""
Unit tests for tab record resolution
"""

from core.storage_types import UserSettings
from storage.resolver import LEGACY_TABS_KEY, profile_tabs_key, resolve_tabs_key


class TestResolveTabsKey:
    """Tests for resolve_tabs_key"""

    def test_active_profile(self):
        """Test an active profile resolves to its tab record"""
        settings = UserSettings(active_profile_id="profile_1")

        assert resolve_tabs_key(settings) == "profile_profile_1_tabs"

    def test_no_active_profile(self):
        """Test the legacy record is used without an active profile"""
        assert resolve_tabs_key(UserSettings()) == LEGACY_TABS_KEY == "customTabs"

    def test_missing_settings(self):
        assert resolve_tabs_key(None) == "customTabs"

    def test_stored_dict_form(self):
        """Test the camelCase dict read straight from storage"""
        assert resolve_tabs_key({"activeProfileId": "p2"}) == profile_tabs_key("p2")
        assert resolve_tabs_key({"activeProfileId": None}) == "customTabs"
