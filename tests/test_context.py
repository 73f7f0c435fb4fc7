"""
Tests for storage context wiring and manifest access
"""

import json

import pytest

from core.manifest import read_manifest_version
from storage.arango_area import ArangoStorageArea
from storage.areas import MemoryStorageArea
from storage.context import create_storage_context


class TestCreateStorageContext:
    """Tests for create_storage_context"""

    def test_memory_backend(self):
        ctx = create_storage_context("memory")

        assert isinstance(ctx.sync_area, MemoryStorageArea)
        assert ctx.get_area("local") is ctx.local_area
        assert ctx.profiles.record_store is ctx.record_store

    def test_arango_backend_is_lazy(self):
        """Test building an arango context does not connect yet"""
        ctx = create_storage_context("arango")

        assert isinstance(ctx.sync_area, ArangoStorageArea)
        assert ctx.local_area.name == "local"

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown storage backend"):
            create_storage_context("floppy")

    def test_unknown_area(self, ctx):
        with pytest.raises(ValueError, match="Unknown storage area"):
            ctx.get_area("session")


class TestReadManifestVersion:
    """Tests for read_manifest_version"""

    def test_from_file(self, tmp_path):
        manifest = tmp_path / "manifest.json"
        manifest.write_text(json.dumps({"name": "SF Tabs", "version": "1.4.0"}))

        assert read_manifest_version(manifest) == "1.4.0"

    def test_from_directory(self, tmp_path):
        (tmp_path / "manifest.json").write_text(json.dumps({"version": "2.0.1"}))

        assert read_manifest_version(tmp_path) == "2.0.1"

    def test_missing_version(self, tmp_path):
        (tmp_path / "manifest.json").write_text(json.dumps({"name": "SF Tabs"}))

        with pytest.raises(ValueError, match="no version"):
            read_manifest_version(tmp_path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_manifest_version(tmp_path / "nope.json")
