"""
Tests for the storage CLI
"""

import asyncio
import json

from cli import ExitCode, main


def run_cli(capsys, ctx, *argv):
    code = main(list(argv), ctx=ctx)
    captured = capsys.readouterr()
    return code, captured.out, captured.err


class TestStatus:
    """Tests for the status command"""

    def test_status_json(self, capsys, ctx, sync_area, sample_tabs):
        """Test status reports a needed migration for legacy data"""
        # Arrange
        asyncio.run(sync_area.set({"customTabs": sample_tabs}))

        # Act
        code, out, _ = run_cli(capsys, ctx, "--format", "json", "status", "--version", "1.4.0")

        # Assert
        assert code == ExitCode.SUCCESS.value
        report = json.loads(out)
        assert report["status"] == "needed"
        assert report["currentVersion"] == "1.4.0"
        assert report["useSyncStorage"] is True
        assert report["estimatedDuration"] == "1-2 seconds"

    def test_status_from_manifest(self, capsys, ctx, tmp_path):
        (tmp_path / "manifest.json").write_text(json.dumps({"version": "2.1.0"}))

        code, out, _ = run_cli(capsys, ctx, "--format", "json", "status", "--manifest", str(tmp_path))

        assert code == ExitCode.SUCCESS.value
        assert json.loads(out)["currentVersion"] == "2.1.0"

    def test_status_requires_version(self, capsys, ctx):
        code, _, err = run_cli(capsys, ctx, "status")

        assert code == ExitCode.INVALID_ARGS.value
        assert "--version" in err


class TestMigrate:
    """Tests for the migrate and skip commands"""

    def test_migrate(self, capsys, ctx, sync_area, local_area, sample_tabs):
        """Test migrate creates the Default profile in the local area"""
        asyncio.run(sync_area.set({"customTabs": sample_tabs}))

        code, out, _ = run_cli(capsys, ctx, "--format", "json", "migrate", "--version", "1.4.0", "--local")

        assert code == ExitCode.SUCCESS.value
        result = json.loads(out)
        assert result["migrationStatus"] == "completed"
        assert result["profile"]["name"] == "Default"
        assert "profiles" in local_area.snapshot()

    def test_nothing_to_migrate(self, capsys, ctx):
        code, out, _ = run_cli(capsys, ctx, "migrate", "--version", "1.4.0")

        assert code == ExitCode.SUCCESS.value
        assert "Nothing to migrate (not_needed)" in out

    def test_skip(self, capsys, ctx, local_area):
        code, _, _ = run_cli(capsys, ctx, "skip", "--version", "1.4.0")

        assert code == ExitCode.SUCCESS.value
        assert local_area.snapshot()["migrationCompleted"] is False


class TestReset:
    """Tests for the reset command"""

    def test_reset_requires_confirmation(self, capsys, ctx, local_area):
        asyncio.run(local_area.set({"migrationCompleted": "1.4.0"}))

        code, _, _ = run_cli(capsys, ctx, "reset")

        assert code == ExitCode.INVALID_ARGS.value
        assert local_area.snapshot() == {"migrationCompleted": "1.4.0"}

    def test_reset(self, capsys, ctx, local_area):
        asyncio.run(local_area.set({"migrationCompleted": "1.4.0"}))

        code, _, _ = run_cli(capsys, ctx, "reset", "--yes")

        assert code == ExitCode.SUCCESS.value
        assert local_area.snapshot() == {}


class TestLoad:
    """Tests for the load command"""

    def test_load_record(self, capsys, ctx, sample_tabs):
        asyncio.run(ctx.profiles.save_tabs(sample_tabs))

        code, out, _ = run_cli(capsys, ctx, "--format", "json", "load", "customTabs", "--verify")

        assert code == ExitCode.SUCCESS.value
        result = json.loads(out)
        assert result["data"] == sample_tabs
        assert result["metadata"]["chunked"] is False

    def test_verify_missing_chunk(self, capsys, ctx, sync_area, large_data):
        """Test a gap in the chunk set exits with the corruption code"""
        # Arrange
        asyncio.run(ctx.record_store.save("customTabs", large_data, sync_area))
        asyncio.run(sync_area.remove("customTabs_chunk_0"))

        # Act
        code, _, err = run_cli(capsys, ctx, "load", "customTabs", "--verify")

        # Assert
        assert code == ExitCode.CORRUPTED.value
        assert "Missing chunk 0" in err

    def test_missing_chunk_without_verify(self, capsys, ctx, sync_area, large_data):
        asyncio.run(ctx.record_store.save("customTabs", large_data, sync_area))
        asyncio.run(sync_area.remove("customTabs_chunk_0"))

        code, out, _ = run_cli(capsys, ctx, "load", "customTabs")

        assert code == ExitCode.SUCCESS.value
        assert "No data for customTabs" in out


class TestExportImport:
    """Tests for the export and import commands"""

    def test_export_to_file_and_import(self, capsys, ctx, tmp_path, sample_tabs):
        """Test an exported file can be imported back"""
        # Arrange
        asyncio.run(ctx.profiles.create_profile("Work"))
        backup_file = tmp_path / "backup.json"

        # Act
        export_code, _, _ = run_cli(capsys, ctx, "export", "--version", "1.4.0", "--output", str(backup_file))
        asyncio.run(ctx.backup.clear_all_storage())
        import_code, out, _ = run_cli(capsys, ctx, "--format", "json", "import", str(backup_file))

        # Assert
        assert export_code == ExitCode.SUCCESS.value
        assert json.loads(backup_file.read_text())["version"] == "1.4.0"
        assert import_code == ExitCode.SUCCESS.value
        assert json.loads(out)["profiles"] == 1
        assert [p.name for p in asyncio.run(ctx.profiles.get_profiles())] == ["Work"]

    def test_import_missing_file(self, capsys, ctx, tmp_path):
        code, _, err = run_cli(capsys, ctx, "import", str(tmp_path / "missing.json"))

        assert code == ExitCode.INVALID_ARGS.value
        assert "cannot read" in err


class TestInspect:
    """Tests for the inspect command"""

    def test_inspect_json(self, capsys, ctx, sample_tabs):
        asyncio.run(ctx.profiles.save_tabs(sample_tabs))

        code, out, _ = run_cli(capsys, ctx, "--format", "json", "inspect", "--area", "sync")

        assert code == ExitCode.SUCCESS.value
        report = json.loads(out)
        assert report["sync"]["items"]["customTabs"] == sample_tabs
        assert "local" not in report
        assert report["legacyTabsFormat"] == "sync-direct"

    def test_inspect_text(self, capsys, ctx):
        code, out, _ = run_cli(capsys, ctx, "inspect")

        assert code == ExitCode.SUCCESS.value
        assert "=== SYNC STORAGE ===" in out
        assert "Legacy tabs: none" in out


def test_memory_backend(capsys):
    """Test the CLI builds its own context from --backend"""
    code = main(["--backend", "memory", "--format", "json", "inspect"])

    report = json.loads(capsys.readouterr().out)
    assert code == ExitCode.SUCCESS.value
    assert report["legacyTabsFormat"] == "none"
