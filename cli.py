"""
Command-line interface for the SF Tabs storage host.

Provides inspection and administration commands:
- Storage inspection
- Migration status, run and opt-out
- Record read-back and integrity check
- Configuration export/import and full reset
"""

import sys
import argparse
import asyncio
import logging
import json
from typing import Any, Dict, Optional
from enum import Enum

from core import StorageError, SYNC_AREA, LOCAL_AREA
from core.manifest import read_manifest_version
from storage import MigrationStatus, StorageContext, create_storage_context


class ExitCode(int, Enum):
    """CLI exit codes"""
    SUCCESS = 0
    ERROR = 1
    INVALID_ARGS = 2
    CORRUPTED = 3


class OutputFormat(str, Enum):
    """Output format options"""
    TEXT = "text"
    JSON = "json"


def setup_logging(verbose: int) -> None:
    """
    Setup logging based on verbosity level.

    Args:
        verbose: Verbosity count (0=WARNING, 1=INFO, 2+=DEBUG)
    """
    if verbose == 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format='%(levelname)s: %(message)s'
    )


def resolve_version(args) -> Optional[str]:
    """Version from --version, else from --manifest"""
    if getattr(args, 'version', None):
        return args.version
    if getattr(args, 'manifest', None):
        return read_manifest_version(args.manifest)
    return None


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _selected_areas(ctx: StorageContext, area: str):
    if area == 'all':
        return [ctx.sync_area, ctx.local_area]
    return [ctx.get_area(area)]


async def _inspect(ctx: StorageContext, area: str) -> Dict[str, Any]:
    report = {}
    for storage_area in _selected_areas(ctx, area):
        items = await storage_area.get(None)
        report[storage_area.name] = {
            "bytesInUse": await storage_area.get_bytes_in_use(),
            "quotaBytes": storage_area.quota.quota_bytes,
            "items": items,
        }

    info = await ctx.record_store.detect_format(ctx.config.legacy_tabs_key, ctx.sync_area, ctx.local_area)
    report["legacyTabsFormat"] = info.location.value
    return report


def cmd_inspect(args, ctx: StorageContext) -> int:
    """
    Dump the contents of the storage areas.

    Args:
        args: Parsed command arguments
        ctx: Storage context

    Returns:
        Exit code
    """
    try:
        report = asyncio.run(_inspect(ctx, args.area))

        if args.format == OutputFormat.JSON.value:
            print_json(report)
        else:
            for name in (SYNC_AREA, LOCAL_AREA):
                if name not in report:
                    continue
                area_report = report[name]
                quota = area_report["quotaBytes"]
                print(f"=== {name.upper()} STORAGE ===")
                print(f"Bytes in use: {area_report['bytesInUse']}" + (f" / {quota}" if quota else ""))
                for key in sorted(area_report["items"]):
                    value = json.dumps(area_report["items"][key], ensure_ascii=False)
                    preview = value if len(value) <= 60 else value[:57] + "..."
                    print(f"  {key}: {preview}")
                print()
            print(f"Legacy tabs: {report['legacyTabsFormat']}")

        return ExitCode.SUCCESS.value

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.ERROR.value


async def _status(ctx: StorageContext, version: str) -> Dict[str, Any]:
    await ctx.migration.detect(version)
    report = await ctx.migration.status_report(version)
    report["estimatedDuration"] = await ctx.migration.estimate_duration()
    report["useSyncStorage"] = await ctx.settings.get_storage_preference()
    return report


def cmd_status(args, ctx: StorageContext) -> int:
    """Show migration status for a version"""
    try:
        version = resolve_version(args)
        if not version:
            print("Error: --version or --manifest is required", file=sys.stderr)
            return ExitCode.INVALID_ARGS.value

        report = asyncio.run(_status(ctx, version))

        if args.format == OutputFormat.JSON.value:
            print_json(report)
        else:
            print("=== Migration Status ===\n")
            print(f"Current version: {report['currentVersion']}")
            print(f"Stored version: {report['storedVersion'] or '-'}")
            print(f"Status: {report['status']}")
            print(f"Pending: {report['migrationPending']}")
            print(f"Storage: {'sync' if report['useSyncStorage'] else 'local'}")
            if report['status'] == MigrationStatus.NEEDED.value:
                print(f"Estimated duration: {report['estimatedDuration']}")

        return ExitCode.SUCCESS.value

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.ERROR.value


async def _migrate(ctx: StorageContext, version: str, enable_profiles: bool, use_sync_storage: bool) -> Dict[str, Any]:
    status = await ctx.migration.detect(version)
    if status != MigrationStatus.NEEDED:
        return {"migrationStatus": status.value, "profile": None}

    profile = await ctx.migration.perform(
        enable_profiles=enable_profiles,
        use_sync_storage=use_sync_storage,
        current_version=version,
    )
    return {"migrationStatus": ctx.migration.status.value, "profile": profile.to_storage()}


def cmd_migrate(args, ctx: StorageContext) -> int:
    """Run the profiles migration if it is needed"""
    try:
        version = resolve_version(args)
        if not version:
            print("Error: --version or --manifest is required", file=sys.stderr)
            return ExitCode.INVALID_ARGS.value

        result = asyncio.run(_migrate(ctx, version, args.enable_profiles, not args.local))

        if args.format == OutputFormat.JSON.value:
            print_json(result)
        elif result["profile"]:
            print(f"Migration completed: profile {result['profile']['id']} created")
        else:
            print(f"Nothing to migrate ({result['migrationStatus']})")

        return ExitCode.SUCCESS.value

    except StorageError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Run 'migrate' again to retry or 'skip' to keep the legacy layout", file=sys.stderr)
        return ExitCode.ERROR.value
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.ERROR.value


def cmd_skip(args, ctx: StorageContext) -> int:
    """Opt out of the migration for a version"""
    try:
        version = resolve_version(args)
        if not version:
            print("Error: --version or --manifest is required", file=sys.stderr)
            return ExitCode.INVALID_ARGS.value

        asyncio.run(ctx.migration.skip(version))
        print(f"Migration skipped for {version}")
        return ExitCode.SUCCESS.value

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.ERROR.value


def cmd_reset(args, ctx: StorageContext) -> int:
    """Clear both storage areas"""
    if not args.yes:
        print("Error: reset deletes all stored data; pass --yes to confirm", file=sys.stderr)
        return ExitCode.INVALID_ARGS.value

    try:
        asyncio.run(ctx.backup.clear_all_storage())
        print("All storage cleared")
        return ExitCode.SUCCESS.value

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.ERROR.value


async def _load(ctx: StorageContext, record: str, area: str, verify: bool) -> Dict[str, Any]:
    storage_area = ctx.get_area(area)
    result: Dict[str, Any] = {"record": record, "area": area}
    if verify:
        metadata = await ctx.record_store.verify(record, storage_area)
        result["metadata"] = metadata.to_storage() if metadata else None
    result["data"] = await ctx.record_store.load(record, storage_area)
    return result


def cmd_load(args, ctx: StorageContext) -> int:
    """
    Print a record.

    With --verify a missing chunk is reported as corruption (exit code 3)
    instead of an absent record.
    """
    try:
        result = asyncio.run(_load(ctx, args.record, args.area, args.verify))

        if args.format == OutputFormat.JSON.value:
            print_json(result)
        elif result["data"] is None:
            print(f"No data for {args.record} in {args.area} storage")
        else:
            print_json(result["data"])

        return ExitCode.SUCCESS.value

    except StorageError as e:
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.CORRUPTED.value
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.ERROR.value


def cmd_export(args, ctx: StorageContext) -> int:
    """Write a configuration backup"""
    try:
        version = resolve_version(args) or "unknown"
        backup = asyncio.run(ctx.backup.export_configuration(version))
        content = json.dumps(backup.to_storage(), indent=2, ensure_ascii=False)

        if args.output:
            with open(args.output, 'w', encoding='utf-8') as f:
                f.write(content)
            print(f"Configuration exported to {args.output}")
        else:
            print(content)

        return ExitCode.SUCCESS.value

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.ERROR.value


def cmd_import(args, ctx: StorageContext) -> int:
    """Replace the configuration with a backup"""
    try:
        with open(args.file, 'r', encoding='utf-8') as f:
            data = json.load(f)

        summary = asyncio.run(ctx.backup.import_configuration(data))

        if args.format == OutputFormat.JSON.value:
            print_json(summary)
        else:
            print(f"Imported {summary['profiles']} profiles ({summary['tabRecords']} tab records)")

        return ExitCode.SUCCESS.value

    except (OSError, json.JSONDecodeError) as e:
        print(f"Error: cannot read {args.file}: {e}", file=sys.stderr)
        return ExitCode.INVALID_ARGS.value
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.ERROR.value


def add_version_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--version', dest='version', help='Current extension version')
    parser.add_argument('--manifest', help='Path to the extension manifest.json (or its directory)')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="SF Tabs Storage CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s inspect                       # Dump both storage areas
  %(prog)s status --version 1.4.0        # Show migration status
  %(prog)s migrate --manifest ./ext      # Migrate to profiles if needed
  %(prog)s load customTabs --verify      # Read back and check a record
  %(prog)s reset --yes                   # Clear everything
        """
    )

    # Global options
    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (can be repeated: -v, -vv)'
    )
    parser.add_argument(
        '--format',
        choices=[f.value for f in OutputFormat],
        default=OutputFormat.TEXT.value,
        help='Output format'
    )
    parser.add_argument(
        '--backend',
        choices=['memory', 'arango'],
        help='Storage backend (default: SFTABS_STORAGE_BACKEND or arango)'
    )

    # Subcommands
    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    inspect_parser = subparsers.add_parser('inspect', help='Dump storage contents')
    inspect_parser.add_argument('--area', choices=[SYNC_AREA, LOCAL_AREA, 'all'], default='all')

    status_parser = subparsers.add_parser('status', help='Show migration status')
    add_version_arguments(status_parser)

    migrate_parser = subparsers.add_parser('migrate', help='Run the profiles migration')
    add_version_arguments(migrate_parser)
    migrate_parser.add_argument('--enable-profiles', action='store_true', help='Turn profiles on afterwards')
    migrate_parser.add_argument('--local', action='store_true', help='Store profiles in the local area')

    skip_parser = subparsers.add_parser('skip', help='Opt out of the migration')
    add_version_arguments(skip_parser)

    reset_parser = subparsers.add_parser('reset', help='Clear all storage')
    reset_parser.add_argument('--yes', action='store_true', help='Confirm the reset')

    load_parser = subparsers.add_parser('load', help='Print a record')
    load_parser.add_argument('record', help='Record name, e.g. customTabs or profiles')
    load_parser.add_argument('--area', choices=[SYNC_AREA, LOCAL_AREA], default=SYNC_AREA)
    load_parser.add_argument('--verify', action='store_true', help='Fail on missing chunks')

    export_parser = subparsers.add_parser('export', help='Export the configuration')
    add_version_arguments(export_parser)
    export_parser.add_argument('--output', '-o', help='Output file (default: stdout)')

    import_parser = subparsers.add_parser('import', help='Import a configuration backup')
    import_parser.add_argument('file', help='Backup file')

    return parser


COMMANDS = {
    'inspect': cmd_inspect,
    'status': cmd_status,
    'migrate': cmd_migrate,
    'skip': cmd_skip,
    'reset': cmd_reset,
    'load': cmd_load,
    'export': cmd_export,
    'import': cmd_import,
}


def main(argv=None, ctx: Optional[StorageContext] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    # Setup logging
    setup_logging(args.verbose)

    # Route to command handler
    if not args.command:
        parser.print_help()
        return ExitCode.SUCCESS.value

    command = COMMANDS.get(args.command)
    if command is None:
        print(f"Error: Unknown command '{args.command}'", file=sys.stderr)
        return ExitCode.INVALID_ARGS.value

    try:
        ctx = ctx or create_storage_context(args.backend)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.INVALID_ARGS.value

    return command(args, ctx)


if __name__ == '__main__':
    sys.exit(main())
