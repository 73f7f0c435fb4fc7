#!/usr/bin/env python3
"""
Native Messaging Host for SF Tabs
This script gives extension contexts access to the shared storage core.

Every message is a 4-byte native-endian length followed by UTF-8 JSON. Each
request carries an "action"; the reply is {"status": "success", ...} or
{"status": "error", "message": ..., "code": ...}. Storage writes are also
pushed to the extension as storageChanged events.
"""

import asyncio
import json
import logging
import os
import struct
import sys
from typing import Any, Awaitable, BinaryIO, Callable, Dict, Optional

from pydantic import ValidationError

from core.config import LOCAL_AREA, LOG_FILE, LOG_LEVEL, MAX_MESSAGE_SIZE, SYNC_AREA
from core.errors import ErrorCode, StorageError
from core.message_types import (
    ActionType,
    CreateProfileRequest,
    MigrationRequest,
    PerformMigrationRequest,
    ProfileIdRequest,
    RecordRequest,
    RecordSaveRequest,
    SaveTabsRequest,
    StorageChangedEvent,
    StorageGetRequest,
    StorageRemoveRequest,
    StorageSetRequest,
)
from core.storage_types import UserSettings
from storage.areas import StorageChange, probe_area
from storage.context import StorageContext, get_storage_context
from storage.migration import MigrationStatus
from storage.resolver import resolve_tabs_key

HOST_VERSION = "1.0.0"

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any], StorageContext], Awaitable[Dict[str, Any]]]


def get_message(stream: Optional[BinaryIO] = None) -> Dict[str, Any]:
    """Read a message from stdin"""
    stream = stream or sys.stdin.buffer
    raw_length = stream.read(4)
    if not raw_length:
        sys.exit(0)
    message_length = struct.unpack('@I', raw_length)[0]

    # Check message size limit
    if message_length > MAX_MESSAGE_SIZE:
        raise ValueError(f"Message too large: {message_length} bytes")

    message = stream.read(message_length).decode('utf-8')
    return json.loads(message)


def send_message(message_content: Dict[str, Any], stream: Optional[BinaryIO] = None) -> None:
    """Send a message to stdout"""
    stream = stream or sys.stdout.buffer
    encoded_content = json.dumps(message_content).encode('utf-8')
    encoded_length = struct.pack('@I', len(encoded_content))
    stream.write(encoded_length)
    stream.write(encoded_content)
    stream.flush()


def forward_storage_change(changes: Dict[str, StorageChange], area_name: str) -> None:
    """Push a storageChanged event to the extension"""
    event = StorageChangedEvent(area=area_name, changedKeys=list(changes))
    send_message(event.model_dump(mode="json"))


def attach_change_events(context: StorageContext) -> None:
    """Forward change notifications of both areas to the extension"""
    for area in (context.sync_area, context.local_area):
        area.add_listener(forward_storage_change)


# ==============================================================================
# HANDLERS
# ==============================================================================

async def handle_ping(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    """Handle ping message"""
    return {
        "status": "success",
        "response": "pong",
        "version": HOST_VERSION,
        "pid": os.getpid()
    }


# Raw area access

async def handle_storage_get(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    request = StorageGetRequest(**message)
    items = await ctx.get_area(request.area).get(request.keys)
    return {"status": "success", "items": items}


async def handle_storage_set(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    request = StorageSetRequest(**message)
    await ctx.get_area(request.area).set(request.items)
    return {"status": "success"}


async def handle_storage_remove(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    request = StorageRemoveRequest(**message)
    await ctx.get_area(request.area).remove(request.keys)
    return {"status": "success"}


async def handle_storage_clear(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    await ctx.get_area(message.get("area", LOCAL_AREA)).clear()
    return {"status": "success"}


async def handle_probe_area(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    """Report whether an area accepts writes"""
    result = await probe_area(ctx.get_area(message.get("area", SYNC_AREA)))
    return {"status": "success", **result}


# Chunked records

async def handle_record_save(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    request = RecordSaveRequest(**message)
    result = await ctx.record_store.save(request.record, request.data, ctx.get_area(request.area))
    return {"status": "success", **result.to_storage()}


async def handle_record_load(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    request = RecordRequest(**message)
    data = await ctx.record_store.load(request.record, ctx.get_area(request.area))
    return {"status": "success", "data": data}


async def handle_record_clear(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    request = RecordRequest(**message)
    await ctx.record_store.clear(request.record, ctx.get_area(request.area))
    return {"status": "success"}


async def handle_record_verify(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    """
    Integrity check of a record.

    A gap in the chunk set is reported as an error with code
    "missing_chunk", unlike record_load which reports it as absent data.
    """
    request = RecordRequest(**message)
    metadata = await ctx.record_store.verify(request.record, ctx.get_area(request.area))
    return {
        "status": "success",
        "valid": True,
        "metadata": metadata.to_storage() if metadata else None
    }


async def handle_detect_format(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    record = message.get("record") or ctx.config.legacy_tabs_key
    info = await ctx.record_store.detect_format(record, ctx.sync_area, ctx.local_area)
    return {"status": "success", **info.model_dump(mode="json", by_alias=True, exclude_none=True)}


# Settings, profiles and tabs

async def handle_resolve_tabs_key(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    settings = await ctx.settings.get_user_settings()
    return {"status": "success", "key": resolve_tabs_key(settings)}


async def handle_get_settings(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    settings = await ctx.settings.get_user_settings()
    return {"status": "success", "settings": settings.to_storage()}


async def handle_save_settings(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    """
    Save user settings.

    A changed useSyncStorage moves profile data to the newly selected area
    before the settings are written.
    """
    settings = UserSettings.model_validate(message.get("settings") or {})

    current = await ctx.settings.get_storage_preference()
    transfer = None
    if current != settings.use_sync_storage:
        transfer = await ctx.sync_manager.transfer(from_sync=current, to_sync=settings.use_sync_storage)

    saved = await ctx.settings.save_user_settings(settings)
    return {"status": "success", "settings": saved.to_storage(), "transfer": transfer}


async def handle_get_profiles(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    profiles = await ctx.profiles.get_profiles()
    return {"status": "success", "profiles": [profile.to_storage() for profile in profiles]}


async def handle_create_profile(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    request = CreateProfileRequest(**message)
    profile = await ctx.profiles.create_profile(request.name, request.urlPatterns)
    return {"status": "success", "profile": profile.to_storage()}


async def handle_delete_profile(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    request = ProfileIdRequest(**message)
    remaining = await ctx.profiles.delete_profile(request.profileId)
    return {"status": "success", "profiles": [profile.to_storage() for profile in remaining]}


async def handle_switch_profile(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    request = ProfileIdRequest(**message)
    tabs = await ctx.profiles.switch_active_profile(request.profileId)
    return {"status": "success", "tabs": tabs}


async def handle_get_tabs(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    tabs = await ctx.profiles.get_tabs()
    return {"status": "success", "tabs": tabs}


async def handle_save_tabs(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    request = SaveTabsRequest(**message)
    tabs = await ctx.profiles.save_tabs(request.tabs)
    return {"status": "success", "tabs": tabs}


# Migration

async def handle_migration_detect(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    request = MigrationRequest(**message)
    status = await ctx.migration.detect(request.version)
    return {"status": "success", "migrationStatus": status.value}


async def handle_migration_perform(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    """Run the migration (detecting first when this host has not yet)"""
    request = PerformMigrationRequest(**message)

    if ctx.migration.status == MigrationStatus.UNKNOWN:
        await ctx.migration.detect(request.version)

    profile = await ctx.migration.perform(
        enable_profiles=request.enableProfiles,
        use_sync_storage=request.useSyncStorage,
        current_version=request.version,
    )
    return {
        "status": "success",
        "migrationStatus": ctx.migration.status.value,
        "profile": profile.to_storage()
    }


async def handle_migration_skip(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    request = MigrationRequest(**message)
    await ctx.migration.skip(request.version)
    return {"status": "success", "migrationStatus": ctx.migration.status.value}


async def handle_migration_status(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    request = MigrationRequest(**message)
    report = await ctx.migration.status_report(request.version)
    report["estimatedDuration"] = await ctx.migration.estimate_duration()
    return {"status": "success", "migration": report}


# Backup

async def handle_export_config(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    backup = await ctx.backup.export_configuration(
        message.get("version") or HOST_VERSION,
        export_type=message.get("exportType"),
    )
    return {"status": "success", "config": backup.to_storage()}


async def handle_import_config(message: Dict[str, Any], ctx: StorageContext) -> Dict[str, Any]:
    config_data = message.get("config")
    if not isinstance(config_data, dict):
        return {
            "status": "error",
            "code": ErrorCode.INVALID_REQUEST.value,
            "message": "Missing configuration document"
        }
    summary = await ctx.backup.import_configuration(config_data)
    return {"status": "success", **summary}


# Message handlers (strongly typed)
HANDLERS: Dict[str, Handler] = {
    ActionType.PING.value: handle_ping,

    # Raw area access
    ActionType.STORAGE_GET.value: handle_storage_get,
    ActionType.STORAGE_SET.value: handle_storage_set,
    ActionType.STORAGE_REMOVE.value: handle_storage_remove,
    ActionType.STORAGE_CLEAR.value: handle_storage_clear,
    ActionType.PROBE_AREA.value: handle_probe_area,

    # Chunked records
    ActionType.RECORD_SAVE.value: handle_record_save,
    ActionType.RECORD_LOAD.value: handle_record_load,
    ActionType.RECORD_CLEAR.value: handle_record_clear,
    ActionType.RECORD_VERIFY.value: handle_record_verify,
    ActionType.DETECT_FORMAT.value: handle_detect_format,

    # Settings, profiles and tabs
    ActionType.RESOLVE_TABS_KEY.value: handle_resolve_tabs_key,
    ActionType.GET_SETTINGS.value: handle_get_settings,
    ActionType.SAVE_SETTINGS.value: handle_save_settings,
    ActionType.GET_PROFILES.value: handle_get_profiles,
    ActionType.CREATE_PROFILE.value: handle_create_profile,
    ActionType.DELETE_PROFILE.value: handle_delete_profile,
    ActionType.SWITCH_PROFILE.value: handle_switch_profile,
    ActionType.GET_TABS.value: handle_get_tabs,
    ActionType.SAVE_TABS.value: handle_save_tabs,

    # Migration
    ActionType.MIGRATION_DETECT.value: handle_migration_detect,
    ActionType.MIGRATION_PERFORM.value: handle_migration_perform,
    ActionType.MIGRATION_SKIP.value: handle_migration_skip,
    ActionType.MIGRATION_STATUS.value: handle_migration_status,

    # Backup
    ActionType.EXPORT_CONFIG.value: handle_export_config,
    ActionType.IMPORT_CONFIG.value: handle_import_config,
}


async def handle_message(message: Dict[str, Any], ctx: Optional[StorageContext] = None) -> Dict[str, Any]:
    """
    Dispatch one request to its handler.

    Storage errors are returned as error envelopes; they never stop the host.
    """
    ctx = ctx or get_storage_context()
    action = message.get("action", "")

    handler = HANDLERS.get(action)
    if handler is None:
        return {
            "status": "error",
            "code": ErrorCode.INVALID_REQUEST.value,
            "message": f"Unknown action: {action}"
        }

    try:
        return await handler(message, ctx)
    except StorageError as e:
        logger.warning(f"{action} failed: {e}")
        return e.to_response()
    except (ValidationError, ValueError) as e:
        logger.warning(f"Invalid {action} request: {e}")
        return {
            "status": "error",
            "code": ErrorCode.INVALID_REQUEST.value,
            "message": str(e)
        }
    except Exception as e:
        logger.error(f"Error handling {action}: {e}", exc_info=True)
        return {
            "status": "error",
            "message": f"Unexpected error: {str(e)}"
        }


def setup_logging() -> None:
    """Log to a file; stdout carries protocol frames"""
    log_level = getattr(logging, LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        filename=LOG_FILE,
        level=log_level,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
    )


def main():
    setup_logging()

    ctx = get_storage_context()
    attach_change_events(ctx)
    logger.info(f"Native host started (pid {os.getpid()})")

    while True:
        try:
            message = get_message()
            logger.debug(f"Received action: {message.get('action')}")

            response = asyncio.run(handle_message(message, ctx))
            send_message(response)

        except json.JSONDecodeError as e:
            error_response = {
                "status": "error",
                "message": f"Invalid JSON: {str(e)}"
            }
            send_message(error_response)
            sys.exit(1)
        except struct.error as e:
            error_response = {
                "status": "error",
                "message": f"Message format error: {str(e)}"
            }
            send_message(error_response)
            sys.exit(1)
        except ValueError as e:
            error_response = {
                "status": "error",
                "message": f"Message size error: {str(e)}"
            }
            send_message(error_response)
            sys.exit(1)
        except KeyboardInterrupt:
            logger.info("Native host interrupted")
            sys.exit(0)
        except Exception as e:
            logger.error(f"Unexpected error: {str(e)}", exc_info=True)
            error_response = {
                "status": "error",
                "message": f"Unexpected error: {str(e)}"
            }
            send_message(error_response)
            sys.exit(1)


if __name__ == '__main__':
    main()
