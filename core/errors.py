"""
Storage error kinds.

Every error raised by the storage core derives from StorageError and carries
an ErrorCode, so outer surfaces (native host, CLI) can render it without
inspecting message text.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Application error codes"""
    # Storage errors
    QUOTA_EXCEEDED = "quota_exceeded"
    MISSING_CHUNK = "missing_chunk"
    PARSE_ERROR = "parse_error"

    # Migration errors
    MIGRATION_FAILURE = "migration_failure"
    INVALID_STATE = "invalid_state"

    # Client errors
    INVALID_REQUEST = "invalid_request"
    PROFILE_ERROR = "profile_error"


class StorageError(Exception):
    """Base class for storage core errors"""

    code: ErrorCode = ErrorCode.INVALID_REQUEST

    def to_response(self) -> Dict[str, Any]:
        """Render as a native host error envelope"""
        return {
            "status": "error",
            "code": self.code.value,
            "message": str(self),
        }


class QuotaExceededError(StorageError):
    """A write was rejected by the area's byte/item limits"""

    code = ErrorCode.QUOTA_EXCEEDED

    def __init__(self, message: str, byte_size: Optional[int] = None):
        super().__init__(message)
        self.byte_size = byte_size


class MissingChunkError(StorageError):
    """A chunked record cannot be fully read back"""

    code = ErrorCode.MISSING_CHUNK

    def __init__(self, record: str, index: int, chunk_count: int):
        super().__init__(f"Missing chunk {index} of {chunk_count} for key: {record}")
        self.record = record
        self.index = index
        self.chunk_count = chunk_count


class RecordParseError(StorageError):
    """A structurally complete chunk set does not decode to valid JSON"""

    code = ErrorCode.PARSE_ERROR

    def __init__(self, record: str, byte_size: int, reason: str):
        super().__init__(
            f"Stored data for '{record}' is corrupted ({round(byte_size / 1024)}KB, {reason}). "
            f"Re-import a backup or reduce the configuration size and save again."
        )
        self.record = record
        self.byte_size = byte_size


class MigrationFailure(StorageError):
    """An exception was raised while performing the migration"""

    code = ErrorCode.MIGRATION_FAILURE


class InvalidMigrationState(StorageError):
    """Migration operation requested from a state that does not allow it"""

    code = ErrorCode.INVALID_STATE


class ProfileError(StorageError):
    """Invalid profile operation (unknown id, duplicate URL pattern, ...)"""

    code = ErrorCode.PROFILE_ERROR
