"""
Chunked Record Store
====================

Saves, loads and clears a named JSON record in a storage area, either as a
single direct value or as a set of byte-bounded chunks plus metadata.

Key layout:
- <record>                direct value (non-chunked form)
- <record>_metadata       {chunked, chunkCount?, byteSize, savedAt}
- <record>_chunk_<i>      i in [0, chunkCount)

Exactly one representation is authoritative: the metadata says which. A
save removes every key of the previous representation first, then writes
the new one in a single batched set(). There is no cross-call atomicity, so
a reader racing a save may briefly see the record as absent.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from core.config import STORAGE_CONFIG, StorageConfig
from core.errors import MissingChunkError, QuotaExceededError, RecordParseError
from core.storage_types import FormatInfo, RecordMetadata, SaveResult, StorageFormat

from .areas import StorageArea
from .chunking import byte_length, chunk_key, decode, encode, metadata_key, serialize

logger = logging.getLogger(__name__)


class ChunkedRecordStore:
    """
    Record persistence on top of a StorageArea.

    One instance can serve any number of areas; the area is passed per call.
    """

    def __init__(self, config: Optional[StorageConfig] = None):
        self.config = config or STORAGE_CONFIG

    @property
    def chunk_size(self) -> int:
        return self.config.chunk_size

    def _keys_to_remove(self, record: str, raw_metadata: Optional[Dict[str, Any]]) -> List[str]:
        """Every key any previous representation of the record may occupy"""
        keys = [record, metadata_key(record)]

        if isinstance(raw_metadata, dict) and raw_metadata.get("chunked"):
            count = raw_metadata.get("chunkCount")
            if isinstance(count, int) and count > 0:
                keys.extend(chunk_key(record, i) for i in range(count))

        # Bounded sweep for orphans left behind by metadata that was lost or overwritten
        keys.extend(chunk_key(record, i) for i in range(self.config.orphan_sweep_limit))

        return list(dict.fromkeys(keys))

    def _max_stored_chunk_bytes(self, record: str, area: StorageArea) -> Optional[int]:
        """
        Largest stored (escaped) chunk the area's per-item limit accepts.

        The area charges key bytes plus the chunk re-serialized as a JSON
        string, so the budget is the limit minus the longest chunk key.
        """
        limit = area.quota.quota_bytes_per_item
        if limit is None:
            return None
        longest_key = chunk_key(record, max(self.config.max_chunks, 1) - 1)
        return limit - byte_length(longest_key)

    async def _read_raw_metadata(self, record: str, area: StorageArea) -> Optional[Dict[str, Any]]:
        key = metadata_key(record)
        result = await area.get(key)
        return result.get(key)

    async def read_metadata(self, record: str, area: StorageArea) -> Optional[RecordMetadata]:
        """
        Read and validate the metadata of a record.

        Returns:
            RecordMetadata, or None when absent or malformed
        """
        raw = await self._read_raw_metadata(record, area)
        if raw is None:
            return None
        try:
            return RecordMetadata.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed metadata for {record} in {area.name} storage: {e}")
            return None

    async def save(self, record: str, data: Any, area: StorageArea) -> SaveResult:
        """
        Save a record, chunking it when its serialized form is too large.

        Args:
            record: Record name
            data: JSON-serializable value (full overwrite)
            area: Target storage area

        Returns:
            SaveResult(chunked, chunk_count)

        Raises:
            QuotaExceededError: The area rejected the write, or the record
                would need more than max_chunks chunks
        """
        serialized = serialize(data)
        byte_size = byte_length(serialized)

        chunks: Optional[List[str]] = None
        if byte_size > self.chunk_size:
            chunks = encode(serialized, self.chunk_size, self._max_stored_chunk_bytes(record, area))
            if len(chunks) > self.config.max_chunks:
                raise QuotaExceededError(
                    f"Your configuration is too large ({round(byte_size / 1024)}KB, "
                    f"{len(chunks)} chunks; at most {self.config.max_chunks} are allowed). "
                    f"Please reduce the number of tabs or dropdown items.",
                    byte_size=byte_size,
                )

        logger.info(f"Saving to {area.name} storage: {record} ({byte_size} bytes)")

        raw_metadata = await self._read_raw_metadata(record, area)
        await area.remove(self._keys_to_remove(record, raw_metadata))

        if chunks is None:
            metadata = RecordMetadata(chunked=False, byte_size=byte_size)
            items: Dict[str, Any] = {record: data}
            result = SaveResult(chunked=False, chunk_count=1)
        else:
            metadata = RecordMetadata(chunked=True, chunk_count=len(chunks), byte_size=byte_size)
            items = {chunk_key(record, i): chunk for i, chunk in enumerate(chunks)}
            result = SaveResult(chunked=True, chunk_count=len(chunks))
        items[metadata_key(record)] = metadata.to_storage()

        try:
            await area.set(items)
        except QuotaExceededError as e:
            logger.error(f"Quota exceeded saving {record} to {area.name} storage: {e}")
            raise QuotaExceededError(
                f"{area.name.capitalize()} storage quota exceeded. Your configuration is too large "
                f"({round(byte_size / 1024)}KB). Please reduce the number of tabs or dropdown items.",
                byte_size=byte_size,
            ) from e

        if result.chunked:
            logger.info(f"Saved {record} to {area.name} storage ({result.chunk_count} chunks)")
        else:
            logger.debug(f"Saved {record} to {area.name} storage (non-chunked)")
        return result

    async def _read_chunks(self, record: str, metadata: RecordMetadata, area: StorageArea) -> List[str]:
        """Read every chunk named by metadata, in index order"""
        count = metadata.chunk_count
        if not count:
            raise MissingChunkError(record, 0, count or 0)

        keys = [chunk_key(record, i) for i in range(count)]
        result = await area.get(keys)

        chunks = []
        for index, key in enumerate(keys):
            chunk = result.get(key)
            if not isinstance(chunk, str):
                raise MissingChunkError(record, index, count)
            chunks.append(chunk)
        return chunks

    def _parse(self, record: str, serialized: str) -> Any:
        try:
            return json.loads(serialized)
        except json.JSONDecodeError as e:
            raise RecordParseError(record, byte_length(serialized), str(e)) from e

    async def load(self, record: str, area: StorageArea) -> Optional[Any]:
        """
        Load a record.

        A chunk set with any gap is reported as an absent record (None), the
        same as a record that was never saved. Use verify() to tell the two
        apart.

        Raises:
            RecordParseError: All chunks were present but do not form valid JSON
        """
        metadata = await self.read_metadata(record, area)

        if metadata is None or not metadata.chunked:
            result = await area.get(record)
            if record not in result:
                logger.debug(f"No data found in {area.name} storage for key: {record}")
            return result.get(record)

        logger.debug(f"Reading {metadata.chunk_count} chunks of {record} from {area.name} storage")
        try:
            chunks = await self._read_chunks(record, metadata, area)
        except MissingChunkError as e:
            logger.warning(f"{e} in {area.name} storage; treating record as absent")
            return None

        return self._parse(record, decode(chunks))

    async def verify(self, record: str, area: StorageArea) -> Optional[RecordMetadata]:
        """
        Integrity check for a record.

        Returns:
            The record's metadata (None for a direct or absent record)

        Raises:
            MissingChunkError: A chunk named by metadata is missing
            RecordParseError: The chunks do not decode to valid JSON
        """
        metadata = await self.read_metadata(record, area)
        if metadata is None or not metadata.chunked:
            return metadata

        chunks = await self._read_chunks(record, metadata, area)
        self._parse(record, decode(chunks))
        return metadata

    async def clear(self, record: str, area: StorageArea) -> None:
        """Remove the direct value, metadata and every chunk of a record"""
        raw_metadata = await self._read_raw_metadata(record, area)
        await area.remove(self._keys_to_remove(record, raw_metadata))
        logger.info(f"Cleared {area.name} storage for key: {record}")

    async def detect_format(
        self,
        record: str,
        sync_area: StorageArea,
        local_area: StorageArea,
    ) -> FormatInfo:
        """Report where a record currently lives and in which form"""
        metadata = await self.read_metadata(record, sync_area)
        if metadata is not None and metadata.chunked:
            return FormatInfo(location=StorageFormat.SYNC_CHUNKED, metadata=metadata)

        if (await sync_area.get(record)).get(record):
            return FormatInfo(location=StorageFormat.SYNC_DIRECT)

        if (await local_area.get(record)).get(record):
            return FormatInfo(location=StorageFormat.LOCAL)

        return FormatInfo(location=StorageFormat.NONE)

