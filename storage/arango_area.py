"""
ArangoDB-backed storage area.

Persistent StorageArea used by the native host. The python-arango driver is
blocking, so every operation runs in a worker thread; each public call is
still one suspension point for the event loop.

A set() issues a single bulk insert (overwrite_mode="replace"). ArangoDB does
not make that bulk call atomic across documents, and no transaction is
opened: the area gives the same per-call guarantees as chrome.storage and no
more.
"""

import asyncio
import hashlib
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from core.config import AreaQuota

from .areas import Keys, StorageArea, StorageChange, enforce_quota, item_bytes, normalize_keys
from .database import AREA_COLLECTIONS, Database, get_database

logger = logging.getLogger(__name__)

# ArangoDB "document not found"
ERROR_DOCUMENT_NOT_FOUND = 1202

USAGE_QUERY = """
    RETURN {
        bytes: SUM(FOR doc IN @@collection RETURN doc.bytes),
        count: LENGTH(@@collection)
    }
"""


def doc_key(key: str) -> str:
    """ArangoDB _key for a storage item key"""
    return hashlib.sha1(key.encode("utf-8", "surrogatepass")).hexdigest()


class ArangoStorageArea(StorageArea):
    """Storage area persisted in one ArangoDB collection"""

    def __init__(self, name: str, quota: AreaQuota, database: Optional[Database] = None):
        super().__init__(name, quota)
        self._database = database

    def _db(self) -> Database:
        if self._database is None:
            self._database = get_database()
        return self._database

    def _collection(self):
        return self._db().get_area_collection(self.name)

    def _fetch_docs(self, keys: List[str]) -> List[Dict[str, Any]]:
        if not keys:
            return []
        return list(self._collection().get_many([doc_key(key) for key in keys]))

    def _usage(self) -> Tuple[int, int]:
        rows = self._db().execute(USAGE_QUERY, {"@collection": AREA_COLLECTIONS[self.name]})
        usage = rows[0] if rows else {}
        return int(usage.get("bytes") or 0), int(usage.get("count") or 0)

    # Blocking operations (run in a worker thread)

    def _get_sync(self, wanted: Optional[List[str]]) -> Dict[str, Any]:
        if wanted is None:
            docs = self._collection().all()
        else:
            docs = self._fetch_docs(wanted)
        return {doc["key"]: doc["value"] for doc in docs}

    def _set_sync(self, items: Dict[str, Any]) -> Dict[str, StorageChange]:
        existing = {doc["key"]: doc for doc in self._fetch_docs(list(items))}
        total_bytes, item_count = self._usage()
        enforce_quota(
            self.quota,
            self.name,
            items,
            total_bytes,
            item_count,
            {key: int(doc.get("bytes") or 0) for key, doc in existing.items()},
        )

        docs = [
            {"_key": doc_key(key), "key": key, "value": value, "bytes": item_bytes(key, value)}
            for key, value in items.items()
        ]
        results = self._collection().insert_many(docs, overwrite_mode="replace")
        for result in results or []:
            if isinstance(result, Exception):
                raise result

        changes: Dict[str, StorageChange] = {}
        for key, value in items.items():
            old_value = existing[key]["value"] if key in existing else None
            if old_value != value:
                changes[key] = StorageChange(old_value=old_value, new_value=value)
        return changes

    def _remove_sync(self, keys: List[str]) -> Dict[str, StorageChange]:
        existing = self._fetch_docs(keys)
        if not existing:
            return {}

        results = self._collection().delete_many([{"_key": doc["_key"]} for doc in existing])
        for result in results or []:
            # Another context removed it first; the key is gone either way
            if isinstance(result, Exception) and getattr(result, "error_code", None) != ERROR_DOCUMENT_NOT_FOUND:
                raise result

        return {doc["key"]: StorageChange(old_value=doc["value"]) for doc in existing}

    def _clear_sync(self) -> Dict[str, StorageChange]:
        collection = self._collection()
        changes = {doc["key"]: StorageChange(old_value=doc["value"]) for doc in collection.all()}
        collection.truncate()
        return changes

    # StorageArea interface

    async def get(self, keys: Keys = None) -> Dict[str, Any]:
        return await asyncio.to_thread(self._get_sync, normalize_keys(keys))

    async def set(self, items: Dict[str, Any]) -> None:
        if not items:
            return
        changes = await asyncio.to_thread(self._set_sync, dict(items))
        logger.debug(f"[{self.name}] set {len(items)} keys in ArangoDB")
        self._notify(changes)

    async def remove(self, keys: Union[str, Iterable[str]]) -> None:
        changes = await asyncio.to_thread(self._remove_sync, normalize_keys(keys) or [])
        if changes:
            logger.debug(f"[{self.name}] removed {len(changes)} keys from ArangoDB")
        self._notify(changes)

    async def clear(self) -> None:
        changes = await asyncio.to_thread(self._clear_sync)
        logger.info(f"[{self.name}] cleared {len(changes)} keys from ArangoDB")
        self._notify(changes)
