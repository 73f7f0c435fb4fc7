"""
Backend Adapter
===============

Uniform async get/set/remove/clear interface over the two host storage
areas ("sync": small quota, shared across devices; "local": larger quota,
device only).

Semantics mirror chrome.storage:
- get() returns only the keys that exist (never None placeholders)
- set() is one batched call; a quota violation rejects the whole batch
- change listeners fire after a successful write with (changes, area_name)

No locking is done here. Each call is applied as a unit, but nothing orders
calls coming from different contexts; last set() wins per key.
"""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from core.config import AreaQuota, LOCAL_AREA, LOCAL_QUOTA, SYNC_AREA, SYNC_QUOTA
from core.errors import QuotaExceededError

from .chunking import byte_length, serialize

logger = logging.getLogger(__name__)

Keys = Optional[Union[str, Iterable[str]]]


@dataclass
class StorageChange:
    """Old/new value of one changed key (None = absent)"""
    old_value: Any = None
    new_value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        change = {}
        if self.old_value is not None:
            change["oldValue"] = self.old_value
        if self.new_value is not None:
            change["newValue"] = self.new_value
        return change


ChangeListener = Callable[[Dict[str, StorageChange], str], None]


def normalize_keys(keys: Keys) -> Optional[List[str]]:
    """None stays None (all keys); a single key becomes a one-item list"""
    if keys is None:
        return None
    if isinstance(keys, str):
        return [keys]
    return list(keys)


def item_bytes(key: str, value: Any) -> int:
    """Quota cost of one item: key bytes plus serialized value bytes"""
    return byte_length(key) + byte_length(serialize(value))


def enforce_quota(
    quota: AreaQuota,
    area_name: str,
    items: Dict[str, Any],
    total_bytes: int,
    item_count: int,
    replaced_sizes: Dict[str, int],
) -> None:
    """
    Reject a batch that would break the area's limits.

    Args:
        quota: Area limits
        area_name: Area name (for the error message)
        items: Batch about to be written
        total_bytes: Bytes currently in use
        item_count: Items currently stored
        replaced_sizes: Current size of every batch key that already exists

    Raises:
        QuotaExceededError: The batch must not be written
    """
    new_sizes = {key: item_bytes(key, value) for key, value in items.items()}

    if quota.quota_bytes_per_item is not None:
        for key, size in new_sizes.items():
            if size > quota.quota_bytes_per_item:
                raise QuotaExceededError(
                    f"QUOTA_BYTES_PER_ITEM quota exceeded in {area_name} storage: "
                    f"'{key}' is {size} bytes (limit {quota.quota_bytes_per_item})",
                    byte_size=size,
                )

    new_total = total_bytes - sum(replaced_sizes.values()) + sum(new_sizes.values())
    if quota.quota_bytes is not None and new_total > quota.quota_bytes:
        raise QuotaExceededError(
            f"QUOTA_BYTES quota exceeded in {area_name} storage: "
            f"{new_total} bytes needed (limit {quota.quota_bytes})",
            byte_size=new_total,
        )

    new_count = item_count + sum(1 for key in items if key not in replaced_sizes)
    if quota.max_items is not None and new_count > quota.max_items:
        raise QuotaExceededError(
            f"MAX_ITEMS quota exceeded in {area_name} storage: "
            f"{new_count} items (limit {quota.max_items})"
        )


class StorageArea(ABC):
    """
    One named key-value storage area.

    Subclasses implement the four I/O operations; listener bookkeeping is
    shared.
    """

    def __init__(self, name: str, quota: AreaQuota):
        self.name = name
        self.quota = quota
        self._listeners: List[ChangeListener] = []

    @abstractmethod
    async def get(self, keys: Keys = None) -> Dict[str, Any]:
        """Read keys (None = every key); absent keys are omitted"""
        pass

    @abstractmethod
    async def set(self, items: Dict[str, Any]) -> None:
        """Write a batch of items in one call"""
        pass

    @abstractmethod
    async def remove(self, keys: Union[str, Iterable[str]]) -> None:
        """Remove keys; absent keys are ignored"""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove every key in the area"""
        pass

    async def get_bytes_in_use(self, keys: Keys = None) -> int:
        """Quota bytes used by the given keys (None = whole area)"""
        items = await self.get(keys)
        return sum(item_bytes(key, value) for key, value in items.items())

    def add_listener(self, listener: ChangeListener) -> None:
        """Subscribe to change notifications"""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        """Unsubscribe from change notifications"""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, changes: Dict[str, StorageChange]) -> None:
        """Deliver a change set to every listener"""
        if not changes:
            return
        for listener in list(self._listeners):
            try:
                listener(changes, self.name)
            except Exception as e:
                # The write is already applied; remaining listeners still run
                logger.error(f"Storage listener failed for {self.name}: {e}", exc_info=True)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class MemoryStorageArea(StorageArea):
    """
    In-process storage area.

    Values are stored as JSON round-tripped copies, so callers never share
    mutable state with the area. Every operation yields to the event loop
    once, like a real host call would.
    """

    def __init__(
        self,
        name: str,
        quota: AreaQuota,
        initial: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(name, quota)
        self._data: Dict[str, Any] = {}
        for key, value in (initial or {}).items():
            self._data[key] = self._copy(value)

    @staticmethod
    def _copy(value: Any) -> Any:
        return json.loads(serialize(value))

    def snapshot(self) -> Dict[str, Any]:
        """Copy of the full contents (for inspection and tests)"""
        return {key: self._copy(value) for key, value in self._data.items()}

    async def get(self, keys: Keys = None) -> Dict[str, Any]:
        await asyncio.sleep(0)
        wanted = normalize_keys(keys)
        if wanted is None:
            return self.snapshot()
        return {key: self._copy(self._data[key]) for key in wanted if key in self._data}

    async def set(self, items: Dict[str, Any]) -> None:
        await asyncio.sleep(0)
        if not items:
            return

        current_total = sum(item_bytes(key, value) for key, value in self._data.items())
        replaced = {key: item_bytes(key, self._data[key]) for key in items if key in self._data}
        enforce_quota(self.quota, self.name, items, current_total, len(self._data), replaced)

        changes: Dict[str, StorageChange] = {}
        for key, value in items.items():
            new_value = self._copy(value)
            old_value = self._data.get(key)
            self._data[key] = new_value
            if old_value != new_value:
                changes[key] = StorageChange(old_value=old_value, new_value=self._copy(new_value))

        logger.debug(f"[{self.name}] set {len(items)} keys")
        self._notify(changes)

    async def remove(self, keys: Union[str, Iterable[str]]) -> None:
        await asyncio.sleep(0)
        changes: Dict[str, StorageChange] = {}
        for key in normalize_keys(keys) or []:
            if key in self._data:
                changes[key] = StorageChange(old_value=self._data.pop(key))

        if changes:
            logger.debug(f"[{self.name}] removed {len(changes)} keys")
        self._notify(changes)

    async def clear(self) -> None:
        await asyncio.sleep(0)
        changes = {key: StorageChange(old_value=value) for key, value in self._data.items()}
        self._data = {}
        logger.info(f"[{self.name}] cleared {len(changes)} keys")
        self._notify(changes)


def create_memory_areas(
    initial_sync: Optional[Dict[str, Any]] = None,
    initial_local: Optional[Dict[str, Any]] = None,
) -> Dict[str, MemoryStorageArea]:
    """Create the "sync" and "local" in-memory areas with host quotas"""
    return {
        SYNC_AREA: MemoryStorageArea(SYNC_AREA, SYNC_QUOTA, initial_sync),
        LOCAL_AREA: MemoryStorageArea(LOCAL_AREA, LOCAL_QUOTA, initial_local),
    }


async def probe_area(area: StorageArea) -> Dict[str, Any]:
    """
    Check that an area accepts writes by round-tripping a throwaway key.

    Returns:
        {"available": True} or {"available": False, "error": "..."}
    """
    probe_key = f"_sftabs_probe_{int(time.time() * 1000)}"
    probe_value = "test"

    try:
        await area.set({probe_key: probe_value})
        result = await area.get(probe_key)
        await area.remove(probe_key)
    except Exception as e:
        logger.warning(f"Storage area {area.name} not usable: {e}")
        return {"available": False, "error": str(e) or f"{area.name} storage not accessible"}

    if result.get(probe_key) != probe_value:
        return {"available": False, "error": f"{area.name} storage test failed"}

    return {"available": True}
