"""
Pytest configuration and shared fixtures

Provides in-memory storage areas, a wired storage context and sample data.
"""

import pytest
from typing import Any, Dict, List

from core.config import LOCAL_AREA, SYNC_AREA, StorageConfig
from storage.areas import MemoryStorageArea, create_memory_areas
from storage.context import StorageContext
from storage.record_store import ChunkedRecordStore


@pytest.fixture
def config() -> StorageConfig:
    """
    Fresh storage configuration (production defaults)

    Returns:
        StorageConfig instance
    """
    return StorageConfig()


@pytest.fixture
def areas() -> Dict[str, MemoryStorageArea]:
    """Empty "sync" and "local" areas with host quotas"""
    return create_memory_areas()


@pytest.fixture
def sync_area(areas) -> MemoryStorageArea:
    return areas[SYNC_AREA]


@pytest.fixture
def local_area(areas) -> MemoryStorageArea:
    return areas[LOCAL_AREA]


@pytest.fixture
def record_store(config) -> ChunkedRecordStore:
    return ChunkedRecordStore(config)


@pytest.fixture
def ctx(sync_area, local_area, config) -> StorageContext:
    """
    Storage context over the in-memory areas

    Returns:
        StorageContext with every service wired
    """
    return StorageContext.from_areas(sync_area, local_area, config)


@pytest.fixture
def sample_tabs() -> List[Dict[str, Any]]:
    """Two legacy tabs (tabA, tabB)"""
    return [
        {"id": "tabA", "label": "Flows", "path": "Flows", "position": 0},
        {"id": "tabB", "label": "Users", "path": "ManageUsers", "position": 1},
    ]


def make_tabs(count: int = 40, items_per_tab: int = 10) -> List[Dict[str, Any]]:
    """
    Tab list shaped like the extension's, each tab with nested dropdownItems.

    Dense with quotes, so chunks stored as JSON strings grow by their escapes.
    """
    return [
        {
            "id": f"tab_{i}",
            "label": f"Setup Page {i}",
            "path": f"ObjectManager/Account{i}/FieldsAndRelationships/view",
            "position": i,
            "isObject": True,
            "dropdownItems": [
                {"id": f"d{i}_{j}", "label": f"Item {j}", "path": f"F{j}"}
                for j in range(items_per_tab)
            ],
        }
        for i in range(count)
    ]


def make_plain_data(count: int = 5, size: int = 5000) -> List[str]:
    """List of long letter runs; escaping adds nothing to their stored size"""
    return [chr(ord("a") + i % 26) * size for i in range(count)]


@pytest.fixture
def large_data() -> List[Dict[str, Any]]:
    """Realistic tab list whose serialized form is more than 3x the chunk threshold"""
    return make_tabs()


@pytest.fixture
def plain_data() -> List[str]:
    """Quote-free record more than 3x the chunk threshold"""
    return make_plain_data()
