"""
Extension manifest access.

The only thing the storage core needs from the manifest is the current
version string, which gates the one-time migration.
"""

import json
import logging
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


def read_manifest_version(manifest_path: Union[str, Path]) -> str:
    """
    Read the "version" field of an extension manifest.json.

    Args:
        manifest_path: Path to manifest.json (or the extension directory)

    Returns:
        Version string, e.g. "1.4.0"

    Raises:
        FileNotFoundError: Manifest does not exist
        ValueError: Manifest has no usable version
    """
    path = Path(manifest_path)
    if path.is_dir():
        path = path / "manifest.json"

    with open(path, "r", encoding="utf-8") as f:
        manifest = json.load(f)

    version = manifest.get("version")
    if not isinstance(version, str) or not version:
        raise ValueError(f"Manifest has no version: {path}")

    logger.debug(f"Manifest version {version} read from {path}")
    return version
