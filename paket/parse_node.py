"""Node.js package.json parsing."""

import json
import logging
from pathlib import Path
from typing import Any

from .errors import ManifestParseError
from .models import KNOWN_KEYS, RESOLVE_MODULES_KEY, Manifest

logger = logging.getLogger(__name__)


def _string_map(path: Path, key: str, value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        raise ManifestParseError(path, f"'{key}' must be an object")
    for name, spec in value.items():
        if not isinstance(spec, str):
            raise ManifestParseError(path, f"'{key}.{name}' must be a string")
    return dict(value)


def _string_list(path: Path, key: str, value: Any) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ManifestParseError(path, f"'{key}' must be a list of strings")
    return list(value)


def parse_package_json(content: str, path: Path | str = "package.json") -> Manifest:
    """Parse package.json content into Manifest.

    Args:
        content: The package.json file content
        path: Where the content was read from, used for reporting

    Returns:
        Parsed Manifest object

    Raises:
        ManifestParseError: If the content is not a JSON object or a
            dependency section has the wrong shape
    """
    path = Path(path)
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ManifestParseError(path, str(e)) from e

    if not isinstance(data, dict):
        raise ManifestParseError(path, "top level must be an object")

    manifest = Manifest(path=path, raw=content, field_order=list(data))
    for key, value in data.items():
        attr = KNOWN_KEYS.get(key)
        if attr is None or value is None:
            # Unknown fields and explicit nulls pass through untouched
            manifest.extra[key] = value
        elif key == RESOLVE_MODULES_KEY:
            manifest.resolve_modules = _string_list(path, key, value)
        else:
            setattr(manifest, attr, _string_map(path, key, value))
    return manifest


def read_manifest(path: Path) -> Manifest:
    """Read and parse one manifest file, dropping a leading byte order mark."""
    try:
        content = path.read_bytes().decode("utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestParseError(path, str(e)) from e
    logger.debug("Read %s (%d bytes)", path, len(content))
    return parse_package_json(content, path)


def dump_package_json(manifest: Manifest) -> str:
    """Serialize a manifest the way npm writes package.json (two-space indent)."""
    return json.dumps(manifest.to_dict(), indent=2, ensure_ascii=False)
