"""Persisting updated manifests."""

import logging

from .detect import detect_newline, normalize_newlines
from .errors import WriteError
from .models import Manifest
from .parse_node import dump_package_json

logger = logging.getLogger(__name__)


def render_manifest(manifest: Manifest) -> str | None:
    """Render a manifest with the line endings of its original content.

    Returns None when the original has no detectable line ending, in which
    case the file is left alone.
    """
    newline = detect_newline(manifest.raw)
    if newline is None:
        return None
    return normalize_newlines(dump_package_json(manifest) + newline, newline)


def write_manifest(manifest: Manifest) -> bool:
    """Write a manifest back to disk if its serialized form changed.

    Args:
        manifest: The (possibly mutated) manifest

    Returns:
        True if the file was written

    Raises:
        WriteError: If the file cannot be written
    """
    rendered = render_manifest(manifest)
    if rendered is None:
        logger.debug("No line ending detected in %s, skipping", manifest.path)
        return False
    if rendered == manifest.raw:
        logger.debug("%s unchanged", manifest.path)
        return False

    try:
        manifest.path.write_bytes(rendered.encode("utf-8"))
    except OSError as e:
        raise WriteError(manifest.path, e.strerror or str(e)) from e

    manifest.raw = rendered
    logger.debug("Wrote %s", manifest.path)
    return True
