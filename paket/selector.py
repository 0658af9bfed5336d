"""Choosing the version a dependency should be pinned to."""

import re
from datetime import datetime, timezone

from packaging.version import InvalidVersion, Version

from .errors import MalformedResponseError
from .models import Mode, VersionRecord

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)
_RANGE_PREFIX = re.compile(r"^[\^~=v<>\s]+")


def _published_at(record: VersionRecord, version: str) -> datetime:
    value = record.times.get(version)
    if not value:
        return _OLDEST
    try:
        stamp = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return _OLDEST
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return stamp


def by_publish_time(record: VersionRecord) -> list[str]:
    """Versions ordered most recently published first.

    The sort is stable, so versions sharing a timestamp (or lacking one) keep
    the order the source listed them in.
    """
    return sorted(record.versions, key=lambda v: _published_at(record, v), reverse=True)


def select_version(mode: Mode, prefix: str, record: VersionRecord) -> str:
    """Pick the version spec to apply for a package.

    Args:
        mode: ``latest`` takes the ``latest`` dist-tag, ``any`` the most
            recently published version
        prefix: Literal prepended to the version (``^`` or empty)
        record: Version data for the package

    Returns:
        The new version spec, e.g. ``^2.3.0``

    Raises:
        MalformedResponseError: If the record has nothing to select from
    """
    if Mode(mode) is Mode.LATEST:
        if not record.latest:
            raise MalformedResponseError(record.name, "no 'latest' tag")
        return prefix + record.latest

    if not record.versions:
        raise MalformedResponseError(record.name, "no published versions")
    return prefix + by_publish_time(record)[0]


def semver_delta(old_spec: str, new_spec: str) -> str:
    """Classify a version change for display.

    Returns:
        "major", "minor", "patch", or "unknown"
    """
    try:
        old_ver = Version(_RANGE_PREFIX.sub("", old_spec))
        new_ver = Version(_RANGE_PREFIX.sub("", new_spec))
    except InvalidVersion:
        return "unknown"

    if new_ver > old_ver:
        if new_ver.major > old_ver.major:
            return "major"
        elif new_ver.minor > old_ver.minor:
            return "minor"
        elif new_ver.micro > old_ver.micro:
            return "patch"

    return "unknown"
