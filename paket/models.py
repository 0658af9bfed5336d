"""Core data models for paket."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class Mode(str, Enum):
    """Version selection policy."""

    ANY = "any"  # most recently published
    LATEST = "latest"  # dist-tags.latest


class Operation(str, Enum):
    """Whether a run rewrites manifests or only reports."""

    UPDATE = "update"
    CHECK = "check"


@dataclass(frozen=True)
class Category:
    """A dependency section of package.json and how it is rewritten."""

    attr: str
    key: str
    prefix: str
    label: str


DEPENDENCY_CATEGORIES = (
    Category("dependencies", "dependencies", "^", "normal"),
    Category("dev_dependencies", "devDependencies", "^", "dev"),
    Category("peer_dependencies", "peerDependencies", "^", "peer"),
    Category("optional_dependencies", "optionalDependencies", "^", "optional"),
)
RESOLUTIONS = Category("resolutions", "resolutions", "", "resolutions")
RESOLVE_MODULES_KEY = "resolveModules"
RESOLUTION_KEY_PREFIX = "**/"
UNSET = "unset"

KNOWN_KEYS = {c.key: c.attr for c in (*DEPENDENCY_CATEGORIES, RESOLUTIONS)}
KNOWN_KEYS[RESOLVE_MODULES_KEY] = "resolve_modules"


@dataclass
class Manifest:
    """A parsed package.json.

    Dependency sections are held as named fields; every other top-level key
    is kept in ``extra`` and ``field_order`` remembers the original key order
    so the file round-trips unchanged.
    """

    path: Path
    raw: str = ""
    dependencies: dict[str, str] | None = None
    dev_dependencies: dict[str, str] | None = None
    peer_dependencies: dict[str, str] | None = None
    optional_dependencies: dict[str, str] | None = None
    resolutions: dict[str, str] | None = None
    resolve_modules: list[str] | None = None
    extra: dict[str, Any] = field(default_factory=dict)
    field_order: list[str] = field(default_factory=list)

    @property
    def name(self) -> str | None:
        value = self.extra.get("name")
        return value if isinstance(value, str) else None

    @property
    def display_name(self) -> str:
        return self.name or str(self.path)

    def category(self, category: Category) -> dict[str, str] | None:
        return getattr(self, category.attr)

    def resolution_for(self, name: str) -> str:
        """Return the override pinned for ``name`` or ``UNSET``."""
        if not self.resolutions:
            return UNSET
        return self.resolutions.get(RESOLUTION_KEY_PREFIX + name, UNSET)

    def to_dict(self) -> dict[str, Any]:
        """Rebuild the JSON object, preserving the original key order."""
        data: dict[str, Any] = {}
        for key in self.field_order:
            attr = KNOWN_KEYS.get(key)
            value = getattr(self, attr) if attr else None
            if value is not None:
                data[key] = value
            elif key in self.extra:
                data[key] = self.extra[key]

        for key, attr in KNOWN_KEYS.items():
            value = getattr(self, attr)
            if key not in data and value is not None:
                data[key] = value
        return data


@dataclass(frozen=True)
class VersionRecord:
    """Published versions of a package as reported by a version source."""

    name: str
    versions: tuple[str, ...]
    times: dict[str, str] = field(default_factory=dict, hash=False)
    latest: str | None = None


@dataclass
class ChangeRecord:
    """A dependency whose version spec differs from the selected one."""

    name: str
    category: str
    old: str
    new: str
    delta: str = "unknown"  # major, minor, patch, unknown

    @property
    def display(self) -> str:
        return f"{self.name} ({self.category}): {self.old} -> {self.new}"


@dataclass
class ManifestReport:
    """Changes found in one manifest during a run."""

    manifest: Manifest
    changes: list[ChangeRecord] = field(default_factory=list)
    written: bool = False

    def unique_changes(self) -> list[ChangeRecord]:
        """Drop changes that would print the same line twice."""
        seen: set[str] = set()
        unique = []
        for change in self.changes:
            if change.display not in seen:
                seen.add(change.display)
                unique.append(change)
        return unique


@dataclass
class RunReport:
    """Outcome of one update/check run over a workspace."""

    operation: Operation
    mode: Mode
    manifests: list[ManifestReport] = field(default_factory=list)
    fetched: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return any(report.changes for report in self.manifests)
