"""Matching, resolving and rewriting dependency versions across a workspace."""

import logging
from collections.abc import Iterable
from pathlib import Path

from .cache import VersionCache
from .discover import find_manifests, load_ignore
from .match import PatternMatcher
from .models import (
    DEPENDENCY_CATEGORIES,
    RESOLUTION_KEY_PREFIX,
    RESOLUTIONS,
    UNSET,
    ChangeRecord,
    Manifest,
    ManifestReport,
    Mode,
    Operation,
    RunReport,
)
from .parse_node import read_manifest
from .selector import select_version, semver_delta
from .writer import write_manifest

logger = logging.getLogger(__name__)


def collect_names(manifests: Iterable[Manifest], matcher: PatternMatcher) -> list[str]:
    """Build the set of package names a run has to look up.

    Every dependency name matching a glob plus every ``resolveModules`` entry,
    in first-seen order.
    """
    names: dict[str, None] = {}
    for manifest in manifests:
        for name in manifest.resolve_modules or []:
            names[name] = None
        for category in DEPENDENCY_CATEGORIES:
            deps = manifest.category(category)
            if deps:
                for name in matcher.filter(deps):
                    names[name] = None
    return list(names)


def synthesize_resolutions(manifest: Manifest) -> dict[str, str]:
    """Map each ``resolveModules`` name to its current override or ``unset``."""
    return {name: manifest.resolution_for(name) for name in manifest.resolve_modules or []}


def apply_resolutions(manifest: Manifest, resolutions: dict[str, str]) -> None:
    """Store resolutions back under their ``**/<name>`` keys."""
    for name, spec in resolutions.items():
        if spec == UNSET:
            continue
        if manifest.resolutions is None:
            manifest.resolutions = {}
        manifest.resolutions[RESOLUTION_KEY_PREFIX + name] = spec


class UpdateEngine:
    """Applies version selection to manifests using prefetched records."""

    def __init__(self, cache: VersionCache, matcher: PatternMatcher, mode: Mode, operation: Operation):
        self.cache = cache
        self.matcher = matcher
        self.mode = Mode(mode)
        self.operation = Operation(operation)

    @property
    def do_write(self) -> bool:
        return self.operation is Operation.UPDATE

    def update_category(
        self,
        do_write: bool,
        mode: Mode,
        matcher: PatternMatcher,
        deps: dict[str, str] | None,
        prefix: str,
        label: str,
    ) -> list[ChangeRecord]:
        """Compute (and optionally apply) new specs for one dependency section.

        Args:
            do_write: Overwrite changed entries of ``deps`` in place
            mode: Version selection policy
            matcher: Globs selecting which names to touch
            deps: Name to version spec mapping, may be None
            prefix: Literal put in front of selected versions
            label: Category name used in change records

        Returns:
            One ChangeRecord per entry whose spec differs from the selection
        """
        if not deps:
            return []

        changes = []
        for name, old in list(deps.items()):
            if not matcher.matches(name):
                continue

            record = self.cache.get(name)
            if record is None:
                logger.debug("No version data for %s, leaving %s", name, old)
                continue

            new = select_version(mode, prefix, record)
            if new == old:
                continue

            changes.append(ChangeRecord(name, label, old, new, semver_delta(old, new)))
            if do_write:
                deps[name] = new
        return changes

    def update_manifest(self, manifest: Manifest) -> ManifestReport:
        """Run every dependency section of one manifest through the engine."""
        report = ManifestReport(manifest)
        for category in DEPENDENCY_CATEGORIES:
            report.changes.extend(
                self.update_category(
                    self.do_write,
                    self.mode,
                    self.matcher,
                    manifest.category(category),
                    category.prefix,
                    category.label,
                )
            )

        resolutions = synthesize_resolutions(manifest)
        report.changes.extend(
            self.update_category(
                self.do_write,
                self.mode,
                self.matcher,
                resolutions,
                RESOLUTIONS.prefix,
                RESOLUTIONS.label,
            )
        )
        if self.do_write and resolutions:
            apply_resolutions(manifest, resolutions)
        return report

    async def run(self, manifests: list[Manifest]) -> RunReport:
        """Resolve every needed name, then update and persist each manifest.

        No manifest is touched until all lookups have succeeded.
        """
        report = RunReport(self.operation, self.mode)
        names = collect_names(manifests, self.matcher)
        logger.info("Resolving %d packages", len(names))

        await self.cache.prefetch(names)
        self.cache.freeze()
        report.fetched = names

        for manifest in manifests:
            manifest_report = self.update_manifest(manifest)
            if self.do_write:
                manifest_report.written = write_manifest(manifest)
            report.manifests.append(manifest_report)
        return report


def load_workspace(root: Path, ignore: list[str] | None = None) -> list[Manifest]:
    """Discover and parse every manifest of a workspace."""
    if ignore is None:
        ignore = load_ignore(root)
    return [read_manifest(path) for path in find_manifests(root, ignore)]


async def update_workspace(
    root: Path,
    operation: Operation,
    mode: Mode,
    globs: list[str],
    cache: VersionCache,
    ignore: list[str] | None = None,
) -> RunReport:
    """Check or update all manifests under ``root``.

    Args:
        root: Workspace root
        operation: ``update`` rewrites files, ``check`` only reports
        mode: Version selection policy
        globs: Package name globs
        cache: Version cache for this run
        ignore: Ignore globs, defaults to ``.paketignore`` or the built-in list

    Returns:
        The run report
    """
    matcher = PatternMatcher(globs)
    manifests = load_workspace(root, ignore)
    engine = UpdateEngine(cache, matcher, mode, operation)
    return await engine.run(manifests)
