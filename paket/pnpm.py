"""Bulk version bumps driven by the pnpm binary."""

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .cache import VersionCache
from .config import DEFAULT_CONCURRENCY, DEFAULT_PNPM
from .errors import InvalidArguments, MalformedResponseError, ToolInvocationError
from .match import PatternMatcher
from .models import Mode
from .selector import select_version
from .sources import ToolSource, run_command

logger = logging.getLogger(__name__)

LISTED_SECTIONS = ("dependencies", "devDependencies", "peerDependencies")


@dataclass
class BumpPlan:
    """What a bulk bump is going to ask pnpm to do."""

    version_spec: str
    local: dict[str, str] = field(default_factory=dict)
    candidates: list[str] = field(default_factory=list)
    resolved: dict[str, str] = field(default_factory=dict)

    @property
    def update_args(self) -> list[str]:
        args = [f"{name}@{version}" for name, version in self.resolved.items()]
        args += [f"{name}@workspace:{version}" for name, version in self.local.items()]
        return args


def split_arguments(args: list[str]) -> tuple[list[str], str]:
    """Split ``<glob>... <version-spec>`` into globs and the spec."""
    if len(args) < 2:
        raise InvalidArguments("Expected at least one glob followed by a version spec")
    return args[:-1], args[-1]


def parse_list_output(output: str) -> list[dict[str, Any]]:
    """Parse ``pnpm list --recursive --json``.

    Older pnpm releases print one JSON document per workspace project,
    separated by a blank line.
    """
    packages: list[dict[str, Any]] = []
    for chunk in output.split("\n\n"):
        if not chunk.strip():
            continue
        try:
            parsed = json.loads(chunk)
        except ValueError as e:
            raise MalformedResponseError("pnpm list", str(e)) from e
        items = parsed if isinstance(parsed, list) else [parsed]
        packages.extend(item for item in items if isinstance(item, dict))
    return packages


def workspace_versions(packages: list[dict[str, Any]]) -> dict[str, str]:
    """Versions of the packages that live in the workspace itself."""
    local = {}
    for package in packages:
        name, version = package.get("name"), package.get("version")
        if isinstance(name, str) and isinstance(version, str):
            local[name] = version
    return local


def external_names(
    packages: list[dict[str, Any]], matcher: PatternMatcher, local: Mapping[str, str]
) -> list[str]:
    """Matching dependency names that are not workspace packages."""
    names: dict[str, None] = {}
    for package in packages:
        for section in LISTED_SECTIONS:
            deps = package.get(section)
            if not isinstance(deps, dict):
                continue
            for name in matcher.filter(deps):
                if name not in local:
                    names[name] = None
    return list(names)


async def plan_bump(
    globs: list[str],
    version_spec: str,
    cwd: Path | str | None = None,
    env: Mapping[str, str] | None = None,
    executable: str = DEFAULT_PNPM,
    max_concurrency: int = DEFAULT_CONCURRENCY,
) -> BumpPlan:
    """Work out which packages to bump to which versions.

    Raises:
        ToolInvocationError: If ``pnpm list`` fails
    """
    matcher = PatternMatcher(globs)
    command = [executable, "list", "--recursive", "--json"]
    code, stdout, stderr = await run_command(command, cwd=cwd, env=env)
    if code != 0:
        raise ToolInvocationError(command, code, stderr)

    packages = parse_list_output(stdout)
    plan = BumpPlan(version_spec, local=workspace_versions(packages))
    plan.candidates = external_names(packages, matcher, plan.local)

    cache = VersionCache(ToolSource(version_spec, executable, cwd, env), max_concurrency)
    await cache.prefetch(plan.candidates)
    cache.freeze()

    for name in plan.candidates:
        record = cache.get(name)
        if record is not None:
            plan.resolved[name] = select_version(Mode.ANY, "", record)
    logger.info("Resolved %d of %d packages", len(plan.resolved), len(plan.candidates))
    return plan


async def apply_bump(
    plan: BumpPlan,
    cwd: Path | str | None = None,
    env: Mapping[str, str] | None = None,
    executable: str = DEFAULT_PNPM,
) -> None:
    """Run ``pnpm --recursive update`` with the planned versions.

    pnpm's own output goes straight to the terminal.
    """
    command = [executable, "--recursive", "update", *plan.update_args]
    code, _, stderr = await run_command(command, cwd=cwd, env=env, capture=False)
    if code != 0:
        raise ToolInvocationError(command, code, stderr)
