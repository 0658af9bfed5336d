"""Version sources: where published version data comes from."""

import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from urllib.parse import quote

import httpx

from .config import DEFAULT_PNPM, DEFAULT_REGISTRY, DEFAULT_TIMEOUT
from .errors import MalformedResponseError, RegistryError, ToolInvocationError
from .models import VersionRecord

logger = logging.getLogger(__name__)


class VersionSource(ABC):
    """Looks up the published versions of a package by name."""

    @abstractmethod
    async def fetch(self, name: str) -> VersionRecord | None:
        """Fetch version data for ``name``.

        Returns None when the source knows nothing usable about the name.
        """

    @property
    @abstractmethod
    def description(self) -> str:
        """Human readable origin of the data, shown in the run banner."""


def parse_registry_document(name: str, document: Any) -> VersionRecord:
    """Build a VersionRecord from a registry packument.

    Raises:
        MalformedResponseError: If ``versions``, ``time`` or
            ``dist-tags.latest`` is missing
    """
    if not isinstance(document, dict):
        raise MalformedResponseError(name, "document is not an object")

    versions = document.get("versions")
    if not isinstance(versions, dict):
        raise MalformedResponseError(name, "missing 'versions'")

    times = document.get("time")
    if not isinstance(times, dict):
        raise MalformedResponseError(name, "missing 'time'")

    dist_tags = document.get("dist-tags")
    if not isinstance(dist_tags, dict) or not isinstance(dist_tags.get("latest"), str):
        raise MalformedResponseError(name, "missing 'dist-tags.latest'")

    return VersionRecord(
        name=name,
        versions=tuple(versions),
        times={k: v for k, v in times.items() if isinstance(v, str)},
        latest=dist_tags["latest"],
    )


class RegistrySource(VersionSource):
    """Version source backed by an npm compatible registry."""

    def __init__(
        self,
        registry: str = DEFAULT_REGISTRY,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize registry source.

        Args:
            registry: Registry base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport, used by tests
        """
        self.registry = registry.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @property
    def description(self) -> str:
        return self.registry

    def url_for(self, name: str) -> str:
        # Scoped names are a single path segment: @types/node -> %40types%2Fnode
        return f"{self.registry}/{quote(name, safe='')}"

    async def fetch(self, name: str) -> VersionRecord:
        url = self.url_for(name)
        logger.debug("GET %s", url)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.TimeoutException as e:
            raise RegistryError(name, "timed out") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            reason = "not found" if status == 404 else f"HTTP {status}"
            raise RegistryError(name, reason, status_code=status) from e
        except httpx.HTTPError as e:
            raise RegistryError(name, str(e) or type(e).__name__) from e

        try:
            document = response.json()
        except ValueError as e:
            raise MalformedResponseError(name, "response is not JSON") from e
        return parse_registry_document(name, document)


async def run_command(
    command: list[str],
    cwd: Path | str | None = None,
    env: Mapping[str, str] | None = None,
    capture: bool = True,
) -> tuple[int, str, str]:
    """Run a subprocess and wait for it.

    Args:
        command: Program and arguments
        cwd: Working directory, defaults to the current one
        env: Environment, defaults to the current one unmodified
        capture: Capture stdout/stderr instead of inheriting the terminal

    Returns:
        Tuple of (return_code, stdout, stderr)
    """
    logger.debug("Running %s", " ".join(command))
    pipe = asyncio.subprocess.PIPE if capture else None
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=cwd,
            env=dict(env) if env is not None else dict(os.environ),
            stdout=pipe,
            stderr=pipe,
        )
    except OSError as e:
        raise ToolInvocationError(command, 127, str(e)) from e

    stdout, stderr = await process.communicate()
    return (
        process.returncode,
        stdout.decode("utf-8", errors="replace") if stdout else "",
        stderr.decode("utf-8", errors="replace") if stderr else "",
    )


def parse_view_document(name: str, document: Any) -> VersionRecord:
    """Build a VersionRecord from ``pnpm view <name>@<spec> --json`` output.

    A range matching several versions yields a list; the last entry is the
    highest match.

    Raises:
        MalformedResponseError: If the output names a different package or
            has no version
    """
    if isinstance(document, list) and document:
        document = document[-1]
    if not isinstance(document, dict):
        raise MalformedResponseError(name, "output is not an object")
    if document.get("name") != name:
        raise MalformedResponseError(name, f"tool reported '{document.get('name')}'")

    version = document.get("version")
    if not isinstance(version, str):
        raise MalformedResponseError(name, "missing 'version'")

    times = document.get("time")
    dist_tags = document.get("dist-tags")
    latest = dist_tags.get("latest") if isinstance(dist_tags, dict) else None
    return VersionRecord(
        name=name,
        versions=(version,),
        times={version: times[version]} if isinstance(times, dict) and isinstance(times.get(version), str) else {},
        latest=latest if isinstance(latest, str) else version,
    )


class ToolSource(VersionSource):
    """Version source that asks the package manager binary.

    Each lookup is ``<pnpm> view <name>@<version_spec> --json``. Lookups that
    fail or describe another package count as "not found" and yield None.
    """

    def __init__(
        self,
        version_spec: str,
        executable: str = DEFAULT_PNPM,
        cwd: Path | str | None = None,
        env: Mapping[str, str] | None = None,
    ):
        self.version_spec = version_spec
        self.executable = executable
        self.cwd = cwd
        self.env = env

    @property
    def description(self) -> str:
        return f"{self.executable} view"

    async def fetch(self, name: str) -> VersionRecord | None:
        command = [self.executable, "view", f"{name}@{self.version_spec}", "--json"]
        code, stdout, _ = await run_command(command, cwd=self.cwd, env=self.env)
        if code != 0 or not stdout.strip():
            logger.debug("No match for %s@%s (exit %d)", name, self.version_spec, code)
            return None

        try:
            return parse_view_document(name, json.loads(stdout))
        except (ValueError, MalformedResponseError) as e:
            logger.debug("Dropping %s: %s", name, e)
            return None
