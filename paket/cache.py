"""Per-run memoization of version source lookups."""

import asyncio
import logging
from collections.abc import Iterable

from .config import DEFAULT_CONCURRENCY
from .models import VersionRecord
from .sources import VersionSource

logger = logging.getLogger(__name__)


class VersionCache:
    """Fetches each package name from a VersionSource at most once.

    A cache lives for one run. ``prefetch`` fans out over every name the run
    needs; after ``freeze`` the cache is read-only and ``get`` serves the
    update pass without further I/O.
    """

    def __init__(self, source: VersionSource, max_concurrency: int = DEFAULT_CONCURRENCY):
        self.source = source
        self.max_concurrency = max_concurrency
        self._records: dict[str, VersionRecord | None] = {}
        self._pending: dict[str, asyncio.Task] = {}
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._frozen = False

    def __contains__(self, name: str) -> bool:
        return name in self._records

    def __len__(self) -> int:
        return len(self._records)

    @property
    def frozen(self) -> bool:
        return self._frozen

    async def resolve(self, name: str) -> VersionRecord | None:
        """Return the record for ``name``, fetching it on first use.

        Concurrent calls for the same name share one fetch.
        """
        if name in self._records:
            logger.debug("Cache hit for %s", name)
            return self._records[name]
        if self._frozen:
            raise RuntimeError(f"Version cache is frozen, '{name}' was never prefetched")

        task = self._pending.get(name)
        if task is None:
            task = asyncio.ensure_future(self._fetch(name))
            self._pending[name] = task
        try:
            return await task
        finally:
            self._pending.pop(name, None)

    async def _fetch(self, name: str) -> VersionRecord | None:
        async with self._semaphore:
            record = await self.source.fetch(name)
        self._records[name] = record
        return record

    async def prefetch(self, names: Iterable[str]) -> dict[str, VersionRecord | None]:
        """Resolve all ``names`` concurrently.

        The first failure cancels the outstanding lookups and is re-raised.
        """
        names = list(dict.fromkeys(names))
        tasks = [asyncio.ensure_future(self.resolve(name)) for name in names]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return {name: self._records[name] for name in names}

    def freeze(self) -> None:
        """Disallow further fetches."""
        self._frozen = True

    def get(self, name: str) -> VersionRecord | None:
        """Return an already resolved record.

        Raises:
            KeyError: If ``name`` was never resolved
        """
        return self._records[name]
