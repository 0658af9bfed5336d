"""Defaults and run settings."""

from dataclasses import dataclass, field

DEFAULT_REGISTRY = "https://registry.npmjs.org"
DEFAULT_TIMEOUT = 30.0
DEFAULT_CONCURRENCY = 6
DEFAULT_PNPM = "pnpm"

IGNORE_FILE = ".paketignore"
DEFAULT_IGNORE = [
    "old/**",
    "OLD_DO_NOT_USE/**",
    "node_modules/**",
    "**/node_modules/**",
    ".git/**",
]

ENV_REGISTRY = "PAKET_REGISTRY"
ENV_TIMEOUT = "PAKET_TIMEOUT"
ENV_CONCURRENCY = "PAKET_CONCURRENCY"
ENV_PNPM = "PAKET_PNPM"


@dataclass
class Settings:
    """Resolved run settings."""

    registry: str = DEFAULT_REGISTRY
    timeout: float = DEFAULT_TIMEOUT
    concurrency: int = DEFAULT_CONCURRENCY
    ignore: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORE))
