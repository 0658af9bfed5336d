"""Pytest configuration and fixtures."""

import asyncio
import json

import pytest

from paket.errors import RegistryError
from paket.sources import VersionSource, parse_registry_document

REGISTRY_DOCUMENTS = {
    "@types/node": {
        "name": "@types/node",
        "dist-tags": {"latest": "2.0.0"},
        "versions": {"1.0.0": {}, "1.1.0": {}, "2.0.0": {}},
        "time": {
            "created": "2019-12-01T00:00:00.000Z",
            "modified": "2020-03-01T00:00:00.000Z",
            "1.0.0": "2020-01-01T00:00:00.000Z",
            "1.1.0": "2020-03-01T00:00:00.000Z",
            "2.0.0": "2020-02-01T00:00:00.000Z",
        },
    },
    "@types/jest": {
        "name": "@types/jest",
        "dist-tags": {"latest": "5.1.0"},
        "versions": {"1.0.0": {}, "5.1.0": {}},
        "time": {
            "1.0.0": "2020-01-01T00:00:00.000Z",
            "5.1.0": "2021-01-01T00:00:00.000Z",
        },
    },
    "lodash": {
        "name": "lodash",
        "dist-tags": {"latest": "4.17.21"},
        "versions": {"4.17.20": {}, "4.17.21": {}},
        "time": {
            "4.17.20": "2020-08-13T00:00:00.000Z",
            "4.17.21": "2021-02-20T00:00:00.000Z",
        },
    },
}


class FakeSource(VersionSource):
    """In-memory version source that counts lookups per name."""

    def __init__(self, documents=None, delay: float = 0.0):
        self.documents = REGISTRY_DOCUMENTS if documents is None else documents
        self.delay = delay
        self.calls: list[str] = []

    @property
    def description(self) -> str:
        return "fake"

    async def fetch(self, name):
        self.calls.append(name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if name not in self.documents:
            raise RegistryError(name, "not found", status_code=404)
        return parse_registry_document(name, self.documents[name])


@pytest.fixture
def registry_documents():
    """Registry packuments keyed by package name."""
    return REGISTRY_DOCUMENTS


@pytest.fixture
def fake_source():
    """A fresh counting version source."""
    return FakeSource()


@pytest.fixture
def sample_package_json():
    """Sample package.json content for testing."""
    return json.dumps(
        {
            "name": "pkg-name",
            "version": "0.0.1",
            "dependencies": {"@types/node": "1.0.0", "@types/jest": "^1.0.0"},
            "devDependencies": {"@types/node": "0.1.0", "@types/jest": "^5.0.0"},
            "optionalDependencies": {"@types/node": "1.1.0", "@types/jest": "^1.0.5"},
            "resolutions": {"**/@types/node": "1.0.1", "**/@types/jest": "^1.0.3"},
            "resolveModules": ["@types/node"],
            "scripts": {"test": "jest"},
        },
        indent=2,
    ) + "\n"


@pytest.fixture
def workspace(tmp_path, sample_package_json):
    """A workspace with a root manifest, two packages and ignored folders."""
    (tmp_path / "package.json").write_text(sample_package_json, newline="")

    for name in ("a", "b"):
        pkg = tmp_path / "packages" / name
        pkg.mkdir(parents=True)
        (pkg / "package.json").write_text(
            json.dumps({"name": name, "dependencies": {"@types/node": "^1.0.0", "lodash": "^4.17.20"}}, indent=2)
            + "\n",
            newline="",
        )

    ignored = tmp_path / "node_modules" / "@types" / "node"
    ignored.mkdir(parents=True)
    (ignored / "package.json").write_text('{"name": "@types/node"}\n', newline="")
    return tmp_path
