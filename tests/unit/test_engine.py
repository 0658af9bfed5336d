"""Tests for the update engine."""

import json

import pytest

from paket.cache import VersionCache
from paket.engine import (
    UpdateEngine,
    apply_resolutions,
    collect_names,
    load_workspace,
    synthesize_resolutions,
    update_workspace,
)
from paket.errors import ManifestParseError, RegistryError
from paket.match import PatternMatcher
from paket.models import Mode, Operation
from paket.parse_node import parse_package_json


def _snapshot(root):
    return {path: path.read_bytes() for path in sorted(root.rglob("package.json"))}


async def _prefetched_engine(source, manifests, globs, mode=Mode.ANY, operation=Operation.UPDATE):
    matcher = PatternMatcher(globs)
    cache = VersionCache(source)
    await cache.prefetch(collect_names(manifests, matcher))
    cache.freeze()
    return UpdateEngine(cache, matcher, mode, operation)


class TestCollectNames:
    """Test building the set of names to look up."""

    def test_collects_matching_names_once(self, sample_package_json):
        """Should list each matching name once across sections and manifests."""
        manifests = [
            parse_package_json(sample_package_json),
            parse_package_json('{"peerDependencies": {"@types/react": "^18.0.0", "lodash": "^4.0.0"}}'),
        ]

        names = collect_names(manifests, PatternMatcher(["@types/*"]))
        assert names == ["@types/node", "@types/jest", "@types/react"]

    def test_resolve_modules_always_included(self):
        """resolveModules entries should be looked up even without a glob match."""
        manifest = parse_package_json('{"resolveModules": ["lodash"], "dependencies": {"react": "^18.0.0"}}')

        assert collect_names([manifest], PatternMatcher(["@types/*"])) == ["lodash"]


class TestResolutions:
    """Test synthesized resolution entries."""

    def test_synthesize_with_and_without_override(self, sample_package_json):
        """Missing overrides should read as 'unset'."""
        manifest = parse_package_json(sample_package_json)
        manifest.resolve_modules.append("lodash")

        assert synthesize_resolutions(manifest) == {"@types/node": "1.0.1", "lodash": "unset"}

    def test_apply_uses_scoped_keys(self):
        """Resolutions should be written under '**/<name>' and 'unset' skipped."""
        manifest = parse_package_json('{"name": "a"}')

        apply_resolutions(manifest, {"@types/node": "1.1.0", "lodash": "unset"})
        assert manifest.resolutions == {"**/@types/node": "1.1.0"}


class TestUpdateCategory:
    """Test the per-section update routine."""

    @pytest.mark.asyncio
    async def test_reports_and_applies_changes(self, fake_source):
        """Should return changes and rewrite entries when writing."""
        deps = {"@types/node": "1.0.0", "@types/jest": "^5.1.0", "lodash": "^4.17.20"}
        manifest = parse_package_json(json.dumps({"dependencies": deps}))
        engine = await _prefetched_engine(fake_source, [manifest], ["@types/*"])

        changes = engine.update_category(True, Mode.ANY, engine.matcher, deps, "^", "normal")

        assert [(c.name, c.category, c.old, c.new) for c in changes] == [
            ("@types/node", "normal", "1.0.0", "^1.1.0"),
        ]
        assert changes[0].delta == "minor"
        assert deps == {"@types/node": "^1.1.0", "@types/jest": "^5.1.0", "lodash": "^4.17.20"}

    @pytest.mark.asyncio
    async def test_check_does_not_mutate(self, fake_source):
        """Should produce the same changes without touching the map."""
        deps = {"@types/node": "1.0.0"}
        manifest = parse_package_json(json.dumps({"dependencies": deps}))
        engine = await _prefetched_engine(fake_source, [manifest], ["@types/*"])

        changes = engine.update_category(False, Mode.LATEST, engine.matcher, deps, "^", "normal")

        assert [c.new for c in changes] == ["^2.0.0"]
        assert deps == {"@types/node": "1.0.0"}

    @pytest.mark.asyncio
    async def test_missing_section(self, fake_source):
        """A missing section should produce no changes."""
        engine = await _prefetched_engine(fake_source, [], ["@types/*"])

        assert engine.update_category(True, Mode.ANY, engine.matcher, None, "^", "peer") == []

    @pytest.mark.asyncio
    async def test_name_without_record_is_skipped(self):
        """Names the source knew nothing about should be left alone."""
        class NoneSource:
            description = "none"

            async def fetch(self, name):
                return None

        deps = {"@types/node": "1.0.0"}
        manifest = parse_package_json(json.dumps({"dependencies": deps}))
        engine = await _prefetched_engine(NoneSource(), [manifest], ["@types/*"])

        assert engine.update_category(True, Mode.ANY, engine.matcher, deps, "^", "normal") == []
        assert deps == {"@types/node": "1.0.0"}


class TestUpdateManifest:
    """Test updating all sections of one manifest."""

    @pytest.mark.asyncio
    async def test_any_mode(self, fake_source, sample_package_json):
        """Should update every section and the resolutions."""
        manifest = parse_package_json(sample_package_json)
        engine = await _prefetched_engine(fake_source, [manifest], ["@types/node", "@types/jest"])

        report = engine.update_manifest(manifest)

        assert [c.display for c in report.changes] == [
            "@types/node (normal): 1.0.0 -> ^1.1.0",
            "@types/jest (normal): ^1.0.0 -> ^5.1.0",
            "@types/node (dev): 0.1.0 -> ^1.1.0",
            "@types/jest (dev): ^5.0.0 -> ^5.1.0",
            "@types/node (optional): 1.1.0 -> ^1.1.0",
            "@types/jest (optional): ^1.0.5 -> ^5.1.0",
            "@types/node (resolutions): 1.0.1 -> 1.1.0",
        ]
        assert manifest.dependencies == {"@types/node": "^1.1.0", "@types/jest": "^5.1.0"}
        assert manifest.resolutions == {"**/@types/node": "1.1.0", "**/@types/jest": "^1.0.3"}

    @pytest.mark.asyncio
    async def test_latest_mode(self, fake_source, sample_package_json):
        """Should use the latest tag."""
        manifest = parse_package_json(sample_package_json)
        engine = await _prefetched_engine(fake_source, [manifest], ["@types/node"], mode=Mode.LATEST)

        engine.update_manifest(manifest)

        assert manifest.dev_dependencies["@types/node"] == "^2.0.0"
        assert manifest.resolutions["**/@types/node"] == "2.0.0"
        assert "@types/node" not in manifest.resolutions

    @pytest.mark.asyncio
    async def test_unset_resolution_is_created(self, fake_source):
        """A resolveModules name without override should gain one."""
        manifest = parse_package_json('{"name": "a", "resolveModules": ["@types/node"]}\n')
        engine = await _prefetched_engine(fake_source, [manifest], ["@types/*"])

        report = engine.update_manifest(manifest)

        assert [c.display for c in report.changes] == ["@types/node (resolutions): unset -> 1.1.0"]
        assert manifest.resolutions == {"**/@types/node": "1.1.0"}

    @pytest.mark.asyncio
    async def test_unmatched_unset_resolution_not_written(self, fake_source):
        """resolveModules names outside the globs should not gain 'unset' entries."""
        manifest = parse_package_json('{"name": "a", "resolveModules": ["lodash"]}\n')
        engine = await _prefetched_engine(fake_source, [manifest], ["@types/*"])

        report = engine.update_manifest(manifest)

        assert report.changes == []
        assert manifest.resolutions is None

    @pytest.mark.asyncio
    async def test_duplicate_display_lines(self, fake_source):
        """unique_changes should drop repeated display lines only."""
        manifest = parse_package_json(
            '{"dependencies": {"@types/node": "1.0.0"}, "devDependencies": {"@types/node": "1.0.0"}}'
        )
        engine = await _prefetched_engine(fake_source, [manifest], ["@types/*"])

        report = engine.update_manifest(manifest)
        report.changes.append(report.changes[0])

        assert len(report.changes) == 3
        assert len(report.unique_changes()) == 2


class TestUpdateWorkspace:
    """Test whole-workspace runs."""

    @pytest.mark.asyncio
    async def test_single_fetch_per_name(self, workspace, fake_source):
        """Each distinct name should be fetched exactly once per run."""
        report = await update_workspace(workspace, Operation.UPDATE, Mode.ANY, ["@types/*", "lodash"], VersionCache(fake_source))

        assert sorted(fake_source.calls) == ["@types/jest", "@types/node", "lodash"]
        assert len(report.manifests) == 3
        assert report.changed

    @pytest.mark.asyncio
    async def test_ignored_manifests_are_skipped(self, workspace, fake_source):
        """Manifests under node_modules should not be loaded."""
        report = await update_workspace(workspace, Operation.CHECK, Mode.ANY, ["@types/*"], VersionCache(fake_source))

        paths = {r.manifest.path.relative_to(workspace).as_posix() for r in report.manifests}
        assert paths == {"package.json", "packages/a/package.json", "packages/b/package.json"}

    @pytest.mark.asyncio
    async def test_check_matches_update_without_writes(self, workspace, fake_source):
        """Check should report the same changes as update and write nothing."""
        before = _snapshot(workspace)
        check = await update_workspace(workspace, Operation.CHECK, Mode.ANY, ["@types/*"], VersionCache(fake_source))
        assert _snapshot(workspace) == before

        update = await update_workspace(workspace, Operation.UPDATE, Mode.ANY, ["@types/*"], VersionCache(fake_source))

        def displays(report):
            return [[c.display for c in r.changes] for r in report.manifests]

        assert displays(check) == displays(update)
        assert not any(r.written for r in check.manifests)
        assert all(r.written for r in update.manifests if r.changes)
        assert _snapshot(workspace) != before

    @pytest.mark.asyncio
    async def test_update_is_idempotent(self, workspace, fake_source):
        """A second update should find nothing to change and write nothing."""
        await update_workspace(workspace, Operation.UPDATE, Mode.ANY, ["@types/*"], VersionCache(fake_source))
        after_first = _snapshot(workspace)

        second = await update_workspace(workspace, Operation.UPDATE, Mode.ANY, ["@types/*"], VersionCache(fake_source))

        assert not second.changed
        assert not any(r.written for r in second.manifests)
        assert _snapshot(workspace) == after_first

    @pytest.mark.asyncio
    async def test_resolutions_round_trip_on_disk(self, workspace, fake_source):
        """Resolutions should be written back under their '**/' key."""
        await update_workspace(workspace, Operation.UPDATE, Mode.ANY, ["@types/*"], VersionCache(fake_source))

        data = json.loads((workspace / "package.json").read_text())
        assert data["resolutions"] == {"**/@types/node": "1.1.0", "**/@types/jest": "^1.0.3"}
        assert "@types/node" not in data["resolutions"]
        assert data["scripts"] == {"test": "jest"}

    @pytest.mark.asyncio
    async def test_crlf_workspace(self, tmp_path, fake_source):
        """CRLF manifests should be rewritten with CRLF."""
        content = json.dumps({"name": "w", "dependencies": {"@types/node": "1.0.0"}}, indent=2) + "\n"
        (tmp_path / "package.json").write_bytes(content.replace("\n", "\r\n").encode())

        await update_workspace(tmp_path, Operation.UPDATE, Mode.ANY, ["@types/*"], VersionCache(fake_source))

        written = (tmp_path / "package.json").read_bytes()
        assert b'"^1.1.0"' in written
        assert written.count(b"\n") == written.count(b"\r\n")

    @pytest.mark.asyncio
    async def test_no_matches(self, workspace, fake_source):
        """Globs matching nothing should finish without changes or lookups."""
        report = await update_workspace(workspace, Operation.UPDATE, Mode.ANY, ["@nothing/*"], VersionCache(fake_source))

        assert not report.changed
        # the root manifest's resolveModules entry is still looked up
        assert fake_source.calls == ["@types/node"]

    @pytest.mark.asyncio
    async def test_lookup_failure_aborts_before_writes(self, workspace, fake_source):
        """A failed lookup should leave every manifest untouched."""
        before = _snapshot(workspace)
        fake_source.documents = {k: v for k, v in fake_source.documents.items() if k != "lodash"}

        with pytest.raises(RegistryError):
            await update_workspace(workspace, Operation.UPDATE, Mode.ANY, ["@types/*", "lodash"], VersionCache(fake_source))

        assert _snapshot(workspace) == before

    def test_invalid_manifest_is_fatal(self, tmp_path):
        """A broken package.json should stop the run."""
        (tmp_path / "package.json").write_text("{broken")

        with pytest.raises(ManifestParseError):
            load_workspace(tmp_path)
