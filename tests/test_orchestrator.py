"""Tests for run orchestration."""

import logging

import portalocker
import pytest

from addon_bundle import orchestrator
from addon_bundle.builder import BundleBuilder
from addon_bundle.config import BuilderSettings
from addon_bundle.errors import ConfigError, ToolMissingError, WorkspaceLockedError
from addon_bundle.orchestrator import (
    find_leftover_staging,
    make_deps,
    run_build,
    workspace_lock,
)
from addon_bundle.tools import HelmClient, SkopeoClient


class TestMakeDeps:
    """Tool discovery."""

    def test_both_tools_present(self):
        settings = BuilderSettings(command_timeout=30)
        deps = make_deps(settings, which=lambda name: f"/usr/bin/{name}")
        assert isinstance(deps.image_copier, SkopeoClient)
        assert isinstance(deps.chart_puller, HelmClient)
        assert deps.image_copier.runner is deps.chart_puller.runner
        assert deps.image_copier.runner.timeout == 30

    def test_missing_skopeo_is_fatal(self):
        with pytest.raises(ToolMissingError) as exc_info:
            make_deps(BuilderSettings(), which=lambda name: None)
        assert exc_info.value.tool == "skopeo"

    def test_missing_helm_only_warns(self, caplog):
        which = lambda name: "/usr/bin/skopeo" if name == "skopeo" else None
        with caplog.at_level(logging.WARNING, logger="addon_bundle"):
            deps = make_deps(BuilderSettings(), which=which)
        assert deps.chart_puller is None
        assert "Helm charts will be skipped" in caplog.text


class TestRunBuild:
    """Running one or more addon builds."""

    def test_missing_skopeo_creates_nothing(self, settings, two_image_catalog, monkeypatch):
        monkeypatch.setattr(orchestrator, "find_tool", lambda name: None)
        with pytest.raises(ToolMissingError):
            run_build([two_image_catalog], settings)
        assert not settings.output_dir.exists()

    def test_bad_version_creates_nothing(self, settings, deps, two_image_catalog):
        bad = settings.model_copy(update={"bundle_version": "../escape"})
        with pytest.raises(ConfigError):
            run_build([two_image_catalog], bad, deps=deps)
        assert not settings.output_dir.exists()

    def test_builds_each_addon(self, settings, deps, two_image_catalog, chart_catalog):
        summary = run_build([two_image_catalog, chart_catalog], settings, deps=deps)

        assert summary.bundle_version == "2025.01.0"
        assert [r.addon for r in summary.reports] == ["demo", "charted"]
        assert [p.name for p in summary.archives] == [
            "demo-addon-bundle-2025.01.0.tar.gz", "charted-addon-bundle-2025.01.0.tar.gz",
        ]
        assert len(summary.latest_archives) == 2
        assert summary.failed_addons == []
        assert summary.leftover_staging == []
        assert summary.instructions == settings.output_dir / "ADDON-BUNDLES-README.md"

    def test_version_defaults_to_date(self, tmp_path, deps, two_image_catalog):
        summary = run_build([two_image_catalog], BuilderSettings(output_dir=tmp_path), deps=deps)
        assert summary.bundle_version == "2025.01.0"

    def test_one_addon_crashing_does_not_stop_the_next(
        self, settings, deps, two_image_catalog, chart_catalog, monkeypatch
    ):
        real_build = BundleBuilder.build

        def flaky_build(self, catalog):
            if catalog.name == "demo":
                raise RuntimeError("boom")
            return real_build(self, catalog)

        monkeypatch.setattr(BundleBuilder, "build", flaky_build)
        summary = run_build([two_image_catalog, chart_catalog], settings, deps=deps)

        assert summary.failed_addons == ["demo"]
        assert summary.reports[0].error == "RuntimeError: boom"
        assert summary.reports[1].completed

    def test_leftover_staging_reported(self, settings, deps, two_image_catalog, monkeypatch):
        def crashing_create_tar(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr("addon_bundle.builder.create_tar", crashing_create_tar)
        summary = run_build([two_image_catalog], settings, deps=deps)

        assert summary.failed_addons == ["demo"]
        assert summary.reports[0].error == "OSError: disk full"
        assert summary.leftover_staging == [settings.output_dir / "demo-addon-bundle"]

    def test_instructions_cover_all_catalogs(self, settings, deps, two_image_catalog, chart_catalog):
        summary = run_build([two_image_catalog], settings, deps=deps,
                            all_catalogs=[two_image_catalog, chart_catalog])
        text = summary.instructions.read_text()
        assert "demo-addon-bundle-2025.01.0.tar.gz" in text
        assert "charted-addon-bundle-2025.01.0.tar.gz" in text

    def test_concurrent_run_rejected(self, settings, deps, two_image_catalog):
        settings.output_dir.mkdir(parents=True)
        with workspace_lock(settings.output_dir):
            with pytest.raises(WorkspaceLockedError):
                run_build([two_image_catalog], settings, deps=deps)
        assert not list(settings.output_dir.glob("*.tar.gz"))


def test_find_leftover_staging(tmp_path):
    (tmp_path / "velero-addon-bundle").mkdir()
    (tmp_path / "velero-addon-bundle-2025.01.0.tar.gz").write_bytes(b"")
    (tmp_path / "unrelated").mkdir()
    assert find_leftover_staging(tmp_path) == [tmp_path / "velero-addon-bundle"]
    assert find_leftover_staging(tmp_path / "missing") == []


def test_workspace_lock_released(tmp_path):
    with workspace_lock(tmp_path):
        pass
    with workspace_lock(tmp_path):
        pass
    assert (tmp_path / ".addon-bundle.lock").exists()


def test_workspace_lock_maps_lock_exception(tmp_path, monkeypatch):
    class BusyLock:
        def __init__(self, *args, **kwargs):
            pass

        def acquire(self):
            raise portalocker.LockException("busy")

    monkeypatch.setattr(orchestrator.portalocker, "Lock", BusyLock)
    with pytest.raises(WorkspaceLockedError, match="locked by another"):
        with workspace_lock(tmp_path):
            pass
