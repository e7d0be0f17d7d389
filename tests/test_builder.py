"""Tests for per-addon bundle assembly."""

import pytest
import yaml

from addon_bundle import builder as builder_mod
from addon_bundle.builder import BuilderDeps, BundleBuilder, archive_name
from addon_bundle.errors import ArchiveError

from tests.fixtures.fakes import FIXED_NOW, FakeCopier, FakePuller, extract, tar_names


@pytest.fixture
def out(tmp_path):
    path = tmp_path / "out"
    path.mkdir()
    return path


@pytest.fixture
def builder(out, deps):
    return BundleBuilder(out, "2025.01.0", deps)


def test_archive_names():
    assert archive_name("velero", "2025.01.0") == "velero-addon-bundle-2025.01.0.tar.gz"
    assert archive_name("local-path", "latest") == "local-path-addon-bundle-latest.tar.gz"


def test_build_writes_versioned_and_latest(builder, out, chart_catalog):
    report = builder.build(chart_catalog)

    assert report.completed
    assert report.archive == out / "charted-addon-bundle-2025.01.0.tar.gz"
    assert report.latest_archive == out / "charted-addon-bundle-latest.tar.gz"
    assert report.latest_archive.read_bytes() == report.archive.read_bytes()
    assert not report.latest_archive.is_symlink()
    # Staging removed after a successful archive
    assert not (out / "charted-addon-bundle").exists()


def test_bundle_layout(builder, out, chart_catalog):
    report = builder.build(chart_catalog)
    names = tar_names(report.archive)

    assert {n.split("/")[0] for n in names} == {"charted-addon-bundle"}
    assert "charted-addon-bundle/VERSION" in names
    assert "charted-addon-bundle/images/charted__app_v2.tar" in names
    assert "charted-addon-bundle/charts/charts__charted_1_2_3.tar" in names
    assert not any("/manifests" in n for n in names)


def test_version_file_contents(builder, out, chart_catalog, tmp_path):
    report = builder.build(chart_catalog)
    root = extract(report.archive, tmp_path / "x") / "charted-addon-bundle"

    version = yaml.safe_load((root / "VERSION").read_text())
    assert version == {
        "bundle_version": "2025.01.0",
        "bundle_type": "charted-addon",
        "created_date": "2025-01-15T10:30:00Z",
        "component_versions": {"app": "v2", "chart": "1.2.3"},
    }


def test_manifest_bundle(builder, out, manifest_catalog, tmp_path):
    report = builder.build(manifest_catalog)
    root = extract(report.archive, tmp_path / "x") / "local-path-addon-bundle"

    assert (root / "manifests" / "local-path-provisioner.yaml").is_file()
    assert not (root / "charts").exists()
    assert sorted(p.name for p in (root / "images").iterdir()) == [
        "busybox_stable.tar", "rancher__local-path-provisioner_v0.0.28.tar",
    ]
    assert report.chart is None
    assert [p.name for p in report.manifests] == ["local-path-provisioner.yaml"]


def test_partial_image_failure_still_archives(out, two_image_catalog):
    copier = FakeCopier(failing={"docker.io/demo/sidecar:v1"})
    builder = BundleBuilder(out, "2025.01.0", BuilderDeps(image_copier=copier, now=lambda: FIXED_NOW))
    report = builder.build(two_image_catalog)

    assert report.completed
    assert (report.success_count, report.total) == (1, 2)
    names = tar_names(report.archive)
    assert "demo-addon-bundle/images/demo__app_v1.tar" in names
    assert "demo-addon-bundle/images/demo__sidecar_v1.tar" not in names


def test_all_images_failing_still_archives(out, two_image_catalog):
    copier = FakeCopier(failing={i.source_ref for i in two_image_catalog.images})
    builder = BundleBuilder(out, "2025.01.0", BuilderDeps(image_copier=copier, now=lambda: FIXED_NOW))
    report = builder.build(two_image_catalog)

    assert report.archive is not None
    assert report.success_count == 0
    assert "demo-addon-bundle/VERSION" in tar_names(report.archive)


def test_chart_failure_gives_images_only_bundle(out, chart_catalog):
    deps = BuilderDeps(image_copier=FakeCopier(), chart_puller=FakePuller(fail=True), now=lambda: FIXED_NOW)
    report = BundleBuilder(out, "2025.01.0", deps).build(chart_catalog)

    assert report.completed
    assert not report.chart_included
    assert not any(n.endswith(".tar") and "/charts/" in n for n in tar_names(report.archive))


def test_no_latest(out, deps, two_image_catalog):
    report = BundleBuilder(out, "2025.01.0", deps, create_latest=False).build(two_image_catalog)
    assert report.latest_archive is None
    assert not (out / "demo-addon-bundle-latest.tar.gz").exists()


def test_archive_failure_keeps_staging(builder, out, two_image_catalog, monkeypatch):
    def failing_create_tar(*args, **kwargs):
        raise ArchiveError("Failed to write archive: disk full")

    monkeypatch.setattr(builder_mod, "create_tar", failing_create_tar)
    report = builder.build(two_image_catalog)

    assert report.archive is None
    assert report.latest_archive is None
    assert "disk full" in report.error
    staging = out / "demo-addon-bundle"
    assert staging.is_dir()
    assert (staging / "VERSION").is_file()
    assert not list(out.glob("*.tar.gz"))


def test_rebuild_replaces_previous(builder, out, two_image_catalog):
    stale = out / "demo-addon-bundle" / "images" / "stale.tar"
    stale.parent.mkdir(parents=True)
    stale.write_bytes(b"old")

    first = builder.build(two_image_catalog)
    second = builder.build(two_image_catalog)

    assert first.archive == second.archive
    assert tar_names(second.archive) == tar_names(first.archive)
    assert "demo-addon-bundle/images/stale.tar" not in tar_names(second.archive)
    assert sorted(p.name for p in out.iterdir()) == [
        "demo-addon-bundle-2025.01.0.tar.gz", "demo-addon-bundle-latest.tar.gz",
    ]


def test_without_helm_charts_dir_is_empty(out, chart_catalog, caplog):
    deps = BuilderDeps(image_copier=FakeCopier(), chart_puller=None, now=lambda: FIXED_NOW)
    with caplog.at_level("WARNING", logger="addon_bundle"):
        report = BundleBuilder(out, "2025.01.0", deps).build(chart_catalog)

    assert report.completed
    assert report.chart.reason == "helm not available"
    names = tar_names(report.archive)
    assert "charted-addon-bundle/charts" in names
    assert not [n for n in names if n.startswith("charted-addon-bundle/charts/")]
    assert "Skipping Helm chart" in caplog.text
