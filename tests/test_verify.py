"""Tests for bundle archive verification."""

import tarfile

import pytest

from addon_bundle.archive import create_tar
from addon_bundle.builder import BundleBuilder
from addon_bundle.verify import verify_bundle

from tests.fixtures.fakes import extract


@pytest.fixture
def out(tmp_path):
    path = tmp_path / "out"
    path.mkdir()
    return path


def _rebuild(root, tmp_path, name="rebuilt.tar.gz"):
    return create_tar(root, tmp_path / name, compress=True)


def test_good_chart_bundle(out, deps, chart_catalog):
    report = BundleBuilder(out, "2025.01.0", deps).build(chart_catalog)
    result = verify_bundle(report.archive)

    assert result.ok, result.problems
    assert result.version.bundle_version == "2025.01.0"
    assert result.count("images") == 1
    assert result.count("charts") == 1
    assert result.manifests == []


def test_good_manifest_bundle(out, deps, manifest_catalog):
    report = BundleBuilder(out, "2025.01.0", deps).build(manifest_catalog)
    result = verify_bundle(report.latest_archive)

    assert result.ok, result.problems
    assert result.count("images") == 2
    assert result.manifests == ["manifests/local-path-provisioner.yaml"]


def test_missing_archive(tmp_path):
    result = verify_bundle(tmp_path / "nope.tar.gz")
    assert not result.ok
    assert "does not exist" in result.problems[0]


def test_missing_version_file(out, deps, two_image_catalog, tmp_path):
    report = BundleBuilder(out, "2025.01.0", deps).build(two_image_catalog)
    root = extract(report.archive, tmp_path / "x") / "demo-addon-bundle"
    (root / "VERSION").unlink()

    result = verify_bundle(_rebuild(root, tmp_path))
    assert "missing VERSION" in result.problems


def test_corrupted_image_blob(out, deps, two_image_catalog, tmp_path):
    report = BundleBuilder(out, "2025.01.0", deps).build(two_image_catalog)
    root = extract(report.archive, tmp_path / "x") / "demo-addon-bundle"

    image_tar = root / "images" / "demo__app_v1.tar"
    layout_root = extract(image_tar, tmp_path / "layout")
    blob = next((layout_root / "demo__app_v1" / "blobs" / "sha256").iterdir())
    blob.write_bytes(b"X" * blob.stat().st_size)
    create_tar(layout_root / "demo__app_v1", image_tar)

    result = verify_bundle(_rebuild(root, tmp_path))
    assert not result.ok
    bad = [a for a in result.artifacts if not a.ok]
    assert [a.path for a in bad] == ["images/demo__app_v1.tar"]
    assert any("digest mismatch" in p for p in bad[0].problems)


def test_unexpected_entry(out, deps, two_image_catalog, tmp_path):
    report = BundleBuilder(out, "2025.01.0", deps).build(two_image_catalog)
    root = extract(report.archive, tmp_path / "x") / "demo-addon-bundle"
    (root / "images" / "notes.txt").write_text("hi")

    result = verify_bundle(_rebuild(root, tmp_path))
    assert "unexpected entry images/notes.txt" in result.problems


def test_two_top_level_directories(tmp_path):
    archive = tmp_path / "bad.tar.gz"
    (tmp_path / "a").mkdir()
    (tmp_path / "b").mkdir()
    with tarfile.open(archive, "w:gz") as tar:
        tar.add(tmp_path / "a", arcname="a")
        tar.add(tmp_path / "b", arcname="b")

    result = verify_bundle(archive)
    assert not result.ok
    assert "single top-level directory" in result.problems[0]
