"""Shared test fixtures."""

import pytest

from addon_bundle.builder import BuilderDeps
from addon_bundle.catalog import AddonCatalog, ChartEntry, ImageEntry, ManifestEntry
from addon_bundle.config import BuilderSettings
from addon_bundle.constants import (
    ENV_BUNDLE_VERSION,
    ENV_CATALOG,
    ENV_CONFIG,
    ENV_OUTPUT_DIR,
    ENV_SELECTION,
    ENV_TIMEOUT,
)
from tests.fixtures.fakes import FIXED_NOW, FakeCopier, FakePuller


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's environment out of tests."""
    for var in (ENV_BUNDLE_VERSION, ENV_SELECTION, ENV_OUTPUT_DIR,
                ENV_CONFIG, ENV_CATALOG, ENV_TIMEOUT):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def copier():
    return FakeCopier()


@pytest.fixture
def puller():
    return FakePuller()


@pytest.fixture
def deps(copier, puller):
    return BuilderDeps(image_copier=copier, chart_puller=puller, now=lambda: FIXED_NOW)


@pytest.fixture
def settings(tmp_path):
    return BuilderSettings(output_dir=tmp_path / "out", bundle_version="2025.01.0")


@pytest.fixture
def two_image_catalog():
    return AddonCatalog(
        name="demo",
        title="Demo",
        images=[
            ImageEntry(artifact_name="demo__app_v1", source_ref="docker.io/demo/app:v1"),
            ImageEntry(artifact_name="demo__sidecar_v1", source_ref="docker.io/demo/sidecar:v1"),
        ],
        component_versions={"app": "v1", "sidecar": "v1"},
    )


@pytest.fixture
def chart_catalog():
    return AddonCatalog(
        name="charted",
        title="Charted",
        images=[ImageEntry(artifact_name="charted__app_v2", source_ref="quay.io/charted/app:v2")],
        chart=ChartEntry(repo_name="charted", repo_url="https://example.com/charts",
                         name="charted", version="1.2.3"),
        component_versions={"app": "v2", "chart": "1.2.3"},
    )


@pytest.fixture
def manifest_catalog():
    return AddonCatalog(
        name="local-path",
        title="Local Path Provisioner",
        images=[
            ImageEntry(artifact_name="rancher__local-path-provisioner_v0.0.28",
                       source_ref="docker.io/rancher/local-path-provisioner:v0.0.28", role="provisioner"),
            ImageEntry(artifact_name="busybox_stable", source_ref="docker.io/busybox:stable", role="helper"),
        ],
        manifest=ManifestEntry(name="local-path-provisioner", template="local-path-provisioner"),
        component_versions={"local-path-provisioner": "v0.0.28", "busybox": "stable"},
    )
