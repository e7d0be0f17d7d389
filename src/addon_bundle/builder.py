"""Per-addon bundle assembly.

Lifecycle of one build:

1. Remove any previous staging directory and create a fresh one
2. Write VERSION (before any fetch)
3. Fetch images, package the chart, render manifests
4. Archive to ``<addon>-addon-bundle-<version>.tar.gz`` and copy to ``-latest``
5. Remove the staging directory, unless archiving failed
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from .archive import copy_file, create_tar, remove_tree
from .catalog import AddonCatalog
from .charts import fetch_chart
from .constants import (
    ARCHIVE_EXT,
    BUNDLE_SUFFIX,
    CHARTS_DIR,
    IMAGES_DIR,
    LATEST_LABEL,
    MANIFESTS_DIR,
    VERSION_FILE,
)
from .errors import ArchiveError
from .images import fetch_images
from .logs import success
from .models import BuildReport
from .templates import render_manifest
from .tools import ChartPuller, ImageCopier
from .versioning import VersionInfo, utcnow, write_version_file

logger = logging.getLogger(__name__)


def staging_dir_name(addon: str) -> str:
    return f"{addon}{BUNDLE_SUFFIX}"


def archive_name(addon: str, label: str) -> str:
    """``velero`` + ``2025.01.0`` -> ``velero-addon-bundle-2025.01.0.tar.gz``."""
    return f"{addon}{BUNDLE_SUFFIX}-{label}{ARCHIVE_EXT}"


@dataclass
class BuilderDeps:
    """Dependency injection container for testability."""
    image_copier: ImageCopier
    chart_puller: Optional[ChartPuller] = None  # None when helm is unavailable
    now: Callable[[], datetime] = utcnow


class BundleBuilder:
    """Builds addon bundles into an output directory."""

    def __init__(
        self,
        output_dir: Path,
        bundle_version: str,
        deps: BuilderDeps,
        create_latest: bool = True,
    ):
        self.output_dir = Path(output_dir)
        self.bundle_version = bundle_version
        self.deps = deps
        self.create_latest = create_latest

    def staging_dir(self, catalog: AddonCatalog) -> Path:
        return self.output_dir / staging_dir_name(catalog.name)

    def prepare_staging(self, catalog: AddonCatalog) -> Path:
        """Create a fresh staging tree with images/ and charts/ or manifests/."""
        staging = self.staging_dir(catalog)
        remove_tree(staging)
        (staging / IMAGES_DIR).mkdir(parents=True)
        if catalog.chart is not None:
            (staging / CHARTS_DIR).mkdir()
        if catalog.manifest is not None:
            (staging / MANIFESTS_DIR).mkdir()
        return staging

    def build(self, catalog: AddonCatalog) -> BuildReport:
        """Build one addon bundle.

        Per-image and chart failures are recorded in the report. An archive
        failure sets ``report.error`` and keeps the staging directory.
        Anything else propagates to the caller.
        """
        logger.info("Creating %s bundle (%s)...", catalog.title, self.bundle_version)

        staging = self.prepare_staging(catalog)
        report = BuildReport(addon=catalog.name, bundle_version=self.bundle_version, staging_dir=staging)

        info = VersionInfo.for_catalog(catalog, self.bundle_version, now=self.deps.now)
        write_version_file(info, staging / VERSION_FILE)

        logger.info("Downloading %s images...", catalog.title)
        report.images = fetch_images(catalog.images, staging / IMAGES_DIR, self.deps.image_copier, self.output_dir)

        if catalog.chart is not None:
            report.chart = fetch_chart(catalog.chart, staging / CHARTS_DIR, self.deps.chart_puller, self.output_dir)

        if catalog.manifest is not None:
            manifest_path = staging / MANIFESTS_DIR / f"{catalog.manifest.name}.yaml"
            manifest_path.write_text(render_manifest(catalog))
            report.manifests.append(manifest_path)
            success(logger, "Added manifest: %s", manifest_path.name)

        self._archive(catalog, staging, report)
        return report

    def _archive(self, catalog: AddonCatalog, staging: Path, report: BuildReport) -> None:
        archive = self.output_dir / archive_name(catalog.name, self.bundle_version)
        try:
            create_tar(staging, archive, arcname=staging.name, compress=True)
        except ArchiveError as e:
            report.error = str(e)
            logger.error("%s", e)
            logger.error("Staging directory kept for inspection: %s", staging)
            return

        report.archive = archive
        success(logger, "Created: %s", archive.name)
        remove_tree(staging)

        if self.create_latest:
            latest = self.output_dir / archive_name(catalog.name, LATEST_LABEL)
            try:
                report.latest_archive = copy_file(archive, latest)
            except ArchiveError as e:
                logger.error("%s", e)
                return
            success(logger, "Created: %s", latest.name)
