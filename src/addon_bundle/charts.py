"""Helm chart fetch and conversion to an OCI layout tar."""

import logging
import tempfile
from pathlib import Path
from typing import Optional

from .archive import create_tar
from .catalog import ChartEntry
from .constants import ARTIFACT_EXT
from .errors import AddonBundleError, ChartFetchError
from .logs import success
from .models import ChartResult, FetchStatus
from .oci import write_chart_layout
from .tools import ChartPuller

logger = logging.getLogger(__name__)


def chart_tar_path(charts_dir: Path, entry: ChartEntry) -> Path:
    return charts_dir / f"{entry.artifact_name}{ARTIFACT_EXT}"


def package_chart(entry: ChartEntry, charts_dir: Path, puller: ChartPuller, work_dir: Path) -> ChartResult:
    """Pull a chart and write ``charts/<artifact_name>.tar``.

    Raises:
        ChartFetchError: If registering the repo, pulling or converting fails
    """
    dest = chart_tar_path(charts_dir, entry)
    try:
        with tempfile.TemporaryDirectory(prefix=f"tmp_{entry.artifact_name}.", dir=work_dir) as tmp:
            tmp_dir = Path(tmp)
            puller.add_repo(entry.repo_name, entry.repo_url)
            puller.update_repo(entry.repo_name)
            package = puller.pull_chart(entry.reference, entry.version, tmp_dir / "download")

            layout_dir = tmp_dir / entry.artifact_name
            descriptor = write_chart_layout(package, layout_dir)
            create_tar(layout_dir, dest, arcname=entry.artifact_name)
    except AddonBundleError as e:
        raise ChartFetchError(entry.reference, entry.version, str(e)) from e
    except OSError as e:
        raise ChartFetchError(entry.reference, entry.version, f"{type(e).__name__}: {e}") from e

    return ChartResult(
        chart=entry.reference,
        version=entry.version,
        status=FetchStatus.SUCCESS,
        path=dest,
        digest=descriptor.digest,
        size=descriptor.size,
    )


def fetch_chart(
    entry: ChartEntry,
    charts_dir: Path,
    puller: Optional[ChartPuller],
    work_dir: Path,
) -> ChartResult:
    """Package a chart, downgrading every failure to a skipped result.

    Args:
        puller: None when helm is not installed
    """
    if puller is None:
        reason = "helm not available"
        logger.warning("Skipping Helm chart %s %s: %s", entry.reference, entry.version, reason)
        return ChartResult(chart=entry.reference, version=entry.version,
                           status=FetchStatus.FAILED, reason=reason)

    logger.info("Downloading Helm chart %s %s...", entry.reference, entry.version)
    try:
        result = package_chart(entry, charts_dir, puller, work_dir)
    except ChartFetchError as e:
        logger.error("%s", e)
        logger.warning("Continuing without chart; bundle will contain images only")
        return ChartResult(chart=entry.reference, version=entry.version,
                           status=FetchStatus.FAILED, reason=e.reason)

    success(logger, "Added Helm chart: %s (%s)", entry.artifact_name, result.digest)
    return result
