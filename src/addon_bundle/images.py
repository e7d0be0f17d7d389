"""Image fetch-and-wrap loop.

Each image is copied into a temporary OCI layout, checked, and archived as
``images/<artifact_name>.tar``. Failures are recorded and the loop moves on.
"""

import logging
import tempfile
from pathlib import Path
from typing import List, Sequence

from .archive import create_tar
from .catalog import ImageEntry
from .constants import ARTIFACT_EXT
from .errors import AddonBundleError, ImageFetchError
from .logs import success
from .models import FetchResult
from .oci import check_layout
from .tools import ImageCopier

logger = logging.getLogger(__name__)


def image_tar_path(images_dir: Path, entry: ImageEntry) -> Path:
    return images_dir / f"{entry.artifact_name}{ARTIFACT_EXT}"


def fetch_image(entry: ImageEntry, images_dir: Path, copier: ImageCopier, work_dir: Path) -> Path:
    """Copy one image and archive it under ``images_dir``.

    Args:
        entry: Catalog entry
        images_dir: Destination directory
        copier: Image copy implementation
        work_dir: Where the temporary layout directory is created

    Returns:
        Path of the written tar

    Raises:
        ImageFetchError: If any step fails; nothing is left in images_dir
    """
    dest = image_tar_path(images_dir, entry)
    try:
        with tempfile.TemporaryDirectory(prefix=f"tmp_{entry.artifact_name}.", dir=work_dir) as tmp:
            layout_dir = Path(tmp) / entry.artifact_name
            copier.copy_image(entry.source_ref, layout_dir)
            check_layout(layout_dir)
            create_tar(layout_dir, dest, arcname=entry.artifact_name)
    except AddonBundleError as e:
        raise ImageFetchError(entry.source_ref, str(e)) from e
    except OSError as e:
        raise ImageFetchError(entry.source_ref, f"{type(e).__name__}: {e}") from e
    return dest


def fetch_images(
    entries: Sequence[ImageEntry],
    images_dir: Path,
    copier: ImageCopier,
    work_dir: Path,
) -> List[FetchResult]:
    """Fetch every image, continuing past failures.

    Returns:
        One FetchResult per entry, in catalog order
    """
    results: List[FetchResult] = []
    for entry in entries:
        logger.info("Pulling %s...", entry.source_ref)
        try:
            path = fetch_image(entry, images_dir, copier, work_dir)
        except ImageFetchError as e:
            logger.error("%s", e)
            results.append(FetchResult.failure(entry.artifact_name, entry.source_ref, e.reason))
            continue
        success(logger, "Added image: %s", entry.artifact_name)
        results.append(FetchResult.success(entry.artifact_name, entry.source_ref, path))

    ok = sum(1 for r in results if r.ok)
    if ok == len(results):
        logger.info("Images: %d/%d succeeded", ok, len(results))
    else:
        logger.warning("Images: %d/%d succeeded", ok, len(results))
        for r in results:
            if not r.ok:
                logger.warning("  failed: %s (%s)", r.source_ref, r.reason)
    return results
