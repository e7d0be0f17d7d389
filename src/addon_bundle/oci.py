"""OCI image layout models, chart-to-layout conversion and validation.

A layout directory looks like::

    oci-layout              {"imageLayoutVersion": "1.0.0"}
    index.json              {"schemaVersion": 2, "manifests": [...]}
    blobs/sha256/<hex>      content addressed blobs

Image layouts come from the copy tool. Chart layouts are written here with a
single descriptor pointing straight at the packaged chart.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from .constants import (
    HELM_CHART_CONTENT_MEDIA_TYPE,
    OCI_BLOBS_DIR,
    OCI_INDEX_FILE,
    OCI_LAYOUT_FILE,
    OCI_LAYOUT_VERSION,
    OCI_SCHEMA_VERSION,
)
from .errors import LayoutError
from .hashing import compute_file_digest, copy_with_digest, split_digest

logger = logging.getLogger(__name__)


class OciLayoutMarker(BaseModel):
    """Contents of the ``oci-layout`` file."""
    imageLayoutVersion: str = OCI_LAYOUT_VERSION


class OciDescriptor(BaseModel):
    """Content descriptor (media type, digest, size)."""
    mediaType: str
    digest: str                                # sha256:...
    size: int                                  # bytes
    annotations: Optional[Dict[str, str]] = None


class OciIndex(BaseModel):
    """Contents of ``index.json``."""
    schemaVersion: int = OCI_SCHEMA_VERSION
    manifests: List[OciDescriptor] = Field(default_factory=list)

    def to_json(self) -> str:
        return json.dumps(self.model_dump(exclude_none=True), indent=2) + "\n"


def blob_path(layout_dir: Path, digest: str) -> Path:
    """Path of a blob inside a layout (validates the digest first)."""
    algorithm, hex_part = split_digest(digest)
    return layout_dir / OCI_BLOBS_DIR / algorithm / hex_part


def write_blob(layout_dir: Path, source: Path, media_type: str) -> OciDescriptor:
    """Stream ``source`` into the layout's blob store.

    Digest and size are computed from the bytes as they are written, so the
    descriptor always matches what ends up on disk.
    """
    blob_dir = layout_dir / OCI_BLOBS_DIR / "sha256"
    blob_dir.mkdir(parents=True, exist_ok=True)

    fd, tmppath = tempfile.mkstemp(prefix=".blob.partial-", dir=blob_dir)
    try:
        with os.fdopen(fd, "wb") as dst, source.open("rb") as src:
            digest, size = copy_with_digest(src, dst)
        os.replace(tmppath, blob_path(layout_dir, digest))
    except Exception:
        try:
            os.unlink(tmppath)
        except OSError:
            pass
        raise

    return OciDescriptor(mediaType=media_type, digest=digest, size=size)


def write_chart_layout(chart_package: Path, layout_dir: Path) -> OciDescriptor:
    """Convert a packaged Helm chart (.tgz) into a minimal OCI layout.

    Args:
        chart_package: Chart archive produced by ``helm pull``
        layout_dir: Empty or missing directory to populate

    Returns:
        The descriptor recorded in index.json
    """
    layout_dir.mkdir(parents=True, exist_ok=True)
    descriptor = write_blob(layout_dir, chart_package, HELM_CHART_CONTENT_MEDIA_TYPE)

    (layout_dir / OCI_LAYOUT_FILE).write_text(
        json.dumps(OciLayoutMarker().model_dump()) + "\n"
    )
    (layout_dir / OCI_INDEX_FILE).write_text(OciIndex(manifests=[descriptor]).to_json())

    logger.debug("Wrote chart layout %s (%s, %d bytes)", layout_dir, descriptor.digest, descriptor.size)
    return descriptor


def read_index(layout_dir: Path) -> OciIndex:
    """Parse ``index.json``.

    Raises:
        LayoutError: If missing or malformed
    """
    index_path = layout_dir / OCI_INDEX_FILE
    if not index_path.is_file():
        raise LayoutError(str(layout_dir), [f"missing {OCI_INDEX_FILE}"])
    try:
        return OciIndex(**json.loads(index_path.read_text()))
    except (json.JSONDecodeError, ValidationError, TypeError) as e:
        raise LayoutError(str(layout_dir), [f"malformed {OCI_INDEX_FILE}: {e}"]) from e


def validate_layout(layout_dir: Path, verify_digests: bool = False) -> List[str]:
    """Check that a directory is an OCI image layout.

    Structural checks always run: ``oci-layout`` present with a version,
    ``index.json`` parseable with at least one manifest, every indexed blob
    present with the declared size, and at least one blob in the store.
    With ``verify_digests`` every blob is also re-hashed.

    Returns:
        List of problems (empty when the layout is valid)
    """
    problems: List[str] = []

    marker_path = layout_dir / OCI_LAYOUT_FILE
    if not marker_path.is_file():
        problems.append(f"missing {OCI_LAYOUT_FILE}")
    else:
        try:
            marker = json.loads(marker_path.read_text())
            if not isinstance(marker, dict) or not marker.get("imageLayoutVersion"):
                problems.append(f"{OCI_LAYOUT_FILE} has no imageLayoutVersion")
        except json.JSONDecodeError as e:
            problems.append(f"malformed {OCI_LAYOUT_FILE}: {e}")

    try:
        index = read_index(layout_dir)
    except LayoutError as e:
        problems.extend(e.problems)
        index = None

    if index is not None:
        if not index.manifests:
            problems.append(f"{OCI_INDEX_FILE} lists no manifests")
        for descriptor in index.manifests:
            try:
                path = blob_path(layout_dir, descriptor.digest)
            except ValueError as e:
                problems.append(str(e))
                continue
            if not path.is_file():
                problems.append(f"missing blob for {descriptor.digest}")
                continue
            actual_size = path.stat().st_size
            if actual_size != descriptor.size:
                problems.append(
                    f"size mismatch for {descriptor.digest}: "
                    f"index says {descriptor.size}, blob has {actual_size}"
                )

    blob_dir = layout_dir / OCI_BLOBS_DIR / "sha256"
    blobs = sorted(p for p in blob_dir.iterdir() if p.is_file()) if blob_dir.is_dir() else []
    if not blobs:
        problems.append("blob store is empty")

    if verify_digests:
        for blob in blobs:
            expected = f"sha256:{blob.name}"
            actual = compute_file_digest(blob)
            if actual != expected:
                problems.append(f"digest mismatch for {blob.name}: content hashes to {actual}")

    return problems


def check_layout(layout_dir: Path, verify_digests: bool = False) -> None:
    """Raise LayoutError unless ``layout_dir`` is a valid layout."""
    problems = validate_layout(layout_dir, verify_digests=verify_digests)
    if problems:
        raise LayoutError(str(layout_dir), problems)
