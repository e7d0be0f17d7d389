"""Verification of built bundle archives.

Checks what the loader relies on: the top-level layout, a readable VERSION,
and that every ``images/*.tar`` and ``charts/*.tar`` unpacks to a single OCI
layout whose blobs hash to their names.
"""

import logging
import tempfile
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .archive import extract_tar, single_root
from .constants import (
    ARTIFACT_EXT,
    CHARTS_DIR,
    HELM_CHART_CONTENT_MEDIA_TYPE,
    IMAGES_DIR,
    MANIFESTS_DIR,
    VERSION_FILE,
)
from .errors import ArchiveError, LayoutError
from .oci import read_index, validate_layout
from .versioning import VersionInfo, read_version_file

logger = logging.getLogger(__name__)


class ArtifactCheck(BaseModel):
    """Verification result for one nested artifact."""
    path: str                    # relative to the bundle root
    problems: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.problems


class VerifyReport(BaseModel):
    """Verification result for one bundle archive."""
    archive: Path
    version: Optional[VersionInfo] = None
    artifacts: List[ArtifactCheck] = Field(default_factory=list)
    manifests: List[str] = Field(default_factory=list)
    problems: List[str] = Field(default_factory=list)  # bundle-level

    @property
    def ok(self) -> bool:
        return not self.problems and all(a.ok for a in self.artifacts)

    def count(self, kind: str) -> int:
        return sum(1 for a in self.artifacts if a.path.startswith(f"{kind}/"))


def _check_artifact(tar_path: Path, rel: str, work_dir: Path, chart: bool) -> ArtifactCheck:
    check = ArtifactCheck(path=rel)
    dest = Path(tempfile.mkdtemp(prefix="artifact.", dir=work_dir))
    try:
        extract_tar(tar_path, dest)
        layout_dir = single_root(dest)
    except ArchiveError as e:
        check.problems.append(str(e))
        return check

    check.problems.extend(validate_layout(layout_dir, verify_digests=True))
    if chart and not check.problems:
        try:
            index = read_index(layout_dir)
        except LayoutError as e:
            check.problems.extend(e.problems)
            return check
        if [d.mediaType for d in index.manifests] != [HELM_CHART_CONTENT_MEDIA_TYPE]:
            check.problems.append(
                f"chart index must list exactly one {HELM_CHART_CONTENT_MEDIA_TYPE} descriptor"
            )
    return check


def verify_bundle(archive: Path) -> VerifyReport:
    """Unpack a bundle archive into a temporary directory and check it."""
    report = VerifyReport(archive=archive)
    if not archive.is_file():
        report.problems.append(f"{archive} does not exist")
        return report

    with tempfile.TemporaryDirectory(prefix="addon-bundle-verify.") as tmp:
        tmp_dir = Path(tmp)
        try:
            extract_tar(archive, tmp_dir / "bundle")
            root = single_root(tmp_dir / "bundle")
        except ArchiveError as e:
            report.problems.append(str(e))
            return report

        version_path = root / VERSION_FILE
        if not version_path.is_file():
            report.problems.append(f"missing {VERSION_FILE}")
        else:
            try:
                report.version = read_version_file(version_path)
            except (yaml.YAMLError, ValidationError, TypeError) as e:
                report.problems.append(f"unreadable {VERSION_FILE}: {e}")

        if not (root / IMAGES_DIR).is_dir():
            report.problems.append(f"missing {IMAGES_DIR}/")

        for kind in (IMAGES_DIR, CHARTS_DIR):
            kind_dir = root / kind
            if not kind_dir.is_dir():
                continue
            for entry in sorted(kind_dir.iterdir()):
                rel = f"{kind}/{entry.name}"
                if entry.suffix != ARTIFACT_EXT or not entry.is_file():
                    report.problems.append(f"unexpected entry {rel}")
                    continue
                logger.debug("Verifying %s", rel)
                report.artifacts.append(_check_artifact(entry, rel, tmp_dir, chart=(kind == CHARTS_DIR)))

        manifests_dir = root / MANIFESTS_DIR
        if manifests_dir.is_dir():
            for manifest in sorted(manifests_dir.glob("*.yaml")):
                rel = f"{MANIFESTS_DIR}/{manifest.name}"
                try:
                    list(yaml.safe_load_all(manifest.read_text()))
                except yaml.YAMLError as e:
                    report.problems.append(f"invalid YAML in {rel}: {e}")
                    continue
                report.manifests.append(rel)

    return report
