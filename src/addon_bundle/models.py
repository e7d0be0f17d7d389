"""Result types returned by fetchers, builders and the orchestrator."""

from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field


class FetchStatus(str, Enum):
    """Outcome of fetching one artifact."""
    SUCCESS = "success"
    FAILED = "failed"


class FetchResult(BaseModel):
    """Outcome of fetching one image."""
    artifact_name: str
    source_ref: str
    status: FetchStatus
    path: Optional[Path] = None     # set on success
    reason: Optional[str] = None    # set on failure

    @property
    def ok(self) -> bool:
        return self.status == FetchStatus.SUCCESS

    @classmethod
    def success(cls, artifact_name: str, source_ref: str, path: Path) -> "FetchResult":
        return cls(artifact_name=artifact_name, source_ref=source_ref,
                   status=FetchStatus.SUCCESS, path=path)

    @classmethod
    def failure(cls, artifact_name: str, source_ref: str, reason: str) -> "FetchResult":
        return cls(artifact_name=artifact_name, source_ref=source_ref,
                   status=FetchStatus.FAILED, reason=reason)


class ChartResult(BaseModel):
    """Outcome of packaging a chart."""
    chart: str                      # repo/chart
    version: str
    status: FetchStatus
    path: Optional[Path] = None
    digest: Optional[str] = None
    size: Optional[int] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == FetchStatus.SUCCESS


class BuildReport(BaseModel):
    """Everything that happened while building one addon bundle."""
    addon: str
    bundle_version: str
    images: List[FetchResult] = Field(default_factory=list)
    chart: Optional[ChartResult] = None
    manifests: List[Path] = Field(default_factory=list)
    staging_dir: Path
    archive: Optional[Path] = None
    latest_archive: Optional[Path] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> List[FetchResult]:
        return [r for r in self.images if r.ok]

    @property
    def failed(self) -> List[FetchResult]:
        return [r for r in self.images if not r.ok]

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def total(self) -> int:
        return len(self.images)

    @property
    def chart_included(self) -> bool:
        return self.chart is not None and self.chart.ok

    @property
    def completed(self) -> bool:
        """Archive written and no build error."""
        return self.archive is not None and self.error is None


class RunSummary(BaseModel):
    """Outcome of a whole run (one or more addons)."""
    bundle_version: str
    reports: List[BuildReport] = Field(default_factory=list)
    leftover_staging: List[Path] = Field(default_factory=list)
    instructions: Optional[Path] = None

    @property
    def archives(self) -> List[Path]:
        return [r.archive for r in self.reports if r.archive is not None]

    @property
    def latest_archives(self) -> List[Path]:
        return [r.latest_archive for r in self.reports if r.latest_archive is not None]

    @property
    def failed_addons(self) -> List[str]:
        return [r.addon for r in self.reports if not r.completed]
