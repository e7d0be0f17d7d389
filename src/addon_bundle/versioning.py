"""Calendar bundle versions and the VERSION metadata file."""

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Optional

import yaml
from pydantic import BaseModel, Field

from .catalog import AddonCatalog
from .errors import ConfigError

logger = logging.getLogger(__name__)

CALENDAR_VERSION = re.compile(r"^\d{4}\.\d{2}\.\d+$")
# Versions end up in archive file names
_FILENAME_SAFE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._+-]*$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def resolve_bundle_version(
    override: Optional[str] = None,
    now: Callable[[], datetime] = utcnow,
) -> str:
    """Resolve the bundle version for this run.

    Args:
        override: Explicit version (BUNDLE_VERSION or --version)
        now: Clock, injectable for tests

    Returns:
        The override if given, otherwise ``<year>.<MM>.0`` for the current UTC date

    Raises:
        ConfigError: If the override cannot be used in a file name
    """
    if override:
        version = override.strip()
        if not _FILENAME_SAFE.fullmatch(version) or version == "latest":
            raise ConfigError(f"Bundle version '{override}' is not usable in an archive name")
        if not CALENDAR_VERSION.fullmatch(version):
            logger.warning("Bundle version %s is not in YYYY.MM.PATCH form", version)
        return version

    today = now()
    return f"{today.year}.{today.month:02d}.0"


class VersionInfo(BaseModel):
    """Contents of a bundle's VERSION file."""

    bundle_version: str
    bundle_type: str
    created_date: str  # ISO 8601, UTC
    component_versions: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def for_catalog(
        cls,
        catalog: AddonCatalog,
        bundle_version: str,
        now: Callable[[], datetime] = utcnow,
    ) -> "VersionInfo":
        created = now().astimezone(timezone.utc).replace(microsecond=0)
        return cls(
            bundle_version=bundle_version,
            bundle_type=catalog.bundle_type,
            created_date=created.isoformat().replace("+00:00", "Z"),
            component_versions=dict(catalog.component_versions),
        )


def write_version_file(info: VersionInfo, path: Path) -> None:
    """Write VERSION as YAML, keys in declaration order."""
    path.write_text(yaml.safe_dump(info.model_dump(), default_flow_style=False, sort_keys=False))


def read_version_file(path: Path) -> VersionInfo:
    data = yaml.safe_load(path.read_text()) or {}
    return VersionInfo(**data)
