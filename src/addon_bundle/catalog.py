"""Addon catalogs: which images, charts and manifests go into each bundle.

Catalogs are static configuration. The packaged ``catalogs.yaml`` is the
default; a user file with the same schema can replace it (``--catalog``).
"""

import re
from importlib import resources
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator, model_validator

from .constants import CHART_PREFIX
from .errors import CatalogError, UnknownAddonError

CATALOG_SCHEMA_VERSION = 1
ALL_SELECTOR = "all"

# Artifact names become file names inside the bundle
_SAFE_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_ADDON_NAME = re.compile(r"^[a-z0-9][a-z0-9-]*$")


def _check_safe_name(field: str, v: str) -> str:
    if not _SAFE_NAME.fullmatch(v):
        raise ValueError(f"{field} '{v}' is not filesystem-safe (no '/', spaces or leading dots)")
    return v


def _coerce_str(v):
    # YAML reads `version: 1.0` as a float
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return v


class ImageEntry(BaseModel):
    """One container image to copy into ``images/``."""

    model_config = ConfigDict(frozen=True)

    artifact_name: str   # file stem under images/, e.g. "velero__velero_v1.16.0"
    source_ref: str      # registry/repo:tag
    role: Optional[str] = None  # referenced by manifest templates

    @field_validator("artifact_name")
    @classmethod
    def validate_artifact_name(cls, v: str) -> str:
        if not _SAFE_NAME.fullmatch(v):
            raise ValueError(
                f"artifact_name '{v}' is not filesystem-safe "
                f"(replace '/' with '__', no spaces or leading dots)"
            )
        return v

    @field_validator("source_ref")
    @classmethod
    def validate_source_ref(cls, v: str) -> str:
        if not v or any(c.isspace() for c in v) or "://" in v:
            raise ValueError(f"source_ref '{v}' must be a plain registry/repo:tag reference")
        return v

    @property
    def repository_path(self) -> str:
        """Reference without its registry host (``docker.io/a/b:1`` -> ``a/b:1``)."""
        first, _, rest = self.source_ref.partition("/")
        if rest and ("." in first or ":" in first or first == "localhost"):
            return rest
        return self.source_ref


class ChartEntry(BaseModel):
    """Helm chart pulled from a classic chart repository."""

    model_config = ConfigDict(frozen=True)

    repo_name: str  # local alias passed to `helm repo add`
    repo_url: str
    name: str
    version: str

    @field_validator("version", mode="before")
    @classmethod
    def coerce_version(cls, v):
        return _coerce_str(v)

    @field_validator("name", "version")
    @classmethod
    def validate_names(cls, v: str, info: ValidationInfo) -> str:
        return _check_safe_name(info.field_name, v)

    @property
    def reference(self) -> str:
        return f"{self.repo_name}/{self.name}"

    @property
    def artifact_name(self) -> str:
        """Name of the chart tar under ``charts/``, e.g. ``charts__velero_9_1_2``."""
        return f"{CHART_PREFIX}{self.name}_{self.version}".replace(".", "_")


class ManifestEntry(BaseModel):
    """Static manifest set rendered into ``manifests/<name>.yaml``."""

    model_config = ConfigDict(frozen=True)

    name: str
    template: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_safe_name("manifest name", v)


class AddonCatalog(BaseModel):
    """Everything that goes into one addon bundle."""

    model_config = ConfigDict(frozen=True)

    name: str
    title: str
    description: str = ""
    images: List[ImageEntry] = Field(default_factory=list)
    chart: Optional[ChartEntry] = None
    manifest: Optional[ManifestEntry] = None
    component_versions: Dict[str, str] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not _ADDON_NAME.fullmatch(v) or v == ALL_SELECTOR:
            raise ValueError(f"addon name '{v}' must be a lowercase slug other than '{ALL_SELECTOR}'")
        return v

    @field_validator("component_versions", mode="before")
    @classmethod
    def coerce_versions(cls, v):
        if isinstance(v, dict):
            return {k: _coerce_str(val) for k, val in v.items()}
        return v

    @model_validator(mode="after")
    def check_unique_artifacts(self) -> "AddonCatalog":
        seen = set()
        for image in self.images:
            if image.artifact_name in seen:
                raise ValueError(f"duplicate artifact_name '{image.artifact_name}' in addon '{self.name}'")
            seen.add(image.artifact_name)
        return self

    @property
    def bundle_type(self) -> str:
        return f"{self.name}-addon"

    def image_for_role(self, role: str) -> ImageEntry:
        for image in self.images:
            if image.role == role:
                return image
        raise CatalogError(f"Addon '{self.name}' has no image with role '{role}'")


class CatalogFile(BaseModel):
    """Top-level catalog document."""

    schema_version: int = CATALOG_SCHEMA_VERSION
    addons: List[AddonCatalog]

    @model_validator(mode="after")
    def check_unique_names(self) -> "CatalogFile":
        names = [addon.name for addon in self.addons]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"duplicate addon names: {', '.join(dupes)}")
        return self


def _read_catalog_text(path: Optional[Path]) -> str:
    if path is None:
        return resources.files("addon_bundle").joinpath("catalogs.yaml").read_text()
    path = Path(path)
    if not path.exists():
        raise CatalogError(f"Catalog file not found: {path}")
    return path.read_text()


def load_catalogs(path: Optional[Path] = None) -> List[AddonCatalog]:
    """Load addon catalogs.

    Args:
        path: Catalog YAML file; the packaged default when None

    Returns:
        Catalogs in menu order

    Raises:
        CatalogError: If the document is missing, malformed or invalid
    """
    source = path or "packaged catalogs.yaml"
    try:
        data = yaml.safe_load(_read_catalog_text(path))
    except yaml.YAMLError as e:
        raise CatalogError(f"Could not parse {source}: {e}") from e

    if not isinstance(data, dict):
        raise CatalogError(f"{source} must contain a mapping with an 'addons' list")

    try:
        doc = CatalogFile(**data)
    except ValidationError as e:
        raise CatalogError(f"Invalid catalog {source}: {e}") from e

    if doc.schema_version != CATALOG_SCHEMA_VERSION:
        raise CatalogError(
            f"{source} has schema_version {doc.schema_version}, "
            f"expected {CATALOG_SCHEMA_VERSION}"
        )
    return doc.addons


def menu_entries(catalogs: Sequence[AddonCatalog]) -> List[str]:
    """Menu keys in display order: "1".."n" then the all-option."""
    return [str(i) for i in range(1, len(catalogs) + 2)]


def select_catalogs(catalogs: Sequence[AddonCatalog], selection: str) -> List[AddonCatalog]:
    """Resolve a menu number or addon name to catalogs.

    ``1..n`` pick a single addon, ``n+1`` or ``all`` pick every addon.
    """
    choice = selection.strip().lower()
    by_name = {c.name: c for c in catalogs}

    if choice == ALL_SELECTOR or choice == str(len(catalogs) + 1):
        return list(catalogs)
    if choice in by_name:
        return [by_name[choice]]
    if choice.isdigit() and 1 <= int(choice) <= len(catalogs):
        return [catalogs[int(choice) - 1]]
    raise UnknownAddonError(selection, list(by_name))
