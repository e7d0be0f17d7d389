"""Builder settings.

Resolution order: defaults < YAML config file < environment < CLI flags.
The CLI applies its own overrides with ``apply_overrides``, which validates
them like every other source.
"""

import os
from pathlib import Path
from typing import Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .constants import (
    DEFAULT_PLATFORM_ARCH,
    DEFAULT_PLATFORM_OS,
    ENV_BUNDLE_VERSION,
    ENV_CATALOG,
    ENV_OUTPUT_DIR,
    ENV_TIMEOUT,
    HELM,
    SKOPEO,
)
from .errors import ConfigError


class BuilderSettings(BaseModel):
    """Settings for a build run."""

    model_config = ConfigDict(extra="forbid")

    output_dir: Path = Path(".")
    bundle_version: Optional[str] = None  # None -> derived from the date
    catalog_path: Optional[Path] = None   # None -> packaged catalogs.yaml
    create_latest: bool = True
    command_timeout: Optional[float] = None  # seconds, None = wait forever
    platform_os: str = DEFAULT_PLATFORM_OS
    platform_arch: str = DEFAULT_PLATFORM_ARCH
    skopeo_bin: str = SKOPEO
    helm_bin: str = HELM

    @field_validator("output_dir")
    @classmethod
    def validate_output_dir(cls, v: Path) -> Path:
        # skopeo splits "oci:<path>:<tag>" on colons
        if ":" in str(v):
            raise ValueError(f"output_dir '{v}' must not contain ':'")
        return v

    @field_validator("command_timeout")
    @classmethod
    def validate_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("command_timeout must be positive")
        return v


def _read_config_file(config_path: Path) -> dict:
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")
    try:
        data = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse {config_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping")
    # Accept either a top-level mapping or a `settings:` section
    settings = data.get("settings", data)
    if not isinstance(settings, dict):
        raise ConfigError(f"'settings' in {config_path} must be a mapping")
    return settings


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> BuilderSettings:
    """Load settings from an optional YAML file and the environment.

    Args:
        config_path: YAML file with builder settings
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated BuilderSettings

    Raises:
        ConfigError: If the file is unreadable or a value is invalid
    """
    env = os.environ if environ is None else environ
    values: dict = {}

    if config_path is not None:
        values.update(_read_config_file(Path(config_path)))

    if env.get(ENV_OUTPUT_DIR):
        values["output_dir"] = env[ENV_OUTPUT_DIR]
    if env.get(ENV_BUNDLE_VERSION):
        values["bundle_version"] = env[ENV_BUNDLE_VERSION].strip()
    if env.get(ENV_CATALOG):
        values["catalog_path"] = env[ENV_CATALOG]
    if env.get(ENV_TIMEOUT):
        values["command_timeout"] = env[ENV_TIMEOUT]

    try:
        return BuilderSettings(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}") from e


def apply_overrides(settings: BuilderSettings, overrides: Mapping[str, object]) -> BuilderSettings:
    """Return ``settings`` with ``overrides`` applied and re-validated.

    Raises:
        ConfigError: If an override is invalid
    """
    try:
        return BuilderSettings(**{**settings.model_dump(), **overrides})
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}") from e
