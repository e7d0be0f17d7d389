"""Run orchestration: preconditions, per-addon isolation, run summary."""

import contextlib
import logging
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence

import portalocker

from .builder import BuilderDeps, BundleBuilder, staging_dir_name
from .catalog import AddonCatalog
from .config import BuilderSettings
from .constants import INSTRUCTIONS_FILE, LOCK_FILE
from .errors import ToolMissingError, WorkspaceLockedError
from .models import BuildReport, RunSummary
from .templates import create_instructions
from .tools import CommandRunner, HelmClient, SkopeoClient, find_tool
from .versioning import resolve_bundle_version

logger = logging.getLogger(__name__)

SKOPEO_HINT = "Install skopeo (https://github.com/containers/skopeo) to copy images."


def make_deps(settings: BuilderSettings, which: Optional[Callable[[str], Optional[str]]] = None) -> BuilderDeps:
    """Create real tool clients.

    skopeo is mandatory; without helm only chart packaging is skipped.

    Raises:
        ToolMissingError: If skopeo is not installed
    """
    which = which or find_tool
    if which(settings.skopeo_bin) is None:
        raise ToolMissingError(settings.skopeo_bin, SKOPEO_HINT)

    runner = CommandRunner(timeout=settings.command_timeout)
    copier = SkopeoClient(
        runner=runner,
        binary=settings.skopeo_bin,
        platform_os=settings.platform_os,
        platform_arch=settings.platform_arch,
    )

    puller = None
    if which(settings.helm_bin) is not None:
        puller = HelmClient(runner=runner, binary=settings.helm_bin)
    else:
        logger.warning("%s not found on PATH; Helm charts will be skipped", settings.helm_bin)

    return BuilderDeps(image_copier=copier, chart_puller=puller)


@contextlib.contextmanager
def workspace_lock(output_dir: Path) -> Iterator[None]:
    """Hold an exclusive lock on ``output_dir`` for the duration of a run.

    Raises:
        WorkspaceLockedError: If another run holds it
    """
    lock_path = output_dir / LOCK_FILE
    try:
        lock = portalocker.Lock(str(lock_path), "w", timeout=1, fail_when_locked=True)
        lock.acquire()
    except portalocker.LockException as e:
        raise WorkspaceLockedError(str(output_dir)) from e
    try:
        yield
    finally:
        lock.release()


def find_leftover_staging(output_dir: Path) -> List[Path]:
    """Staging directories still on disk (from failed or interrupted builds)."""
    if not output_dir.is_dir():
        return []
    suffix = staging_dir_name("")
    return sorted(p for p in output_dir.iterdir() if p.is_dir() and p.name.endswith(suffix))


def write_instructions(output_dir: Path, catalogs: Sequence[AddonCatalog], bundle_version: str) -> Optional[Path]:
    path = output_dir / INSTRUCTIONS_FILE
    try:
        path.write_text(create_instructions(catalogs, bundle_version))
    except OSError as e:
        logger.error("Could not write %s: %s", path, e)
        return None
    return path


def run_build(
    catalogs: Sequence[AddonCatalog],
    settings: BuilderSettings,
    deps: Optional[BuilderDeps] = None,
    all_catalogs: Optional[Sequence[AddonCatalog]] = None,
) -> RunSummary:
    """Build the selected addons one after another.

    Preconditions (tools, version) are checked before anything is written.
    A failure inside one addon is recorded on its report and the next addon
    is still attempted.

    Args:
        catalogs: Addons to build, in order
        settings: Builder settings
        deps: Tool clients (created from settings when None)
        all_catalogs: Addons described in the operator guide (defaults to catalogs)

    Raises:
        ToolMissingError: If skopeo is missing
        ConfigError: If the bundle version is unusable
        WorkspaceLockedError: If another run is using the output directory
    """
    if deps is None:
        deps = make_deps(settings)
    bundle_version = resolve_bundle_version(settings.bundle_version, now=deps.now)

    output_dir = Path(settings.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    summary = RunSummary(bundle_version=bundle_version)

    with workspace_lock(output_dir):
        builder = BundleBuilder(output_dir, bundle_version, deps, create_latest=settings.create_latest)
        for catalog in catalogs:
            try:
                report = builder.build(catalog)
            except Exception as e:
                # Nothing escapes an addon build; the next addon still runs
                logger.error("Building %s failed: %s: %s", catalog.name, type(e).__name__, e)
                report = BuildReport(
                    addon=catalog.name,
                    bundle_version=bundle_version,
                    staging_dir=builder.staging_dir(catalog),
                    error=f"{type(e).__name__}: {e}",
                )
            summary.reports.append(report)

        summary.instructions = write_instructions(output_dir, all_catalogs or catalogs, bundle_version)
        summary.leftover_staging = find_leftover_staging(output_dir)

    return summary
