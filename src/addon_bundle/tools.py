"""Adapters for the external tools that do the actual transfers.

The builder only depends on the ``ImageCopier`` and ``ChartPuller``
protocols; ``SkopeoClient`` and ``HelmClient`` are the real implementations
and tests substitute fakes.
"""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from .constants import DEFAULT_PLATFORM_ARCH, DEFAULT_PLATFORM_OS, HELM, SKOPEO
from .errors import ToolCommandError, ToolMissingError

logger = logging.getLogger(__name__)


class ImageCopier(Protocol):
    """Copies a registry image into a local OCI layout directory."""

    def copy_image(self, source_ref: str, layout_dir: Path) -> None:
        ...


class ChartPuller(Protocol):
    """Fetches a packaged chart from a chart repository."""

    def add_repo(self, name: str, url: str) -> None:
        ...

    def update_repo(self, name: str) -> None:
        ...

    def pull_chart(self, reference: str, version: str, dest_dir: Path) -> Path:
        ...


def find_tool(name: str) -> Optional[str]:
    """Absolute path of an executable on PATH, or None."""
    return shutil.which(name)


class CommandRunner:
    """Runs external commands synchronously.

    Output is captured; on failure the last stderr line ends up in the
    raised ToolCommandError so callers can log a one-line reason.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def run(self, command: Sequence[str], cwd: Optional[Path] = None) -> str:
        """Run a command and return its stdout.

        Raises:
            ToolMissingError: If the executable does not exist
            ToolCommandError: If it exits non-zero or times out
        """
        logger.debug("Running: %s", " ".join(command))
        try:
            result = subprocess.run(
                list(command),
                capture_output=True,
                text=True,
                cwd=str(cwd) if cwd else None,
                timeout=self.timeout,
                check=False,  # Handle errors manually for better diagnostics
            )
        except FileNotFoundError as e:
            raise ToolMissingError(command[0]) from e
        except subprocess.TimeoutExpired as e:
            stderr = e.stderr if isinstance(e.stderr, str) else ""
            raise ToolCommandError(command, None, stderr) from e

        if result.returncode != 0:
            raise ToolCommandError(command, result.returncode, result.stderr or result.stdout)
        return result.stdout


class SkopeoClient:
    """ImageCopier backed by ``skopeo copy``."""

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        binary: str = SKOPEO,
        platform_os: str = DEFAULT_PLATFORM_OS,
        platform_arch: str = DEFAULT_PLATFORM_ARCH,
    ):
        self.runner = runner or CommandRunner()
        self.binary = binary
        self.platform_os = platform_os
        self.platform_arch = platform_arch

    def copy_command(self, source_ref: str, layout_dir: Path) -> List[str]:
        return [
            self.binary, "copy",
            "--override-os", self.platform_os,
            "--override-arch", self.platform_arch,
            f"docker://{source_ref}",
            f"oci:{layout_dir}:latest",
        ]

    def copy_image(self, source_ref: str, layout_dir: Path) -> None:
        self.runner.run(self.copy_command(source_ref, layout_dir))


class HelmClient:
    """ChartPuller backed by the helm CLI."""

    def __init__(self, runner: Optional[CommandRunner] = None, binary: str = HELM):
        self.runner = runner or CommandRunner()
        self.binary = binary

    def add_repo(self, name: str, url: str) -> None:
        # --force-update makes re-adding an existing alias a no-op
        self.runner.run([self.binary, "repo", "add", "--force-update", name, url])

    def update_repo(self, name: str) -> None:
        self.runner.run([self.binary, "repo", "update", name])

    def pull_chart(self, reference: str, version: str, dest_dir: Path) -> Path:
        """Pull ``repo/chart`` at an exact version into ``dest_dir``.

        Returns:
            Path to the downloaded .tgz
        """
        dest_dir.mkdir(parents=True, exist_ok=True)
        self.runner.run([
            self.binary, "pull", reference,
            "--version", version,
            "--destination", str(dest_dir),
        ])
        packages = sorted(dest_dir.glob("*.tgz"))
        if len(packages) != 1:
            raise ToolCommandError(
                [self.binary, "pull", reference], 0,
                f"expected one chart package in {dest_dir}, found {len(packages)}",
            )
        return packages[0]
