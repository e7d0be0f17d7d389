"""Custom exceptions for addon-bundle.

Errors are grouped by how far they are allowed to travel: tool and fetch
errors are recovered per item, archive errors end a single addon build,
and configuration errors stop the run before any work starts.
"""

from typing import Optional, Sequence


class AddonBundleError(RuntimeError):
    """Base class for all addon-bundle errors."""
    pass


# External Tool Errors
class ToolError(AddonBundleError):
    """Base class for external tool errors."""
    pass


class ToolMissingError(ToolError):
    """Required executable is not on PATH."""

    def __init__(self, tool: str, hint: Optional[str] = None):
        self.tool = tool
        message = f"'{tool}' is required but was not found on PATH."
        if hint:
            message += f" {hint}"
        super().__init__(message)


class ToolCommandError(ToolError):
    """External command exited non-zero or timed out."""

    def __init__(self, command: Sequence[str], returncode: Optional[int], stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr.strip()
        if returncode is None:
            summary = f"'{' '.join(self.command[:2])}' timed out"
        else:
            summary = f"'{' '.join(self.command[:2])}' exited with status {returncode}"
        if self.stderr:
            # Last line of stderr usually carries the actual reason
            summary += f": {self.stderr.splitlines()[-1]}"
        super().__init__(summary)


# Fetch Errors
class FetchError(AddonBundleError):
    """Base class for artifact fetch errors."""
    pass


class ImageFetchError(FetchError):
    """Image could not be copied or wrapped."""

    def __init__(self, source_ref: str, reason: str):
        self.source_ref = source_ref
        self.reason = reason
        super().__init__(f"Failed to fetch image {source_ref}: {reason}")


class ChartFetchError(FetchError):
    """Chart could not be pulled or converted."""

    def __init__(self, chart: str, version: str, reason: str):
        self.chart = chart
        self.version = version
        self.reason = reason
        super().__init__(f"Failed to package chart {chart}:{version}: {reason}")


# Format Errors
class LayoutError(AddonBundleError):
    """Directory is not a valid OCI image layout."""

    def __init__(self, path: str, problems: Sequence[str]):
        self.path = path
        self.problems = list(problems)
        super().__init__(f"Invalid OCI layout at {path}: " + "; ".join(self.problems))


class ArchiveError(AddonBundleError):
    """Bundle archive could not be created."""
    pass


# Configuration Errors
class ConfigError(AddonBundleError):
    """Invalid settings."""
    pass


class CatalogError(ConfigError):
    """Invalid addon catalog."""
    pass


class UnknownAddonError(CatalogError):
    """Selection does not name a known addon."""

    def __init__(self, selection: str, known: Sequence[str]):
        self.selection = selection
        super().__init__(
            f"Unknown addon selection '{selection}'. "
            f"Choose a menu number or one of: {', '.join(known)}, all"
        )


class WorkspaceLockedError(AddonBundleError):
    """Another run is using the same output directory."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"Output directory {path} is locked by another addon-bundle run. "
            f"Wait for it to finish or use a different --output-dir."
        )
