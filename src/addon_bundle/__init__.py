"""Addon bundle builder for airgapped Kubernetes environments."""

from .constants import TOOL_VERSION as __version__

__all__ = ["__version__"]
