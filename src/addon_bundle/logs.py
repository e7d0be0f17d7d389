"""Tagged log output for build runs.

Log lines look like ``[INFO] Pulling docker.io/busybox:stable...`` so that
operators scanning a long run can grep for ``[ERROR]`` or ``[WARN]``.
"""

import logging
import sys
from typing import Optional, TextIO

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

_TAGS = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    SUCCESS: "SUCCESS",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "ERROR",
}

_HANDLER_NAME = "addon-bundle"


class TagFormatter(logging.Formatter):
    """Prefix each message with its bracketed level tag."""

    def format(self, record: logging.LogRecord) -> str:
        tag = _TAGS.get(record.levelno, record.levelname)
        return f"[{tag}] {super().format(record)}"


def success(logger: logging.Logger, msg: str, *args) -> None:
    """Log at SUCCESS level."""
    logger.log(SUCCESS, msg, *args)


def configure_logging(verbose: bool = False, stream: Optional[TextIO] = None) -> None:
    """Install the tagged handler on the package logger.

    Safe to call multiple times; the previous handler is replaced.
    """
    pkg_logger = logging.getLogger("addon_bundle")
    pkg_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    for handler in list(pkg_logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            pkg_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(TagFormatter("%(message)s"))
    pkg_logger.addHandler(handler)
