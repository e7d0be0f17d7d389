"""Tar creation, copying and extraction.

Every file is written to a hidden ``.<name>.partial-*`` sibling and renamed
into place only when complete, so an interrupted or failed write never
leaves a file under its final name.
"""

import logging
import os
import shutil
import tarfile
import tempfile
from pathlib import Path
from typing import Callable, Optional

from .errors import ArchiveError

logger = logging.getLogger(__name__)


def _atomic_write(write_fn: Callable[[str], None], final_path: Path) -> None:
    """Run ``write_fn(tmppath)`` and move the result to ``final_path``.

    Raises:
        Exception: Whatever ``write_fn`` raised; the temp file is removed
    """
    final_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmppath = tempfile.mkstemp(prefix=f".{final_path.name}.partial-", dir=final_path.parent)
    os.close(fd)
    try:
        write_fn(tmppath)
        os.replace(tmppath, final_path)
    except BaseException:
        try:
            os.unlink(tmppath)
        except OSError:
            pass
        raise


def create_tar(src_dir: Path, dest: Path, arcname: Optional[str] = None, compress: bool = False) -> Path:
    """Archive a directory tree.

    Args:
        src_dir: Directory to archive
        dest: Output file (.tar or .tar.gz)
        arcname: Name of the top-level member (defaults to src_dir's name)
        compress: gzip the archive

    Returns:
        dest

    Raises:
        ArchiveError: If the directory is missing or the tar cannot be written
    """
    if not src_dir.is_dir():
        raise ArchiveError(f"Cannot archive {src_dir}: not a directory")

    mode = "w:gz" if compress else "w"
    root_name = arcname or src_dir.name

    def _write(tmppath: str) -> None:
        with tarfile.open(tmppath, mode) as tar:
            tar.add(str(src_dir), arcname=root_name)

    try:
        _atomic_write(_write, dest)
    except (OSError, tarfile.TarError) as e:
        raise ArchiveError(f"Failed to write {dest}: {e}") from e

    logger.debug("Archived %s -> %s", src_dir, dest)
    return dest


def copy_file(src: Path, dest: Path) -> Path:
    """Physical copy (never a link) written atomically.

    Raises:
        ArchiveError: If the copy fails
    """
    try:
        _atomic_write(lambda tmppath: shutil.copyfile(src, tmppath), dest)
    except OSError as e:
        raise ArchiveError(f"Failed to copy {src} to {dest}: {e}") from e
    return dest


def extract_tar(archive: Path, dest: Path) -> Path:
    """Extract an archive, refusing members that escape ``dest``.

    Raises:
        ArchiveError: If the archive is unreadable or unsafe
    """
    dest.mkdir(parents=True, exist_ok=True)
    try:
        with tarfile.open(archive, "r:*") as tar:
            tar.extractall(dest, filter="data")
    except (OSError, tarfile.TarError) as e:
        raise ArchiveError(f"Failed to extract {archive}: {e}") from e
    return dest


def single_root(directory: Path) -> Path:
    """Return the only top-level directory inside ``directory``.

    Raises:
        ArchiveError: If there is not exactly one
    """
    entries = [p for p in directory.iterdir()]
    dirs = [p for p in entries if p.is_dir()]
    if len(entries) != 1 or len(dirs) != 1:
        names = ", ".join(sorted(p.name for p in entries)) or "(empty)"
        raise ArchiveError(f"Expected a single top-level directory, found: {names}")
    return dirs[0]


def remove_tree(path: Path) -> None:
    """Remove a directory tree if present."""
    if path.exists():
        shutil.rmtree(path)
