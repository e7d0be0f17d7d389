"""Hashing utilities for OCI blobs.

Digests use the OCI form ``sha256:<64 hex>``.
"""

from pathlib import Path
from typing import BinaryIO, Tuple
import hashlib

CHUNK_SIZE = 1024 * 1024


def compute_file_digest(path: Path) -> str:
    """Compute SHA256 hash of file contents.

    Args:
        path: Path to file to hash

    Returns:
        SHA256 digest in format "sha256:xxxx"
    """
    sha256 = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            sha256.update(chunk)
    return f"sha256:{sha256.hexdigest()}"


def copy_with_digest(src: BinaryIO, dst: BinaryIO) -> Tuple[str, int]:
    """Copy a stream while hashing it.

    The digest and size describe exactly the bytes written to ``dst``.

    Returns:
        (digest, size) with digest in format "sha256:xxxx"
    """
    sha256 = hashlib.sha256()
    size = 0
    for chunk in iter(lambda: src.read(CHUNK_SIZE), b""):
        sha256.update(chunk)
        dst.write(chunk)
        size += len(chunk)
    return f"sha256:{sha256.hexdigest()}", size


def split_digest(digest: str) -> Tuple[str, str]:
    """Split ``sha256:abc`` into ``("sha256", "abc")``.

    Raises:
        ValueError: If the digest is not a well-formed sha256 digest
    """
    algorithm, sep, hex_part = digest.partition(":")
    if not sep or algorithm != "sha256":
        raise ValueError(f"Unsupported digest: {digest!r}")
    if len(hex_part) != 64 or any(c not in "0123456789abcdef" for c in hex_part):
        raise ValueError(f"Invalid sha256 hex: {hex_part!r}")
    return algorithm, hex_part
