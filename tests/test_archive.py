"""Tests for tar creation, copying and extraction."""

import io
import tarfile

import pytest

from addon_bundle import archive as archive_mod
from addon_bundle.archive import copy_file, create_tar, extract_tar, single_root
from addon_bundle.errors import ArchiveError


@pytest.fixture
def tree(tmp_path):
    root = tmp_path / "src"
    (root / "sub").mkdir(parents=True)
    (root / "a.txt").write_text("a")
    (root / "sub" / "b.txt").write_text("b")
    return root


def test_create_tar_uses_arcname(tmp_path, tree):
    dest = create_tar(tree, tmp_path / "out.tar", arcname="renamed")
    with tarfile.open(dest) as tar:
        assert set(tar.getnames()) == {"renamed", "renamed/a.txt", "renamed/sub", "renamed/sub/b.txt"}


def test_create_compressed_tar(tmp_path, tree):
    dest = create_tar(tree, tmp_path / "out.tar.gz", compress=True)
    assert dest.read_bytes()[:2] == b"\x1f\x8b"
    extracted = extract_tar(dest, tmp_path / "x")
    assert (single_root(extracted) / "sub" / "b.txt").read_text() == "b"


def test_create_tar_missing_source(tmp_path):
    with pytest.raises(ArchiveError, match="not a directory"):
        create_tar(tmp_path / "nope", tmp_path / "out.tar")


def test_failed_write_leaves_nothing(tmp_path, tree, monkeypatch):
    def broken_open(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(archive_mod.tarfile, "open", broken_open)
    with pytest.raises(ArchiveError, match="disk full"):
        create_tar(tree, tmp_path / "out" / "bundle.tar.gz", compress=True)
    assert list((tmp_path / "out").iterdir()) == []


def test_copy_file_is_physical(tmp_path):
    src = tmp_path / "a.tar.gz"
    src.write_bytes(b"payload")
    dest = copy_file(src, tmp_path / "b.tar.gz")

    assert dest.read_bytes() == b"payload"
    assert not dest.is_symlink()
    assert dest.stat().st_ino != src.stat().st_ino


def test_copy_file_replaces_existing(tmp_path):
    src = tmp_path / "a"
    src.write_bytes(b"new")
    dest = tmp_path / "b"
    dest.write_bytes(b"old")
    copy_file(src, dest)
    assert dest.read_bytes() == b"new"


def test_extract_refuses_escaping_members(tmp_path):
    evil = tmp_path / "evil.tar"
    with tarfile.open(evil, "w") as tar:
        data = b"x"
        info = tarfile.TarInfo("../escaped.txt")
        info.size = len(data)
        tar.addfile(info, io.BytesIO(data))

    with pytest.raises(ArchiveError):
        extract_tar(evil, tmp_path / "dest")
    assert not (tmp_path / "escaped.txt").exists()


def test_extract_garbage(tmp_path):
    junk = tmp_path / "junk.tar.gz"
    junk.write_bytes(b"not a tar")
    with pytest.raises(ArchiveError):
        extract_tar(junk, tmp_path / "dest")


def test_single_root_requires_one_directory(tmp_path):
    (tmp_path / "a").mkdir()
    (tmp_path / "b").mkdir()
    with pytest.raises(ArchiveError, match="single top-level directory"):
        single_root(tmp_path)
