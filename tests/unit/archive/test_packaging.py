"""Unit tests for tar packaging and extraction."""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from archive.compression import get_codec
from archive.packaging import build_archive, extract_archive, iter_archive_members
from core.errors import (
    ArchivistConfigError,
    ArchivistCorruptArchiveError,
    ArchivistNotFoundError,
)


def _create_source_tree(root: Path) -> Path:
    source_dir = root / "source"
    (source_dir / "subDir").mkdir(parents=True)
    (source_dir / "empty").mkdir()
    (source_dir / "test1").write_text("test1content", encoding="utf-8")
    (source_dir / "subDir" / "test2").write_text("test2content", encoding="utf-8")
    return source_dir


def _relative_files(root: Path) -> dict[str, bytes]:
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in root.rglob("*")
        if path.is_file()
    }


def _pack(source_dir: Path, mode: str, **filters: tuple[str, ...]) -> bytes:
    sink = io.BytesIO()
    build_archive(source_dir, sink, get_codec(mode), **filters)
    return sink.getvalue()


def test_iter_members_without_filters_includes_everything(tmp_path) -> None:
    """Unfiltered packaging should list every directory and file."""
    source_dir = _create_source_tree(tmp_path)

    names = [name for _, name in iter_archive_members(source_dir)]

    assert names == ["test1", "empty", "subDir", "subDir/test2"]


def test_iter_members_with_file_filter(tmp_path) -> None:
    """File filters should select matching file names only."""
    source_dir = _create_source_tree(tmp_path)

    names = [name for _, name in iter_archive_members(source_dir, include_files=("test1",))]

    assert names == ["test1"]


def test_iter_members_with_absolute_parent_dir_filter(tmp_path) -> None:
    """Absolute parent directories should select their direct files."""
    source_dir = _create_source_tree(tmp_path)
    parent_dirs = (str(source_dir / "subDir"),)

    names = [
        name for _, name in iter_archive_members(source_dir, include_parent_dirs=parent_dirs)
    ]

    assert names == ["subDir/test2"]


def test_iter_members_with_relative_parent_dir_and_file_filter(tmp_path) -> None:
    """File and relative parent filters should combine as a union."""
    source_dir = _create_source_tree(tmp_path)

    members = iter_archive_members(
        source_dir,
        include_files=("test1",),
        include_parent_dirs=("subDir/",),
    )

    assert [name for _, name in members] == ["test1", "subDir/test2"]


@pytest.mark.parametrize("mode", ["gzip", "lz4"])
def test_build_then_extract_reproduces_tree(tmp_path, mode: str) -> None:
    """Extracting a built archive should mirror the source directory."""
    source_dir = _create_source_tree(tmp_path)
    payload = _pack(source_dir, mode)
    destination = tmp_path / "restored"

    extract_archive(io.BytesIO(payload), destination, get_codec(mode))

    assert _relative_files(destination) == _relative_files(source_dir)
    assert (destination / "empty").is_dir()


def test_extract_empty_archive_creates_destination(tmp_path) -> None:
    """An archive of an empty directory should extract to an empty directory."""
    source_dir = tmp_path / "empty-source"
    source_dir.mkdir()
    payload = _pack(source_dir, "gzip")
    destination = tmp_path / "restored"

    extract_archive(io.BytesIO(payload), destination, get_codec("gzip"))

    assert destination.is_dir() and not any(destination.iterdir())


def test_build_archive_requires_existing_source(tmp_path) -> None:
    """Packaging a missing directory should raise not-found."""
    with pytest.raises(ArchivistNotFoundError):
        build_archive(tmp_path / "missing", io.BytesIO(), get_codec("gzip"))


@pytest.mark.parametrize("mode", ["gzip", "lz4"])
def test_extract_rejects_garbage(tmp_path, mode: str) -> None:
    """Undecodable input should raise a corrupt-archive error."""
    with pytest.raises(ArchivistCorruptArchiveError):
        extract_archive(io.BytesIO(b"definitely not an archive"), tmp_path / "out", get_codec(mode))


def test_extract_rejects_truncated_archive(tmp_path) -> None:
    """A truncated stream should raise a corrupt-archive error."""
    source_dir = _create_source_tree(tmp_path)
    payload = _pack(source_dir, "gzip")

    with pytest.raises(ArchivistCorruptArchiveError):
        extract_archive(io.BytesIO(payload[: len(payload) // 2]), tmp_path / "out", get_codec("gzip"))


def test_extract_rejects_mismatched_codec(tmp_path) -> None:
    """Reading a GZIP archive with the LZ4 codec should fail as corrupt."""
    source_dir = _create_source_tree(tmp_path)
    payload = _pack(source_dir, "gzip")

    with pytest.raises(ArchivistCorruptArchiveError):
        extract_archive(io.BytesIO(payload), tmp_path / "out", get_codec("lz4"))


@pytest.mark.parametrize(
    ("link_name", "target"),
    [("abs_link", None), ("rel_link", "../outside.txt"), ("subDir/deep_link", "../../outside.txt")],
)
def test_build_archive_rejects_links_leaving_source(tmp_path, link_name: str, target: str | None) -> None:
    """Links that extraction would refuse should fail packaging up front."""
    source_dir = _create_source_tree(tmp_path)
    outside = tmp_path / "outside.txt"
    outside.write_text("outside", encoding="utf-8")
    (source_dir / link_name).symlink_to(target if target is not None else outside)
    sink = io.BytesIO()

    with pytest.raises(ArchivistConfigError):
        build_archive(source_dir, sink, get_codec("gzip"))

    assert sink.getvalue() == b""


def test_build_archive_keeps_links_inside_source(tmp_path) -> None:
    """Relative links that stay inside the tree should round trip as links."""
    source_dir = _create_source_tree(tmp_path)
    (source_dir / "subDir" / "alias").symlink_to("../test1")
    payload = _pack(source_dir, "gzip")
    destination = tmp_path / "restored"

    extract_archive(io.BytesIO(payload), destination, get_codec("gzip"))

    alias = destination / "subDir" / "alias"
    assert alias.is_symlink()
    assert alias.read_text(encoding="utf-8") == "test1content"
