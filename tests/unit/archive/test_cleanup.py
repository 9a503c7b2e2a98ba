"""Unit tests for stale version cleanup."""

from __future__ import annotations

import os
import shutil
from pathlib import Path

import pytest

from archive.cleanup import cleanup_stale_versions, is_generation_token, is_stale_version_entry


def _make_version(resource_dir: Path, generation: str) -> Path:
    version_dir = resource_dir / generation
    version_dir.mkdir(parents=True)
    (version_dir / "payload").write_text(generation, encoding="utf-8")
    return version_dir


@pytest.mark.parametrize("name", ["424242", "00ff", "DEADbeef", "0"])
def test_is_generation_token_accepts_hex_and_decimal(name: str) -> None:
    """Hex and decimal names should count as generation tokens."""
    assert is_generation_token(name)


@pytest.mark.parametrize("name", ["", "current", "notes", "1234.tmp", "12-34", "../12"])
def test_is_generation_token_rejects_other_names(name: str) -> None:
    """Anything outside hex digits should not count as a generation token."""
    assert not is_generation_token(name)


def test_is_stale_version_entry_skips_active_generation(tmp_path) -> None:
    """The active generation directory is never stale."""
    version_dir = _make_version(tmp_path, "42")

    assert not is_stale_version_entry(version_dir, "42")


def test_is_stale_version_entry_skips_plain_files(tmp_path) -> None:
    """Files named like generations are not stale directories."""
    stray_file = tmp_path / "41"
    stray_file.write_text("x", encoding="utf-8")

    assert not is_stale_version_entry(stray_file, "42")


def test_is_stale_version_entry_skips_symlinked_directories(tmp_path) -> None:
    """Symlinks are preserved even when they point at a directory."""
    target = _make_version(tmp_path, "42")
    link = tmp_path / "41"
    os.symlink(target.name, link, target_is_directory=True)

    assert not is_stale_version_entry(link, "42")


def test_cleanup_keeps_only_active_generation_and_current(tmp_path) -> None:
    """Cleanup should remove superseded generation directories."""
    for generation in ("40", "41", "42"):
        _make_version(tmp_path, generation)
    os.symlink("42", tmp_path / "current", target_is_directory=True)

    removed = cleanup_stale_versions(tmp_path, "42")

    assert sorted(path.name for path in removed) == ["40", "41"]
    assert sorted(entry.name for entry in tmp_path.iterdir()) == ["42", "current"]


def test_cleanup_preserves_unrelated_entries(tmp_path) -> None:
    """Entries not named like generations should survive cleanup."""
    _make_version(tmp_path, "42")
    (tmp_path / "notes").mkdir()
    (tmp_path / "abc123.tmp").mkdir()
    (tmp_path / "readme.txt").write_text("keep", encoding="utf-8")

    cleanup_stale_versions(tmp_path, "42")

    assert sorted(entry.name for entry in tmp_path.iterdir()) == [
        "42",
        "abc123.tmp",
        "notes",
        "readme.txt",
    ]


def test_cleanup_continues_after_deletion_failure(tmp_path, monkeypatch) -> None:
    """A failing deletion should be logged and skipped, not raised."""
    _make_version(tmp_path, "40")
    _make_version(tmp_path, "41")
    _make_version(tmp_path, "42")
    real_rmtree = shutil.rmtree

    def _flaky_rmtree(path, *args, **kwargs):
        if Path(path).name == "40":
            raise PermissionError("locked")
        return real_rmtree(path, *args, **kwargs)

    monkeypatch.setattr("archive.cleanup.shutil.rmtree", _flaky_rmtree)

    removed = cleanup_stale_versions(tmp_path, "42")

    assert [path.name for path in removed] == ["41"] and (tmp_path / "40").exists()


def test_cleanup_of_missing_directory_returns_nothing(tmp_path) -> None:
    """Cleanup of an absent resource directory should be a no-op."""
    assert cleanup_stale_versions(tmp_path / "missing", "42") == []
