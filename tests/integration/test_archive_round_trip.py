"""Integration tests for publish and restore workflows."""

from __future__ import annotations

from dataclasses import replace
import os

import pytest

from archive.archiver import Archiver
from core.config import ArchivistConfig


@pytest.mark.parametrize("mode", ["gzip", "lz4"])
def test_publish_roll_forward_and_roll_back(tmp_path, mode: str) -> None:
    """End-to-end flow should publish versions and switch between them."""
    config = replace(
        ArchivistConfig.from_env(),
        archive_root=tmp_path / "archive",
        local_store_root=tmp_path / "blobs",
        backend="local",
        compression_mode=mode,
        path_prefix=None,
    )
    archiver = Archiver.from_config(config)
    source_dir = tmp_path / "model"
    (source_dir / "weights").mkdir(parents=True)
    (source_dir / "weights" / "layer.bin").write_bytes(b"\x00\x01" * 512)
    (source_dir / "config.json").write_text('{"v": 1}', encoding="utf-8")

    first = archiver.upload("ranker", "model", source_dir)
    (source_dir / "config.json").write_text('{"v": 2}', encoding="utf-8")
    second = archiver.upload("ranker", "model", source_dir)

    current_link = archiver.download("ranker", "model")
    assert os.readlink(current_link) == second
    assert (current_link / "config.json").read_text(encoding="utf-8") == '{"v": 2}'

    archiver.download("ranker", "model", generation=first)
    assert (current_link / "config.json").read_text(encoding="utf-8") == '{"v": 1}'
    assert (current_link / "weights" / "layer.bin").read_bytes() == b"\x00\x01" * 512
    assert archiver.local_versions("ranker", "model") == [first]
    assert [version.generation for version in archiver.list_versions("ranker", "model")] == [
        first,
        second,
    ]
