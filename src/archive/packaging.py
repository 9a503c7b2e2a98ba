"""Tar packaging for resource directories.

This module builds compressed tar archives from a directory and extracts
them back. Member names are relative to the packaged directory, so an
extracted archive mirrors the source tree.
"""

from __future__ import annotations

import gzip
import os
import posixpath
from pathlib import Path, PurePosixPath
import tarfile
from typing import BinaryIO, Iterator, Sequence
import zlib

from archive.compression import CompressionCodec
from core.errors import (
    ArchivistConfigError,
    ArchivistCorruptArchiveError,
    ArchivistNotFoundError,
    ArchivistTransientIOError,
)
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


def build_archive(
    source_dir: Path,
    output: BinaryIO,
    codec: CompressionCodec,
    include_files: Sequence[str] = (),
    include_parent_dirs: Sequence[str] = (),
) -> int:
    """Write a compressed tar archive of a directory.

    Args:
        source_dir: Directory to package.
        output: Binary sink receiving compressed bytes.
        codec: Compression codec.
        include_files: File names or relative paths to include.
        include_parent_dirs: Directories whose direct files are included.

    Returns:
        Number of archive members written.

    Raises:
        ArchivistConfigError: If a symlink points outside source_dir.
        ArchivistNotFoundError: If source_dir is not a directory.
        ArchivistTransientIOError: If reading or writing fails.
    """
    if not source_dir.is_dir():
        raise ArchivistNotFoundError(
            f"Source directory {source_dir} does not exist. "
            "Provide an existing directory to upload."
        )
    members = list(iter_archive_members(source_dir, include_files, include_parent_dirs))
    for local_path, arcname in members:
        _check_link_stays_inside(local_path, arcname)
    member_count = 0
    try:
        with codec.open_writer(output) as compressed:
            with tarfile.open(fileobj=compressed, mode="w|") as archive:
                for local_path, arcname in members:
                    archive.add(local_path, arcname=arcname, recursive=False)
                    member_count += 1
    except (OSError, tarfile.TarError) as error:
        raise ArchivistTransientIOError(
            f"Failed to package {source_dir}: {error}. Check file permissions and disk space."
        ) from error
    _LOGGER.debug(
        "archive_built",
        source_dir=str(source_dir),
        compression_mode=codec.mode,
        member_count=member_count,
    )
    return member_count


def extract_archive(compressed: BinaryIO, destination: Path, codec: CompressionCodec) -> None:
    """Extract a compressed tar stream into a new directory.

    Args:
        compressed: Readable compressed byte stream.
        destination: Directory to create and fill; must not exist yet.
        codec: Compression codec matching the stream.

    Raises:
        ArchivistCorruptArchiveError: If decompression or tar decoding fails.
        ArchivistTransientIOError: If reading the stream or writing files fails.
    """
    try:
        destination.mkdir(parents=True)
        with codec.open_reader(compressed) as stream:
            with tarfile.open(fileobj=stream, mode="r|") as archive:
                archive.extractall(destination, filter="data")
    except (tarfile.TarError, gzip.BadGzipFile, zlib.error, EOFError, RuntimeError) as error:
        raise ArchivistCorruptArchiveError(
            f"Failed to decode {codec.mode} archive into {destination}: {error}. "
            "Re-upload the resource if the blob is damaged."
        ) from error
    except OSError as error:
        raise ArchivistTransientIOError(
            f"Failed to extract archive into {destination}: {error}. Retry the download."
        ) from error


def iter_archive_members(
    source_dir: Path,
    include_files: Sequence[str] = (),
    include_parent_dirs: Sequence[str] = (),
) -> Iterator[tuple[Path, str]]:
    """Yield ``(local path, member name)`` pairs in archive order.

    Without filters every directory and file is included. With filters,
    a file is included when its base name or relative path is listed in
    ``include_files``, or its direct parent is listed in
    ``include_parent_dirs`` (absolute or relative to ``source_dir``).
    """
    include_all = not include_files and not include_parent_dirs
    wanted_files = set(include_files)
    wanted_parents = _normalize_parent_dirs(source_dir, include_parent_dirs)
    for current, dirnames, filenames in os.walk(source_dir):
        dirnames.sort()
        current_dir = Path(current)
        if include_all and current_dir != source_dir:
            yield current_dir, current_dir.relative_to(source_dir).as_posix()
        linked_dirs = [name for name in dirnames if (current_dir / name).is_symlink()]
        for name in sorted(filenames + linked_dirs):
            local_path = current_dir / name
            relative = PurePosixPath(local_path.relative_to(source_dir).as_posix())
            if include_all or _is_wanted(relative, wanted_files, wanted_parents):
                yield local_path, relative.as_posix()


def _is_wanted(relative: PurePosixPath, wanted_files: set[str], wanted_parents: set[str]) -> bool:
    if relative.name in wanted_files or relative.as_posix() in wanted_files:
        return True
    return relative.parent.as_posix() in wanted_parents


def _normalize_parent_dirs(source_dir: Path, include_parent_dirs: Sequence[str]) -> set[str]:
    """Convert parent directory filters into posix paths relative to source_dir."""
    normalized: set[str] = set()
    for raw_dir in include_parent_dirs:
        candidate = Path(raw_dir)
        if not candidate.is_absolute():
            normalized.add(PurePosixPath(candidate.as_posix()).as_posix())
            continue
        for base in (source_dir, source_dir.resolve()):
            try:
                normalized.add(candidate.relative_to(base).as_posix())
                break
            except ValueError:
                continue
        else:
            _LOGGER.warning(
                "include_dir_outside_source",
                source_dir=str(source_dir),
                include_dir=raw_dir,
            )
    return normalized


def _check_link_stays_inside(local_path: Path, arcname: str) -> None:
    """Reject symlinks that extraction would refuse to recreate.

    Absolute targets and relative targets climbing above the archive root
    are rejected so a published archive always extracts.
    """
    if not local_path.is_symlink():
        return
    try:
        target = os.readlink(local_path)
    except OSError as error:
        raise ArchivistTransientIOError(
            f"Failed to read symlink {local_path}: {error}. Check file permissions."
        ) from error
    resolved = posixpath.normpath(posixpath.join(posixpath.dirname(arcname), target))
    if os.path.isabs(target) or resolved == ".." or resolved.startswith("../"):
        raise ArchivistConfigError(
            f"Symlink {local_path} -> {target} points outside the packaged directory. "
            "Replace it with a relative link inside the directory or a regular file."
        )
