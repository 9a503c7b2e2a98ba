"""Local filesystem version store.

This module simulates a generation-addressed blob backend on disk.
It backs tests and single-host setups without object storage.

Layout::

    <root>/<bucket>/<blob path>/<generation>

Generations are decimal integers, strictly increasing per blob.
"""

from __future__ import annotations

from contextlib import contextmanager
import os
from pathlib import Path, PurePosixPath
import shutil
import time
from types import TracebackType
from typing import BinaryIO, Callable, Iterator
import uuid

from core.errors import (
    ArchivistConfigError,
    ArchivistNotFoundError,
    ArchivistStaleStateError,
    ArchivistTransientIOError,
)
from core.logging_config import get_logger
from store.version_store import BlobId, BlobMetadata

_LOGGER = get_logger(__name__)
_PARTIAL_PREFIX = ".partial-"


class LocalVersionStore:
    """Filesystem-backed version store."""

    def __init__(self, root: Path, generation_clock: Callable[[], int] = time.time_ns) -> None:
        """Create a store rooted at a directory.

        Args:
            root: Directory holding one subdirectory per bucket.
            generation_clock: Source of candidate generation numbers.
        """
        self._root = root
        self._generation_clock = generation_clock

    def get(self, blob_id: BlobId, generation: str | None = None) -> BlobMetadata:
        """Return metadata for the latest or an explicit generation.

        Raises:
            ArchivistNotFoundError: If the blob or generation does not exist.
        """
        blob_dir = self._blob_dir(blob_id)
        if generation is None:
            generations = _list_generation_numbers(blob_dir)
            if not generations:
                raise ArchivistNotFoundError(
                    f"Blob {blob_id.bucket}/{blob_id.path} does not exist. "
                    "Upload the resource before downloading it."
                )
            return BlobMetadata(blob_id=blob_id, generation=str(generations[-1]))
        self._generation_file(blob_id, generation)
        return BlobMetadata(blob_id=blob_id, generation=generation)

    def create(self, blob_id: BlobId, content: bytes, generation: int | None = None) -> None:
        """Write a blob revision in one step.

        Args:
            blob_id: Blob location.
            content: Full blob content.
            generation: Explicit generation number; assigned when omitted.

        Raises:
            ArchivistStaleStateError: If the explicit generation already exists.
            ArchivistTransientIOError: If the write fails.
        """
        blob_dir = self._blob_dir(blob_id)
        with _transient_io("create", blob_id):
            blob_dir.mkdir(parents=True, exist_ok=True)
            partial_path = blob_dir / f"{_PARTIAL_PREFIX}{uuid.uuid4().hex}"
            try:
                partial_path.write_bytes(content)
                self._publish(blob_id, partial_path, generation)
            finally:
                if partial_path.exists():
                    partial_path.unlink()

    def open_writer(self, blob_id: BlobId) -> "LocalBlobWriter":
        """Open a chunked writer that publishes a new generation on close."""
        blob_dir = self._blob_dir(blob_id)
        with _transient_io("open_writer", blob_id):
            blob_dir.mkdir(parents=True, exist_ok=True)
            partial_path = blob_dir / f"{_PARTIAL_PREFIX}{uuid.uuid4().hex}"
            handle = partial_path.open("wb")
        return LocalBlobWriter(self, blob_id, partial_path, handle)

    def open_stream(self, blob_id: BlobId, generation: str) -> BinaryIO:
        """Open one generation for reading."""
        generation_file = self._generation_file(blob_id, generation)
        with _transient_io("open_stream", blob_id):
            return generation_file.open("rb")

    def download_to_file(self, blob_id: BlobId, generation: str, local_file: Path) -> None:
        """Copy one generation into a local file."""
        generation_file = self._generation_file(blob_id, generation)
        with _transient_io("download_to_file", blob_id):
            local_file.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(generation_file, local_file)

    def list_names(self, bucket: str, prefix: str) -> list[str]:
        """List blob names under a prefix, relative to that prefix."""
        base_dir = self._blob_dir(BlobId(bucket=bucket, path=prefix.strip("/") or "."))
        if not base_dir.is_dir():
            return []
        names: list[str] = []
        for candidate in sorted(base_dir.rglob("*")):
            if candidate.is_dir() and _list_generation_numbers(candidate):
                names.append(candidate.relative_to(base_dir).as_posix())
        return names

    def list_generations(self, blob_id: BlobId) -> list[str]:
        """List every generation of a blob, oldest first."""
        return [str(number) for number in _list_generation_numbers(self._blob_dir(blob_id))]

    def _publish(self, blob_id: BlobId, partial_path: Path, generation: int | None) -> str:
        """Rename a fully written partial file into its generation slot."""
        blob_dir = partial_path.parent
        if generation is None:
            generation = self._next_generation(blob_dir)
        target = blob_dir / str(generation)
        if target.exists():
            raise ArchivistStaleStateError(
                f"Generation {generation} already exists for {blob_id.bucket}/{blob_id.path}. "
                "Generations are never reused; pick a new generation number."
            )
        os.rename(partial_path, target)
        _LOGGER.debug(
            "local_blob_published",
            bucket=blob_id.bucket,
            path=blob_id.path,
            generation=str(generation),
        )
        return str(generation)

    def _next_generation(self, blob_dir: Path) -> int:
        existing = _list_generation_numbers(blob_dir)
        candidate = self._generation_clock()
        if existing and candidate <= existing[-1]:
            return existing[-1] + 1
        return candidate

    def _generation_file(self, blob_id: BlobId, generation: str) -> Path:
        generation_file = self._blob_dir(blob_id) / generation
        if not generation.isdigit() or not generation_file.is_file():
            raise ArchivistNotFoundError(
                f"Generation {generation} of blob {blob_id.bucket}/{blob_id.path} does not exist. "
                "List versions to discover valid generations."
            )
        return generation_file

    def _blob_dir(self, blob_id: BlobId) -> Path:
        relative = PurePosixPath(blob_id.bucket) / PurePosixPath(blob_id.path)
        if relative.is_absolute() or ".." in relative.parts:
            raise ArchivistConfigError(
                f"Invalid blob location {blob_id.bucket}/{blob_id.path}: "
                "paths must stay inside the store root."
            )
        return self._root.joinpath(*relative.parts)


class LocalBlobWriter:
    """Chunked writer streaming into a hidden partial file."""

    def __init__(
        self,
        store: LocalVersionStore,
        blob_id: BlobId,
        partial_path: Path,
        handle: BinaryIO,
    ) -> None:
        self._store = store
        self._blob_id = blob_id
        self._partial_path = partial_path
        self._handle = handle
        self._finished = False

    def write(self, chunk: bytes) -> None:
        with _transient_io("write", self._blob_id):
            self._handle.write(chunk)

    def close(self) -> None:
        """Publish the written content as a new generation."""
        if self._finished:
            return
        self._finished = True
        with _transient_io("close", self._blob_id):
            self._handle.close()
            try:
                self._store._publish(self._blob_id, self._partial_path, None)
            finally:
                if self._partial_path.exists():
                    self._partial_path.unlink()

    def abort(self) -> None:
        """Drop the partial file without publishing."""
        if self._finished:
            return
        self._finished = True
        self._handle.close()
        if self._partial_path.exists():
            self._partial_path.unlink()

    def __enter__(self) -> "LocalBlobWriter":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if exc_type is None:
            self.close()
        else:
            self.abort()


def _list_generation_numbers(blob_dir: Path) -> list[int]:
    """Return sorted generation numbers stored in a blob directory."""
    if not blob_dir.is_dir():
        return []
    return sorted(
        int(entry.name)
        for entry in blob_dir.iterdir()
        if entry.name.isdigit() and entry.is_file()
    )


@contextmanager
def _transient_io(action: str, blob_id: BlobId) -> Iterator[None]:
    """Translate filesystem errors into transient IO errors."""
    try:
        yield
    except OSError as error:
        raise ArchivistTransientIOError(
            f"Local store {action} failed for {blob_id.bucket}/{blob_id.path}: {error}. "
            "Check disk space and permissions, then retry."
        ) from error
