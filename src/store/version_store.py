"""Generation-addressed version store contract.

This module defines the blob backend surface the archiver depends on.
Backends assign an opaque generation token to every successful write;
content is addressed by blob path plus generation.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import BinaryIO, Protocol


@dataclass(frozen=True)
class BlobId:
    """Location of a blob in a bucket.

    Attributes:
        bucket: Bucket name.
        path: Blob path inside the bucket.
    """

    bucket: str
    path: str


@dataclass(frozen=True)
class BlobMetadata:
    """Metadata of one immutable blob revision.

    Attributes:
        blob_id: Blob location.
        generation: Backend-assigned generation token.
    """

    blob_id: BlobId
    generation: str


class BlobWriter(Protocol):
    """Chunked sink whose content becomes visible only on close."""

    def write(self, chunk: bytes) -> None:
        """Append a chunk of content."""

    def close(self) -> None:
        """Finalize the blob atomically."""

    def abort(self) -> None:
        """Discard everything written so far."""

    def __enter__(self) -> "BlobWriter": ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None: ...


class VersionStore(Protocol):
    """Blob backend capability surface.

    Every operation may raise ``ArchivistTransientIOError``; lookups of
    absent blobs or generations raise ``ArchivistNotFoundError``.
    """

    def get(self, blob_id: BlobId, generation: str | None = None) -> BlobMetadata:
        """Return metadata for the latest or an explicit generation."""

    def create(self, blob_id: BlobId, content: bytes) -> None:
        """Write a small blob in a single atomic request."""

    def open_writer(self, blob_id: BlobId) -> BlobWriter:
        """Open a chunked writer for a large blob."""

    def open_stream(self, blob_id: BlobId, generation: str) -> BinaryIO:
        """Open a readable byte stream of one generation."""

    def download_to_file(self, blob_id: BlobId, generation: str, local_file: Path) -> None:
        """Copy one generation into a local file."""

    def list_names(self, bucket: str, prefix: str) -> list[str]:
        """List blob names under a prefix, relative to that prefix."""

    def list_generations(self, blob_id: BlobId) -> list[str]:
        """List every known generation of a blob, oldest first."""
