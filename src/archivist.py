"""Public SDK surface for Archivist.

This module provides a stable import path for library users.
It re-exports the archiver, its configuration, and the store backends.
"""

from __future__ import annotations

from archive.archiver import Archiver
from archive.cleanup import cleanup_stale_versions, is_generation_token
from archive.compression import supported_compression_modes
from core.config import ArchivistConfig
from core.config_file import apply_config_file
from core.errors import (
    ArchivistConfigError,
    ArchivistCorruptArchiveError,
    ArchivistDependencyError,
    ArchivistError,
    ArchivistNotFoundError,
    ArchivistStaleStateError,
    ArchivistTransientIOError,
)
from core.types import ResourceKey, VersionedResource
from store.factory import build_version_store
from store.local_version_store import LocalVersionStore
from store.version_store import BlobId, BlobMetadata, VersionStore

__all__ = [
    "Archiver",
    "ArchivistConfig",
    "ArchivistConfigError",
    "ArchivistCorruptArchiveError",
    "ArchivistDependencyError",
    "ArchivistError",
    "ArchivistNotFoundError",
    "ArchivistStaleStateError",
    "ArchivistTransientIOError",
    "BlobId",
    "BlobMetadata",
    "LocalVersionStore",
    "ResourceKey",
    "VersionStore",
    "VersionedResource",
    "apply_config_file",
    "build_version_store",
    "cleanup_stale_versions",
    "is_generation_token",
    "supported_compression_modes",
]
