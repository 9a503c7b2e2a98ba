"""Archivist exception hierarchy.

This module defines one error type per failure domain of the archiver.
Callers decide retry policy from the error type alone.
"""

from __future__ import annotations


class ArchivistError(Exception):
    """Base exception for all Archivist failures."""


class ArchivistConfigError(ArchivistError):
    """Raised for invalid runtime configuration or resource names."""


class ArchivistDependencyError(ArchivistError):
    """Raised when an optional runtime dependency is missing."""


class ArchivistNotFoundError(ArchivistError):
    """Raised when a blob, generation, or local source is absent."""


class ArchivistTransientIOError(ArchivistError):
    """Raised for network or filesystem failures during a transfer."""


class ArchivistCorruptArchiveError(ArchivistError):
    """Raised when decompression or tar decoding fails."""


class ArchivistStaleStateError(ArchivistError):
    """Raised when a path expected to be absent or a symlink is neither."""
