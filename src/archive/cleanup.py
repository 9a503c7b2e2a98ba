"""Reclaiming superseded local versions.

Cleanup is fail-safe: anything that does not look like a stale
generation directory is preserved, and deletion errors are logged
instead of failing the enclosing download.
"""

from __future__ import annotations

from pathlib import Path
import shutil
import string

from core.constants import CURRENT_LINK_NAME
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)
_HEX_DIGITS = frozenset(string.hexdigits)


def is_generation_token(name: str) -> bool:
    """Return whether a name is a plausible generation token.

    Tokens are non-empty strings of hex digits; decimal generation
    numbers are a subset.
    """
    return bool(name) and all(char in _HEX_DIGITS for char in name)


def is_stale_version_entry(entry: Path, active_generation: str) -> bool:
    """Return whether a resource directory entry may be deleted.

    Args:
        entry: Direct child of a resource directory.
        active_generation: Generation that ``current`` points at.

    Returns:
        True only for real directories named like a generation other than
        the active one.
    """
    name = entry.name
    if name == CURRENT_LINK_NAME or name == active_generation:
        return False
    if entry.is_symlink() or not entry.is_dir():
        return False
    return is_generation_token(name)


def cleanup_stale_versions(resource_dir: Path, active_generation: str) -> list[Path]:
    """Delete every superseded generation directory of a resource.

    Args:
        resource_dir: Directory holding generation directories and ``current``.
        active_generation: Generation to keep.

    Returns:
        Paths that were removed.
    """
    removed: list[Path] = []
    try:
        entries = sorted(resource_dir.iterdir())
    except OSError as error:
        _LOGGER.warning(
            "cleanup_listing_failed",
            resource_dir=str(resource_dir),
            error=str(error),
        )
        return removed
    for entry in entries:
        if entry.name in (CURRENT_LINK_NAME, active_generation):
            continue
        if not is_stale_version_entry(entry, active_generation):
            _LOGGER.warning(
                "cleanup_entry_preserved",
                resource_dir=str(resource_dir),
                entry=entry.name,
                is_directory=entry.is_dir(),
            )
            continue
        try:
            shutil.rmtree(entry)
        except OSError as error:
            _LOGGER.warning("stale_version_removal_failed", path=str(entry), error=str(error))
            continue
        _LOGGER.info("stale_version_removed", path=str(entry))
        removed.append(entry)
    return removed
