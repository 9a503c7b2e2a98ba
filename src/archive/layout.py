"""Blob path and local directory layout helpers.

Local layout::

    <archive_root>/<service>/<resource>/<generation>/
    <archive_root>/<service>/<resource>/current -> <generation>
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import uuid

from core.constants import CURRENT_LINK_NAME, TMP_SUFFIX
from core.types import ResourceKey


@dataclass(frozen=True)
class ResourceLayout:
    """Local paths owned by one resource.

    Attributes:
        archive_root: Root of all extracted resources.
        resource_key: Resource identity.
    """

    archive_root: Path
    resource_key: ResourceKey

    @property
    def resource_dir(self) -> Path:
        return (
            self.archive_root
            / self.resource_key.service_name
            / self.resource_key.resource_name
        )

    @property
    def current_link(self) -> Path:
        return self.resource_dir / CURRENT_LINK_NAME

    def version_dir(self, generation: str) -> Path:
        """Return the directory holding one extracted generation."""
        return self.resource_dir / generation

    def temp_path(self) -> Path:
        """Return a fresh temporary sibling path inside the resource directory."""
        return self.resource_dir / f"{uuid.uuid4()}{TMP_SUFFIX}"


def build_blob_path(resource_key: ResourceKey, suffix: str, path_prefix: str | None) -> str:
    """Build ``[<prefix>/]<service>/<resource><suffix>``.

    Args:
        resource_key: Resource identity.
        suffix: Compression suffix including the leading dot.
        path_prefix: Optional normalized namespace prefix.

    Returns:
        Blob path inside the bucket.
    """
    blob_path = f"{resource_key.service_name}/{resource_key.resource_name}{suffix}"
    if path_prefix:
        return f"{path_prefix}/{blob_path}"
    return blob_path


def build_service_prefix(service_name: str, path_prefix: str | None) -> str:
    """Build the listing prefix covering every resource of a service."""
    if path_prefix:
        return f"{path_prefix}/{service_name}/"
    return f"{service_name}/"


def strip_suffix(blob_name: str, suffix: str) -> str | None:
    """Return the resource name of a listed blob, or None for foreign blobs.

    Args:
        blob_name: Blob name relative to a service prefix.
        suffix: Active compression suffix.

    Returns:
        Resource name, or None when the name is nested or has another suffix.
    """
    if "/" in blob_name or not blob_name.endswith(suffix):
        return None
    resource_name = blob_name[: -len(suffix)]
    return resource_name or None
