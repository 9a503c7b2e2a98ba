"""Shared typed models.

This module defines immutable models passed between the archive
and store layers to keep interfaces explicit and stable.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.errors import ArchivistConfigError


@dataclass(frozen=True)
class ResourceKey:
    """Identifier of a logical artifact family.

    Attributes:
        service_name: Owning service, first layout path component.
        resource_name: Resource within the service.
    """

    service_name: str
    resource_name: str

    def __post_init__(self) -> None:
        validate_name_component("service", self.service_name)
        validate_name_component("resource", self.resource_name)


@dataclass(frozen=True)
class VersionedResource:
    """One published generation of a resource.

    Attributes:
        service_name: Owning service.
        resource_name: Resource within the service.
        generation: Backend-assigned generation token.
    """

    service_name: str
    resource_name: str
    generation: str


def validate_name_component(kind: str, value: str) -> None:
    """Reject names that cannot be used as a single path component.

    Args:
        kind: Human-readable name kind for error messages.
        value: Candidate name.

    Raises:
        ArchivistConfigError: If the name is empty or escapes its directory.
    """
    if not value or value in (".", "..") or "/" in value or "\\" in value:
        raise ArchivistConfigError(
            f"Invalid {kind} name '{value}': expected a non-empty name without path separators. "
            f"Rename the {kind} to a plain identifier."
        )
