"""Runtime configuration model for Archivist.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    DEFAULT_ARCHIVE_ROOT,
    DEFAULT_BACKEND,
    DEFAULT_BUCKET_NAME,
    DEFAULT_COMPRESSION_MODE,
    DEFAULT_LOCAL_STORE_ROOT,
    DEFAULT_LOG_LEVEL,
    SUPPORTED_BACKENDS,
    SUPPORTED_COMPRESSION_MODES,
    SUPPORTED_LOG_LEVELS,
)
from core.errors import ArchivistConfigError

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass(frozen=True)
class ArchivistConfig:
    """Validated runtime configuration.

    Attributes:
        archive_root: Local root holding extracted resource versions.
        bucket: Bucket name in the version store.
        path_prefix: Optional namespace prepended to every blob path.
        compression_mode: Archive framing, ``gzip`` or ``lz4``.
        download_as_stream: Stream blobs directly instead of via a temp file.
        backend: Version store backend, ``local`` or ``s3``.
        local_store_root: Root directory of the local version store.
        s3_region: Optional AWS region for the S3 backend.
        s3_profile: Optional AWS profile for boto3 session initialization.
        s3_endpoint_url: Optional endpoint for S3-compatible stores.
        log_level: Minimum structured log level.
    """

    archive_root: Path
    bucket: str
    path_prefix: str | None
    compression_mode: str
    download_as_stream: bool
    backend: str
    local_store_root: Path
    s3_region: str | None
    s3_profile: str | None
    s3_endpoint_url: str | None
    log_level: str

    @classmethod
    def from_env(cls) -> "ArchivistConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            ArchivistConfigError: If environment values are invalid.
        """
        archive_root_value = os.getenv("ARCHIVIST_ARCHIVE_ROOT", str(DEFAULT_ARCHIVE_ROOT))
        local_store_value = os.getenv("ARCHIVIST_LOCAL_STORE_ROOT", str(DEFAULT_LOCAL_STORE_ROOT))
        return cls(
            archive_root=Path(archive_root_value).expanduser().resolve(),
            bucket=_parse_bucket(os.getenv("ARCHIVIST_BUCKET", DEFAULT_BUCKET_NAME)),
            path_prefix=normalize_path_prefix(os.getenv("ARCHIVIST_PATH_PREFIX")),
            compression_mode=parse_choice(
                "ARCHIVIST_COMPRESSION",
                os.getenv("ARCHIVIST_COMPRESSION", DEFAULT_COMPRESSION_MODE),
                SUPPORTED_COMPRESSION_MODES,
            ),
            download_as_stream=parse_bool(
                "ARCHIVIST_DOWNLOAD_AS_STREAM",
                os.getenv("ARCHIVIST_DOWNLOAD_AS_STREAM", "true"),
            ),
            backend=parse_choice(
                "ARCHIVIST_BACKEND",
                os.getenv("ARCHIVIST_BACKEND", DEFAULT_BACKEND),
                SUPPORTED_BACKENDS,
            ),
            local_store_root=Path(local_store_value).expanduser().resolve(),
            s3_region=os.getenv("ARCHIVIST_S3_REGION"),
            s3_profile=os.getenv("ARCHIVIST_S3_PROFILE"),
            s3_endpoint_url=os.getenv("ARCHIVIST_S3_ENDPOINT_URL"),
            log_level=parse_choice(
                "ARCHIVIST_LOG_LEVEL",
                os.getenv("ARCHIVIST_LOG_LEVEL", DEFAULT_LOG_LEVEL),
                SUPPORTED_LOG_LEVELS,
            ),
        )


def parse_bool(setting_name: str, raw_value: str) -> bool:
    """Parse a boolean setting value.

    Args:
        setting_name: Setting name used in error messages.
        raw_value: Raw string value.

    Returns:
        Parsed boolean.

    Raises:
        ArchivistConfigError: If value is not a recognised boolean literal.
    """
    normalized = raw_value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ArchivistConfigError(
        f"Invalid {setting_name} value: expected true/false, got '{raw_value}'. "
        f"Set {setting_name} to one of {', '.join(_TRUE_VALUES + _FALSE_VALUES)}."
    )


def parse_choice(setting_name: str, raw_value: str, choices: tuple[str, ...]) -> str:
    """Parse a setting restricted to a fixed set of values.

    Args:
        setting_name: Setting name used in error messages.
        raw_value: Raw string value.
        choices: Accepted lowercase values.

    Returns:
        Normalized choice.

    Raises:
        ArchivistConfigError: If value is not one of the choices.
    """
    normalized = raw_value.strip().lower()
    if normalized not in choices:
        raise ArchivistConfigError(
            f"Invalid {setting_name} value '{raw_value}': expected one of {', '.join(choices)}."
        )
    return normalized


def normalize_path_prefix(raw_value: str | None) -> str | None:
    """Strip surrounding slashes from a blob path prefix.

    Args:
        raw_value: Raw prefix, possibly empty.

    Returns:
        Normalized prefix or None when no prefix applies.
    """
    if raw_value is None:
        return None
    stripped = raw_value.strip().strip("/")
    return stripped or None


def _parse_bucket(raw_value: str) -> str:
    """Validate the bucket name.

    Raises:
        ArchivistConfigError: If bucket is blank or contains a slash.
    """
    bucket = raw_value.strip()
    if not bucket or "/" in bucket:
        raise ArchivistConfigError(
            f"Invalid ARCHIVIST_BUCKET value '{raw_value}': expected a bare bucket name. "
            "Set ARCHIVIST_BUCKET without slashes or URI scheme."
        )
    return bucket
