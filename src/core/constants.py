"""Core constants used across Archivist modules.

This module centralizes layout names, transfer thresholds, and defaults.
Keeping values here avoids magic literals in archiver logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_ARCHIVE_ROOT = Path(".archivist") / "archive"
DEFAULT_LOCAL_STORE_ROOT = Path(".archivist") / "blobs"
DEFAULT_BUCKET_NAME = "archivist"
CURRENT_LINK_NAME = "current"
TMP_SUFFIX = ".tmp"
COMPRESSION_GZIP = "gzip"
COMPRESSION_LZ4 = "lz4"
SUPPORTED_COMPRESSION_MODES = (COMPRESSION_GZIP, COMPRESSION_LZ4)
DEFAULT_COMPRESSION_MODE = COMPRESSION_LZ4
GZIP_SUFFIX = ".tgz"
LZ4_SUFFIX = ".tar.lz4"
BACKEND_LOCAL = "local"
BACKEND_S3 = "s3"
SUPPORTED_BACKENDS = (BACKEND_LOCAL, BACKEND_S3)
DEFAULT_BACKEND = BACKEND_LOCAL
SINGLE_REQUEST_UPLOAD_LIMIT_BYTES = 1_000_000
UPLOAD_CHUNK_SIZE_BYTES = 10_240
S3_MULTIPART_PART_SIZE_BYTES = 8 * 1024 * 1024
DEFAULT_LOG_LEVEL = "info"
SUPPORTED_LOG_LEVELS = ("debug", "info", "warning", "error")
