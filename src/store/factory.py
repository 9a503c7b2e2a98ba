"""Version store selection.

This module builds the configured version store backend.
"""

from __future__ import annotations

from core.config import ArchivistConfig
from core.constants import BACKEND_S3
from store.local_version_store import LocalVersionStore
from store.version_store import VersionStore


def build_version_store(config: ArchivistConfig) -> VersionStore:
    """Create the version store named by ``config.backend``.

    Args:
        config: Runtime configuration.

    Returns:
        Local filesystem store or S3 adapter.

    Raises:
        ArchivistDependencyError: If the S3 backend is selected without boto3.
    """
    if config.backend == BACKEND_S3:
        from store.s3_version_store import S3VersionStore, create_s3_client

        return S3VersionStore(create_s3_client(config))
    return LocalVersionStore(config.local_store_root)
