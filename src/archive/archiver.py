"""Versioned resource archiver.

This module publishes directory snapshots as store generations and
materializes generations on local disk. Readers only ever see complete
versions: extraction happens in a temporary directory that is renamed
into place, and the ``current`` symlink is swapped with an atomic replace.

The archiver holds no locks. Concurrent downloads of one resource may
extract the same generation twice, and a download of an older generation
may clean up a newer one; callers needing strict guarantees serialize
downloads per resource themselves.
"""

from __future__ import annotations

from contextlib import contextmanager
import os
from pathlib import Path
import shutil
import tempfile
from typing import BinaryIO, Iterator, Sequence

from archive.cleanup import cleanup_stale_versions, is_generation_token
from archive.compression import get_codec
from archive.layout import (
    ResourceLayout,
    build_blob_path,
    build_service_prefix,
    strip_suffix,
)
from archive.packaging import build_archive, extract_archive
from core.config import ArchivistConfig
from core.constants import (
    DEFAULT_COMPRESSION_MODE,
    SINGLE_REQUEST_UPLOAD_LIMIT_BYTES,
    UPLOAD_CHUNK_SIZE_BYTES,
)
from core.errors import (
    ArchivistConfigError,
    ArchivistNotFoundError,
    ArchivistStaleStateError,
    ArchivistTransientIOError,
)
from core.logging_config import get_logger
from core.types import ResourceKey, VersionedResource, validate_name_component
from store.factory import build_version_store
from store.version_store import BlobId, BlobMetadata, VersionStore

_LOGGER = get_logger(__name__)


class Archiver:
    """Upload and download versioned resource archives."""

    def __init__(
        self,
        store: VersionStore,
        bucket: str,
        archive_root: Path,
        compression_mode: str = DEFAULT_COMPRESSION_MODE,
        download_as_stream: bool = True,
        path_prefix: str | None = None,
    ) -> None:
        """Create an archiver.

        Args:
            store: Generation-addressed blob backend.
            bucket: Bucket holding the archives.
            archive_root: Local root for extracted versions.
            compression_mode: ``gzip`` or ``lz4``, fixed for this instance.
            download_as_stream: Stream blobs instead of downloading to a temp file.
            path_prefix: Optional namespace prepended to blob paths.

        Raises:
            ArchivistConfigError: If compression_mode is unknown.
        """
        self._store = store
        self._bucket = bucket
        self._archive_root = Path(archive_root).expanduser().absolute()
        self._codec = get_codec(compression_mode)
        self._download_as_stream = download_as_stream
        self._path_prefix = path_prefix

    @classmethod
    def from_config(
        cls,
        config: ArchivistConfig,
        store: VersionStore | None = None,
    ) -> "Archiver":
        """Build an archiver from runtime configuration.

        Args:
            config: Runtime configuration.
            store: Optional store overriding the configured backend.

        Returns:
            Configured archiver.
        """
        return cls(
            store=store if store is not None else build_version_store(config),
            bucket=config.bucket,
            archive_root=config.archive_root,
            compression_mode=config.compression_mode,
            download_as_stream=config.download_as_stream,
            path_prefix=config.path_prefix,
        )

    @property
    def compression_mode(self) -> str:
        return self._codec.mode

    def upload(
        self,
        service_name: str,
        resource_name: str,
        source_dir: Path | str,
        include_files: Sequence[str] = (),
        include_parent_dirs: Sequence[str] = (),
    ) -> str:
        """Package a directory and publish it as a new generation.

        Args:
            service_name: Owning service.
            resource_name: Resource within the service.
            source_dir: Directory to package.
            include_files: Optional file names or relative paths to include.
            include_parent_dirs: Optional directories whose direct files are included.

        Returns:
            Generation assigned by the store, used as the version id.

        Raises:
            ArchivistNotFoundError: If source_dir does not exist.
            ArchivistTransientIOError: If packaging or transfer fails.
        """
        resource_key = ResourceKey(service_name=service_name, resource_name=resource_name)
        blob_id = self._blob_id(resource_key)
        source_path = Path(source_dir)
        file_descriptor, temp_name = tempfile.mkstemp(
            prefix=f"{service_name}-{resource_name}",
            suffix=self._codec.suffix,
        )
        archive_file = Path(temp_name)
        try:
            with os.fdopen(file_descriptor, "wb") as output:
                build_archive(
                    source_path,
                    output,
                    self._codec,
                    include_files,
                    include_parent_dirs,
                )
            archive_size = self._transfer(archive_file, blob_id)
        finally:
            _remove_file(archive_file)
        metadata = self._store.get(blob_id)
        _LOGGER.info(
            "resource_uploaded",
            service_name=service_name,
            resource_name=resource_name,
            blob_path=blob_id.path,
            generation=metadata.generation,
            archive_bytes=archive_size,
        )
        return str(metadata.generation)

    def download(
        self,
        service_name: str,
        resource_name: str,
        generation: str | None = None,
    ) -> Path:
        """Materialize a generation locally and point ``current`` at it.

        Args:
            service_name: Owning service.
            resource_name: Resource within the service.
            generation: Explicit generation; latest when omitted.

        Returns:
            Absolute path of the resource's ``current`` symlink.

        Raises:
            ArchivistNotFoundError: If the blob or generation does not exist.
            ArchivistCorruptArchiveError: If the archive cannot be decoded.
            ArchivistStaleStateError: If ``current`` is occupied by a non-symlink.
            ArchivistTransientIOError: If transfer or filesystem work fails.
        """
        resource_key = ResourceKey(service_name=service_name, resource_name=resource_name)
        if generation is not None and not is_generation_token(generation):
            raise ArchivistNotFoundError(
                f"Generation '{generation}' of {service_name}/{resource_name} cannot exist: "
                "generation tokens are hex or decimal strings."
            )
        self._ensure_archive_root()
        blob_id = self._blob_id(resource_key)
        metadata = self._store.get(blob_id, generation)
        target_generation = str(metadata.generation)
        if not is_generation_token(target_generation):
            raise ArchivistConfigError(
                f"Store returned generation '{target_generation}' for {blob_id.path}, "
                "which is not usable as a version directory name. Check the backend adapter."
            )
        layout = ResourceLayout(archive_root=self._archive_root, resource_key=resource_key)
        version_dir = layout.version_dir(target_generation)
        _LOGGER.info(
            "resource_download_started",
            service_name=service_name,
            resource_name=resource_name,
            generation=target_generation,
            version_dir=str(version_dir),
        )
        if version_dir.is_dir():
            _LOGGER.info(
                "version_already_materialized",
                version_dir=str(version_dir),
            )
        else:
            self._materialize(metadata, layout)
        current_link = self._publish_current(layout, target_generation)
        cleanup_stale_versions(layout.resource_dir, target_generation)
        return current_link

    def list_resources(self, service_name: str) -> list[str]:
        """List resources published for a service with the active compression mode."""
        validate_name_component("service", service_name)
        prefix = build_service_prefix(service_name, self._path_prefix)
        resources = {
            resource_name
            for blob_name in self._store.list_names(self._bucket, prefix)
            if (resource_name := strip_suffix(blob_name, self._codec.suffix)) is not None
        }
        return sorted(resources)

    def list_versions(self, service_name: str, resource_name: str) -> list[VersionedResource]:
        """List published generations of a resource, oldest first."""
        resource_key = ResourceKey(service_name=service_name, resource_name=resource_name)
        generations = self._store.list_generations(self._blob_id(resource_key))
        return [
            VersionedResource(
                service_name=service_name,
                resource_name=resource_name,
                generation=generation,
            )
            for generation in generations
        ]

    def local_versions(self, service_name: str, resource_name: str) -> list[str]:
        """List generations materialized on local disk."""
        layout = self._layout(service_name, resource_name)
        if not layout.resource_dir.is_dir():
            return []
        names = [
            entry.name
            for entry in layout.resource_dir.iterdir()
            if is_generation_token(entry.name) and entry.is_dir() and not entry.is_symlink()
        ]
        return sorted(names, key=lambda name: (len(name), name))

    def current_version(self, service_name: str, resource_name: str) -> str | None:
        """Return the generation ``current`` points at, or None when unset."""
        current_link = self._layout(service_name, resource_name).current_link
        if not current_link.is_symlink():
            return None
        return Path(os.readlink(current_link)).name

    def delete_local_files(self, service_name: str, resource_name: str) -> bool:
        """Remove every local version of a resource, including ``current``.

        Returns:
            True when a resource directory was removed, False when none existed.

        Raises:
            ArchivistTransientIOError: If removal fails.
        """
        resource_dir = self._layout(service_name, resource_name).resource_dir
        if not resource_dir.exists():
            return False
        try:
            shutil.rmtree(resource_dir)
        except OSError as error:
            raise ArchivistTransientIOError(
                f"Failed to delete local files at {resource_dir}: {error}. "
                "Check permissions and retry."
            ) from error
        _LOGGER.info("local_resource_deleted", resource_dir=str(resource_dir))
        return True

    def _transfer(self, archive_file: Path, blob_id: BlobId) -> int:
        """Send a packaged archive to the store.

        Archives below the single-request limit go in one ``create`` call;
        larger ones stream through a chunked writer finalized on close.
        """
        try:
            archive_size = archive_file.stat().st_size
            if archive_size < SINGLE_REQUEST_UPLOAD_LIMIT_BYTES:
                self._store.create(blob_id, archive_file.read_bytes())
                return archive_size
            with self._store.open_writer(blob_id) as writer:
                with archive_file.open("rb") as source:
                    while chunk := source.read(UPLOAD_CHUNK_SIZE_BYTES):
                        writer.write(chunk)
        except OSError as error:
            raise ArchivistTransientIOError(
                f"Failed to read packaged archive {archive_file}: {error}. Retry the upload."
            ) from error
        return archive_size

    def _materialize(self, metadata: BlobMetadata, layout: ResourceLayout) -> None:
        """Extract a generation into a temp directory and rename it into place."""
        version_dir = layout.version_dir(metadata.generation)
        try:
            layout.resource_dir.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise ArchivistTransientIOError(
                f"Failed to create resource directory {layout.resource_dir}: {error}."
            ) from error
        temp_dir = layout.temp_path()
        temp_file = layout.temp_path()
        try:
            with self._open_content(metadata, temp_file) as compressed:
                extract_archive(compressed, temp_dir, self._codec)
            _promote(temp_dir, version_dir)
        finally:
            _remove_tree(temp_dir)
            _remove_file(temp_file)

    @contextmanager
    def _open_content(self, metadata: BlobMetadata, temp_file: Path) -> Iterator[BinaryIO]:
        """Open blob content as a stream or through a downloaded temp file."""
        if self._download_as_stream:
            _LOGGER.debug("blob_stream_opened", blob_path=metadata.blob_id.path)
            stream = self._store.open_stream(metadata.blob_id, metadata.generation)
        else:
            _LOGGER.debug("blob_download_started", blob_path=metadata.blob_id.path)
            self._store.download_to_file(metadata.blob_id, metadata.generation, temp_file)
            try:
                stream = temp_file.open("rb")
            except OSError as error:
                raise ArchivistTransientIOError(
                    f"Failed to open downloaded archive {temp_file}: {error}. Retry the download."
                ) from error
        try:
            yield stream
        finally:
            stream.close()

    def _publish_current(self, layout: ResourceLayout, generation: str) -> Path:
        """Swap ``current`` to a generation with an atomic replace."""
        current_link = layout.current_link
        temp_link = layout.temp_path()
        try:
            os.symlink(generation, temp_link, target_is_directory=True)
            os.replace(temp_link, current_link)
        except OSError as error:
            if current_link.is_dir() and not current_link.is_symlink():
                raise ArchivistStaleStateError(
                    f"Cannot publish {current_link}: a real directory occupies it. "
                    "Remove it manually; current must be a symlink."
                ) from error
            raise ArchivistTransientIOError(
                f"Failed to point {current_link} at generation {generation}: {error}."
            ) from error
        finally:
            if temp_link.is_symlink():
                _remove_file(temp_link)
        _LOGGER.info(
            "current_pointer_published",
            current_link=str(current_link),
            generation=generation,
        )
        return current_link

    def _ensure_archive_root(self) -> None:
        if self._archive_root.is_dir():
            return
        _LOGGER.info("archive_root_created", archive_root=str(self._archive_root))
        try:
            self._archive_root.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise ArchivistTransientIOError(
                f"Failed to create archive root {self._archive_root}: {error}. "
                "Check ARCHIVIST_ARCHIVE_ROOT and permissions."
            ) from error

    def _blob_id(self, resource_key: ResourceKey) -> BlobId:
        return BlobId(
            bucket=self._bucket,
            path=build_blob_path(resource_key, self._codec.suffix, self._path_prefix),
        )

    def _layout(self, service_name: str, resource_name: str) -> ResourceLayout:
        resource_key = ResourceKey(service_name=service_name, resource_name=resource_name)
        return ResourceLayout(archive_root=self._archive_root, resource_key=resource_key)


def _promote(temp_dir: Path, version_dir: Path) -> None:
    """Rename a fully extracted temp directory to its generation name.

    Losing a race against another download of the same generation is not
    an error: the winner's directory is complete and is used as is.
    """
    try:
        os.rename(temp_dir, version_dir)
    except OSError as error:
        if version_dir.is_dir() and not version_dir.is_symlink():
            _LOGGER.info("version_promoted_concurrently", version_dir=str(version_dir))
            return
        if version_dir.exists() or version_dir.is_symlink():
            raise ArchivistStaleStateError(
                f"Cannot create version directory {version_dir}: a non-directory occupies it. "
                "Remove the entry and retry the download."
            ) from error
        raise ArchivistTransientIOError(
            f"Failed to rename {temp_dir} to {version_dir}: {error}. Retry the download."
        ) from error
    _LOGGER.info("version_materialized", version_dir=str(version_dir))


def _remove_tree(path: Path) -> None:
    if not path.exists():
        return
    try:
        shutil.rmtree(path)
    except OSError as error:
        _LOGGER.warning("temp_directory_removal_failed", path=str(path), error=str(error))


def _remove_file(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as error:
        _LOGGER.warning("temp_file_removal_failed", path=str(path), error=str(error))
