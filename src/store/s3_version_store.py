"""S3 version store adapter.

This module maps the version store contract onto a versioned S3 bucket.
S3 version ids become generation tokens through hex encoding, so every
token is a plain hex string that is safe to use as a directory name.
"""

from __future__ import annotations

from contextlib import contextmanager
import io
from pathlib import Path
from types import TracebackType
from typing import Any, BinaryIO, Iterator

from core.config import ArchivistConfig
from core.constants import S3_MULTIPART_PART_SIZE_BYTES
from core.errors import (
    ArchivistConfigError,
    ArchivistDependencyError,
    ArchivistError,
    ArchivistNotFoundError,
    ArchivistTransientIOError,
)
from core.logging_config import get_logger
from store.version_store import BlobId, BlobMetadata

_LOGGER = get_logger(__name__)
_NOT_FOUND_CODES = ("404", "NoSuchKey", "NoSuchVersion", "NoSuchBucket", "NotFound")


def create_s3_client(config: ArchivistConfig) -> Any:
    """Create boto3 S3 client for the version store.

    Args:
        config: Runtime config with optional session settings.

    Returns:
        Boto3 S3 client.

    Raises:
        ArchivistDependencyError: If boto3 is missing.
    """
    try:
        import boto3
    except ImportError as error:
        raise ArchivistDependencyError(
            "The S3 backend requires boto3, but it is not installed. "
            "Install boto3 or set ARCHIVIST_BACKEND=local."
        ) from error
    session_kwargs: dict[str, str] = {}
    if config.s3_profile:
        session_kwargs["profile_name"] = config.s3_profile
    if config.s3_region:
        session_kwargs["region_name"] = config.s3_region
    session = boto3.session.Session(**session_kwargs)
    if config.s3_endpoint_url:
        return session.client("s3", endpoint_url=config.s3_endpoint_url)
    return session.client("s3")


def encode_generation(version_id: str) -> str:
    """Encode an S3 version id as a hex generation token."""
    return version_id.encode("utf-8").hex()


def decode_generation(generation: str) -> str:
    """Decode a hex generation token back into an S3 version id.

    Raises:
        ArchivistNotFoundError: If the token is not a hex-encoded version id.
    """
    try:
        return bytes.fromhex(generation).decode("utf-8")
    except (ValueError, UnicodeDecodeError) as error:
        raise ArchivistNotFoundError(
            f"Generation '{generation}' is not a valid S3 generation token. "
            "List versions to discover valid generations."
        ) from error


class S3VersionStore:
    """Version store backed by a versioned S3 bucket."""

    def __init__(self, s3_client: Any, part_size: int = S3_MULTIPART_PART_SIZE_BYTES) -> None:
        """Create the adapter.

        Args:
            s3_client: Boto3 S3 client.
            part_size: Multipart upload part size in bytes.
        """
        self._client = s3_client
        self._part_size = part_size

    def get(self, blob_id: BlobId, generation: str | None = None) -> BlobMetadata:
        """Return metadata for the latest or an explicit generation.

        Raises:
            ArchivistNotFoundError: If the object or version does not exist.
            ArchivistConfigError: If the bucket does not have versioning enabled.
            ArchivistTransientIOError: For other S3 failures.
        """
        request = _object_request(blob_id, generation)
        with _s3_errors("head_object", blob_id):
            response = self._client.head_object(**request)
        version_id = response.get("VersionId")
        if not version_id or version_id == "null":
            raise ArchivistConfigError(
                f"Object s3://{blob_id.bucket}/{blob_id.path} has no version id. "
                "Enable versioning on the bucket before publishing resources."
            )
        return BlobMetadata(blob_id=blob_id, generation=encode_generation(version_id))

    def create(self, blob_id: BlobId, content: bytes) -> None:
        """Upload a small object with a single PUT."""
        with _s3_errors("put_object", blob_id):
            self._client.put_object(Bucket=blob_id.bucket, Key=blob_id.path, Body=content)

    def open_writer(self, blob_id: BlobId) -> "S3MultipartWriter":
        """Start a multipart upload for a large object."""
        with _s3_errors("create_multipart_upload", blob_id):
            response = self._client.create_multipart_upload(
                Bucket=blob_id.bucket,
                Key=blob_id.path,
            )
        return S3MultipartWriter(self._client, blob_id, response["UploadId"], self._part_size)

    def open_stream(self, blob_id: BlobId, generation: str) -> BinaryIO:
        """Open the object body of one generation as a stream."""
        request = _object_request(blob_id, generation)
        with _s3_errors("get_object", blob_id):
            response = self._client.get_object(**request)
        return io.BufferedReader(S3ObjectStream(response["Body"], blob_id))

    def download_to_file(self, blob_id: BlobId, generation: str, local_file: Path) -> None:
        """Download one generation into a local file."""
        extra_args = {"VersionId": decode_generation(generation)}
        with _s3_errors("download_file", blob_id):
            self._client.download_file(
                blob_id.bucket,
                blob_id.path,
                str(local_file),
                ExtraArgs=extra_args,
            )

    def list_names(self, bucket: str, prefix: str) -> list[str]:
        """List object keys under a prefix, relative to that prefix."""
        names: list[str] = []
        paginator = self._client.get_paginator("list_objects_v2")
        with _s3_errors("list_objects_v2", BlobId(bucket=bucket, path=prefix)):
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                for item in page.get("Contents", []):
                    names.append(str(item["Key"])[len(prefix) :])
        return sorted(name for name in names if name)

    def list_generations(self, blob_id: BlobId) -> list[str]:
        """List every stored version of an object, oldest first."""
        versions: list[tuple[Any, str]] = []
        paginator = self._client.get_paginator("list_object_versions")
        with _s3_errors("list_object_versions", blob_id):
            for page in paginator.paginate(Bucket=blob_id.bucket, Prefix=blob_id.path):
                for item in page.get("Versions", []):
                    if item["Key"] != blob_id.path:
                        continue
                    versions.append((item["LastModified"], str(item["VersionId"])))
        versions.sort(key=lambda pair: pair[0])
        return [encode_generation(version_id) for _, version_id in versions]


class S3ObjectStream(io.RawIOBase):
    """Raw reader over an S3 object body translating read failures."""

    def __init__(self, body: Any, blob_id: BlobId) -> None:
        self._body = body
        self._blob_id = blob_id

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        with _s3_errors("read", self._blob_id):
            data = self._body.read(len(buffer))
        size = len(data)
        buffer[:size] = data
        return size

    def close(self) -> None:
        if not self.closed:
            self._body.close()
        super().close()


class S3MultipartWriter:
    """Multipart upload sink that completes the object on close."""

    def __init__(self, s3_client: Any, blob_id: BlobId, upload_id: str, part_size: int) -> None:
        self._client = s3_client
        self._blob_id = blob_id
        self._upload_id = upload_id
        self._part_size = part_size
        self._buffer = bytearray()
        self._parts: list[dict[str, Any]] = []
        self._finished = False

    def write(self, chunk: bytes) -> None:
        """Buffer a chunk and flush full parts."""
        self._buffer.extend(chunk)
        while len(self._buffer) >= self._part_size:
            part = bytes(self._buffer[: self._part_size])
            del self._buffer[: self._part_size]
            self._upload_part(part)

    def close(self) -> None:
        """Upload the trailing part and complete the multipart upload."""
        if self._finished:
            return
        try:
            if self._buffer or not self._parts:
                self._upload_part(bytes(self._buffer))
                self._buffer.clear()
            with _s3_errors("complete_multipart_upload", self._blob_id):
                self._client.complete_multipart_upload(
                    Bucket=self._blob_id.bucket,
                    Key=self._blob_id.path,
                    UploadId=self._upload_id,
                    MultipartUpload={"Parts": self._parts},
                )
        except ArchivistError:
            self.abort()
            raise
        self._finished = True

    def abort(self) -> None:
        """Abort the multipart upload, discarding uploaded parts."""
        if self._finished:
            return
        self._finished = True
        try:
            self._client.abort_multipart_upload(
                Bucket=self._blob_id.bucket,
                Key=self._blob_id.path,
                UploadId=self._upload_id,
            )
        except _botocore_errors() as error:
            _LOGGER.warning(
                "multipart_abort_failed",
                bucket=self._blob_id.bucket,
                path=self._blob_id.path,
                upload_id=self._upload_id,
                error=str(error),
            )

    def _upload_part(self, part: bytes) -> None:
        part_number = len(self._parts) + 1
        with _s3_errors("upload_part", self._blob_id):
            response = self._client.upload_part(
                Bucket=self._blob_id.bucket,
                Key=self._blob_id.path,
                UploadId=self._upload_id,
                PartNumber=part_number,
                Body=part,
            )
        self._parts.append({"ETag": response["ETag"], "PartNumber": part_number})

    def __enter__(self) -> "S3MultipartWriter":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if exc_type is None:
            self.close()
        else:
            self.abort()


def _object_request(blob_id: BlobId, generation: str | None) -> dict[str, str]:
    request = {"Bucket": blob_id.bucket, "Key": blob_id.path}
    if generation is not None:
        request["VersionId"] = decode_generation(generation)
    return request


def _botocore_errors() -> tuple[Any, Any]:
    """Return ``(ClientError, BotoCoreError)`` from botocore.

    Raises:
        ArchivistDependencyError: If botocore is missing.
    """
    try:
        from botocore.exceptions import BotoCoreError, ClientError
    except ImportError as error:
        raise ArchivistDependencyError(
            "The S3 backend requires botocore, but it is not installed. "
            "Install boto3 or set ARCHIVIST_BACKEND=local."
        ) from error
    return ClientError, BotoCoreError


@contextmanager
def _s3_errors(operation: str, blob_id: BlobId) -> Iterator[None]:
    """Translate botocore failures into archivist errors."""
    client_error, botocore_error = _botocore_errors()
    location = f"s3://{blob_id.bucket}/{blob_id.path}"
    try:
        yield
    except client_error as error:
        code = str(error.response.get("Error", {}).get("Code", ""))
        if code in _NOT_FOUND_CODES:
            raise ArchivistNotFoundError(
                f"S3 {operation} found nothing at {location}. "
                "Upload the resource or check the generation."
            ) from error
        raise ArchivistTransientIOError(
            f"S3 {operation} failed for {location}: {error}. Check AWS credentials and retry."
        ) from error
    except botocore_error as error:
        raise ArchivistTransientIOError(
            f"S3 {operation} failed for {location}: {error}. Check network access and retry."
        ) from error
