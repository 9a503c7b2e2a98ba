"""Compression-mode dispatch.

This module maps each compression mode to its blob suffix and stream
wrappers. The archiver picks one codec at construction time and uses it
for both directions.
"""

from __future__ import annotations

from dataclasses import dataclass
import gzip
from typing import Any, BinaryIO, Callable, cast

from core.constants import COMPRESSION_GZIP, COMPRESSION_LZ4, GZIP_SUFFIX, LZ4_SUFFIX
from core.errors import ArchivistConfigError, ArchivistDependencyError


@dataclass(frozen=True)
class CompressionCodec:
    """Suffix and stream wrappers of one compression mode.

    Attributes:
        mode: Mode name, ``gzip`` or ``lz4``.
        suffix: Blob path suffix including the leading dot.
        open_reader: Wraps a compressed byte stream into a decompressing reader.
        open_writer: Wraps a byte sink into a compressing writer.
    """

    mode: str
    suffix: str
    open_reader: Callable[[BinaryIO], BinaryIO]
    open_writer: Callable[[BinaryIO], BinaryIO]


def get_codec(mode: str) -> CompressionCodec:
    """Return the codec for a compression mode.

    Args:
        mode: Compression mode name.

    Returns:
        Matching codec.

    Raises:
        ArchivistConfigError: If mode is unknown.
    """
    codec = _CODECS.get(mode)
    if codec is None:
        raise ArchivistConfigError(
            f"Unsupported compression mode '{mode}'. "
            f"Use one of: {', '.join(supported_compression_modes())}."
        )
    return codec


def supported_compression_modes() -> tuple[str, ...]:
    """Return the compression mode names in stable order."""
    return tuple(_CODECS)


def _open_gzip_reader(raw: BinaryIO) -> BinaryIO:
    return cast(BinaryIO, gzip.GzipFile(fileobj=raw, mode="rb"))


def _open_gzip_writer(raw: BinaryIO) -> BinaryIO:
    return cast(BinaryIO, gzip.GzipFile(fileobj=raw, mode="wb"))


def _open_lz4_reader(raw: BinaryIO) -> BinaryIO:
    return cast(BinaryIO, _lz4_frame().LZ4FrameFile(raw, mode="rb"))


def _open_lz4_writer(raw: BinaryIO) -> BinaryIO:
    return cast(BinaryIO, _lz4_frame().LZ4FrameFile(raw, mode="wb"))


def _lz4_frame() -> Any:
    try:
        import lz4.frame
    except ImportError as error:
        raise ArchivistDependencyError(
            "LZ4 compression requires the lz4 package, but it is not installed. "
            "Install lz4 or set ARCHIVIST_COMPRESSION=gzip."
        ) from error
    return lz4.frame


_CODECS = {
    COMPRESSION_GZIP: CompressionCodec(
        mode=COMPRESSION_GZIP,
        suffix=GZIP_SUFFIX,
        open_reader=_open_gzip_reader,
        open_writer=_open_gzip_writer,
    ),
    COMPRESSION_LZ4: CompressionCodec(
        mode=COMPRESSION_LZ4,
        suffix=LZ4_SUFFIX,
        open_reader=_open_lz4_reader,
        open_writer=_open_lz4_writer,
    ),
}
