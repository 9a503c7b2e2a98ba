"""Archivist CLI entry points.

This module exposes upload, download, and listing commands.
It maps argparse commands onto Archiver calls.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
import sys
from typing import Any, Sequence

from archive.archiver import Archiver
from archive.compression import supported_compression_modes
from core.config import ArchivistConfig, normalize_path_prefix
from core.config_file import apply_config_file
from core.constants import SUPPORTED_LOG_LEVELS
from core.errors import ArchivistError
from core.logging_config import configure_logging


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(
        prog="archivist",
        description="Publish and restore versioned directory archives",
    )
    parser.add_argument("--config", help="YAML config file applied over environment settings")
    parser.add_argument("--archive-root", help="Override ARCHIVIST_ARCHIVE_ROOT")
    parser.add_argument("--bucket", help="Override ARCHIVIST_BUCKET")
    parser.add_argument("--path-prefix", help="Override ARCHIVIST_PATH_PREFIX")
    parser.add_argument(
        "--compression",
        choices=supported_compression_modes(),
        help="Override ARCHIVIST_COMPRESSION",
    )
    parser.add_argument(
        "--log-level",
        choices=SUPPORTED_LOG_LEVELS,
        help="Override ARCHIVIST_LOG_LEVEL",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_upload_command(subparsers)
    _add_download_command(subparsers)
    _add_resources_command(subparsers)
    _add_versions_command(subparsers)
    _add_delete_local_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the Archivist CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = _build_config(args)
        configure_logging(config.log_level)
        archiver = Archiver.from_config(config)
        return _dispatch(parser, archiver, args)
    except ArchivistError as error:
        print(f"error: {error}", file=sys.stderr)
        return 1


def _dispatch(parser: argparse.ArgumentParser, archiver: Archiver, args: argparse.Namespace) -> int:
    if args.command == "upload":
        return _run_upload_command(archiver, args)
    if args.command == "download":
        return _run_download_command(archiver, args)
    if args.command == "resources":
        return _run_resources_command(archiver, args)
    if args.command == "versions":
        return _run_versions_command(archiver, args)
    if args.command == "delete-local":
        return _run_delete_local_command(archiver, args)
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_config(args: argparse.Namespace) -> ArchivistConfig:
    """Build config from environment, optional YAML file, and CLI overrides.

    Args:
        args: Parsed CLI args.

    Returns:
        Effective configuration.
    """
    config = ArchivistConfig.from_env()
    if args.config:
        config = apply_config_file(config, args.config)
    if args.archive_root:
        config = replace(config, archive_root=Path(args.archive_root).expanduser().resolve())
    if args.bucket:
        config = replace(config, bucket=args.bucket)
    if args.path_prefix is not None:
        config = replace(config, path_prefix=normalize_path_prefix(args.path_prefix))
    if args.compression:
        config = replace(config, compression_mode=args.compression)
    if args.log_level:
        config = replace(config, log_level=args.log_level)
    return config


def _run_upload_command(archiver: Archiver, args: argparse.Namespace) -> int:
    """Handle upload command.

    Args:
        archiver: Configured archiver.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    version_id = archiver.upload(
        args.service,
        args.resource,
        Path(args.source_dir),
        include_files=tuple(args.include_file),
        include_parent_dirs=tuple(args.include_dir),
    )
    print(version_id)
    return 0


def _run_download_command(archiver: Archiver, args: argparse.Namespace) -> int:
    """Handle download command.

    Args:
        archiver: Configured archiver.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    current_path = archiver.download(args.service, args.resource, generation=args.generation)
    print(current_path)
    return 0


def _run_resources_command(archiver: Archiver, args: argparse.Namespace) -> int:
    for resource_name in archiver.list_resources(args.service):
        print(resource_name)
    return 0


def _run_versions_command(archiver: Archiver, args: argparse.Namespace) -> int:
    current = archiver.current_version(args.service, args.resource)
    for version in archiver.list_versions(args.service, args.resource):
        marker = "*" if version.generation == current else "-"
        print(f"{version.generation}\t{marker}")
    return 0


def _run_delete_local_command(archiver: Archiver, args: argparse.Namespace) -> int:
    deleted = archiver.delete_local_files(args.service, args.resource)
    print("deleted" if deleted else "absent")
    return 0


def _add_resource_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--service", required=True, help="Service name")
    parser.add_argument("--resource", required=True, help="Resource name")


def _add_upload_command(subparsers: Any) -> None:
    """Register upload subcommand."""
    parser = subparsers.add_parser("upload", help="Publish a directory as a new version")
    parser.add_argument("source_dir", help="Directory to package")
    _add_resource_arguments(parser)
    parser.add_argument(
        "--include-file",
        action="append",
        default=[],
        help="File name or relative path to include; repeatable",
    )
    parser.add_argument(
        "--include-dir",
        action="append",
        default=[],
        help="Directory whose direct files are included; repeatable",
    )


def _add_download_command(subparsers: Any) -> None:
    """Register download subcommand."""
    parser = subparsers.add_parser("download", help="Restore a version and point current at it")
    _add_resource_arguments(parser)
    parser.add_argument("--generation", help="Optional explicit generation; latest by default")


def _add_resources_command(subparsers: Any) -> None:
    """Register resources subcommand."""
    parser = subparsers.add_parser("resources", help="List published resources of a service")
    parser.add_argument("--service", required=True, help="Service name")


def _add_versions_command(subparsers: Any) -> None:
    """Register versions subcommand."""
    parser = subparsers.add_parser("versions", help="List published generations of a resource")
    _add_resource_arguments(parser)


def _add_delete_local_command(subparsers: Any) -> None:
    """Register delete-local subcommand."""
    parser = subparsers.add_parser("delete-local", help="Remove local copies of a resource")
    _add_resource_arguments(parser)
