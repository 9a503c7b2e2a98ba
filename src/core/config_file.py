"""YAML config file overlay.

This module loads an optional YAML mapping and applies it on top of
an environment-derived config, validating every value it overrides.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any, Mapping, cast

from core.config import (
    ArchivistConfig,
    normalize_path_prefix,
    parse_bool,
    parse_choice,
)
from core.constants import SUPPORTED_BACKENDS, SUPPORTED_COMPRESSION_MODES, SUPPORTED_LOG_LEVELS
from core.errors import ArchivistConfigError, ArchivistDependencyError

_PATH_KEYS = ("archive_root", "local_store_root")
_OPTIONAL_TEXT_KEYS = ("s3_region", "s3_profile", "s3_endpoint_url")
_CHOICE_KEYS = {
    "compression_mode": SUPPORTED_COMPRESSION_MODES,
    "backend": SUPPORTED_BACKENDS,
    "log_level": SUPPORTED_LOG_LEVELS,
}
_SUPPORTED_KEYS = frozenset(
    _PATH_KEYS
    + _OPTIONAL_TEXT_KEYS
    + tuple(_CHOICE_KEYS)
    + ("bucket", "path_prefix", "download_as_stream")
)


def apply_config_file(config: ArchivistConfig, config_path: str) -> ArchivistConfig:
    """Overlay a YAML config file onto a config.

    Args:
        config: Base configuration, usually from the environment.
        config_path: Path to a YAML file with a top-level mapping.

    Returns:
        Config with file values applied.

    Raises:
        ArchivistDependencyError: If PyYAML is unavailable.
        ArchivistConfigError: If the file is missing, invalid, or has unknown keys.
    """
    config_file = Path(config_path).expanduser().resolve()
    mapping = _expect_mapping(_load_yaml_payload(config_file), config_file)
    unknown_keys = sorted(set(mapping) - _SUPPORTED_KEYS)
    if unknown_keys:
        raise ArchivistConfigError(
            f"Unknown config keys in {config_file}: {', '.join(unknown_keys)}. "
            f"Supported keys: {', '.join(sorted(_SUPPORTED_KEYS))}."
        )
    overrides = {key: _parse_value(key, value, config_file) for key, value in mapping.items()}
    return replace(config, **overrides)


def _load_yaml_payload(config_file: Path) -> object:
    try:
        import yaml  # type: ignore[import-untyped]
    except ImportError as error:  # pragma: no cover - dependency failure
        raise ArchivistDependencyError(
            "YAML config support requires PyYAML. Install with 'pip install pyyaml'."
        ) from error
    if not config_file.exists():
        raise ArchivistConfigError(
            f"Config file does not exist at {config_file}. Provide a valid YAML file path."
        )
    try:
        payload = cast(object, yaml.safe_load(config_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise ArchivistConfigError(
            f"Failed to read config file at {config_file}: {error}. Check file permissions."
        ) from error
    except yaml.YAMLError as error:
        raise ArchivistConfigError(
            f"Failed to parse YAML config at {config_file}: {error}. Fix YAML syntax and retry."
        ) from error
    if payload is None:
        return {}
    return payload


def _expect_mapping(value: object, config_file: Path) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        raise ArchivistConfigError(
            f"Invalid config file {config_file}: expected mapping, got {type(value).__name__}."
        )
    for key in value:
        if not isinstance(key, str):
            raise ArchivistConfigError(
                f"Invalid config file {config_file}: expected string keys, got {type(key).__name__}."
            )
    return cast(Mapping[str, object], value)


def _parse_value(key: str, value: object, config_file: Path) -> Any:
    """Convert one YAML value into the typed config field value."""
    if key in _PATH_KEYS:
        return Path(_expect_text(key, value, config_file)).expanduser().resolve()
    if key in _OPTIONAL_TEXT_KEYS:
        return None if value is None else _expect_text(key, value, config_file)
    if key in _CHOICE_KEYS:
        return parse_choice(key, _expect_text(key, value, config_file), _CHOICE_KEYS[key])
    if key == "download_as_stream":
        if isinstance(value, bool):
            return value
        return parse_bool(key, _expect_text(key, value, config_file))
    if key == "path_prefix":
        return normalize_path_prefix(None if value is None else _expect_text(key, value, config_file))
    bucket = _expect_text(key, value, config_file).strip()
    if not bucket or "/" in bucket:
        raise ArchivistConfigError(
            f"Invalid bucket '{bucket}' in {config_file}: expected a bare bucket name."
        )
    return bucket


def _expect_text(key: str, value: object, config_file: Path) -> str:
    if isinstance(value, str):
        return value
    raise ArchivistConfigError(
        f"Invalid '{key}' in {config_file}: expected string, got {type(value).__name__}."
    )
