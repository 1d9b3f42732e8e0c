"""
Configuration management for archive builds.
Simple YAML-based configuration with per-format defaults.
"""

import copy
import os
import yaml
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, Optional, Tuple
from colored_logger import get_colored_logger

from .path_utils import parse_file_mode

logger = get_colored_logger(__name__)

ENV_PREFIX = "ARCHIVE_FILE__"
ENV_SEPARATOR = "__"

CONFIG_FILE_NAMES = ("archive-config.yml", ".archive-config.yml")

DEFAULT_CONFIG = {
    "walker": {
        "max_symlink_hops": 40,
    },
    "output": {
        "create_parent_dirs": True,
        "parent_dir_mode": "0755",
        "delete_on_failure": True,
    },
    "formats": {
        "zip": {
            "normalize_metadata": True,
            "normalized_date_time": [1981, 4, 10, 0, 0, 0],
            "normalized_mode": "0644",
            "zero_date_time": [1980, 1, 1, 0, 0, 0],
            "default_mode": "0644",
            "compress_level": 6,
        },
        "tar_gz": {
            "preserve_walk_mtime": True,
            "default_mode": "0600",
            "compress_level": 6,
        },
    },
    "logging": {
        "level": "INFO",
    },
}


@dataclass(frozen=True)
class ZipFormatSettings:
    """ZIP normalization policy."""

    normalize_metadata: bool = True
    normalized_date_time: Tuple[int, ...] = (1981, 4, 10, 0, 0, 0)
    normalized_mode: int = 0o644
    zero_date_time: Tuple[int, ...] = (1980, 1, 1, 0, 0, 0)
    default_mode: int = 0o644
    compress_level: int = 6

    def __post_init__(self):
        for name in ("normalized_date_time", "zero_date_time"):
            value = getattr(self, name)
            if len(value) != 6:
                raise ValueError(f"{name} must have six fields, got {list(value)}")
            # DOS timestamps cannot encode years before 1980
            if value[0] < 1980:
                raise ValueError(f"{name} must not be earlier than 1980, got {list(value)}")
        if not 0 <= self.compress_level <= 9:
            raise ValueError(f"compress_level must be between 0 and 9, got {self.compress_level}")


@dataclass(frozen=True)
class TarGzFormatSettings:
    """TAR+gzip normalization policy."""

    preserve_walk_mtime: bool = True
    default_mode: int = 0o600
    compress_level: int = 6

    def __post_init__(self):
        if not 0 <= self.compress_level <= 9:
            raise ValueError(f"compress_level must be between 0 and 9, got {self.compress_level}")


@dataclass(frozen=True)
class OutputSettings:
    create_parent_dirs: bool = True
    parent_dir_mode: int = 0o755
    delete_on_failure: bool = True


@dataclass(frozen=True)
class ArchiveSettings:
    """Typed view of the configuration used by the archive engine."""

    max_symlink_hops: int = 40
    output: OutputSettings = field(default_factory=OutputSettings)
    zip: ZipFormatSettings = field(default_factory=ZipFormatSettings)
    tar_gz: TarGzFormatSettings = field(default_factory=TarGzFormatSettings)
    log_level: str = "INFO"

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ArchiveSettings":
        """
        Build settings from a merged configuration dictionary.

        Raises:
            InvalidFileModeError: If a configured mode is not valid octal
            ValueError: If a configured value is out of range
        """
        walker = config.get("walker", {})
        output = config.get("output", {})
        formats = config.get("formats", {})
        zip_config = formats.get("zip", {})
        tar_config = formats.get("tar_gz", {})

        max_hops = int(walker.get("max_symlink_hops", 40))
        if max_hops < 1:
            raise ValueError(f"walker.max_symlink_hops must be at least 1, got {max_hops}")

        return cls(
            max_symlink_hops=max_hops,
            output=OutputSettings(
                create_parent_dirs=bool(output.get("create_parent_dirs", True)),
                parent_dir_mode=parse_file_mode(output.get("parent_dir_mode", "0755")),
                delete_on_failure=bool(output.get("delete_on_failure", True)),
            ),
            zip=ZipFormatSettings(
                normalize_metadata=bool(zip_config.get("normalize_metadata", True)),
                normalized_date_time=tuple(
                    int(v) for v in zip_config.get("normalized_date_time", (1981, 4, 10, 0, 0, 0))
                ),
                normalized_mode=parse_file_mode(zip_config.get("normalized_mode", "0644")),
                zero_date_time=tuple(
                    int(v) for v in zip_config.get("zero_date_time", (1980, 1, 1, 0, 0, 0))
                ),
                default_mode=parse_file_mode(zip_config.get("default_mode", "0644")),
                compress_level=int(zip_config.get("compress_level", 6)),
            ),
            tar_gz=TarGzFormatSettings(
                preserve_walk_mtime=bool(tar_config.get("preserve_walk_mtime", True)),
                default_mode=parse_file_mode(tar_config.get("default_mode", "0600")),
                compress_level=int(tar_config.get("compress_level", 6)),
            ),
            log_level=str(config.get("logging", {}).get("level", "INFO")),
        )


def find_config_file(search_dir: Optional[Path] = None) -> Optional[Path]:
    """Look for a config file in the given (or current) directory."""
    directory = Path(search_dir) if search_dir else Path.cwd()
    for name in CONFIG_FILE_NAMES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load archive configuration from YAML file with fallback to defaults.

    Args:
        config_path: Optional path to config file

    Returns:
        Configuration dictionary
    """
    if config_path:
        config_file = Path(config_path)
    else:
        config_file = find_config_file()

    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_file and config_file.exists():
        try:
            with open(config_file, "r") as f:
                user_config = yaml.safe_load(f) or {}

            if not isinstance(user_config, dict):
                raise ValueError("top level of the config file must be a mapping")

            config = _deep_merge(config, user_config)
            logger.debug("Loaded configuration from %s", config_file)

        except (OSError, yaml.YAMLError, ValueError) as e:
            logger.warning("Failed to load config from %s: %s", config_file, e)
            logger.warning("Using default configuration")
    elif config_path:
        logger.warning("Config file not found: %s, using defaults", config_path)

    return _apply_env_overrides(config)


def load_settings(config_path: Optional[str] = None) -> ArchiveSettings:
    """Load configuration and convert it to ArchiveSettings."""
    return ArchiveSettings.from_config(load_config(config_path))


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary to merge into base

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply environment variable overrides to config.

    Environment variables follow pattern: ARCHIVE_FILE__<SECTION>__<KEY>=value
    Example: ARCHIVE_FILE__FORMATS__ZIP__COMPRESS_LEVEL=9

    Args:
        config: Base configuration

    Returns:
        Configuration with environment overrides applied
    """
    for env_key, env_value in os.environ.items():
        if not env_key.startswith(ENV_PREFIX):
            continue

        key_parts = env_key[len(ENV_PREFIX) :].lower().split(ENV_SEPARATOR)
        if len(key_parts) < 2 or not all(key_parts):
            continue

        current = config
        for part in key_parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[key_parts[-1]] = _convert_env_value(env_value)

    return config


def _convert_env_value(value: str) -> Any:
    """
    Convert environment variable string to appropriate Python type.

    Mode strings such as "0644" keep their leading zero and stay strings.
    """
    if value.lower() in ("true", "yes", "on"):
        return True
    elif value.lower() in ("false", "no", "off"):
        return False

    if len(value) > 1 and value.startswith("0") and value.isdigit():
        return value

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    # List conversion (comma-separated)
    if "," in value:
        return [item.strip() for item in value.split(",")]

    return value
