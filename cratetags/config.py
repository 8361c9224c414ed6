#!/usr/bin/env python3

import os
import json
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

import logging
import sys

from .exit_codes import ConfigError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stderr) # Default to stderr
    ]
)
logger = logging.getLogger("cratetags")


@dataclass(frozen=True)
class Settings:
    """
    Configuration resolved once at startup and passed to every component.

    Attributes:
        cache_dir: Root of the shared tags cache (artifacts, state, std lib tags)
        jobs: Maximum number of concurrent extractor invocations
        fetch_sources: Run `cargo fetch` before reading dependencies
        ctags_command: Tag extractor executable
        extractor_timeout: Seconds before an extractor invocation is abandoned
        exclude: Directory names skipped by the extractor and freshness checks
        extra_args: Additional arguments passed to the extractor
        tags_file_stem: Stem of the merged tag file written into each root
        std_lib_name: Stem of the shared standard library tag file
        cargo_command: Cargo executable
        manifest: Manifest file name searched for upwards
    """
    cache_dir: Path
    jobs: int = 4
    fetch_sources: bool = True
    ctags_command: str = "ctags"
    extractor_timeout: int = 300
    exclude: Tuple[str, ...] = (".git", "target")
    extra_args: Tuple[str, ...] = ()
    tags_file_stem: str = "cratetags"
    std_lib_name: str = "rust-std-lib"
    cargo_command: str = "cargo"
    manifest: str = "Cargo.toml"


def get_config_path():
    """Get the path to the configuration file.

    Checks in order:
    1. CRATETAGS_CONFIG environment variable
    2. ~/.cratetags/ directory
    """
    # Check for environment variable override
    if 'CRATETAGS_CONFIG' in os.environ:
        path = Path(os.environ['CRATETAGS_CONFIG'])
        if path.exists():
            return path

    cratetags_dir = Path.home() / '.cratetags'
    for filename in ['config.json', 'config.toml', 'config.yaml', 'config.yml']:
        path = cratetags_dir / filename
        if path.exists() and path.stat().st_size > 10:  # Not empty/trivial
            return path

    # If no file exists, return default path for saving
    return cratetags_dir / 'config.json'


def load_config():
    """Load configuration from file."""
    config_path = get_config_path()

    # Start with default config
    config = get_default_config()

    # Load from file if it exists
    if config_path.exists():
        try:
            if config_path.suffix.lower() in ['.toml']:
                with open(config_path, 'rb') as f:
                    file_config = tomllib.load(f)
            elif config_path.suffix.lower() in ['.yaml', '.yml']:
                import yaml
                with open(config_path, 'r') as f:
                    file_config = yaml.safe_load(f) or {}
            else:
                # Default to JSON format
                with open(config_path, 'r') as f:
                    file_config = json.load(f)

            # Merge file config with defaults
            config = merge_configs(config, file_config)
        except Exception as e:
            logger.error(f"Error loading config from {config_path}: {e}")

    # Apply environment variable overrides
    config = apply_env_overrides(config)

    return config


def get_default_config():
    """Get default configuration."""
    return {
        "general": {
            "cache_dir": "~/.cratetags",
            "jobs": 4,
            "fetch_sources": True
        },
        "extractor": {
            "command": "ctags",
            "timeout_seconds": 300,
            "exclude": [".git", "target"],
            "extra_args": []
        },
        "tags": {
            "file_name": "cratetags",
            "std_lib_name": "rust-std-lib"
        },
        "cargo": {
            "command": "cargo",
            "manifest": "Cargo.toml"
        },
        "logging": {
            "level": "INFO",
            "format": "%(levelname)s: %(message)s"
        }
    }


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = base_config.copy()

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            # Recursively merge nested dictionaries
            merged[key] = merge_configs(merged[key], value)
        else:
            # Override or add new key
            merged[key] = value

    return merged


def apply_env_overrides(config):
    """
    Apply environment variable overrides to configuration.
    Environment variables follow the pattern: CRATETAGS_SECTION_KEY
    For example: CRATETAGS_GENERAL_FETCH_SOURCES=false
    """
    env_prefix = "CRATETAGS_"

    for env_key, value in os.environ.items():
        if not env_key.startswith(env_prefix) or env_key == 'CRATETAGS_CONFIG':
            continue

        key_parts = env_key[len(env_prefix):].lower().split('_')

        # Convert value
        if value.lower() in ('true', 'yes', 'on'):
            typed_value = True
        elif value.lower() in ('false', 'no', 'off'):
            typed_value = False
        elif value.isdigit():
            typed_value = int(value)
        else:
            typed_value = value

        current_level = config
        i = 0
        while i < len(key_parts):
            # Find the longest key in current_level that is a prefix of the remaining key_parts
            best_match_len = 0
            matched_key = None

            for config_key in current_level.keys():
                config_key_parts_from_key = config_key.split('_')
                if key_parts[i : i + len(config_key_parts_from_key)] == config_key_parts_from_key:
                    if len(config_key_parts_from_key) > best_match_len:
                        best_match_len = len(config_key_parts_from_key)
                        matched_key = config_key

            if matched_key:
                # If we are at the end of the env var, we have found the key to set
                if i + best_match_len == len(key_parts):
                    current_level[matched_key] = typed_value
                    break

                # Otherwise, we descend into the dictionary
                if isinstance(current_level[matched_key], dict):
                    current_level = current_level[matched_key]
                    i += best_match_len
                else:
                    # Path conflict, e.g., env var is longer but we found a non-dict value
                    break
            else:
                # No match found
                break

    return config


def _as_tuple(value, key):
    if isinstance(value, str):
        return tuple(part for part in value.split(',') if part)
    if isinstance(value, (list, tuple)):
        return tuple(str(part) for part in value)
    raise ConfigError(f"'{key}' must be a list of strings, got {value!r}")


def _section(config, name):
    section = config.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a table of settings, got {section!r}")
    return section


def resolve_settings(config) -> Settings:
    """
    Turn a configuration dictionary into Settings.

    Raises:
        ConfigError: If a value has the wrong type
    """
    general = _section(config, 'general')
    extractor = _section(config, 'extractor')
    tags = _section(config, 'tags')
    cargo = _section(config, 'cargo')

    try:
        jobs = int(general.get('jobs', 4))
        timeout = int(extractor.get('timeout_seconds', 300))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid number in configuration: {e}")
    if jobs < 1:
        raise ConfigError(f"'general.jobs' must be at least 1, got {jobs}")

    return Settings(
        cache_dir=Path(str(general.get('cache_dir', '~/.cratetags'))).expanduser(),
        jobs=jobs,
        fetch_sources=bool(general.get('fetch_sources', True)),
        ctags_command=str(extractor.get('command', 'ctags')),
        extractor_timeout=timeout,
        exclude=_as_tuple(extractor.get('exclude', []), 'extractor.exclude'),
        extra_args=_as_tuple(extractor.get('extra_args', []), 'extractor.extra_args'),
        tags_file_stem=str(tags.get('file_name', 'cratetags')),
        std_lib_name=str(tags.get('std_lib_name', 'rust-std-lib')),
        cargo_command=str(cargo.get('command', 'cargo')),
        manifest=str(cargo.get('manifest', 'Cargo.toml')),
    )
