"""
Configuration Management for dcsstats

Provides configuration loading from multiple sources:
- Default values
- Configuration files (YAML, TOML, JSON)
- Environment variables
- Command line arguments

Configuration precedence (highest to lowest):
1. Command line arguments
2. Environment variables (DCSSTATS_*)
3. Configuration file
4. Default values

The JSON layout of the original stats tool (sourceDir / outputDir) is
accepted as well.
"""

import json
import logging
import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from dcsstats.core.constants import (
    GRACE_WINDOW_SECONDS,
    LATE_TERMINAL_DISCARD,
    LATE_TERMINAL_POLICIES,
    LOG_FILE_GLOB,
    PLAYER_NAMES_FILE,
    SORTIES_FILE,
    TOTAL_TIMES_FILE,
)
from dcsstats.core.errors import ConfigError

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration Dataclasses
# ============================================================================


@dataclass
class SourceConfig:
    """A named directory of player log files."""

    name: str
    directory: str


@dataclass
class ReconstructionConfig:
    """Configuration for sortie reconstruction."""

    grace_window_seconds: int = GRACE_WINDOW_SECONDS

    # "discard": terminal events after the grace window are ignored
    # "new_sortie": they are evaluated against a new sortie
    late_terminal_policy: str = LATE_TERMINAL_DISCARD


@dataclass
class PipelineConfig:
    """Configuration for reading sources."""

    # Files are decoded in a thread pool when > 1; merging stays single threaded
    workers: int = 1
    file_glob: str = LOG_FILE_GLOB


@dataclass
class ExportConfig:
    """Configuration for output artifacts."""

    player_names_file: str = PLAYER_NAMES_FILE
    total_times_file: str = TOTAL_TIMES_FILE
    sorties_file: str = SORTIES_FILE
    write_sorties: bool = False
    json_indent: int | None = 2


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: str | None = None
    file_max_bytes: int = 10 * 1024 * 1024  # 10MB
    file_backup_count: int = 5


@dataclass
class StatsConfig:
    """Main configuration container."""

    sources: list[SourceConfig] = field(default_factory=list)
    output_dir: str = "stats"
    reconstruction: ReconstructionConfig = field(default_factory=ReconstructionConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Version of the config format
    config_version: str = "1.0"


# ============================================================================
# Configuration Loading
# ============================================================================


def get_default_config_paths() -> list[Path]:
    """Get the default paths to search for configuration files."""
    paths = []

    # Current directory
    paths.append(Path.cwd() / "dcsstats.yaml")
    paths.append(Path.cwd() / "dcsstats.toml")
    paths.append(Path.cwd() / "dcsstats.json")
    paths.append(Path.cwd() / "config.json")

    # User config directory
    home = Path.home()
    xdg_config = os.environ.get("XDG_CONFIG_HOME", str(home / ".config"))
    paths.append(Path(xdg_config) / "dcsstats" / "config.yaml")

    return paths


def load_yaml_config(path: Path) -> dict[str, Any]:
    """Load configuration from a YAML file."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_toml_config(path: Path) -> dict[str, Any]:
    """Load configuration from a TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_json_config(path: Path) -> dict[str, Any]:
    """Load configuration from a JSON file."""
    with open(path) as f:
        return json.load(f)


def load_config_file(path: Path) -> dict[str, Any]:
    """Load configuration from a file, detecting format from extension."""
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    suffix = path.suffix.lower()
    loaders = {
        ".yaml": load_yaml_config,
        ".yml": load_yaml_config,
        ".toml": load_toml_config,
        ".json": load_json_config,
    }
    if suffix not in loaders:
        raise ConfigError(f"Unknown config file format: {suffix}")

    try:
        data = loaders[suffix](path)
    except (yaml.YAMLError, tomllib.TOMLDecodeError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not parse config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    return data


def load_env_config() -> dict[str, Any]:
    """Load configuration from environment variables."""
    config: dict[str, Any] = {}

    env_mappings = {
        "DCSSTATS_LOG_LEVEL": ("logging", "level"),
        "DCSSTATS_LOG_FILE": ("logging", "file"),
        "DCSSTATS_GRACE_WINDOW": ("reconstruction", "grace_window_seconds"),
        "DCSSTATS_LATE_TERMINAL_POLICY": ("reconstruction", "late_terminal_policy"),
        "DCSSTATS_WORKERS": ("pipeline", "workers"),
    }

    output_dir = os.environ.get("DCSSTATS_OUTPUT_DIR")
    if output_dir is not None:
        config["output_dir"] = output_dir

    for env_var, (section, key) in env_mappings.items():
        value = os.environ.get(env_var)
        if value is not None:
            if section not in config:
                config[section] = {}

            # Type conversion
            if value.lower() in ("true", "false"):
                value = value.lower() == "true"
            elif value.isdigit():
                value = int(value)

            config[section][key] = value

    return config


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge two configuration dictionaries."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def _parse_sources(data: dict[str, Any]) -> list[SourceConfig]:
    """Read sources from either the current or the legacy layout."""
    raw_sources = data.get("sources", data.get("sourceDir")) or []

    if isinstance(raw_sources, str):
        directory = Path(raw_sources)
        return [SourceConfig(name=directory.name or str(directory), directory=str(directory))]
    if not isinstance(raw_sources, list):
        raise ConfigError(f"sources must be a list or a directory, got {raw_sources!r}")

    sources = []
    for entry in raw_sources:
        if isinstance(entry, str):
            sources.append(SourceConfig(name=Path(entry).name or entry, directory=entry))
            continue
        if not isinstance(entry, dict):
            raise ConfigError(f"Invalid source entry: {entry!r}")

        directory = entry.get("directory", entry.get("dir"))
        if not directory:
            raise ConfigError(f"Source entry without directory: {entry!r}")
        name = entry.get("name") or Path(directory).name
        sources.append(SourceConfig(name=name, directory=str(directory)))

    return sources


def _apply_section(target: Any, data: dict[str, Any], section: str) -> None:
    """Copy the known keys of one config section onto its dataclass."""
    # A section key with every child commented out loads as None
    values = data.get(section) or {}
    if not isinstance(values, dict):
        raise ConfigError(f"Config section '{section}' must be a mapping, got {values!r}")

    for key, value in values.items():
        if hasattr(target, key):
            setattr(target, key, value)


def dict_to_config(data: dict[str, Any]) -> StatsConfig:
    """Convert a dictionary to StatsConfig."""
    if not isinstance(data, dict):
        raise ConfigError(f"Config must be a mapping, got {type(data).__name__}")

    config = StatsConfig()

    config.sources = _parse_sources(data)

    output_dir = data.get("output_dir", data.get("outputDir"))
    if output_dir:
        config.output_dir = str(output_dir)

    _apply_section(config.reconstruction, data, "reconstruction")
    _apply_section(config.pipeline, data, "pipeline")
    _apply_section(config.export, data, "export")
    _apply_section(config.logging, data, "logging")

    return config


def validate_config(config: StatsConfig, require_sources: bool = True) -> StatsConfig:
    """
    Check configuration values that would otherwise fail deep in a run.

    Raises:
        ConfigError: On the first invalid value
    """
    if require_sources and not config.sources:
        raise ConfigError("No source directories configured")

    names = [source.name for source in config.sources]
    if len(names) != len(set(names)):
        raise ConfigError(f"Duplicate source names: {names}")

    grace = config.reconstruction.grace_window_seconds
    if not isinstance(grace, int) or grace < 0:
        raise ConfigError(f"grace_window_seconds must be a non-negative integer, got {grace!r}")

    policy = config.reconstruction.late_terminal_policy
    if policy not in LATE_TERMINAL_POLICIES:
        raise ConfigError(
            f"late_terminal_policy must be one of {LATE_TERMINAL_POLICIES}, got {policy!r}"
        )

    workers = config.pipeline.workers
    if not isinstance(workers, int) or workers < 1:
        raise ConfigError(f"workers must be a positive integer, got {workers!r}")

    return config


def load_config(config_file: Path | None = None, include_env: bool = True) -> StatsConfig:
    """
    Load configuration from all sources.

    Args:
        config_file: Explicit path to a config file (optional)
        include_env: Whether to include environment variables

    Returns:
        Merged StatsConfig
    """
    config_data: dict[str, Any] = {}

    # Try to find and load a config file
    if config_file:
        config_data = load_config_file(config_file)
        logger.info(f"Loaded config from: {config_file}")
    else:
        for path in get_default_config_paths():
            if path.exists():
                config_data = load_config_file(path)
                logger.info(f"Loaded config from: {path}")
                break

    # Merge environment variables
    if include_env:
        env_config = load_env_config()
        config_data = merge_configs(config_data, env_config)

    return dict_to_config(config_data)


# ============================================================================
# Configuration Saving
# ============================================================================


def config_to_dict(config: StatsConfig) -> dict[str, Any]:
    """Convert StatsConfig to a dictionary."""
    return asdict(config)


def save_config(config: StatsConfig, path: Path) -> None:
    """
    Save configuration to a file.

    Args:
        config: Configuration to save
        path: Path to save to (format detected from extension)
    """
    data = config_to_dict(config)
    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        with open(path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

    elif suffix == ".json":
        with open(path, "w") as f:
            json.dump(data, f, indent=2)

    else:
        raise ConfigError(f"Unsupported config format for saving: {suffix}")

    logger.info(f"Saved config to: {path}")


# ============================================================================
# Configuration Templates
# ============================================================================

DEFAULT_CONFIG_YAML = """# dcsstats Configuration

# Directories with player log files, one file per player and session
sources:
  - name: main
    directory: ./logs/main
  # - name: training
  #   directory: ./logs/training

# player-names.json and total-times.json are written here
output_dir: ./stats

# Sortie reconstruction
reconstruction:
  grace_window_seconds: 30
  late_terminal_policy: discard  # discard or new_sortie

# Reading sources
pipeline:
  workers: 1
  file_glob: "*.csv"

# Output artifacts
export:
  player_names_file: player-names.json
  total_times_file: total-times.json
  sorties_file: sorties.json
  write_sorties: false
  json_indent: 2

# Logging settings
logging:
  level: INFO
  # file: ./dcsstats.log
"""


def generate_default_config(path: Path) -> None:
    """Generate a default configuration file."""
    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        path.write_text(DEFAULT_CONFIG_YAML)
    else:
        config = StatsConfig(sources=[SourceConfig(name="main", directory="./logs/main")])
        save_config(config, path)

    logger.info(f"Generated default config at: {path}")
