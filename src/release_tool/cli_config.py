"""
Configuration management for release-tool.

Holds the settings that are not part of a release description: network and
subprocess deadlines, executables, the remote resolution cache directory and
logging. Values come from defaults, an optional config file and
``RELEASE_TOOL_*`` environment variables, in that order.
"""

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml
import yaml
from rich.console import Console

console = Console(stderr=True)


@dataclass
class NetworkConfig:
    """HTTP settings for vanity import path lookups."""

    user_agent: str = "release-tool/1.0.0"
    connect_timeout: float = 10.0
    read_timeout: float = 30.0
    follow_redirects: bool = True


@dataclass
class GitConfig:
    """External command settings."""

    executable: str = "git"
    make_executable: str = "make"
    timeout_seconds: float = 300.0
    mailmap_file: str = ".mailmap"


@dataclass
class CacheConfig:
    """Remote resolution cache settings."""

    directory: Optional[str] = None


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_level: str = "WARNING"
    log_format: str = "json"


@dataclass
class ToolConfig:
    """Main configuration containing all subsections."""

    network: NetworkConfig = field(default_factory=NetworkConfig)
    git: GitConfig = field(default_factory=GitConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_global_config: Optional[ToolConfig] = None

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_VALID_LOG_FORMATS = {"json", "text"}


def validate_config_values(config: ToolConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Args:
        config: Configuration to validate

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = []

    if config.network.connect_timeout <= 0:
        errors.append("network.connect_timeout must be positive")
    if config.network.read_timeout <= 0:
        errors.append("network.read_timeout must be positive")
    if config.git.timeout_seconds <= 0:
        errors.append("git.timeout_seconds must be positive")
    if not config.git.executable:
        errors.append("git.executable must not be empty")
    if config.logging.log_level.upper() not in _VALID_LOG_LEVELS:
        errors.append(f"logging.log_level must be one of {sorted(_VALID_LOG_LEVELS)}")
    if config.logging.log_format not in _VALID_LOG_FORMATS:
        errors.append(f"logging.log_format must be one of {sorted(_VALID_LOG_FORMATS)}")

    return errors


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load config from a JSON, TOML or YAML file."""
    if not config_path.exists():
        return None

    try:
        with open(config_path, encoding="utf-8") as f:
            if config_path.suffix.lower() == ".toml":
                return toml.load(f)
            if config_path.suffix.lower() in [".yaml", ".yml"]:
                return yaml.safe_load(f)
            if config_path.suffix.lower() == ".json":
                return json.load(f)
    except (OSError, ValueError, toml.TomlDecodeError, yaml.YAMLError) as e:
        console.print(f"⚠️  Error loading config from {config_path}: {e}", style="yellow")

    return None


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / ".release-tool.toml",
        Path.cwd() / ".release-tool.json",
        Path.cwd() / ".release-tool.yaml",
        Path.home() / ".config" / "release-tool" / "config.toml",
        Path.home() / ".config" / "release-tool" / "config.json",
        Path.home() / ".config" / "release-tool" / "config.yaml",
    ]

    for location in locations:
        if location.exists():
            return location

    return None


def load_environment_overrides(config: ToolConfig) -> None:
    """Load environment variable overrides."""

    def get_env_float(key: str) -> Optional[float]:
        try:
            return float(os.environ[key]) if key in os.environ else None
        except ValueError:
            console.print(f"⚠️  Invalid float value for {key}, using default", style="yellow")
            return None

    if cache_dir := os.environ.get("RELEASE_TOOL_CACHE"):
        config.cache.directory = cache_dir
    if git_executable := os.environ.get("RELEASE_TOOL_GIT"):
        config.git.executable = git_executable
    if make_executable := os.environ.get("RELEASE_TOOL_MAKE"):
        config.git.make_executable = make_executable
    if git_timeout := get_env_float("RELEASE_TOOL_GIT_TIMEOUT"):
        config.git.timeout_seconds = git_timeout

    if user_agent := os.environ.get("RELEASE_TOOL_USER_AGENT"):
        config.network.user_agent = user_agent
    if connect_timeout := get_env_float("RELEASE_TOOL_CONNECT_TIMEOUT"):
        config.network.connect_timeout = connect_timeout
    if read_timeout := get_env_float("RELEASE_TOOL_READ_TIMEOUT"):
        config.network.read_timeout = read_timeout

    if log_level := os.environ.get("RELEASE_TOOL_LOG_LEVEL"):
        config.logging.log_level = log_level.upper()
    if log_format := os.environ.get("RELEASE_TOOL_LOG_FORMAT"):
        config.logging.log_format = log_format.lower()


def apply_config_section(config: Any, section_data: Dict[str, Any], section_name: str) -> None:
    """Apply configuration from dictionary to config section."""
    for key, value in section_data.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            console.print(f"⚠️  Unknown config key in {section_name}: {key}", style="yellow")


def load_config(config_file: Optional[Path] = None) -> ToolConfig:
    """Load configuration from file and environment."""
    global _global_config

    if _global_config is not None and config_file is None:
        return _global_config

    config = ToolConfig()

    config_file = config_file or find_config_file()
    if config_file:
        file_config = load_config_file(config_file)
        if file_config:
            for section in ("network", "git", "cache", "logging"):
                if isinstance(file_config.get(section), dict):
                    apply_config_section(getattr(config, section), file_config[section], section)

    load_environment_overrides(config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        console.print("⚠️  Configuration validation errors:", style="red")
        for error in validation_errors:
            console.print(f"  • {error}", style="red")
        console.print("Using default values for invalid settings.", style="yellow")
        defaults = ToolConfig()
        if config.network.connect_timeout <= 0:
            config.network.connect_timeout = defaults.network.connect_timeout
        if config.network.read_timeout <= 0:
            config.network.read_timeout = defaults.network.read_timeout
        if config.git.timeout_seconds <= 0:
            config.git.timeout_seconds = defaults.git.timeout_seconds
        if not config.git.executable:
            config.git.executable = defaults.git.executable
        if config.logging.log_level.upper() not in _VALID_LOG_LEVELS:
            config.logging.log_level = defaults.logging.log_level
        if config.logging.log_format not in _VALID_LOG_FORMATS:
            config.logging.log_format = defaults.logging.log_format

    _global_config = config
    return config


def get_config() -> ToolConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _global_config
    _global_config = None


def create_sample_config() -> str:
    """Generate a sample TOML configuration."""
    return toml.dumps(
        {
            "network": asdict(NetworkConfig()),
            "git": asdict(GitConfig()),
            "cache": {"directory": "~/.cache/release-tool"},
            "logging": asdict(LoggingConfig()),
        }
    )
