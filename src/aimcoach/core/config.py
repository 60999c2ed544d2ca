"""
Configuration Management for AimCoach

Provides configuration loading from multiple sources:
- Default values
- Configuration files (YAML, TOML, JSON)
- Environment variables

Configuration precedence (highest to lowest):
1. Environment variables (AIMCOACH_*)
2. Configuration file
3. Default values
"""

import json
import logging
import logging.handlers
import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from aimcoach.core import constants

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration Dataclasses
# ============================================================================


@dataclass
class ContextConfig:
    """Thresholds for user context classification."""

    analysis_min_new_scores: int = constants.ANALYSIS_MIN_NEW_SCORES
    analysis_max_days_inactive: int = constants.ANALYSIS_MAX_DAYS_INACTIVE
    returning_min_days_inactive: int = constants.RETURNING_MIN_DAYS_INACTIVE
    # Window for counting fresh scores
    new_scores_window_hours: int = 24


@dataclass
class ChatConfig:
    """Configuration for the conversation graph."""

    # Minimum intent confidence before a task pipeline is run
    delegation_confidence: float = constants.DELEGATION_MIN_CONFIDENCE

    # Use the model to refine low-confidence keyword classifications
    model_intent_refinement: bool = True

    # Fall back to active_user instead of failing the turn when context detection errors
    degrade_on_context_error: bool = False

    # Tool-use round trips allowed per conversational reply
    max_tool_iterations: int = 5

    # Characters of an exception message shown to the player
    error_excerpt_chars: int = 120


@dataclass
class ModelConfig:
    """Configuration for the generative model service."""

    # "standard" or "deep"
    chat_tier: str = "standard"
    task_tier: str = "deep"
    timeout: int = 60
    max_tokens: int = 2048
    api_key: str | None = None  # defaults to ANTHROPIC_API_KEY


@dataclass
class PipelineConfig:
    """Windows used by the task pipelines."""

    score_analysis_limit: int = constants.SCORE_ANALYSIS_LIMIT
    playlist_history_limit: int = constants.PLAYLIST_HISTORY_LIMIT
    minutes_per_session: int = constants.MINUTES_PER_SESSION
    trend_threshold: float = constants.TREND_THRESHOLD
    # Persist generated playlists as the active playlist
    save_playlists: bool = True


@dataclass
class DatabaseConfig:
    """Configuration for the SQLite store."""

    path: str | None = None  # defaults to ~/.aimcoach/aimcoach.db
    echo: bool = False


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: str | None = None
    file_max_bytes: int = 10 * 1024 * 1024  # 10MB
    file_backup_count: int = 5


@dataclass
class AimCoachConfig:
    """Main configuration container."""

    context: ContextConfig = field(default_factory=ContextConfig)
    chat: ChatConfig = field(default_factory=ChatConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    pipelines: PipelineConfig = field(default_factory=PipelineConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Version of the config format
    config_version: str = "1.0"


_SECTIONS = ("context", "chat", "model", "pipelines", "database", "logging")


# ============================================================================
# Configuration Loading
# ============================================================================


def get_default_config_paths() -> list[Path]:
    """Get the default paths to search for configuration files."""
    paths = []

    # Current directory
    paths.append(Path.cwd() / "aimcoach.yaml")
    paths.append(Path.cwd() / "aimcoach.toml")
    paths.append(Path.cwd() / "aimcoach.json")
    paths.append(Path.cwd() / ".aimcoach.yaml")

    # User home directory
    home = Path.home()
    paths.append(home / ".aimcoach.yaml")

    # XDG config directory
    xdg_config = os.environ.get("XDG_CONFIG_HOME", str(home / ".config"))
    paths.append(Path(xdg_config) / "aimcoach" / "config.yaml")

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
        return {}

    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return load_yaml_config(path)
    elif suffix == ".toml":
        return load_toml_config(path)
    elif suffix == ".json":
        return load_json_config(path)
    else:
        logger.warning(f"Unknown config file format: {suffix}")
        return {}


def load_env_config() -> dict[str, Any]:
    """Load configuration from environment variables."""
    config: dict[str, Any] = {}

    env_mappings = {
        "AIMCOACH_LOG_LEVEL": ("logging", "level"),
        "AIMCOACH_LOG_FILE": ("logging", "file"),
        "AIMCOACH_DB_PATH": ("database", "path"),
        "AIMCOACH_CHAT_TIER": ("model", "chat_tier"),
        "AIMCOACH_TASK_TIER": ("model", "task_tier"),
        "AIMCOACH_MODEL_TIMEOUT": ("model", "timeout"),
        "AIMCOACH_DELEGATION_CONFIDENCE": ("chat", "delegation_confidence"),
        "AIMCOACH_DEGRADE_ON_CONTEXT_ERROR": ("chat", "degrade_on_context_error"),
        "AIMCOACH_MODEL_INTENT_REFINEMENT": ("chat", "model_intent_refinement"),
        "AIMCOACH_SAVE_PLAYLISTS": ("pipelines", "save_playlists"),
    }

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
            else:
                try:
                    value = float(value)
                except ValueError:
                    pass

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


def dict_to_config(data: dict[str, Any]) -> AimCoachConfig:
    """Convert a dictionary to AimCoachConfig, ignoring unknown keys."""
    config = AimCoachConfig()

    for section_name in _SECTIONS:
        section_data = data.get(section_name)
        if not section_data:
            continue
        section = getattr(config, section_name)
        for key, value in section_data.items():
            if hasattr(section, key):
                setattr(section, key, value)
            else:
                logger.debug("Ignoring unknown config key %s.%s", section_name, key)

    return config


def load_config(config_file: Path | None = None, include_env: bool = True) -> AimCoachConfig:
    """
    Load configuration from all sources.

    Args:
        config_file: Explicit path to a config file (optional)
        include_env: Whether to include environment variables

    Returns:
        Merged AimCoachConfig
    """
    config_data: dict[str, Any] = {}

    if config_file:
        config_data = load_config_file(config_file)
        logger.info(f"Loaded config from: {config_file}")
    else:
        for path in get_default_config_paths():
            if path.exists():
                config_data = load_config_file(path)
                logger.info(f"Loaded config from: {path}")
                break

    if include_env:
        env_config = load_env_config()
        config_data = merge_configs(config_data, env_config)

    return dict_to_config(config_data)


# ============================================================================
# Configuration Saving
# ============================================================================


def save_config(config: AimCoachConfig, path: Path) -> None:
    """
    Save configuration to a file.

    Args:
        config: Configuration to save
        path: Path to save to (.yaml, .yml or .json)
    """
    data = config_to_dict(config)
    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
    elif suffix == ".json":
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
    else:
        raise ValueError(f"Unknown config format: {suffix}")

    logger.info(f"Saved config to: {path}")


def config_to_dict(config: AimCoachConfig) -> dict[str, Any]:
    """Convert AimCoachConfig to a dictionary."""
    return asdict(config)


# ============================================================================
# Logging Setup
# ============================================================================


def configure_logging(config: LoggingConfig, level_override: str | None = None) -> None:
    """
    Apply a LoggingConfig to the root logger.

    Args:
        config: Logging section of the configuration
        level_override: Level that wins over config.level (e.g. from --verbose)
    """
    level = getattr(logging, (level_override or config.level).upper(), logging.INFO)
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if config.file:
        log_path = Path(config.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                log_path,
                maxBytes=config.file_max_bytes,
                backupCount=config.file_backup_count,
            )
        )

    logging.basicConfig(level=level, format=config.format, handlers=handlers, force=True)

    # The HTTP stack is noisy at DEBUG
    for noisy in ("httpx", "httpcore", "anthropic"):
        logging.getLogger(noisy).setLevel(max(level, logging.INFO))


# ============================================================================
# Global Configuration
# ============================================================================

_global_config: AimCoachConfig | None = None


def get_config() -> AimCoachConfig:
    """Get the global configuration, loading it if necessary."""
    global _global_config

    if _global_config is None:
        _global_config = load_config()

    return _global_config


def set_config(config: AimCoachConfig) -> None:
    """Set the global configuration."""
    global _global_config
    _global_config = config


def reset_config() -> None:
    """Reset the global configuration to defaults."""
    global _global_config
    _global_config = None


# ============================================================================
# Configuration Templates
# ============================================================================

DEFAULT_CONFIG_YAML = """# AimCoach Configuration

# User context thresholds
context:
  analysis_min_new_scores: 6
  analysis_max_days_inactive: 1
  returning_min_days_inactive: 7
  new_scores_window_hours: 24

# Conversation graph
chat:
  delegation_confidence: 0.7
  model_intent_refinement: true
  degrade_on_context_error: false  # true = fall back to active_user on store errors
  max_tool_iterations: 5

# Generative model (Anthropic)
model:
  chat_tier: standard  # standard or deep
  task_tier: deep
  timeout: 60
  max_tokens: 2048
  # api_key: sk-ant-...  # defaults to ANTHROPIC_API_KEY

# Task pipelines
pipelines:
  score_analysis_limit: 20
  playlist_history_limit: 30
  minutes_per_session: 10
  trend_threshold: 0.05
  save_playlists: true

# SQLite store
database:
  # path: ~/.aimcoach/aimcoach.db
  echo: false

# Logging settings
logging:
  level: INFO
  # file: ~/.aimcoach/aimcoach.log
"""


def generate_default_config(path: Path) -> None:
    """Generate a default configuration file."""
    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        path.write_text(DEFAULT_CONFIG_YAML)
    else:
        config = AimCoachConfig()
        save_config(config, path)

    logger.info(f"Generated default config at: {path}")
