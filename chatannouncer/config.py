"""Configuration loader for the chat announcer.

Loads settings from config.yaml and validates the sections the pipeline
depends on.
"""

import os
from pathlib import Path

import yaml

from chatannouncer.exceptions import ConfigError

_CONFIG_DIR = Path(__file__).parent
_DEFAULT_CONFIG_PATH = _CONFIG_DIR / "config.yaml"
_EXAMPLE_CONFIG_PATH = _CONFIG_DIR / "config.example.yaml"

TTS_ENGINES = ("system", "openai", "none")

_config: dict | None = None


def load_config(path: Path | None = None) -> dict:
    """Load configuration from a YAML file.

    Args:
        path: Path to the config file. Defaults to chatannouncer/config.yaml,
            then chatannouncer/config.example.yaml.

    Returns:
        Configuration dictionary.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ConfigError: If the file is not a mapping or a section is invalid.
    """
    if path is not None:
        config_path = Path(path)
    elif _DEFAULT_CONFIG_PATH.exists():
        config_path = _DEFAULT_CONFIG_PATH
    elif _EXAMPLE_CONFIG_PATH.exists():
        config_path = _EXAMPLE_CONFIG_PATH
    else:
        raise FileNotFoundError(f"Config file not found: {_DEFAULT_CONFIG_PATH}")

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ConfigError(f"{config_path} must contain a mapping")

    _expand_paths(config)
    _validate_source_config(config)
    _validate_processor_config(config)
    _validate_tts_config(config)
    return config


def get_config() -> dict:
    """Get the cached configuration, loading it if necessary."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def _expand_paths(config: dict) -> None:
    """Expand ~ and environment variables in path-like config values."""
    path_keys = {("logging", "file")}
    for section_key, value_key in path_keys:
        section = config.get(section_key) or {}
        if isinstance(section.get(value_key), str):
            section[value_key] = os.path.expandvars(os.path.expanduser(section[value_key]))


def _positive(section: str, key: str, value) -> None:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
        raise ConfigError(f"{section}.{key} must be a positive number")


def _validate_source_config(config: dict) -> None:
    """Validate the optional source section.

    Raises:
        ConfigError: If the command is not a non-empty list of strings or
            a restart setting is out of range.
    """
    source = config.get("source")
    if source is None:
        return

    command = source.get("command")
    if command is not None:
        if not isinstance(command, list) or not command:
            raise ConfigError("source.command must be a non-empty list")
        if not all(isinstance(part, str) and part for part in command):
            raise ConfigError("source.command entries must be non-empty strings")

    for key in ("restart_delay", "max_restart_delay", "stable_after"):
        if key in source:
            _positive("source", key, source[key])

    max_restarts = source.get("max_restarts", 0)
    if not isinstance(max_restarts, int) or isinstance(max_restarts, bool) or max_restarts < 0:
        raise ConfigError("source.max_restarts must be a non-negative integer")


def _validate_processor_config(config: dict) -> None:
    processor = config.get("processor") or {}
    if "interval" in processor:
        _positive("processor", "interval", processor["interval"])


def _validate_tts_config(config: dict) -> None:
    """Validate the optional tts section.

    Raises:
        ConfigError: If the engine is unknown or the timeout is not positive.
    """
    tts = config.get("tts")
    if tts is None:
        return

    engine = tts.get("engine", "system")
    if engine not in TTS_ENGINES:
        raise ConfigError(f"tts.engine must be one of {', '.join(TTS_ENGINES)}")
    if "timeout" in tts:
        _positive("tts", "timeout", tts["timeout"])
