"""Tests for configuration loading."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

import chatannouncer.config as config_mod
from chatannouncer.config import get_config, load_config
from chatannouncer.exceptions import ConfigError


def _write(tmp_path, config):
    config_path = tmp_path / "config.yaml"
    with open(config_path, "w") as f:
        yaml.dump(config, f)
    return config_path


@pytest.fixture()
def config_file(tmp_path):
    """Create a temporary config file."""
    return _write(
        tmp_path,
        {
            "server": {"host": "0.0.0.0", "port": 8080},
            "source": {"command": ["node", "monitor.js"], "restart_delay": 2, "max_restarts": 3},
            "processor": {"interval": 0.5},
            "tts": {"engine": "none"},
            "logging": {"level": "DEBUG", "file": "~/announcer.log"},
        },
    )


def test_load_config_returns_dict(config_file):
    """Config loads as a dictionary."""
    config = load_config(config_file)
    assert config["server"]["port"] == 8080
    assert config["source"]["command"] == ["node", "monitor.js"]


def test_load_config_expands_home(config_file):
    """~ in the log file path is expanded to the home directory."""
    log_file = load_config(config_file)["logging"]["file"]
    assert "~" not in log_file
    assert log_file.startswith(os.path.expanduser("~"))


def test_load_config_missing_file():
    """Loading a nonexistent file raises FileNotFoundError."""
    with pytest.raises(FileNotFoundError):
        load_config(Path("/nonexistent/config.yaml"))


def test_empty_file_is_empty_config(tmp_path):
    """An empty file loads as an empty mapping."""
    path = tmp_path / "config.yaml"
    path.write_text("")
    assert load_config(path) == {}


def test_non_mapping_rejected(tmp_path):
    """A YAML list at the top level is rejected."""
    path = tmp_path / "config.yaml"
    path.write_text("- a\n- b\n")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(path)


def test_example_config_loads():
    """The shipped example config is valid."""
    config = load_config(Path(config_mod.__file__).parent / "config.example.yaml")
    assert config["source"]["command"] == ["npx", "pump-fun-chat-mcp"]
    assert config["tts"]["engine"] == "system"
    assert config["processor"]["interval"] == 1.0
    assert config["ai"]["enabled"] is False


def test_get_config_is_cached(config_file):
    """get_config loads once and then returns the cached dict."""
    with patch.object(config_mod, "_config", None), patch.object(
        config_mod, "load_config", return_value={"x": 1}
    ) as mock_load:
        first = get_config()
        second = get_config()
    assert first is second
    mock_load.assert_called_once()


# --- validation ---


@pytest.mark.parametrize(
    "source",
    [
        {"command": []},
        {"command": "npx pump-fun-chat-mcp"},
        {"command": ["npx", ""]},
        {"restart_delay": 0},
        {"max_restart_delay": -1},
        {"stable_after": "soon"},
        {"max_restarts": -1},
        {"max_restarts": 1.5},
    ],
)
def test_invalid_source_section(tmp_path, source):
    """Bad source settings raise ConfigError."""
    with pytest.raises(ConfigError, match="source"):
        load_config(_write(tmp_path, {"source": source}))


def test_unlimited_restarts_allowed(tmp_path):
    """max_restarts: 0 means unlimited and is valid."""
    config = load_config(_write(tmp_path, {"source": {"max_restarts": 0}}))
    assert config["source"]["max_restarts"] == 0


def test_invalid_processor_interval(tmp_path):
    """A non-positive interval raises ConfigError."""
    with pytest.raises(ConfigError, match="processor.interval"):
        load_config(_write(tmp_path, {"processor": {"interval": 0}}))


def test_unknown_tts_engine(tmp_path):
    """An unknown speech engine raises ConfigError."""
    with pytest.raises(ConfigError, match="tts.engine"):
        load_config(_write(tmp_path, {"tts": {"engine": "festival"}}))


def test_invalid_tts_timeout(tmp_path):
    """A non-positive speech timeout raises ConfigError."""
    with pytest.raises(ConfigError, match="tts.timeout"):
        load_config(_write(tmp_path, {"tts": {"timeout": 0}}))
