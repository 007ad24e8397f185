"""
Application configuration management.

Settings live in a simple JSON config file in the data directory. Anything
missing from the file falls back to DEFAULTS, and a few keys can be
overridden from the environment.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict
from weave.db import get_data_dir


CONFIG_FILE = "weave_config.json"
DEFAULT_PORT = 8000

DEFAULTS: Dict[str, Any] = {
    "server_host": "127.0.0.1",
    "server_port": DEFAULT_PORT,
    "log_level": "INFO",
    # LLM models (LiteLLM provider/model format) and output token budgets
    "chat_model": "anthropic/claude-3-5-haiku-20241022",
    "chat_max_tokens": 300,
    "extraction_model": "anthropic/claude-sonnet-4-20250514",
    "extraction_max_tokens": 2000,
    "recommendation_max_tokens": 1000,
    "pattern_max_tokens": 1000,
    # Confidence thresholds per route
    "entity_min_confidence": 0.5,
    "pattern_min_confidence": 0.6,
    "recommendation_min_confidence": 0.5,
    "min_artifacts_for_patterns": 3,
    # Chat rate limiting (per user, per process)
    "rate_limit_max_requests": 10,
    "rate_limit_window_seconds": 60,
    "rate_limit_cleanup_interval_seconds": 300,
    "session_cookie_name": "weave_session",
}

ENV_OVERRIDES = {
    "log_level": "WEAVE_LOG_LEVEL",
    "chat_model": "WEAVE_CHAT_MODEL",
    "extraction_model": "WEAVE_EXTRACTION_MODEL",
}


def get_config_path() -> Path:
    """Get path to config file in data directory."""
    return get_data_dir() / CONFIG_FILE


def load_config() -> dict:
    """Load configuration from file, or return an empty dict."""
    config_path = get_config_path()
    if config_path.exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError):
            # Corrupted config file: fall back to defaults
            return {}
        if isinstance(data, dict):
            return data
    return {}


def save_config(config: dict) -> None:
    """Save configuration to file."""
    config_path = get_config_path()
    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(config, f, indent=2)


def get_setting(key: str) -> Any:
    """
    Resolve one setting.

    Precedence: environment override, then config file, then DEFAULTS.

    Raises:
        KeyError: If the key is not a known setting.
    """
    if key not in DEFAULTS:
        raise KeyError(f"Unknown setting: {key}")

    env_name = ENV_OVERRIDES.get(key)
    if env_name and os.getenv(env_name):
        return os.getenv(env_name)

    value = load_config().get(key, DEFAULTS[key])
    default = DEFAULTS[key]
    # Keep numeric settings numeric even if the file stores strings
    if isinstance(default, (int, float)) and not isinstance(default, bool):
        try:
            return type(default)(value)
        except (TypeError, ValueError):
            return default
    return value


def get_port() -> int:
    """Get configured server port, or default."""
    return get_setting('server_port')


def set_port(port: int) -> None:
    """Set server port in config."""
    config = load_config()
    config['server_port'] = port
    save_config(config)