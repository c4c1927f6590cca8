"""Global app configuration (model server connection, generation limits)."""

import json
import os
from pathlib import Path
from typing import Any

from role_game.memory import DEFAULT_SYSTEM_PROMPT

from .core import data_dir

_CONFIG_DEFAULTS: dict[str, Any] = {
    "ollama_url": "http://localhost:11434",
    "num_ctx": 4096,
    "request_timeout": 120,
    "generation_timeout": 180,
    "optimize_keep_messages": 20,
    "default_system_prompt": DEFAULT_SYSTEM_PROMPT,
}


def _config_path() -> Path:
    return data_dir() / "config.json"


def get_config() -> dict[str, Any]:
    """Read config, returning defaults merged with stored values.

    OLLAMA_URL from the environment overrides the default but not a stored
    value.
    """
    config = dict(_CONFIG_DEFAULTS)
    env_url = os.getenv("OLLAMA_URL", "")
    if env_url:
        config["ollama_url"] = env_url
    path = _config_path()
    if path.is_file():
        stored = json.loads(path.read_text())
        for key in _CONFIG_DEFAULTS:
            if key in stored:
                config[key] = stored[key]
    return config


def update_config(fields: dict[str, Any]) -> dict[str, Any]:
    """Merge known fields into config and persist. Returns full config."""
    config = get_config()
    for key, value in fields.items():
        if key in _CONFIG_DEFAULTS:
            config[key] = value
    _config_path().write_text(json.dumps(config, indent=2))
    return config
