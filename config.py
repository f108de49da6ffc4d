import json
import os
from typing import Any, Dict, Optional

from constants import (
    API_TIMEOUT,
    CALLBACK_PORT,
    DEFAULT_SCOPES,
    PID_FILE,
    QUEUE_JUMP_LIMIT,
    STATUS_FILE,
    STATUS_INTERVAL_SECONDS,
    TOKEN_REQUEST_TIMEOUT,
)
from spotify_api.errors import ConfigError
from utils.paths import user_config_dir

ENV_CLIENT_ID = "SPOTIFY_ID"
ENV_CLIENT_SECRET = "SPOTIFY_SECRET"

# Default configuration values
DEFAULT_CONFIG = {
    # Spotify Web API (Authorization Code flow, confidential client)
    "spotify_client_id": "",
    "spotify_client_secret": "",
    "spotify_callback_port": CALLBACK_PORT,
    "spotify_scopes": list(DEFAULT_SCOPES),
    "token_file": "",
    "token_request_timeout": TOKEN_REQUEST_TIMEOUT,
    "api_timeout": API_TIMEOUT,

    # Login
    "open_browser": True,
    # 0 waits for the browser callback forever.
    "login_timeout": 0,

    # Status bar daemon
    "status_file": STATUS_FILE,
    "pid_file": PID_FILE,
    "status_interval": STATUS_INTERVAL_SECONDS,

    # Player menu
    "queue_jump_limit": QUEUE_JUMP_LIMIT,

    # Logging
    "log_level": "INFO",
    "log_file": "",
}

# Validation rules for config fields
CONFIG_SCHEMA = {
    "spotify_client_id": {"type": str, "required": True},
    "spotify_client_secret": {"type": str, "required": True},
    "spotify_callback_port": {"type": int, "required": False, "min": 1, "max": 65535},
    "spotify_scopes": {"type": list, "required": False, "element_type": str},
    "token_file": {"type": str, "required": False},
    "token_request_timeout": {"type": (int, float), "required": False, "min": 1, "max": 120},
    "api_timeout": {"type": (int, float), "required": False, "min": 1, "max": 120},
    "open_browser": {"type": bool, "required": False},
    "login_timeout": {"type": (int, float), "required": False, "min": 0, "max": 3600},
    "status_file": {"type": str, "required": True},
    "pid_file": {"type": str, "required": True},
    "status_interval": {"type": (int, float), "required": False, "min": 0.5, "max": 3600},
    "queue_jump_limit": {"type": int, "required": False, "min": 1, "max": 100},
    "log_level": {
        "type": str,
        "required": False,
        "choices": ["DEBUG", "INFO", "WARNING", "ERROR"],
    },
    "log_file": {"type": str, "required": False},
}


def config_path() -> str:
    return os.path.join(user_config_dir(), "config.json")


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration, applying defaults for missing fields.

    The config file is optional. SPOTIFY_ID / SPOTIFY_SECRET from the
    environment take precedence over the file.
    """
    path = path or config_path()
    config: Dict[str, Any] = {}

    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            config = json.load(f)
        if not isinstance(config, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object.")

    # Apply defaults for missing fields
    for key, value in DEFAULT_CONFIG.items():
        if key not in config:
            config[key] = value

    env_id = os.environ.get(ENV_CLIENT_ID, "").strip()
    env_secret = os.environ.get(ENV_CLIENT_SECRET, "").strip()
    if env_id:
        config["spotify_client_id"] = env_id
    if env_secret:
        config["spotify_client_secret"] = env_secret

    return config


def _type_name(expected) -> str:
    if isinstance(expected, tuple):
        return "number" if expected == (int, float) else "/".join(t.__name__ for t in expected)
    return expected.__name__


def _check_field(key: str, value: Any, rules: Dict[str, Any]) -> Optional[str]:
    """Return the first problem with one config value, or None."""
    expected = rules.get("type")
    # bool is an int subclass; True is not a port number.
    if expected and (not isinstance(value, expected) or (isinstance(value, bool) and expected is not bool)):
        return f"Field '{key}' must be {_type_name(expected)}, got {type(value).__name__}"

    elem_type = rules.get("element_type")
    if elem_type and any(not isinstance(v, elem_type) for v in value):
        return f"Field '{key}' must be a list of {elem_type.__name__}"

    if "choices" in rules and value not in rules["choices"]:
        return f"Field '{key}' must be one of {rules['choices']}, got '{value}'"

    if expected is not bool and isinstance(value, (int, float)):
        low, high = rules.get("min"), rules.get("max")
        if low is not None and value < low:
            return f"Field '{key}' must be >= {low}, got {value}"
        if high is not None and value > high:
            return f"Field '{key}' must be <= {high}, got {value}"
    return None


def validate_config(config: Dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate configuration against CONFIG_SCHEMA.
    Returns (is_valid, list_of_errors), at most one error per field.
    """
    errors = []
    for key, rules in CONFIG_SCHEMA.items():
        if key not in config:
            if rules.get("required", False):
                errors.append(f"Missing required field: {key}")
            continue
        problem = _check_field(key, config[key], rules)
        if problem:
            errors.append(problem)
    return len(errors) == 0, errors


def require_client_credentials(config: Dict[str, Any]) -> tuple[str, str]:
    """Return (client_id, client_secret) or raise ConfigError when either is missing."""
    client_id = str(config.get("spotify_client_id", "")).strip()
    client_secret = str(config.get("spotify_client_secret", "")).strip()
    if not client_id or not client_secret:
        raise ConfigError(
            f"Missing Spotify client credentials. Set {ENV_CLIENT_ID} and {ENV_CLIENT_SECRET} "
            f"(or spotify_client_id / spotify_client_secret in {config_path()})."
        )
    return client_id, client_secret
