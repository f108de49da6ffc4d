import os

from constants import APP_NAME


def user_config_dir() -> str:
    """Return $XDG_CONFIG_HOME/spotify-mini (or ~/.config/spotify-mini), creating it if absent."""
    base = os.environ.get("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    path = os.path.join(base, APP_NAME)
    os.makedirs(path, exist_ok=True)
    return path
