import os
import tempfile

APP_NAME = "spotify-mini"

# Spotify endpoints
SPOTIFY_ACCOUNTS_BASE_URL = "https://accounts.spotify.com"
SPOTIFY_AUTHORIZE_URL = f"{SPOTIFY_ACCOUNTS_BASE_URL}/authorize"
SPOTIFY_TOKEN_URL = f"{SPOTIFY_ACCOUNTS_BASE_URL}/api/token"
SPOTIFY_API_BASE_URL = "https://api.spotify.com/v1"

# OAuth
CALLBACK_HOST = "127.0.0.1"
CALLBACK_PORT = 8000
CALLBACK_PATH = "/callback"
DEFAULT_SCOPES = ["user-read-playback-state", "user-modify-playback-state"]

# Credential expiry is pulled in by this margin to stay ahead of provider clock skew.
EXPIRY_MARGIN_SECONDS = 10
TOKEN_REQUEST_TIMEOUT = 10.0
API_TIMEOUT = 5.0

# Status bar / daemon
STATUS_FILE = os.path.join(tempfile.gettempdir(), f"{APP_NAME}.json")
PID_FILE = os.path.join(tempfile.gettempdir(), f"{APP_NAME}.pid")
STATUS_INTERVAL_SECONDS = 2
STATUS_CLASS = "spotify"
ICON_PLAYING = "\uf1bc"
ICON_PAUSED = "\uf289"

COMMANDS = ("next", "prev", "play", "pause", "toggle")
QUEUE_JUMP_LIMIT = 50

LOGIN_SUCCESS_PAGE = (
    b"<html><body><h3>Login Success! You can close this window.</h3></body></html>"
)
