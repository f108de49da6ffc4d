from typing import Optional


class SpotifyMiniError(RuntimeError):
    """Base class for every error raised by spotify-mini."""


class ConfigError(SpotifyMiniError):
    """Client credentials missing or configuration invalid."""


class CredentialNotFound(SpotifyMiniError, LookupError):
    """No usable credential is stored on disk."""


class AuthError(SpotifyMiniError):
    """Token endpoint rejected the request or returned a malformed body."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NetworkError(AuthError):
    """Token endpoint could not be reached (transport failure or timeout)."""


class PlaybackError(SpotifyMiniError):
    """A playback API call did not return 200/204."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, status_line: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.status_line = status_line
