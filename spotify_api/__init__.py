"""Spotify credential lifecycle and player API.

CredentialManager is the entry point: every process (status daemon, one-shot
commands, player menu) calls authenticate() and hands the result to
SpotifyClient.
"""

from .auth import TokenExchanger
from .client import SpotifyClient
from .credential_manager import CredentialManager, CredentialState
from .errors import AuthError, ConfigError, CredentialNotFound, NetworkError, PlaybackError
from .login_flow import LoginFlow
from .token_store import Credential, TokenStore

__all__ = [
    "AuthError",
    "ConfigError",
    "Credential",
    "CredentialManager",
    "CredentialNotFound",
    "CredentialState",
    "LoginFlow",
    "NetworkError",
    "PlaybackError",
    "SpotifyClient",
    "TokenExchanger",
    "TokenStore",
]
