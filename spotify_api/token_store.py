import json
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from constants import EXPIRY_MARGIN_SECONDS
from utils.paths import user_config_dir

from .errors import CredentialNotFound


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def default_token_path() -> str:
    return os.path.join(user_config_dir(), "token.json")


@dataclass(frozen=True)
class Credential:
    """Canonical token payload persisted by TokenStore.

    Replaced as a whole, never edited in place: the daemon and the one-shot
    commands only share this record through the file on disk.
    """

    access_token: str
    token_type: str
    refresh_token: str
    expires_in: int
    expiry: datetime

    @staticmethod
    def from_token_response(
        payload: Dict[str, Any],
        *,
        issued_at: datetime,
        previous_refresh_token: Optional[str] = None,
    ) -> "Credential":
        """Convert a token endpoint response into a Credential.

        Spotify returns:
        - access_token
        - token_type
        - expires_in (seconds)
        - refresh_token (omitted on most refreshes)
        """

        expires_in = int(payload.get("expires_in") or 0)
        refresh_token = str(payload.get("refresh_token") or "")

        # Spotify may omit refresh_token on refresh; keep existing.
        if not refresh_token and previous_refresh_token:
            refresh_token = previous_refresh_token

        return Credential(
            access_token=str(payload.get("access_token") or ""),
            token_type=str(payload.get("token_type") or "Bearer"),
            refresh_token=refresh_token,
            expires_in=expires_in,
            expiry=issued_at + timedelta(seconds=expires_in - EXPIRY_MARGIN_SECONDS),
        )

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Credential":
        expiry = datetime.fromisoformat(str(data["expiry"]))
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        return Credential(
            access_token=str(data["access_token"]),
            token_type=str(data.get("token_type") or "Bearer"),
            refresh_token=str(data.get("refresh_token") or ""),
            expires_in=int(data.get("expires_in") or 0),
            expiry=expiry,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "refresh_token": self.refresh_token,
            "expires_in": self.expires_in,
            "expiry": self.expiry.isoformat(),
        }

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utc_now()) >= self.expiry


class TokenStore:
    """Reads and writes the credential file. Every call hits the filesystem."""

    def __init__(self, *, path: Optional[str] = None):
        self.path = path or default_token_path()
        os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)

    def load(self) -> Credential:
        """Return the stored credential.

        Raises CredentialNotFound when nothing usable is stored and OSError for
        any other filesystem failure.
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise CredentialNotFound(f"No credential stored at {self.path}") from e
        except json.JSONDecodeError as e:
            raise CredentialNotFound(f"Credential file {self.path} is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise CredentialNotFound(f"Credential file {self.path} does not hold an object")

        try:
            return Credential.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise CredentialNotFound(f"Credential file {self.path} is incomplete: {e}") from e

    def save(self, credential: Credential) -> None:
        """Overwrite the credential file in full."""
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(credential.to_dict(), f, indent=2)

    def clear(self) -> bool:
        try:
            os.remove(self.path)
            return True
        except FileNotFoundError:
            return False
