import logging
from typing import Any, Dict, List, Optional

import httpx

from constants import API_TIMEOUT, SPOTIFY_API_BASE_URL

from .errors import PlaybackError
from .models import PlaybackSnapshot, Track
from .token_store import Credential

logger = logging.getLogger(__name__)


class SpotifyClient:
    """Thin client for the Web API player endpoints.

    Holds a credential already obtained from CredentialManager; it never
    refreshes on its own. 200 and 204 are success, anything else raises
    PlaybackError carrying the status line.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        credential: Credential,
        *,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.config = config or {}
        self.credential = credential
        self.transport = transport

    def _request(self, method: str, path: str, *, body: Optional[Dict[str, Any]] = None) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self.credential.access_token}",
            "Accept": "application/json",
        }
        timeout = float(self.config.get("api_timeout") or API_TIMEOUT)

        try:
            with httpx.Client(timeout=timeout, transport=self.transport) as client:
                resp = client.request(method.upper(), f"{SPOTIFY_API_BASE_URL}{path}", headers=headers, json=body)
        except httpx.HTTPError as e:
            raise PlaybackError(f"Spotify API request failed: {e}") from e

        if resp.status_code not in (200, 204):
            status_line = f"{resp.status_code} {resp.reason_phrase}".strip()
            raise PlaybackError(
                f"status: {status_line}",
                status_code=resp.status_code,
                status_line=status_line,
            )
        return resp

    @staticmethod
    def _json(resp: httpx.Response) -> Dict[str, Any]:
        if resp.status_code == 204 or not resp.content:
            return {}
        try:
            payload = resp.json()
        except ValueError as e:
            raise PlaybackError(f"Spotify API response was not JSON: {resp.text}", status_code=resp.status_code) from e
        return payload if isinstance(payload, dict) else {}

    # -----------------
    # Read endpoints
    # -----------------

    def current_playback(self) -> Optional[PlaybackSnapshot]:
        """Return the playback state, or None when nothing is playing (204)."""
        payload = self._json(self._request("GET", "/me/player"))
        if not payload:
            return None
        try:
            return PlaybackSnapshot.from_api(payload)
        except (TypeError, ValueError) as e:
            raise PlaybackError(f"Unexpected playback state from Spotify: {e}") from e

    def queue(self) -> List[Track]:
        payload = self._json(self._request("GET", "/me/player/queue"))
        try:
            return [Track.from_api(item) for item in (payload.get("queue") or []) if isinstance(item, dict)]
        except (TypeError, ValueError) as e:
            raise PlaybackError(f"Unexpected queue from Spotify: {e}") from e

    # -----------------
    # Transport controls
    # -----------------

    def send_command(self, method: str, endpoint: str) -> None:
        logger.debug("%s /me/player/%s", method.upper(), endpoint)
        self._request(method, f"/me/player/{endpoint}")

    def play_uris(self, uris: List[str]) -> None:
        self._request("PUT", "/me/player/play", body={"uris": list(uris)})

    def play_context(self, context_uri: str, offset_uri: str) -> None:
        self._request("PUT", "/me/player/play", body={"context_uri": context_uri, "offset": {"uri": offset_uri}})
