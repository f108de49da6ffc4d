import logging
import urllib.parse
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Optional

import httpx

from constants import (
    CALLBACK_HOST,
    CALLBACK_PATH,
    CALLBACK_PORT,
    DEFAULT_SCOPES,
    SPOTIFY_AUTHORIZE_URL,
    SPOTIFY_TOKEN_URL,
    TOKEN_REQUEST_TIMEOUT,
)

from .errors import AuthError, CredentialNotFound, NetworkError
from .token_store import Credential, TokenStore, utc_now

logger = logging.getLogger(__name__)


def redirect_uri_for(config: Dict[str, Any]) -> str:
    port = int((config or {}).get("spotify_callback_port") or CALLBACK_PORT)
    return f"http://{CALLBACK_HOST}:{port}{CALLBACK_PATH}"


def build_authorize_url(config: Dict[str, Any], *, scopes: Optional[Iterable[str]] = None) -> str:
    """Return the consent page URL for the Authorization Code flow."""

    config = config or {}
    scope_list = list(scopes if scopes is not None else config.get("spotify_scopes") or DEFAULT_SCOPES)
    scope_str = " ".join([str(s).strip() for s in scope_list if str(s).strip()])

    params: Dict[str, str] = {
        "client_id": str(config.get("spotify_client_id", "")).strip(),
        "response_type": "code",
        "redirect_uri": redirect_uri_for(config),
    }
    if scope_str:
        params["scope"] = scope_str

    return f"{SPOTIFY_AUTHORIZE_URL}?{urllib.parse.urlencode(params)}"


def extract_code_from_redirect_url(redirect_url: str) -> Dict[str, str]:
    """Parse a redirect URL and return {"code": ..., "error": ...} (missing keys omitted)."""

    parsed = urllib.parse.urlparse(str(redirect_url or "").strip())
    qs = urllib.parse.parse_qs(parsed.query)
    out: Dict[str, str] = {}
    if qs.get("code"):
        out["code"] = str(qs["code"][0])
    if qs.get("error"):
        out["error"] = str(qs["error"][0])
    return out


class TokenExchanger:
    """Talks to the Spotify token endpoint (client id + secret, HTTP Basic).

    Produces Credential records; persisting them is the caller's job.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        *,
        token_store: Optional[TokenStore] = None,
        transport: Optional[httpx.BaseTransport] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.config = config or {}
        self.token_store = token_store
        self.transport = transport
        self.clock = clock

    def exchange_authorization_code(self, code: str) -> Credential:
        return self._request_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri_for(self.config),
            }
        )

    def exchange_refresh_token(self, refresh_token: str) -> Credential:
        return self._request_token(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            },
            previous_refresh_token=refresh_token,
        )

    def _stored_refresh_token(self) -> str:
        if self.token_store is None:
            return ""
        try:
            return self.token_store.load().refresh_token
        except (CredentialNotFound, OSError):
            return ""

    def _request_token(self, form: Dict[str, Any], *, previous_refresh_token: Optional[str] = None) -> Credential:
        data = {k: str(v) for k, v in (form or {}).items() if v is not None}
        auth = (
            str(self.config.get("spotify_client_id", "")),
            str(self.config.get("spotify_client_secret", "")),
        )
        timeout = float(self.config.get("token_request_timeout") or TOKEN_REQUEST_TIMEOUT)

        try:
            with httpx.Client(timeout=timeout, follow_redirects=False, transport=self.transport) as client:
                resp = client.post(
                    SPOTIFY_TOKEN_URL,
                    data=data,
                    auth=auth,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        except httpx.HTTPError as e:
            raise NetworkError(f"Spotify token request failed: {e}") from e

        # Stamp expiry from the moment the response arrived.
        issued_at = self.clock()

        if resp.status_code != 200:
            raise AuthError(
                f"Spotify token request failed (HTTP {resp.status_code}): {resp.text}",
                status_code=resp.status_code,
            )

        # ValueError covers both JSONDecodeError and a body that is not UTF-8.
        try:
            payload = resp.json()
        except ValueError as e:
            raise AuthError(f"Spotify token response was not JSON: {resp.text}", status_code=resp.status_code) from e

        if not isinstance(payload, dict):
            raise AuthError(f"Spotify token response was not an object: {payload}", status_code=resp.status_code)

        if not payload.get("access_token"):
            raise AuthError(f"Spotify token response has no access_token: {payload}", status_code=resp.status_code)

        try:
            int(payload.get("expires_in") or 0)
        except (TypeError, ValueError) as e:
            raise AuthError(
                f"Spotify token response has an invalid expires_in: {payload.get('expires_in')!r}",
                status_code=resp.status_code,
            ) from e

        if not payload.get("refresh_token") and not previous_refresh_token:
            previous_refresh_token = self._stored_refresh_token()

        credential = Credential.from_token_response(
            payload,
            issued_at=issued_at,
            previous_refresh_token=previous_refresh_token,
        )
        logger.debug("Token issued (%s), expires at %s", data.get("grant_type"), credential.expiry.isoformat())
        return credential
