import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .auth import TokenExchanger
from .errors import AuthError, CredentialNotFound
from .login_flow import LoginFlow
from .token_store import Credential, TokenStore, utc_now

logger = logging.getLogger(__name__)


class CredentialState(str, Enum):
    MISSING = "missing"
    VALID = "valid"
    EXPIRED = "expired"
    REFRESH_FAILED = "refresh_failed"


class CredentialManager:
    """Single entry point for obtaining a usable Spotify credential.

    Each authenticate() call re-reads the credential file, so the daemon and
    the one-shot commands (separate processes) always see each other's
    refreshes. States:

    - missing: nothing stored (or unreadable) -> browser login
    - valid: stored and not expired -> returned as-is, no network
    - expired: refresh-token exchange
    - refresh_failed: refresh rejected -> browser login
    """

    def __init__(
        self,
        config: Dict[str, Any],
        *,
        token_store: Optional[TokenStore] = None,
        exchanger: Optional[TokenExchanger] = None,
        login_flow: Optional[LoginFlow] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.config = config or {}
        self.token_store = token_store or TokenStore(path=self.config.get("token_file") or None)
        self.exchanger = exchanger or TokenExchanger(self.config, token_store=self.token_store, clock=clock)
        self.login_flow = login_flow or LoginFlow(self.config, self.exchanger)
        self.clock = clock
        self.state: Optional[CredentialState] = None

    def authenticate(self) -> Credential:
        """Return a non-expired credential, refreshing or logging in as needed.

        Raises AuthError only when the browser login itself fails.
        """
        try:
            stored = self.token_store.load()
        except (CredentialNotFound, OSError) as e:
            self.state = CredentialState.MISSING
            logger.info("No usable stored credential (%s)", e)
            return self._login()

        if not stored.is_expired(self.clock()):
            self.state = CredentialState.VALID
            return stored

        self.state = CredentialState.EXPIRED
        try:
            refreshed = self.exchanger.exchange_refresh_token(stored.refresh_token)
        except AuthError as e:
            # A dead refresh token can only be replaced by a new login.
            self.state = CredentialState.REFRESH_FAILED
            logger.warning("Refresh failed, restarting login flow... (%s)", e)
            return self._login()

        self._persist(refreshed)
        return refreshed

    def _login(self) -> Credential:
        credential = self.login_flow.login()
        self._persist(credential)
        return credential

    def _persist(self, credential: Credential) -> None:
        try:
            self.token_store.save(credential)
        except OSError as e:
            logger.error("Could not save credential to %s: %s", self.token_store.path, e)
