import logging
import threading
import urllib.parse
import webbrowser
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Callable, Dict, Optional

from constants import CALLBACK_HOST, CALLBACK_PATH, CALLBACK_PORT, LOGIN_SUCCESS_PAGE

from .auth import TokenExchanger, build_authorize_url, extract_code_from_redirect_url
from .errors import AuthError
from .token_store import Credential

logger = logging.getLogger(__name__)


class _CallbackServer(HTTPServer):
    """One-shot listener; the handler fills in code/error and sets `done`."""

    def __init__(self, server_address, handler_class):
        super().__init__(server_address, handler_class)
        self.code: Optional[str] = None
        self.error: Optional[str] = None
        self.done = threading.Event()


class _CallbackHandler(BaseHTTPRequestHandler):
    server: _CallbackServer

    def do_GET(self):
        parsed = urllib.parse.urlparse(self.path)
        if parsed.path != CALLBACK_PATH:
            self.send_response(404)
            self.end_headers()
            return

        if self.server.done.is_set():
            self._reply(410, b"<html><body><h3>This login link was already used.</h3></body></html>")
            return

        params = extract_code_from_redirect_url(self.path)
        if params.get("error"):
            self._reply(400, b"<html><body><h3>Spotify authorization failed. Check the terminal.</h3></body></html>")
            self.server.error = params["error"]
            self.server.done.set()
            return

        if not params.get("code"):
            self._reply(400, b"<html><body><h3>No code parameter in callback.</h3></body></html>")
            return

        self._reply(200, LOGIN_SUCCESS_PAGE)
        # The page is flushed before the waiting thread is released to shut the server down.
        self.server.code = params["code"]
        self.server.done.set()

    def _reply(self, status: int, body: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)
        self.wfile.flush()

    def log_message(self, format, *args):
        logger.debug("callback %s - %s", self.address_string(), format % args)


class LoginFlow:
    """Browser-based Authorization Code login.

    Blocks the caller until the provider redirects back to the local callback
    (or `login_timeout` seconds pass, when configured).
    """

    def __init__(
        self,
        config: Dict[str, Any],
        exchanger: TokenExchanger,
        *,
        opener: Callable[[str], Any] = webbrowser.open,
    ):
        self.config = config or {}
        self.exchanger = exchanger
        self.opener = opener

    def login(self) -> Credential:
        code = self.wait_for_code()
        logger.info("Authorization code received, exchanging for a token")
        return self.exchanger.exchange_authorization_code(code)

    def wait_for_code(self) -> str:
        port = int(self.config.get("spotify_callback_port") or CALLBACK_PORT)
        try:
            server = _CallbackServer((CALLBACK_HOST, port), _CallbackHandler)
        except OSError as e:
            raise AuthError(f"Cannot listen for the login callback on {CALLBACK_HOST}:{port}: {e}") from e

        thread = threading.Thread(target=server.serve_forever, name="login-callback", daemon=True)
        thread.start()
        try:
            self._open_browser(build_authorize_url(self.config))

            timeout = float(self.config.get("login_timeout") or 0)
            if not server.done.wait(timeout if timeout > 0 else None):
                raise AuthError(f"Timed out after {timeout:g}s waiting for the Spotify login callback")
        finally:
            server.shutdown()
            server.server_close()
            thread.join(timeout=5)

        if server.error:
            raise AuthError(f"Spotify authorization failed: {server.error}")
        return str(server.code)

    def _open_browser(self, url: str) -> None:
        logger.warning("Login required. Open this URL if the browser does not start:\n%s", url)
        if not bool(self.config.get("open_browser", True)):
            return

        try:
            opened = self.opener(url)
        except (webbrowser.Error, OSError) as e:
            logger.warning("Could not launch a browser: %s", e)
            return
        if opened is False:
            logger.warning("No browser available; open the URL above manually.")
