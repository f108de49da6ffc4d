import socket
import sys
import threading
import unittest
import urllib.parse
from pathlib import Path

import httpx

# Ensure local imports work when running this file directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from spotify_api.errors import AuthError
from spotify_api.login_flow import LoginFlow


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class FakeExchanger:
    def __init__(self):
        self.codes = []

    def exchange_authorization_code(self, code):
        self.codes.append(code)
        return f"credential-for-{code}"


class FakeBrowser:
    """Opens the authorize URL by requesting the callback with the given query strings."""

    def __init__(self, *queries):
        self.queries = queries
        self.opened = []
        self.responses = []
        self._threads = []

    def __call__(self, url):
        self.opened.append(url)
        redirect_uri = urllib.parse.parse_qs(urllib.parse.urlparse(url).query)["redirect_uri"][0]
        base = redirect_uri.rsplit("/", 1)[0]

        def visit():
            for query in self.queries:
                target = f"{base}{query}" if query.startswith("/") else f"{redirect_uri}?{query}"
                self.responses.append(httpx.get(target, timeout=5, trust_env=False))

        t = threading.Thread(target=visit)
        t.start()
        self._threads.append(t)
        return True

    def join(self):
        for t in self._threads:
            t.join(timeout=5)


class TestLoginFlow(unittest.TestCase):
    def setUp(self):
        self.config = {
            "spotify_client_id": "client-id",
            "spotify_client_secret": "client-secret",
            "spotify_callback_port": _free_port(),
        }

    def test_captures_code_and_delegates_to_exchanger(self):
        browser = FakeBrowser("code=C1")
        exchanger = FakeExchanger()

        result = LoginFlow(self.config, exchanger, opener=browser).login()
        browser.join()

        self.assertEqual(result, "credential-for-C1")
        self.assertEqual(exchanger.codes, ["C1"])
        self.assertEqual(len(browser.opened), 1)
        self.assertIn("response_type=code", browser.opened[0])
        self.assertEqual(browser.responses[0].status_code, 200)
        self.assertIn("Login Success", browser.responses[0].text)

    def test_ignores_other_paths_and_codeless_callbacks(self):
        browser = FakeBrowser("/favicon.ico", "state=x", "code=C2")

        code = LoginFlow(self.config, FakeExchanger(), opener=browser).wait_for_code()
        browser.join()

        self.assertEqual(code, "C2")
        self.assertEqual([r.status_code for r in browser.responses], [404, 400, 200])

    def test_provider_error_raises_auth_error(self):
        browser = FakeBrowser("error=access_denied")
        with self.assertRaises(AuthError):
            LoginFlow(self.config, FakeExchanger(), opener=browser).login()
        browser.join()
        self.assertEqual(browser.responses[0].status_code, 400)

    def test_browser_launch_failure_is_not_fatal(self):
        port = self.config["spotify_callback_port"]

        def broken_browser(url):
            threading.Timer(
                0.1, lambda: httpx.get(f"http://127.0.0.1:{port}/callback?code=C3", timeout=5, trust_env=False)
            ).start()
            raise OSError("no display")

        self.assertEqual(LoginFlow(self.config, FakeExchanger(), opener=broken_browser).wait_for_code(), "C3")

    def test_open_browser_disabled_skips_opener(self):
        self.config["open_browser"] = False
        self.config["login_timeout"] = 0.2
        opened = []

        with self.assertRaises(AuthError):
            LoginFlow(self.config, FakeExchanger(), opener=opened.append).wait_for_code()
        self.assertEqual(opened, [])

    def test_bounded_wait_times_out(self):
        self.config["login_timeout"] = 0.2
        with self.assertRaises(AuthError):
            LoginFlow(self.config, FakeExchanger(), opener=lambda url: True).wait_for_code()

    def test_port_in_use_raises_auth_error(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("127.0.0.1", 0))
            s.listen(1)
            self.config["spotify_callback_port"] = s.getsockname()[1]
            with self.assertRaises(AuthError):
                LoginFlow(self.config, FakeExchanger(), opener=lambda url: True).wait_for_code()


if __name__ == "__main__":
    unittest.main(verbosity=2)
