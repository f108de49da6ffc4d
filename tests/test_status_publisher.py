import json
import os
import signal
import sys
import tempfile
import threading
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx

# Ensure local imports work when running this file directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from managers.status_publisher import StatusPublisher, fetch_status, publish_status, render_status, status_once
from spotify_api.client import SpotifyClient
from spotify_api.errors import AuthError, SpotifyMiniError
from spotify_api.models import PlaybackSnapshot
from spotify_api.token_store import Credential

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
CREDENTIAL = Credential("A1", "Bearer", "R1", 3600, NOW + timedelta(hours=1))

PLAYING = {
    "is_playing": True,
    "progress_ms": 1000,
    "item": {"name": "Song", "uri": "spotify:track:1", "duration_ms": 4000, "artists": [{"name": "Artist"}, {"name": "B"}]},
    "context": {"uri": "spotify:playlist:p", "type": "playlist"},
}


class FakeManager:
    def __init__(self, credential=CREDENTIAL, error=None):
        self.credential = credential
        self.error = error
        self.calls = 0

    def authenticate(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.credential


def client_factory_for(handler):
    def factory(config, credential):
        return SpotifyClient(config, credential, transport=httpx.MockTransport(handler))

    return factory


class TestRenderStatus(unittest.TestCase):
    def test_nothing_playing_is_stopped(self):
        self.assertEqual(render_status(None), {"text": "", "class": "spotify", "alt": "stopped"})

    def test_playing(self):
        status = render_status(PlaybackSnapshot.from_api(PLAYING))
        self.assertEqual(status["alt"], "playing")
        self.assertEqual(status["class"], "spotify")
        self.assertEqual(status["tooltip"], "Song by Artist")
        self.assertTrue(status["text"].endswith(" Song"))

    def test_paused(self):
        status = render_status(PlaybackSnapshot.from_api({**PLAYING, "is_playing": False}))
        self.assertEqual(status["alt"], "paused")

    def test_no_content_fetch_publishes_stopped(self):
        factory = client_factory_for(lambda request: httpx.Response(204))
        self.assertEqual(
            fetch_status({}, CREDENTIAL, client_factory=factory),
            {"text": "", "class": "spotify", "alt": "stopped"},
        )

    def test_failed_fetch_publishes_stopped(self):
        factory = client_factory_for(lambda request: httpx.Response(502))
        self.assertEqual(fetch_status({}, CREDENTIAL, client_factory=factory)["alt"], "stopped")

    def test_fetch_sends_bearer_token(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=PLAYING)

        fetch_status({}, CREDENTIAL, client_factory=client_factory_for(handler))
        self.assertEqual(seen[0].headers["Authorization"], "Bearer A1")
        self.assertEqual(str(seen[0].url), "https://api.spotify.com/v1/me/player")


class TestPublishStatus(unittest.TestCase):
    def setUp(self):
        self._td = tempfile.TemporaryDirectory()
        self.path = os.path.join(self._td.name, "status.json")

    def tearDown(self):
        self._td.cleanup()

    def test_writes_json_and_leaves_no_temp_files(self):
        publish_status({"text": "x", "class": "spotify", "alt": "paused"}, self.path)
        with open(self.path, "r", encoding="utf-8") as f:
            self.assertEqual(json.load(f)["alt"], "paused")
        self.assertEqual(os.listdir(self._td.name), ["status.json"])

    def test_reader_never_sees_partial_document(self):
        payloads = [
            {"text": "a" * 5000, "class": "spotify", "alt": "playing"},
            {"text": "", "class": "spotify", "alt": "stopped"},
        ]
        publish_status(payloads[0], self.path)
        done = threading.Event()
        failures = []

        def writer():
            for i in range(300):
                publish_status(payloads[i % 2], self.path)
            done.set()

        t = threading.Thread(target=writer)
        t.start()
        while not done.is_set():
            with open(self.path, "r", encoding="utf-8") as f:
                content = f.read()
            try:
                self.assertIn(json.loads(content), payloads)
            except (ValueError, AssertionError) as e:
                failures.append(e)
        t.join()
        self.assertEqual(failures, [])


class TestStatusPublisher(unittest.TestCase):
    def setUp(self):
        self._td = tempfile.TemporaryDirectory()
        self.config = {
            "status_file": os.path.join(self._td.name, "status.json"),
            "pid_file": os.path.join(self._td.name, "daemon.pid"),
            "status_interval": 60,
        }

    def tearDown(self):
        self._td.cleanup()

    def read_status(self):
        with open(self.config["status_file"], "r", encoding="utf-8") as f:
            return json.load(f)

    def test_update_publishes_current_playback(self):
        publisher = StatusPublisher(
            self.config, FakeManager(), client_factory=client_factory_for(lambda r: httpx.Response(200, json=PLAYING))
        )
        self.assertTrue(publisher.update())
        self.assertEqual(self.read_status()["alt"], "playing")

    def test_auth_failure_keeps_previous_status(self):
        previous = {"text": "old", "class": "spotify", "alt": "paused"}
        publish_status(previous, self.config["status_file"])

        manager = FakeManager(error=AuthError("refresh and login failed"))
        publisher = StatusPublisher(self.config, manager, client_factory=client_factory_for(lambda r: httpx.Response(204)))

        self.assertFalse(publisher.update())
        self.assertEqual(self.read_status(), previous)

    def test_malformed_playback_body_publishes_stopped(self):
        bodies = [
            {"content": b'{"is_playing": true, "item": {"name": "\xff"}}'},
            {"json": {**PLAYING, "progress_ms": "n/a"}},
            {"json": {**PLAYING, "item": {**PLAYING["item"], "duration_ms": {"ms": 1}}}},
        ]
        for body in bodies:
            with self.subTest(body=body):
                publish_status({"text": "old", "class": "spotify", "alt": "paused"}, self.config["status_file"])
                publisher = StatusPublisher(
                    self.config,
                    FakeManager(),
                    client_factory=client_factory_for(lambda r, body=body: httpx.Response(200, **body)),
                )
                self.assertTrue(publisher.update())
                self.assertEqual(self.read_status(), {"text": "", "class": "spotify", "alt": "stopped"})

    def test_unexpected_credential_error_skips_cycle(self):
        previous = {"text": "old", "class": "spotify", "alt": "paused"}
        publish_status(previous, self.config["status_file"])

        manager = FakeManager(error=SpotifyMiniError("credential store unusable"))
        publisher = StatusPublisher(self.config, manager, client_factory=client_factory_for(lambda r: httpx.Response(204)))

        self.assertFalse(publisher.update())
        self.assertEqual(self.read_status(), previous)

    def test_run_updates_on_start_and_on_wake_signal(self):
        manager = FakeManager()
        publisher = StatusPublisher(
            self.config, manager, client_factory=client_factory_for(lambda r: httpx.Response(204))
        )
        pid_seen = []

        def poke():
            pid_seen.append(os.path.exists(self.config["pid_file"]))
            signal.pthread_kill(threading.main_thread().ident, signal.SIGUSR1)

        threading.Timer(0.3, poke).start()
        threading.Timer(0.9, publisher.stop).start()
        publisher.run()

        self.assertEqual(manager.calls, 2)
        self.assertEqual(pid_seen, [True])
        self.assertFalse(os.path.exists(self.config["pid_file"]))
        self.assertEqual(self.read_status()["alt"], "stopped")

    def test_run_updates_on_timer(self):
        self.config["status_interval"] = 0.2
        manager = FakeManager()
        publisher = StatusPublisher(
            self.config, manager, client_factory=client_factory_for(lambda r: httpx.Response(204))
        )
        threading.Timer(1.1, publisher.stop).start()
        publisher.run()
        self.assertGreaterEqual(manager.calls, 3)


class TestStatusOnce(unittest.TestCase):
    def test_auth_failure_reads_as_stopped(self):
        status = status_once({}, FakeManager(error=AuthError("nope")))
        self.assertEqual(status, {"text": "", "class": "spotify", "alt": "stopped"})


if __name__ == "__main__":
    unittest.main(verbosity=2)
