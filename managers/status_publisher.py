import json
import os
import signal
import tempfile
from typing import Any, Callable, Dict, Optional

import schedule

from constants import (
    ICON_PAUSED,
    ICON_PLAYING,
    STATUS_CLASS,
    STATUS_FILE,
    STATUS_INTERVAL_SECONDS,
)
from managers.daemon_signal import WAKE_SIGNAL, WakeChannel, remove_pid_file, write_pid_file
from spotify_api.client import SpotifyClient
from spotify_api.credential_manager import CredentialManager
from spotify_api.errors import AuthError, PlaybackError, SpotifyMiniError
from spotify_api.models import PlaybackSnapshot
from spotify_api.token_store import Credential
from utils.logger import log_debug, log_error, log_info, log_warning

STOPPED_STATUS = {"text": "", "class": STATUS_CLASS, "alt": "stopped"}


def render_status(snapshot: Optional[PlaybackSnapshot]) -> Dict[str, str]:
    """Status bar payload: {text, class, tooltip?, alt}."""
    if snapshot is None or snapshot.item is None:
        return dict(STOPPED_STATUS)

    title = snapshot.item.name
    artist = snapshot.item.primary_artist
    icon = ICON_PLAYING if snapshot.is_playing else ICON_PAUSED
    return {
        "text": f"{icon} {title}",
        "class": STATUS_CLASS,
        "tooltip": f"{title} by {artist}",
        "alt": "playing" if snapshot.is_playing else "paused",
    }


def status_json(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False)


def fetch_status(
    config: Dict[str, Any],
    credential: Credential,
    *,
    client_factory: Callable[..., SpotifyClient] = SpotifyClient,
) -> Dict[str, str]:
    """Fetch playback and render it; a failed fetch renders as stopped."""
    client = client_factory(config, credential)
    try:
        snapshot = client.current_playback()
    except PlaybackError as e:
        log_debug(f"Playback fetch failed: {e}")
        snapshot = None
    return render_status(snapshot)


def publish_status(payload: Dict[str, Any], path: str = STATUS_FILE) -> None:
    """Atomically replace the status file.

    The document is written to a temp file in the same directory and renamed
    over the target, so readers see either the old or the new file.
    """
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=directory, prefix=".spotify-mini.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(status_json(payload))
        os.replace(tmp, path)
    except Exception:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


class StatusPublisher:
    """Long-running status bar daemon.

    A `schedule` job (every `status_interval` seconds) and SIGUSR1 both feed
    one WakeChannel; the loop consumes it and runs one update at a time.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        manager: CredentialManager,
        *,
        client_factory: Callable[..., SpotifyClient] = SpotifyClient,
        wake: Optional[WakeChannel] = None,
    ):
        self.config = config or {}
        self.manager = manager
        self.client_factory = client_factory
        self.wake = wake or WakeChannel()
        self.status_file = str(self.config.get("status_file") or STATUS_FILE)
        self.interval = float(self.config.get("status_interval") or STATUS_INTERVAL_SECONDS)
        self.scheduler = schedule.Scheduler()
        self._running = False

    def update(self) -> bool:
        """Run one cycle. Returns False when skipped; the last published file stays."""
        try:
            credential = self.manager.authenticate()
        except SpotifyMiniError as e:
            log_warning(f"Authentication failed, keeping previous status: {e}")
            return False

        payload = fetch_status(self.config, credential, client_factory=self.client_factory)
        try:
            publish_status(payload, self.status_file)
        except OSError as e:
            log_error(f"Could not write status file {self.status_file}: {e}")
            return False
        return True

    def stop(self) -> None:
        self._running = False
        self.wake.put("stop")

    def run(self) -> None:
        pid_file = str(self.config.get("pid_file") or "")
        previous_handler = self.wake.install_signal_handler()
        if pid_file:
            write_pid_file(pid_file)

        self.scheduler.every(self.interval).seconds.do(self.wake.put, "timer")
        log_info(f"Status daemon started (every {self.interval:g}s) -> {self.status_file}")

        self._running = True
        try:
            self.update()
            while self._running:
                self.scheduler.run_pending()
                idle = self.scheduler.idle_seconds
                timeout = self.interval if idle is None else max(0.05, idle)
                reason = self.wake.wait(timeout)
                if reason is None:
                    continue
                if reason == "stop":
                    break
                log_debug(f"Update triggered by {reason}")
                self.update()
        finally:
            self.scheduler.clear()
            signal.signal(WAKE_SIGNAL, previous_handler)
            if pid_file:
                remove_pid_file(pid_file)
            log_info("Status daemon stopped")


def status_once(config: Dict[str, Any], manager: CredentialManager) -> Dict[str, str]:
    """One-shot status for stdout; authentication failure reads as stopped."""
    try:
        credential = manager.authenticate()
    except AuthError as e:
        log_warning(f"Authentication failed: {e}")
        return dict(STOPPED_STATUS)
    return fetch_status(config, credential)
