from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx

from constants import COMMANDS, PID_FILE
from managers.daemon_signal import notify_daemon
from spotify_api.client import SpotifyClient
from spotify_api.errors import PlaybackError
from spotify_api.token_store import Credential
from utils.logger import log_debug, log_warning

# command -> (HTTP method, /me/player/<endpoint>)
PLAYER_ENDPOINTS = {
    "next": ("POST", "next"),
    "prev": ("POST", "previous"),
    "play": ("PUT", "play"),
    "pause": ("PUT", "pause"),
}


@dataclass(frozen=True)
class DispatchResult:
    command: str
    ok: bool
    message: str = ""


def resolve_toggle(client: SpotifyClient) -> str:
    """Pause when something is playing, play otherwise (including on a failed read)."""
    try:
        snapshot = client.current_playback()
    except PlaybackError as e:
        log_debug(f"Could not read playback state for toggle: {e}")
        return "play"
    return "pause" if snapshot is not None and snapshot.is_playing else "play"


class CommandDispatcher:
    """One-shot transport commands: one player call, then wake the status daemon."""

    def __init__(
        self,
        config: Dict[str, Any],
        *,
        transport: Optional[httpx.BaseTransport] = None,
        notifier: Callable[[str], bool] = notify_daemon,
    ):
        self.config = config or {}
        self.transport = transport
        self.notifier = notifier

    def dispatch(self, command: str, credential: Credential) -> DispatchResult:
        command = (command or "").strip().lower()
        if command not in COMMANDS:
            raise ValueError(f"Unknown command '{command}'. Expected one of: {', '.join(COMMANDS)}")

        client = SpotifyClient(self.config, credential, transport=self.transport)
        effective = resolve_toggle(client) if command == "toggle" else command
        method, endpoint = PLAYER_ENDPOINTS[effective]

        try:
            client.send_command(method, endpoint)
            result = DispatchResult(command=command, ok=True, message=effective)
        except PlaybackError as e:
            log_warning(f"Command '{command}' failed: {e}")
            result = DispatchResult(command=command, ok=False, message=str(e))

        self.wake_daemon()
        return result

    def wake_daemon(self) -> None:
        try:
            self.notifier(str(self.config.get("pid_file") or PID_FILE))
        except Exception as e:
            # The command already ran; a broken wakeup must not change its outcome.
            log_debug(f"Daemon notification failed: {e}")
