import time
from typing import List, Optional

import questionary

from constants import QUEUE_JUMP_LIMIT
from managers.command_dispatcher import CommandDispatcher
from spotify_api.client import SpotifyClient
from spotify_api.credential_manager import CredentialManager
from spotify_api.errors import PlaybackError
from spotify_api.models import PlaybackSnapshot, Track
from utils.logger import log_error, log_info, log_success, log_warning

BAR_WIDTH = 25
LINE_WIDTH = 40

ACTION_PREV = "⏮  Previous"
ACTION_TOGGLE = "⏯  Play/Pause"
ACTION_NEXT = "⏭  Next"
ACTION_QUEUE = "📜 Jump to a queued track"
ACTION_REFRESH = "🔄 Refresh"
ACTION_QUIT = "Quit"


def truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    if max_len < 3:
        return text[:max_len]
    return text[: max_len - 3] + "..."


def progress_bar(ratio: float, width: int = BAR_WIDTH) -> str:
    filled = min(width, int(width * ratio))
    return "━" * filled + "●" + "─" * (width - filled)


def render_now_playing(snapshot: Optional[PlaybackSnapshot]) -> str:
    song, artist, ratio = "Nothing Playing", "Spotify", 0.0
    if snapshot is not None and snapshot.item is not None:
        song = snapshot.item.name
        artist = snapshot.item.primary_artist
        ratio = snapshot.progress_ratio

    return "\n".join(
        [
            truncate(song, LINE_WIDTH - 2).center(LINE_WIDTH),
            truncate(artist, LINE_WIDTH - 2).center(LINE_WIDTH),
            progress_bar(ratio).center(LINE_WIDTH),
        ]
    )


def jump_to_queue_item(
    client: SpotifyClient,
    snapshot: Optional[PlaybackSnapshot],
    queue: List[Track],
    index: int,
    *,
    limit: int = QUEUE_JUMP_LIMIT,
) -> str:
    """Start playback at queue[index].

    Inside a playlist or album the context is restarted at that track, which
    keeps the rest of the context queued. Otherwise (or if that call fails)
    the remaining queue is replayed as an explicit URI list.
    """
    target = queue[index]

    context = snapshot.context if snapshot is not None else None
    if context is not None and context.supports_offset and target.uri:
        try:
            client.play_context(context.uri, target.uri)
            return f"Skipped to: {target.name}"
        except PlaybackError as e:
            log_warning(f"Context jump failed, falling back to a track list: {e}")

    uris = [t.uri for t in queue[index:] if t.uri][:limit]
    if not uris:
        return "Nothing playable in the queue"
    client.play_uris(uris)
    return f"Playing: {target.name}"


def _choose_queue_index(queue: List[Track]) -> Optional[int]:
    if not queue:
        log_info("The queue is empty.")
        return None

    choices = [
        questionary.Choice(
            title=f"{i + 1}. {truncate(t.name, LINE_WIDTH)}" + (f" - {t.primary_artist}" if t.primary_artist else ""),
            value=i,
        )
        for i, t in enumerate(queue)
    ]
    choices.append(questionary.Choice(title="Back", value=None))
    return questionary.select("Next up: pick a track", choices=choices).ask()


def player_menu(config: dict, manager: CredentialManager) -> None:
    """Interactive player: now playing, transport buttons and queue jump."""
    dispatcher = CommandDispatcher(config)
    limit = int(config.get("queue_jump_limit") or QUEUE_JUMP_LIMIT)

    while True:
        # Cheap when the stored credential is still valid; refreshes otherwise.
        credential = manager.authenticate()
        client = SpotifyClient(config, credential)

        try:
            snapshot = client.current_playback()
        except PlaybackError as e:
            log_warning(f"Could not read playback state: {e}")
            snapshot = None

        print("\n" + render_now_playing(snapshot) + "\n")

        choice = questionary.select(
            "🎵 Player: choose an action",
            choices=[ACTION_PREV, ACTION_TOGGLE, ACTION_NEXT, ACTION_QUEUE, ACTION_REFRESH, ACTION_QUIT],
            default=ACTION_TOGGLE,
        ).ask()

        if choice is None or choice == ACTION_QUIT:
            break

        if choice in (ACTION_PREV, ACTION_TOGGLE, ACTION_NEXT):
            command = {ACTION_PREV: "prev", ACTION_TOGGLE: "toggle", ACTION_NEXT: "next"}[choice]
            result = dispatcher.dispatch(command, credential)
            if result.ok:
                log_success(result.message.capitalize())
            else:
                log_error(result.message)
            # Give Spotify a moment before reading the state back.
            time.sleep(0.1)

        elif choice == ACTION_QUEUE:
            try:
                queue = client.queue()
            except PlaybackError as e:
                log_error(f"Could not load the queue: {e}")
                continue

            index = _choose_queue_index(queue)
            if index is None:
                continue

            try:
                log_success(jump_to_queue_item(client, snapshot, queue, index, limit=limit))
            except PlaybackError as e:
                log_error(f"Could not start playback: {e}")
            dispatcher.wake_daemon()
            time.sleep(0.2)
