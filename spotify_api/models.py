from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Track:
    name: str
    uri: str = ""
    duration_ms: int = 0
    artists: List[str] = field(default_factory=list)

    @staticmethod
    def from_api(item: Dict[str, Any]) -> "Track":
        artists = [
            str(a.get("name") or "")
            for a in (item.get("artists") or [])
            if isinstance(a, dict)
        ]
        return Track(
            name=str(item.get("name") or ""),
            uri=str(item.get("uri") or ""),
            duration_ms=int(item.get("duration_ms") or 0),
            artists=artists,
        )

    @property
    def primary_artist(self) -> str:
        return self.artists[0] if self.artists else ""


@dataclass(frozen=True)
class PlaybackContext:
    """What the current track is played from (album, playlist, artist...)."""

    uri: str
    type: str

    @property
    def supports_offset(self) -> bool:
        return bool(self.uri) and self.type in ("playlist", "album")


@dataclass(frozen=True)
class PlaybackSnapshot:
    is_playing: bool
    progress_ms: int = 0
    item: Optional[Track] = None
    context: Optional[PlaybackContext] = None

    @staticmethod
    def from_api(payload: Dict[str, Any]) -> "PlaybackSnapshot":
        item = payload.get("item")
        context = payload.get("context")
        return PlaybackSnapshot(
            is_playing=bool(payload.get("is_playing")),
            progress_ms=int(payload.get("progress_ms") or 0),
            item=Track.from_api(item) if isinstance(item, dict) else None,
            context=(
                PlaybackContext(uri=str(context.get("uri") or ""), type=str(context.get("type") or ""))
                if isinstance(context, dict)
                else None
            ),
        )

    @property
    def progress_ratio(self) -> float:
        if self.item is None or self.item.duration_ms <= 0:
            return 0.0
        return min(1.0, max(0.0, self.progress_ms / self.item.duration_ms))
