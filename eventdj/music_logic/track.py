"""
Track model for eventdj.

A Track is immutable once it is in the catalog. Other components refer to
tracks by id and never modify them.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Track:
    """
    A playable music track.

    Attributes:
        id: Catalog-unique track id
        title: Track title
        artist: Artist name
        duration_sec: Duration in seconds
        bpm: Tempo in beats per minute
        genre: Genre label (free text, matched case-insensitively)
        source_ref: Where the playback sink fetches audio from (URL or path)
        license: License string reported by the provider
    """
    id: str
    title: str
    artist: str
    duration_sec: float
    bpm: float
    genre: str
    source_ref: str
    license: str = "unknown"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Track":
        """
        Build a Track from a plain dict (JSON catalog files, provider payloads).

        Accepts both snake_case and the camelCase keys used by exported
        catalogs (durationSec, sourceRef).
        """
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            artist=str(data.get("artist", "")),
            duration_sec=float(data.get("duration_sec", data.get("durationSec", 0.0)) or 0.0),
            bpm=float(data.get("bpm", 0.0) or 0.0),
            genre=str(data.get("genre", "")),
            source_ref=str(data.get("source_ref", data.get("sourceRef", ""))),
            license=str(data.get("license", "unknown")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Plain-dict form used in listener payloads and logs."""
        return {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "duration_sec": self.duration_sec,
            "bpm": self.bpm,
            "genre": self.genre,
            "source_ref": self.source_ref,
            "license": self.license,
        }

    def matches_text(self, needle: Optional[str]) -> bool:
        """True if needle appears in the title or artist (case-insensitive)."""
        if not needle:
            return False
        needle = needle.lower()
        return needle in self.title.lower() or needle in self.artist.lower()
