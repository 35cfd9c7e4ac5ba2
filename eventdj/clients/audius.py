"""
Audius catalog provider for eventdj.

Pulls trending and searched tracks from an Audius discovery node. Audius
reports no tempo, so BPM is estimated from genre and title keywords.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from eventdj.clients.base import CatalogProvider
from eventdj.errors import CatalogError
from eventdj.music_logic.track import Track

logger = logging.getLogger(__name__)

AUDIUS_BASE_URL = "https://discoveryprovider.audius.co"
DEFAULT_APP_NAME = "eventdj"

GENRE_BPM_RANGES = {
    "electronic": (120, 140),
    "techno": (125, 145),
    "house": (120, 130),
    "trance": (130, 140),
    "dubstep": (140, 150),
    "drum & bass": (160, 180),
    "hip-hop": (80, 100),
    "pop": (100, 120),
    "rock": (110, 140),
    "jazz": (90, 120),
    "classical": (60, 120),
    "reggae": (60, 90),
    "country": (100, 130),
    "r&b": (70, 100),
    "funk": (100, 120),
    "disco": (110, 130),
    "ambient": (60, 100),
}
DEFAULT_BPM_RANGE = (120, 140)

FAST_KEYWORDS = ("fast", "speed", "rush")
SLOW_KEYWORDS = ("slow", "chill", "relax")


def estimate_bpm(genre: Optional[str], title: Optional[str]) -> float:
    """
    Estimate tempo from genre and title.

    Midpoint of the genre's range, shifted by 10 for fast/slow title words.
    """
    low, high = GENRE_BPM_RANGES.get((genre or "").lower(), DEFAULT_BPM_RANGE)
    bpm = (low + high) / 2
    title_lower = (title or "").lower()
    if any(word in title_lower for word in FAST_KEYWORDS):
        bpm += 10
    elif any(word in title_lower for word in SLOW_KEYWORDS):
        bpm -= 10
    return float(bpm)


class AudiusCatalogProvider(CatalogProvider):
    """CatalogProvider over the Audius public API."""

    def __init__(self, base_url: str = AUDIUS_BASE_URL, app_name: str = DEFAULT_APP_NAME,
                 limit: int = 20, timeout: float = 10.0,
                 client: Optional[httpx.Client] = None):
        self.base_url = base_url.rstrip("/")
        self.app_name = app_name
        self.limit = limit
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)

    def _get(self, path: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        params = {"app_name": self.app_name, "limit": self.limit, **params}
        try:
            response = self._client.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise CatalogError(f"Audius request {path} failed: {e}") from e
        except ValueError as e:
            raise CatalogError(f"Audius request {path} returned invalid JSON") from e
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            raise CatalogError(f"Audius request {path} returned no data list")
        return data

    def to_track(self, item: Dict[str, Any]) -> Track:
        """Convert one Audius track payload to a Track."""
        audius_id = str(item["id"])
        title = item.get("title") or "Untitled"
        genre = item.get("genre") or "Electronic"
        user = item.get("user") or {}
        return Track(
            id=f"audius-{audius_id}",
            title=title,
            artist=user.get("name") or user.get("handle") or "Unknown Artist",
            duration_sec=float(item.get("duration") or 0),
            bpm=estimate_bpm(genre, title),
            genre=genre,
            source_ref=f"{self.base_url}/v1/tracks/{audius_id}/stream?app_name={self.app_name}",
            license="Audius",
        )

    def _convert(self, items: List[Dict[str, Any]]) -> List[Track]:
        tracks = []
        for item in items:
            try:
                tracks.append(self.to_track(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"[AUDIUS] Skipping malformed track: {e}")
        return tracks

    def list(self, genre: Optional[str] = None) -> List[Track]:
        params = {"genre": genre} if genre else {}
        tracks = self._convert(self._get("/v1/tracks/trending", params))
        logger.info(f"[AUDIUS] {len(tracks)} trending tracks (genre={genre or 'any'})")
        return tracks

    def search(self, query: str) -> List[Track]:
        tracks = self._convert(self._get("/v1/tracks/search", {"query": query}))
        logger.info(f"[AUDIUS] {len(tracks)} tracks for '{query}'")
        return tracks

    def close(self) -> None:
        self._client.close()
