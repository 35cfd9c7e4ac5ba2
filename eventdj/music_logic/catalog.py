"""
Track Catalog for eventdj.

The catalog is the sole owner of Track objects. It can grow (library
additions) but never mutates an entry already present. Mood playlists hold
curated membership by track id and may be edited at runtime.
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from eventdj.errors import CatalogError
from eventdj.music_logic.track import Track

logger = logging.getLogger(__name__)


@dataclass
class MoodPlaylist:
    """
    Curated tracks for one mood.

    Attributes:
        mood: Lower-case mood key
        display_name: Human readable name
        description: What the playlist is for
        track_ids: Explicit members, in curation order
        preferred_bpm_range: (min, max) BPM the mood usually wants
        preferred_genres: Genres that usually fit the mood
    """
    mood: str
    display_name: str
    description: str
    track_ids: List[str] = field(default_factory=list)
    preferred_bpm_range: Tuple[int, int] = (100, 140)
    preferred_genres: List[str] = field(default_factory=list)


def default_mood_playlists() -> Dict[str, MoodPlaylist]:
    """Build the stock mood playlists (fresh objects on every call)."""
    playlists = [
        MoodPlaylist("excited", "Excited", "High-energy tracks for when the crowd is pumped up",
                     [f"audius-excited-{i}" for i in range(1, 5)], (130, 160),
                     ["Electronic", "Techno", "Hard Techno"]),
        MoodPlaylist("energetic", "Energetic", "Dynamic beats to keep the energy flowing",
                     [f"audius-energetic-{i}" for i in range(1, 5)], (125, 145),
                     ["Techno", "Electronic", "Bass"]),
        MoodPlaylist("happy", "Happy", "Feel-good vibes for positive moments",
                     [f"audius-happy-{i}" for i in range(1, 5)], (120, 135),
                     ["Electronic", "Trance", "Synthwave"]),
        MoodPlaylist("chill", "Chill", "Relaxed tracks for mellow moments",
                     [f"audius-chill-{i}" for i in range(1, 5)], (100, 125),
                     ["Synthwave", "Ambient", "Trance"]),
        MoodPlaylist("euphoric", "Euphoric", "Peak-time anthems for maximum impact",
                     [f"audius-euphoric-{i}" for i in range(1, 5)], (135, 170),
                     ["Hard Techno", "Bass", "Techno"]),
        MoodPlaylist("disappointed", "Disappointed", "Uplifting tracks to turn the mood around",
                     [f"audius-disappointed-{i}" for i in range(1, 4)], (115, 130),
                     ["Synthwave", "Ambient", "Trance"]),
        MoodPlaylist("bored", "Bored", "Engaging tracks to re-energize the crowd",
                     [f"audius-bored-{i}" for i in range(1, 4)], (125, 140),
                     ["Electronic", "Bass", "Techno"]),
        MoodPlaylist("focused", "Focused", "Steady rhythms for concentrated listening",
                     [f"audius-focused-{i}" for i in range(1, 4)], (120, 130),
                     ["Ambient", "Trance", "Electronic"]),
    ]
    return {p.mood: p for p in playlists}


class TrackCatalog:
    """
    Thread-safe, grow-only track catalog with mood playlist membership.

    Readers receive tuples (snapshots); they never see a list that another
    thread is appending to.
    """

    def __init__(self, tracks: Optional[Iterable[Track]] = None,
                 playlists: Optional[Dict[str, MoodPlaylist]] = None):
        """
        Initialize the catalog.

        Args:
            tracks: Initial tracks (duplicates by id are ignored)
            playlists: Mood playlists keyed by mood (default: stock playlists)
        """
        self._lock = threading.RLock()
        self._tracks: Dict[str, Track] = {}
        self._playlists: Dict[str, MoodPlaylist] = (
            playlists if playlists is not None else default_mood_playlists()
        )
        for track in tracks or []:
            self.add(track)
        logger.info(f"TrackCatalog initialized with {len(self._tracks)} tracks, {len(self._playlists)} mood playlists")

    def add(self, track: Track) -> bool:
        """
        Add a track to the catalog.

        Args:
            track: Track to add

        Returns:
            True if added, False if a track with the same id already exists
        """
        with self._lock:
            if track.id in self._tracks:
                if self._tracks[track.id] != track:
                    logger.warning(f"[CATALOG] Ignoring changed metadata for existing track {track.id}")
                return False
            self._tracks[track.id] = track
            return True

    def add_many(self, tracks: Iterable[Track]) -> int:
        """Add several tracks, returning how many were new."""
        return sum(1 for track in tracks if self.add(track))

    def get(self, track_id: Optional[str]) -> Optional[Track]:
        """Look up a track by id."""
        if track_id is None:
            return None
        with self._lock:
            return self._tracks.get(track_id)

    def tracks(self) -> Tuple[Track, ...]:
        """Snapshot of all tracks, in insertion order."""
        with self._lock:
            return tuple(self._tracks.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._tracks)

    def playlist(self, mood: Optional[str]) -> Optional[MoodPlaylist]:
        """Get the playlist for a mood (case-insensitive)."""
        if not mood:
            return None
        with self._lock:
            return self._playlists.get(mood.lower())

    def mood_names(self) -> List[str]:
        """All moods that have a playlist."""
        with self._lock:
            return list(self._playlists.keys())

    def tracks_for_mood(self, mood: Optional[str]) -> Tuple[Track, ...]:
        """
        Tracks explicitly curated for a mood.

        Membership is by track id only; ids with no catalog entry are skipped.

        Args:
            mood: Mood name (case-insensitive)

        Returns:
            Curated tracks present in the catalog (may be empty)
        """
        with self._lock:
            playlist = self._playlists.get((mood or "").lower())
            if playlist is None:
                return ()
            return tuple(self._tracks[tid] for tid in playlist.track_ids if tid in self._tracks)

    def add_to_mood(self, mood: str, track_id: str) -> bool:
        """
        Add a track id to a mood playlist.

        Returns:
            True if the id was added, False if no such playlist or already a member
        """
        with self._lock:
            playlist = self._playlists.get(mood.lower())
            if playlist is None or track_id in playlist.track_ids:
                return False
            playlist.track_ids.append(track_id)
            logger.info(f"[CATALOG] Added {track_id} to {playlist.mood} playlist")
            return True

    def remove_from_mood(self, mood: str, track_id: str) -> bool:
        """
        Remove a track id from a mood playlist.

        Returns:
            True if the id was removed
        """
        with self._lock:
            playlist = self._playlists.get(mood.lower())
            if playlist is None or track_id not in playlist.track_ids:
                return False
            playlist.track_ids.remove(track_id)
            logger.info(f"[CATALOG] Removed {track_id} from {playlist.mood} playlist")
            return True

    def assign_by_genre(self) -> int:
        """
        Add every track to the mood playlists whose preferred genres include
        its genre. Used after loading from a provider that knows no moods.

        Returns:
            Number of memberships added
        """
        added = 0
        with self._lock:
            for playlist in self._playlists.values():
                genres = {g.lower() for g in playlist.preferred_genres}
                for track in self._tracks.values():
                    if track.genre.lower() in genres and track.id not in playlist.track_ids:
                        playlist.track_ids.append(track.id)
                        added += 1
        logger.info(f"[CATALOG] Assigned {added} playlist memberships by genre")
        return added

    def find_cue(self, cue: Optional[str]) -> Optional[Track]:
        """
        Resolve a music cue to the first track whose title or artist contains it.

        Args:
            cue: Free-text cue from an event plan

        Returns:
            Matching Track or None
        """
        if not cue:
            return None
        for track in self.tracks():
            if track.matches_text(cue):
                return track
        return None

    def load_from(self, provider, genres: Iterable[Optional[str]] = (None,),
                  queries: Iterable[str] = ()) -> int:
        """
        Populate the catalog from a catalog provider.

        A failing provider call is logged and skipped; the catalog keeps what
        it already has.

        Args:
            provider: Object with list(genre=None) and search(query)
            genres: Genres to list (None lists everything the provider offers)
            queries: Free-text searches to run

        Returns:
            Number of new tracks added
        """
        added = 0
        for genre in genres:
            try:
                added += self.add_many(provider.list(genre=genre))
            except CatalogError as e:
                logger.warning(f"[CATALOG] Provider list failed (genre={genre}): {e}")
        for query in queries:
            try:
                added += self.add_many(provider.search(query))
            except CatalogError as e:
                logger.warning(f"[CATALOG] Provider search failed (query={query!r}): {e}")
        logger.info(f"[CATALOG] Loaded {added} new tracks from provider (total={len(self)})")
        return added

    @classmethod
    def from_json_file(cls, path: str) -> "TrackCatalog":
        """
        Load a catalog from a JSON file.

        The file is either a list of track dicts, or an object with "tracks"
        and an optional "playlists" mapping of mood -> list of track ids
        (merged into the stock playlists).

        Raises:
            CatalogError: If the file cannot be read or parsed
        """
        try:
            with open(Path(path), "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise CatalogError(f"Failed to load catalog from {path}: {e}") from e

        if isinstance(data, list):
            data = {"tracks": data}
        try:
            tracks = [Track.from_dict(item) for item in data.get("tracks", [])]
        except (KeyError, TypeError, ValueError) as e:
            raise CatalogError(f"Invalid track entry in {path}: {e}") from e

        catalog = cls(tracks)
        for mood, track_ids in (data.get("playlists") or {}).items():
            for track_id in track_ids:
                catalog.add_to_mood(mood, str(track_id))
        return catalog
