"""
Now Playing State Manager

Provides authoritative, read-only state for the track currently playing.
The TransitionCoordinator is the only writer; everything else reads
snapshots.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

from eventdj.music_logic.track import Track

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NowPlayingState:
    """
    Immutable snapshot of the playing track.

    started_at is wall-clock (time.time()) so it can be shown to people;
    nothing in the core computes with it.
    """
    track: Track
    started_at: float
    reason: str = "manual"  # manual | mood | phase | cue | start

    @property
    def track_id(self) -> str:
        return self.track.id


class NowPlayingStateManager:
    """
    Manages NowPlayingState lifecycle.

    State is created when a track starts and cleared when playback stops.
    """

    def __init__(self):
        """Initialize state manager."""
        self._state: Optional[NowPlayingState] = None
        self._lock = threading.RLock()
        self._listeners = []

    def on_track_started(self, track: Track, reason: str = "manual") -> NowPlayingState:
        """
        Record that a track started playing.

        Args:
            track: Track now playing
            reason: Why it was started (manual, mood, phase, cue, start)

        Returns:
            The new state snapshot
        """
        with self._lock:
            self._state = NowPlayingState(track=track, started_at=time.time(), reason=reason)
            logger.debug(f"[NOW_PLAYING] State created: {track.id} ({reason})")
            state = self._state
        self._notify_listeners(state)
        return state

    def on_playback_stopped(self) -> None:
        with self._lock:
            if self._state is not None:
                logger.debug(f"[NOW_PLAYING] State cleared: {self._state.track_id}")
            self._state = None
        self._notify_listeners(None)

    def get_state(self) -> Optional[NowPlayingState]:
        """
        Get current state (read-only).

        Returns:
            Current NowPlayingState or None if nothing is playing
        """
        with self._lock:
            return self._state

    def current_track(self) -> Optional[Track]:
        state = self.get_state()
        return state.track if state else None

    def is_playing(self) -> bool:
        return self.get_state() is not None

    def add_listener(self, callback) -> None:
        """
        Add a listener callback for state changes.

        Callback will be called with (state: Optional[NowPlayingState]) when state changes.
        """
        with self._lock:
            self._listeners.append(callback)

    def remove_listener(self, callback) -> None:
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def _notify_listeners(self, state: Optional[NowPlayingState]) -> None:
        with self._lock:
            listeners = self._listeners.copy()

        for callback in listeners:
            try:
                callback(state)
            except Exception as e:
                logger.error(f"[NOW_PLAYING] Listener callback error: {e}", exc_info=True)
