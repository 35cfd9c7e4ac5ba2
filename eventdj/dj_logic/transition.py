"""
Transition Coordinator for eventdj.

Drives every track change through one state machine:

    IDLE → ANNOUNCING → SWAPPING → SETTLING → IDLE

Mood-triggered changes announce the new track and swap as soon as the
announcement starts playing, so the voice covers the change instead of
dead air. Requested changes (manual, phase, music cue, start of playback)
run the same cycle, usually without an announcement.

At most one cycle runs at a time. Mood samples and requests that arrive
mid-cycle are held (latest wins) and looked at once the cycle is back in
IDLE. This component is the only writer of the now-playing state.
"""

import logging
import random
import threading
from typing import Callable, Dict, List, Optional, Set, Tuple

from eventdj.broadcast_core.announcement import (
    AnnouncementRequest,
    ORIGIN_AI,
    PRIORITY_HIGH,
    PRIORITY_IMMEDIATE,
)
from eventdj.clock.master_clock import MasterClock
from eventdj.dj_logic.announcement_templates import DEFAULT_DJ_NAME, mood_change_announcement
from eventdj.dj_logic.mood import DEFAULT_MOOD, MoodSample
from eventdj.music_logic import selector
from eventdj.music_logic.catalog import TrackCatalog
from eventdj.music_logic.track import Track
from eventdj.outputs.base_sink import PlaybackSink
from eventdj.state.now_playing_state import NowPlayingStateManager
from eventdj.state.session_state import SessionStateManager

logger = logging.getLogger(__name__)

TRANSITION_IDLE = "IDLE"
TRANSITION_ANNOUNCING = "ANNOUNCING"
TRANSITION_SWAPPING = "SWAPPING"
TRANSITION_SETTLING = "SETTLING"

ALLOWED_EDGES: Dict[str, Set[str]] = {
    TRANSITION_IDLE: {TRANSITION_ANNOUNCING},
    TRANSITION_ANNOUNCING: {TRANSITION_SWAPPING},
    TRANSITION_SWAPPING: {TRANSITION_SETTLING},
    TRANSITION_SETTLING: {TRANSITION_IDLE},
}

REASON_MOOD = "mood"
REASON_MANUAL = "manual"
REASON_PHASE = "phase"
REASON_CUE = "cue"
REASON_START = "start"

TrackChangeListener = Callable[[Track, str], None]
StateListener = Callable[[str, str], None]


class TransitionCoordinator:
    """
    Mood-aware track transition state machine.

    Collaborators:
    - catalog + selector pick the next track
    - announcement queue speaks the transition (enqueue + started/finished listeners)
    - playback sink performs the swap
    """

    def __init__(
        self,
        catalog: TrackCatalog,
        announcements,
        sink: PlaybackSink,
        now_playing: Optional[NowPlayingStateManager] = None,
        clock: Optional[MasterClock] = None,
        settle_seconds: float = 4.0,
        announce_wait_seconds: float = 10.0,
        high_energy_threshold: int = selector.HIGH_ENERGY_THRESHOLD,
        low_energy_threshold: int = selector.LOW_ENERGY_THRESHOLD,
        energy_bpm_split: int = selector.ENERGY_BPM_SPLIT,
        rng: Optional[random.Random] = None,
        dj_name: str = DEFAULT_DJ_NAME,
        session_state: Optional[SessionStateManager] = None,
    ):
        """
        Initialize the transition coordinator.

        Args:
            catalog: Tracks to select from
            announcements: AnnouncementQueue (enqueue, add_started_listener, add_finished_listener)
            sink: Playback sink
            now_playing: Now-playing state (written only here)
            clock: Time source (default: MasterClock)
            settle_seconds: SETTLING dwell
            announce_wait_seconds: Longest wait in ANNOUNCING for the announcement to start
            high_energy_threshold: Selector high-energy threshold
            low_energy_threshold: Selector low-energy threshold
            energy_bpm_split: Selector BPM split
            rng: Random source for selection and announcement text
            dj_name: Name used in mood announcements
            session_state: Receives degraded/healthy reports for playback
        """
        self._catalog = catalog
        self._announcements = announcements
        self._sink = sink
        self._now_playing = now_playing or NowPlayingStateManager()
        self._clock = clock or MasterClock()
        self._settle_seconds = settle_seconds
        self._announce_wait_seconds = announce_wait_seconds
        self._thresholds = (high_energy_threshold, low_energy_threshold, energy_bpm_split)
        self._rng = rng
        self._dj_name = dj_name
        self._session_state = session_state

        self._state = TRANSITION_IDLE
        self._state_lock = threading.Lock()
        self._cycle_lock = threading.Lock()
        self._pending_lock = threading.Lock()
        self._pending_mood: Optional[MoodSample] = None
        self._pending_request: Optional[Tuple[Track, str, Optional[str]]] = None
        self._last_acted_mood: Optional[str] = None
        self._latest_sample: Optional[MoodSample] = None
        self._transition_count = 0

        self._awaited_id: Optional[str] = None
        self._announcement_released = threading.Event()

        self._track_listeners: List[TrackChangeListener] = []
        self._state_listeners: List[StateListener] = []

        self._stop_event = threading.Event()
        self._wakeup = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self._announcements.add_started_listener(self._on_announcement_started)
        self._announcements.add_finished_listener(self._on_announcement_finished)

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    @property
    def state(self) -> str:
        with self._state_lock:
            return self._state

    @property
    def now_playing(self) -> NowPlayingStateManager:
        return self._now_playing

    @property
    def last_acted_mood(self) -> Optional[str]:
        return self._last_acted_mood

    @property
    def transition_count(self) -> int:
        """Mood-triggered transitions started this session."""
        return self._transition_count

    def add_track_change_listener(self, callback: TrackChangeListener) -> None:
        """Callback(track, reason) after every swap."""
        self._track_listeners.append(callback)

    def add_state_listener(self, callback: StateListener) -> None:
        """Callback(old_state, new_state) on every state change."""
        self._state_listeners.append(callback)

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def on_mood_sample(self, sample: MoodSample) -> None:
        """
        Offer a new mood sample. Latest wins until the next IDLE check.
        """
        with self._pending_lock:
            self._pending_mood = sample
            self._latest_sample = sample
        self._wakeup.set()

    def request_track_change(self, track: Track, reason: str = REASON_MANUAL,
                             announcement: Optional[str] = None) -> None:
        """
        Ask for a specific track.

        Runs as its own cycle once the coordinator is IDLE; a later request
        replaces an earlier one that has not started yet.

        Args:
            track: Track to switch to
            reason: manual, phase, cue or start
            announcement: Optional text to speak before the swap
        """
        with self._pending_lock:
            self._pending_request = (track, reason, announcement)
        logger.info(f"[TRANSITION] Track change requested ({reason}): {track.title}")
        self._wakeup.set()

    def start_playback(self, track: Optional[Track] = None) -> Optional[Track]:
        """
        Begin playback with the given track or a pick for the latest mood.

        Without a track this only fills silence: it does nothing while music
        is playing or another change is pending. The picked-for mood becomes
        the last acted mood, so a sample of the same mood does not start a
        transition.

        Returns:
            The track requested, or None if nothing was requested
        """
        mood = None
        if track is None:
            with self._pending_lock:
                sample = self._latest_sample
                pending = self._pending_request
            if pending is not None or self._now_playing.is_playing():
                busy = pending[1] if pending is not None else "playback"
                logger.info(f"[TRANSITION] Start pick skipped, {busy} already under way")
                return None
            mood = sample.mood if sample else (self._last_acted_mood or DEFAULT_MOOD)
            energy = sample.energy if sample else 60.0
            track = self._select(mood, energy, exclude_id=None)
        if track is None:
            logger.warning("[TRANSITION] Cannot start playback: no track available")
            return None
        if mood is None:
            self.request_track_change(track, reason=REASON_START)
            return track

        with self._pending_lock:
            # A phase or manual request may have landed while selecting
            if self._pending_request is not None:
                logger.info(f"[TRANSITION] Start pick skipped, {self._pending_request[1]} request pending")
                return None
            self._pending_request = (track, REASON_START, None)
            self._last_acted_mood = mood
        logger.info(f"[TRANSITION] Track change requested ({REASON_START}): {track.title} for mood {mood}")
        self._wakeup.set()
        return track

    def stop_playback(self) -> None:
        """Stop music and drop any requested change that has not started."""
        with self._pending_lock:
            self._pending_request = None
        try:
            self._sink.stop()
        except Exception as e:
            logger.error(f"[TRANSITION] Sink stop failed: {e}", exc_info=True)
        self._now_playing.on_playback_stopped()
        logger.info("[TRANSITION] Playback stopped")

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def process_pending(self) -> bool:
        """
        Run one full cycle if there is pending work that qualifies.

        Blocks through ANNOUNCING, SWAPPING and SETTLING. Returns at once
        (False) if another cycle is running.

        Returns:
            True if a cycle ran
        """
        if not self._cycle_lock.acquire(blocking=False):
            return False
        try:
            if self.state != TRANSITION_IDLE:
                return False
            with self._pending_lock:
                request = self._pending_request
                self._pending_request = None
                sample = None
                if request is None:
                    sample = self._pending_mood
                    self._pending_mood = None

            if request is not None:
                return self._run_requested(*request)
            if sample is not None:
                return self._run_mood(sample)
            return False
        finally:
            self._cycle_lock.release()

    def _run_requested(self, track: Track, reason: str, announcement: Optional[str]) -> bool:
        current = self._now_playing.current_track()
        if current is not None and current.id == track.id:
            logger.info(f"[TRANSITION] {track.title} is already playing, ignoring {reason} request")
            return False
        self._run_cycle(track, reason, announcement, PRIORITY_HIGH)
        return True

    def _run_mood(self, sample: MoodSample) -> bool:
        if not self._now_playing.is_playing():
            logger.debug(f"[TRANSITION] Playback inactive, ignoring mood {sample.mood}")
            return False
        last = self._last_acted_mood
        if last is not None and sample.mood.lower() == last.lower():
            return False

        current = self._now_playing.current_track()
        track = self._select(sample.mood, sample.energy, exclude_id=current.id if current else None)
        if track is None or (current is not None and track.id == current.id):
            logger.info(f"[TRANSITION] No new track for mood {sample.mood}, staying on current track")
            return False

        self._last_acted_mood = sample.mood
        priority = PRIORITY_IMMEDIATE if self._transition_count == 0 else PRIORITY_HIGH
        self._transition_count += 1
        text = mood_change_announcement(last, sample.mood, track, rng=self._rng, dj_name=self._dj_name)
        logger.info(f"[TRANSITION] Mood {last} → {sample.mood}, switching to {track.title}")
        self._run_cycle(track, REASON_MOOD, text, priority)
        return True

    def _run_cycle(self, track: Track, reason: str, text: Optional[str], priority: str) -> None:
        self._set_state(TRANSITION_ANNOUNCING)
        try:
            if text:
                self._announce_and_wait(text, priority)

            self._set_state(TRANSITION_SWAPPING)
            self._swap(track, reason)

            self._set_state(TRANSITION_SETTLING)
            if self._settle_seconds > 0:
                self._stop_event.wait(self._settle_seconds)
        finally:
            with self._state_lock:
                old = self._state
                self._state = TRANSITION_IDLE
            self._awaited_id = None
            logger.info(f"[TRANSITION] {old} → {TRANSITION_IDLE}")
            self._notify_state(old, TRANSITION_IDLE)

    def _announce_and_wait(self, text: str, priority: str) -> None:
        request = AnnouncementRequest(text=text, priority=priority, origin=ORIGIN_AI,
                                      enqueued_at=self._clock.monotonic())
        self._announcement_released.clear()
        self._awaited_id = request.id
        try:
            accepted = self._announcements.enqueue(request)
        except Exception as e:
            logger.error(f"[TRANSITION] Announcement enqueue raised: {e}", exc_info=True)
            accepted = False

        if not accepted:
            logger.warning("[TRANSITION] Announcement not queued, swapping anyway")
            return
        if not self._announcement_released.wait(self._announce_wait_seconds):
            logger.warning(f"[TRANSITION] Announcement did not start within {self._announce_wait_seconds}s, swapping anyway")

    def _swap(self, track: Track, reason: str) -> None:
        if self._stop_event.is_set():
            logger.info(f"[TRANSITION] Coordinator stopping, skipping swap to {track.title}")
            return
        if reason == REASON_MOOD and not self._now_playing.is_playing():
            logger.info("[TRANSITION] Playback stopped during announcement, skipping swap")
            return
        try:
            self._sink.play(track)
        except Exception as e:
            logger.error(f"[TRANSITION] Sink refused {track.id}: {e}", exc_info=True)
            if self._session_state is not None:
                self._session_state.mark_degraded("playback", str(e))
            return
        if self._session_state is not None:
            self._session_state.mark_healthy("playback")
        self._now_playing.on_track_started(track, reason)
        logger.info(f"[TRANSITION] Now playing {track.title} by {track.artist} ({reason})")
        for callback in list(self._track_listeners):
            try:
                callback(track, reason)
            except Exception as e:
                logger.error(f"[TRANSITION] Track change listener error: {e}", exc_info=True)

    def _select(self, mood: str, energy: float, exclude_id: Optional[str]) -> Optional[Track]:
        high, low, split = self._thresholds
        return selector.select_next(mood, energy, self._catalog, exclude_id=exclude_id, rng=self._rng,
                                    high_threshold=high, low_threshold=low, bpm_split=split)

    def _set_state(self, new_state: str) -> None:
        with self._state_lock:
            old = self._state
            if new_state not in ALLOWED_EDGES[old]:
                raise RuntimeError(f"illegal transition {old} → {new_state}")
            self._state = new_state
        logger.info(f"[TRANSITION] {old} → {new_state}")
        self._notify_state(old, new_state)

    def _notify_state(self, old: str, new: str) -> None:
        for callback in list(self._state_listeners):
            try:
                callback(old, new)
            except Exception as e:
                logger.error(f"[TRANSITION] State listener error: {e}", exc_info=True)

    def _on_announcement_started(self, request: AnnouncementRequest) -> None:
        if request.id == self._awaited_id:
            self._announcement_released.set()

    def _on_announcement_finished(self, request: AnnouncementRequest, outcome: str) -> None:
        # Dropped or cancelled before it ever started
        if request.id == self._awaited_id:
            self._announcement_released.set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _transition_loop(self) -> None:
        logger.info("[TRANSITION] Coordinator started")
        while not self._stop_event.is_set():
            try:
                ran = self.process_pending()
            except Exception as e:
                logger.error(f"[TRANSITION] Cycle failed: {e}", exc_info=True)
                ran = False
            if not ran:
                self._wakeup.wait(timeout=0.5)
                self._wakeup.clear()
        logger.info("[TRANSITION] Coordinator stopped")

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            logger.warning("[TRANSITION] Coordinator is already running")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._transition_loop, name="transition", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 3.0) -> None:
        self._stop_event.set()
        self._announcement_released.set()
        self._wakeup.set()
        with self._pending_lock:
            self._pending_mood = None
            self._pending_request = None
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning(f"[TRANSITION] Coordinator thread did not stop within timeout ({timeout}s)")
        self._thread = None
