"""
DJ session for eventdj.

Wires the mood sampler, transition coordinator, announcement queue, event
timeline and face watch into one session with a single start/stop
lifecycle. The application talks only to DJSession.
"""

import logging
import random
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional

from eventdj.app.settings import Settings
from eventdj.broadcast_core.announcement import AnnouncementRequest, ORIGIN_MANUAL, PRIORITY_MEDIUM
from eventdj.broadcast_core.announcement_queue import AnnouncementQueue
from eventdj.clients.base import FaceRecognizer, FrameProvider, SpeechEngine, VisionAnalyzer
from eventdj.clock.master_clock import MasterClock
from eventdj.dj_logic.event_plan import EventPlan, VIPGuest
from eventdj.dj_logic.face_watch import FaceWatch
from eventdj.dj_logic.mood import MoodSample
from eventdj.dj_logic.mood_sampler import MoodSampler
from eventdj.dj_logic.timeline import EventTimelineCoordinator
from eventdj.dj_logic.transition import REASON_MANUAL, TransitionCoordinator
from eventdj.music_logic.catalog import TrackCatalog
from eventdj.music_logic.track import Track
from eventdj.outputs.base_sink import PlaybackSink, SpeechOutput
from eventdj.state.now_playing_state import NowPlayingStateManager
from eventdj.state.session_state import SessionStateManager

logger = logging.getLogger(__name__)

LIFECYCLE_CREATED = "CREATED"
LIFECYCLE_RUNNING = "RUNNING"
LIFECYCLE_STOPPING = "STOPPING"
LIFECYCLE_STOPPED = "STOPPED"


class DJSession:
    """
    One running DJ session.

    Lifecycle: CREATED -> RUNNING -> STOPPING -> STOPPED. A stopped session
    is not restarted; build a new one.
    """

    def __init__(
        self,
        catalog: TrackCatalog,
        analyzer: VisionAnalyzer,
        frame_provider: FrameProvider,
        speech: SpeechEngine,
        speech_output: SpeechOutput,
        sink: PlaybackSink,
        fallback_speech: Optional[SpeechEngine] = None,
        recognizer: Optional[FaceRecognizer] = None,
        settings: Optional[Settings] = None,
        clock: Optional[MasterClock] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Build the session and its components.

        Args:
            catalog: Track catalog
            analyzer: Vision analysis collaborator
            frame_provider: Source of video frames
            speech: Primary speech engine
            speech_output: Where speech is played
            sink: Music playback sink
            fallback_speech: Local speech engine used when the primary fails
            recognizer: Face recognition collaborator (VIP watch disabled if None)
            settings: Thresholds and timings (default: Settings())
            clock: Time source shared by every component
            rng: Random source shared by selection and templates
        """
        self.settings = settings or Settings()
        s = self.settings
        self.clock = clock or MasterClock()
        self.catalog = catalog
        self.sink = sink

        self.session_state = SessionStateManager()
        self.now_playing = NowPlayingStateManager()

        self.announcements = AnnouncementQueue(
            primary=speech,
            fallback=fallback_speech,
            output=speech_output,
            sink=sink,
            clock=self.clock,
            cooldown_seconds=s.announcement_cooldown_seconds,
            duck_volume=s.duck_volume,
            normal_volume=s.normal_volume,
            session_state=self.session_state,
        )
        self.transitions = TransitionCoordinator(
            catalog=catalog,
            announcements=self.announcements,
            sink=sink,
            now_playing=self.now_playing,
            clock=self.clock,
            settle_seconds=s.transition_settle_seconds,
            announce_wait_seconds=s.transition_announce_wait_seconds,
            high_energy_threshold=s.high_energy_threshold,
            low_energy_threshold=s.low_energy_threshold,
            energy_bpm_split=s.energy_bpm_split,
            rng=rng,
            session_state=self.session_state,
        )
        self.sampler = MoodSampler(
            analyzer=analyzer,
            frame_provider=frame_provider,
            clock=self.clock,
            min_interval_seconds=s.mood_min_interval_seconds,
            heartbeat_seconds=s.mood_heartbeat_seconds,
            session_state=self.session_state,
        )
        self.timeline = EventTimelineCoordinator(
            catalog=catalog,
            announcements=self.announcements,
            transitions=self.transitions,
            clock=self.clock,
            poll_seconds=s.timeline_poll_seconds,
            tick_seconds=s.timeline_tick_seconds,
            cue_delay_seconds=s.moment_cue_delay_seconds,
            vip_suppression_seconds=s.vip_suppression_seconds,
            rng=rng,
        )
        self.face_watch: Optional[FaceWatch] = None
        if recognizer is not None:
            self.face_watch = FaceWatch(
                recognizer=recognizer,
                frame_provider=frame_provider,
                guests_provider=self.timeline.guests,
                on_event=self.timeline.on_recognition,
                clock=self.clock,
                confidence_threshold=s.face_confidence_threshold,
                poll_seconds=s.face_poll_seconds,
                session_state=self.session_state,
            )

        self.sampler.add_listener(self.transitions.on_mood_sample)

        self._lifecycle = LIFECYCLE_CREATED
        self._lifecycle_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Application surface
    # ------------------------------------------------------------------

    def initialize(self, plan: Optional[EventPlan], guests: Iterable[VIPGuest] = ()) -> None:
        """Load the event plan and guest roster before start()."""
        self.timeline.initialize(plan, list(guests))

    def on_mood_sample(self, callback: Callable[[MoodSample], Any]) -> None:
        """callback(sample) for every new mood sample."""
        self.sampler.add_listener(callback)

    def on_track_change_requested(self, callback: Callable[[Track, str], Any]) -> None:
        """callback(track, reason) whenever the transition coordinator swaps tracks."""
        self.transitions.add_track_change_listener(callback)

    def on_announcement(self, callback: Callable[[AnnouncementRequest], Any]) -> None:
        """callback(request) when an announcement starts playing."""
        self.announcements.add_started_listener(callback)

    def announce(self, text: str, priority: str = PRIORITY_MEDIUM,
                 origin: str = ORIGIN_MANUAL) -> Optional[AnnouncementRequest]:
        return self.announcements.announce(text, priority=priority, origin=origin)

    def trigger_mood_analysis(self) -> None:
        """Sample on the next sampler tick, ignoring the minimum interval."""
        self.sampler.trigger()

    def request_track_change(self, track_id: str) -> bool:
        """
        Switch to a catalog track through the transition coordinator.

        Returns:
            False if the id is not in the catalog
        """
        track = self.catalog.get(track_id)
        if track is None:
            logger.warning(f"[SESSION] Unknown track id {track_id!r}")
            return False
        self.transitions.request_track_change(track, reason=REASON_MANUAL)
        return True

    def start_playback(self, track_id: Optional[str] = None) -> Optional[Track]:
        track = None
        if track_id is not None:
            track = self.catalog.get(track_id)
            if track is None:
                logger.warning(f"[SESSION] Unknown track id {track_id!r}")
                return None
        return self.transitions.start_playback(track)

    def stop_playback(self) -> None:
        self.transitions.stop_playback()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def lifecycle(self) -> str:
        with self._lifecycle_lock:
            return self._lifecycle

    def _set_lifecycle(self, new_state: str) -> None:
        old = self._lifecycle
        self._lifecycle = new_state
        logger.info(f"[SESSION] {old} → {new_state}")

    def start(self, autoplay: bool = True) -> None:
        """
        Start every component. With autoplay, music starts with a pick for
        the default mood so mood transitions have something to replace.
        """
        with self._lifecycle_lock:
            if self._lifecycle != LIFECYCLE_CREATED:
                logger.warning(f"[SESSION] start() ignored in state {self._lifecycle}")
                return
            self._set_lifecycle(LIFECYCLE_RUNNING)

        missing = self.settings.missing_vendor_keys()
        if missing:
            logger.warning(f"[SESSION] Missing vendor configuration: {', '.join(missing)}")

        self.session_state.on_started()
        self.announcements.start()
        self.transitions.start()
        # Before the timeline, so the active phase's track replaces or follows the start pick
        if autoplay:
            self.transitions.start_playback()
        self.timeline.start()
        self.sampler.start()
        if self.face_watch is not None:
            self.face_watch.start()
        logger.info("[SESSION] Session started")

    def stop(self) -> None:
        """
        Stop the session.

        Outstanding analysis results are discarded, the current announcement
        is cut off, the announcement queue is cleared and the timeline stops,
        all before stop() returns. Idempotent.
        """
        with self._lifecycle_lock:
            if self._lifecycle in (LIFECYCLE_STOPPING, LIFECYCLE_STOPPED):
                return
            self._set_lifecycle(LIFECYCLE_STOPPING)

        self.sampler.stop()
        self.announcements.stop()
        self.timeline.stop()
        if self.face_watch is not None:
            self.face_watch.stop()
        self.transitions.stop()
        self.transitions.stop_playback()
        try:
            self.sink.close()
        except Exception as e:
            logger.error(f"[SESSION] Sink close failed: {e}", exc_info=True)
        self.session_state.on_stopped()

        with self._lifecycle_lock:
            self._set_lifecycle(LIFECYCLE_STOPPED)

    def status(self) -> Dict[str, Any]:
        """Snapshot for the application: mood, music, speech, event and health."""
        mood = self.sampler.current
        track = self.now_playing.current_track()
        speaking = self.announcements.now_speaking
        state = self.session_state.get_state()
        upcoming: List[Dict[str, Any]] = [
            {"id": m.id, "time": m.time, "kind": m.moment_kind, "description": m.description}
            for m in self.timeline.upcoming_moments()
        ]
        return {
            "lifecycle": self.lifecycle,
            "session_state": state.session_state,
            "degraded_reason": state.degraded_reason,
            "mood": mood.to_dict() if mood else None,
            "mood_error": self.sampler.last_error,
            "analyzing": self.sampler.is_analyzing(),
            "transition_state": self.transitions.state,
            "now_playing": track.to_dict() if track else None,
            "now_speaking": speaking.to_dict() if speaking else None,
            "queued_announcements": self.announcements.size(),
            "event_status": self.timeline.status(),
            "upcoming_moments": upcoming,
        }
