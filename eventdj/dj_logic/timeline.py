"""
Event Timeline Coordinator for eventdj.

Follows the authored event plan against the wall clock:
- phase resolution: the phase whose [time, time + duration) window holds
  the current minute becomes active; a phase change asks for a track that
  suits the phase
- special moments: each fires exactly once in its minute, announces, and
  optionally cues a track a few seconds later
- VIP recognition: a sighting becomes an announcement only on first sight
  or after the guest has been out of view longer than the suppression window

A sub-second poller drives everything; the full tick runs whenever the
wall-clock minute changes and at least once per tick period. Ticks are
idempotent within a minute.
"""

import logging
import random
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from eventdj.broadcast_core.announcement import (
    AnnouncementRequest,
    ORIGIN_SYSTEM,
    ORIGIN_VIP,
    PRIORITY_HIGH,
)
from eventdj.clock.master_clock import MasterClock
from eventdj.dj_logic.announcement_templates import (
    moment_announcement,
    vip_announcement,
    welcome_announcement,
)
from eventdj.dj_logic.event_plan import EventPhase, EventPlan, SpecialMoment, VIPGuest
from eventdj.dj_logic.transition import REASON_CUE, REASON_PHASE
from eventdj.music_logic import selector
from eventdj.music_logic.catalog import TrackCatalog
from eventdj.music_logic.track import Track

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VIPRecognitionEvent:
    """
    One accepted face match.

    Attributes:
        guest_id: Recognized guest
        confidence: Match confidence in percent
        seen_at: Monotonic time of the sighting
    """
    guest_id: str
    confidence: float
    seen_at: float


class EventTimelineCoordinator:
    """
    Wall-clock driven phases, special moments and VIP announcements.

    Owns SpecialMoment.triggered and the VIP recognition bookkeeping.
    Speaks only through the announcement queue and changes music only
    through the transition coordinator.
    """

    def __init__(
        self,
        catalog: TrackCatalog,
        announcements,
        transitions,
        clock: Optional[MasterClock] = None,
        poll_seconds: float = 0.5,
        tick_seconds: float = 60.0,
        cue_delay_seconds: float = 5.0,
        vip_suppression_seconds: float = 300.0,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the timeline coordinator.

        Args:
            catalog: Tracks for phase selection and music cues
            announcements: AnnouncementQueue (announce/enqueue)
            transitions: TransitionCoordinator (request_track_change, now_playing)
            clock: Time source (default: MasterClock)
            poll_seconds: Poller period
            tick_seconds: Longest gap between full ticks
            cue_delay_seconds: Delay between a moment's announcement and its music cue
            vip_suppression_seconds: Suppression window for repeat VIP sightings
            rng: Random source for phase selection
        """
        self._catalog = catalog
        self._announcements = announcements
        self._transitions = transitions
        self._clock = clock or MasterClock()
        self._poll_seconds = poll_seconds
        self._tick_seconds = tick_seconds
        self._cue_delay_seconds = cue_delay_seconds
        self._vip_suppression_seconds = vip_suppression_seconds
        self._rng = rng

        self._lock = threading.RLock()
        self._plan: Optional[EventPlan] = None
        self._guests: Dict[str, VIPGuest] = {}
        self._event_started = False
        self._active_phase: Optional[EventPhase] = None
        self._last_tick_minute: Optional[str] = None
        self._last_tick_at: Optional[float] = None
        self._pending_cues: List[Tuple[float, Track, str]] = []

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def initialize(self, plan: Optional[EventPlan], guests: Iterable[VIPGuest] = ()) -> None:
        """
        Load the event plan and guest roster. Recognition bookkeeping starts from zero.
        """
        with self._lock:
            self._plan = plan
            self._guests = {}
            for guest in guests:
                guest.recognition_count = 0
                guest.last_seen = None
                self._guests[guest.id] = guest
            self._event_started = False
            self._active_phase = None
            self._last_tick_minute = None
            self._last_tick_at = None
            self._pending_cues = []
        name = plan.name if plan else "no event"
        logger.info(f"[TIMELINE] Initialized: {name} ({len(self._guests)} VIP guests)")

    @property
    def plan(self) -> Optional[EventPlan]:
        return self._plan

    @property
    def active_phase(self) -> Optional[EventPhase]:
        with self._lock:
            return self._active_phase

    @property
    def event_started(self) -> bool:
        return self._event_started

    def guests(self) -> List[VIPGuest]:
        with self._lock:
            return list(self._guests.values())

    def guest(self, guest_id: str) -> Optional[VIPGuest]:
        with self._lock:
            return self._guests.get(guest_id)

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    def tick(self, now: Optional[datetime] = None) -> None:
        """
        Resolve the active phase and fire due moments.

        Safe to call any number of times in the same minute.
        """
        if not self._event_started or self._plan is None:
            return
        now = now or self._clock.now()
        minute_key = self._clock.minute_key(now)
        with self._lock:
            self._last_tick_minute = minute_key
            self._last_tick_at = self._clock.monotonic()
        minute_of_day = now.hour * 60 + now.minute
        self._check_moments(minute_of_day)
        self._update_phase(minute_of_day)

    def poll(self) -> None:
        """
        One poller step: release due music cues, then tick if the minute
        changed or the tick period elapsed.
        """
        self._release_due_cues()
        if not self._event_started:
            return
        now = self._clock.now()
        with self._lock:
            minute_changed = self._clock.minute_key(now) != self._last_tick_minute
            period_elapsed = (self._last_tick_at is None
                              or self._clock.monotonic() - self._last_tick_at >= self._tick_seconds)
        if minute_changed or period_elapsed:
            self.tick(now)

    def _check_moments(self, minute_of_day: int) -> None:
        for moment in self._plan.special_moments:
            if moment.minute_of_day != minute_of_day:
                continue
            with self._lock:
                if moment.triggered:
                    continue
                moment.triggered = True
            self._fire_moment(moment)

    def _fire_moment(self, moment: SpecialMoment) -> None:
        logger.info(f"[TIMELINE] Special moment: {moment.moment_kind} ({moment.description})")
        text = moment_announcement(moment)
        if self._announcements.announce(text, priority=PRIORITY_HIGH, origin=ORIGIN_SYSTEM) is None:
            logger.warning(f"[TIMELINE] Announcement for moment {moment.id} was not queued")

        if not moment.music_cue:
            return
        cue_track = self._catalog.find_cue(moment.music_cue)
        if cue_track is None:
            logger.warning(f"[TIMELINE] No track matches music cue {moment.music_cue!r}")
            return
        due = self._clock.monotonic() + self._cue_delay_seconds
        with self._lock:
            self._pending_cues.append((due, cue_track, moment.id))
        logger.info(f"[TIMELINE] Cue {cue_track.title} in {self._cue_delay_seconds:.0f}s")

    def _release_due_cues(self) -> None:
        now = self._clock.monotonic()
        with self._lock:
            due = [cue for cue in self._pending_cues if cue[0] <= now]
            self._pending_cues = [cue for cue in self._pending_cues if cue[0] > now]
        for _, track, moment_id in due:
            logger.info(f"[TIMELINE] Music cue for moment {moment_id}: {track.title}")
            self._transitions.request_track_change(track, reason=REASON_CUE)

    def pending_cues(self) -> List[Tuple[float, Track, str]]:
        with self._lock:
            return list(self._pending_cues)

    def _resolve_phase(self, minute_of_day: int) -> Optional[EventPhase]:
        for phase in self._plan.phases:
            if phase.contains(minute_of_day):
                return phase
        return None

    def _update_phase(self, minute_of_day: int) -> None:
        phase = self._resolve_phase(minute_of_day)
        with self._lock:
            previous = self._active_phase
            if phase is None or (previous is not None and previous.id == phase.id):
                if phase is None and previous is not None:
                    logger.info(f"[TIMELINE] Phase {previous.phase_kind} ended")
                    self._active_phase = None
                return
            self._active_phase = phase

        old = previous.phase_kind if previous else None
        logger.info(f"[TIMELINE] Phase {old} → {phase.phase_kind} ({phase.music_style}, energy {phase.energy_target})")

        current = self._transitions.now_playing.current_track()
        track = selector.select_for_phase(
            phase, self._catalog,
            exclude_id=current.id if current else None,
            music_preferences=self._plan.music_preferences,
            rng=self._rng,
        )
        if track is None:
            return
        if current is not None and track.id == current.id:
            logger.info(f"[TIMELINE] {track.title} already suits phase {phase.phase_kind}, no change")
            return
        self._transitions.request_track_change(track, reason=REASON_PHASE)

    # ------------------------------------------------------------------
    # VIP recognition
    # ------------------------------------------------------------------

    def on_recognition(self, event: VIPRecognitionEvent) -> Optional[AnnouncementRequest]:
        """
        Handle a VIP sighting.

        Always updates recognition_count and last_seen. Announces only on
        the first sighting or when the guest was last seen longer ago than
        the suppression window.

        Returns:
            The queued announcement, or None if suppressed or unknown
        """
        with self._lock:
            guest = self._guests.get(event.guest_id)
            if guest is None:
                logger.debug(f"[VIP] Ignoring unknown guest id {event.guest_id}")
                return None
            first_sighting = guest.recognition_count == 0
            previous_seen = guest.last_seen
            guest.recognition_count += 1
            guest.last_seen = event.seen_at if previous_seen is None else max(previous_seen, event.seen_at)

        if not first_sighting and previous_seen is not None:
            since = event.seen_at - previous_seen
            if since <= self._vip_suppression_seconds:
                logger.debug(f"[VIP] Suppressed {guest.id}: last seen {since:.0f}s ago")
                return None

        text = vip_announcement(guest)
        request = self._announcements.announce(text, priority=PRIORITY_HIGH, origin=ORIGIN_VIP)
        if request is None:
            logger.warning(f"[VIP] Announcement for {guest.name} was not queued")
        else:
            logger.info(f"[VIP] Announcing {guest.name} (sighting #{guest.recognition_count}, "
                        f"confidence {event.confidence:.0f}%)")
        return request

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def upcoming_moments(self, limit: int = 3, now: Optional[datetime] = None) -> List[SpecialMoment]:
        """Untriggered moments later today, soonest first."""
        if self._plan is None:
            return []
        now = now or self._clock.now()
        minute_of_day = now.hour * 60 + now.minute
        upcoming = [m for m in self._plan.special_moments
                    if m.minute_of_day > minute_of_day and not m.triggered]
        return sorted(upcoming, key=lambda m: m.minute_of_day)[:limit]

    def status(self) -> str:
        if self._plan is None:
            return "No event configured"
        if not self._event_started:
            return "Event ready to start"
        phase = self.active_phase
        return f"Active: {phase.phase_kind}" if phase else "Event running"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_event(self) -> None:
        """
        Mark the event started, queue the welcome message and run the first tick.
        """
        if self._plan is None:
            logger.info("[TIMELINE] No event plan, timeline idle")
            return
        with self._lock:
            if self._event_started:
                return
            self._event_started = True
        logger.info(f"[TIMELINE] Event started: {self._plan.name}")
        self._announcements.announce(welcome_announcement(self._plan),
                                     priority=PRIORITY_HIGH, origin=ORIGIN_SYSTEM)
        self.tick()

    def _poll_loop(self) -> None:
        logger.info("[TIMELINE] Poller started")
        while not self._stop_event.is_set():
            try:
                self.poll()
            except Exception as e:
                logger.error(f"[TIMELINE] Poll failed: {e}", exc_info=True)
            self._stop_event.wait(self._poll_seconds)
        logger.info("[TIMELINE] Poller stopped")

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            logger.warning("[TIMELINE] Poller is already running")
            return
        self._stop_event.clear()
        self.start_event()
        self._thread = threading.Thread(target=self._poll_loop, name="timeline", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        """Stop the poller and drop pending music cues."""
        self._stop_event.set()
        with self._lock:
            dropped = len(self._pending_cues)
            self._pending_cues = []
            self._event_started = False
            self._active_phase = None
        if dropped:
            logger.info(f"[TIMELINE] Dropped {dropped} pending music cues")
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning(f"[TIMELINE] Poller thread did not stop within timeout ({timeout}s)")
        self._thread = None
