"""
Face Watch for eventdj.

Polls the face recognizer on the current frame and turns confident matches
into VIPRecognitionEvents for the timeline coordinator. Matches below the
confidence threshold are discarded here, not by the recognizer.
"""

import logging
import threading
from typing import Callable, List, Optional

from eventdj.clients.base import FaceRecognizer, FrameProvider, frame_ready
from eventdj.clock.master_clock import MasterClock
from eventdj.dj_logic.timeline import VIPRecognitionEvent
from eventdj.errors import RecognitionError
from eventdj.state.session_state import SessionStateManager

logger = logging.getLogger(__name__)


class FaceWatch:
    """Single-flight periodic face recognition."""

    def __init__(
        self,
        recognizer: FaceRecognizer,
        frame_provider: FrameProvider,
        guests_provider: Callable[[], list],
        on_event: Callable[[VIPRecognitionEvent], object],
        clock: Optional[MasterClock] = None,
        confidence_threshold: float = 75.0,
        poll_seconds: float = 2.0,
        session_state: Optional[SessionStateManager] = None,
    ):
        """
        Initialize the face watcher.

        Args:
            recognizer: Face recognition collaborator
            frame_provider: Source of video frames
            guests_provider: Returns the registered guests
            on_event: Receives each accepted recognition
            clock: Time source (default: MasterClock)
            confidence_threshold: Minimum match confidence in percent
            poll_seconds: Period between recognition attempts
            session_state: Receives degraded/healthy reports for face recognition
        """
        self._recognizer = recognizer
        self._frame_provider = frame_provider
        self._guests_provider = guests_provider
        self._on_event = on_event
        self._clock = clock or MasterClock()
        self._threshold = confidence_threshold
        self._poll_seconds = poll_seconds
        self._session_state = session_state

        self._in_flight = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def check(self) -> List[VIPRecognitionEvent]:
        """
        Run one recognition pass.

        Returns:
            Events delivered to on_event (empty if skipped, failed or nothing matched)
        """
        if not self._in_flight.acquire(blocking=False):
            logger.debug("[FACE] Recognition already in progress, skipping")
            return []
        try:
            return self._check()
        finally:
            self._in_flight.release()

    def _check(self) -> List[VIPRecognitionEvent]:
        guests = self._guests_provider()
        if not guests:
            return []
        frame = self._frame_provider()
        if not frame_ready(frame):
            return []

        try:
            matches = self._recognizer.recognize(frame, guests)
        except RecognitionError as e:
            logger.warning(f"[FACE] Recognition failed: {e}")
            if self._session_state is not None:
                self._session_state.mark_degraded("faces", str(e))
            return []
        if self._session_state is not None:
            self._session_state.mark_healthy("faces")
        if self._stop_event.is_set():
            return []

        seen_at = self._clock.monotonic()
        events = []
        for match in matches:
            if match.confidence < self._threshold:
                logger.debug(f"[FACE] Discarding {match.guest_id} at {match.confidence:.0f}% (< {self._threshold:.0f}%)")
                continue
            event = VIPRecognitionEvent(guest_id=match.guest_id, confidence=match.confidence, seen_at=seen_at)
            events.append(event)
            try:
                self._on_event(event)
            except Exception as e:
                logger.error(f"[FACE] Recognition handler error: {e}", exc_info=True)
        return events

    def _watch_loop(self) -> None:
        logger.info(f"[FACE] Watch started (every {self._poll_seconds}s, threshold {self._threshold:.0f}%)")
        while not self._stop_event.is_set():
            try:
                self.check()
            except Exception as e:
                logger.error(f"[FACE] Watch tick failed: {e}", exc_info=True)
            self._stop_event.wait(self._poll_seconds)
        logger.info("[FACE] Watch stopped")

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._watch_loop, name="face-watch", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
        self._thread = None
