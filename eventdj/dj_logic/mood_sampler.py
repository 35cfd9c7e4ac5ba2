"""
Mood Sampler for eventdj.

Periodically asks the vision analyzer for the crowd mood. A cheap heartbeat
tick checks "is it time yet"; the expensive analysis runs at most once per
minimum interval, measured from the start of the last successful sample,
and never while another analysis is outstanding.
"""

import logging
import threading
from typing import Callable, List, Optional

from eventdj.clients.base import FrameProvider, VisionAnalyzer, frame_ready
from eventdj.clock.master_clock import MasterClock
from eventdj.dj_logic.mood import MoodSample
from eventdj.errors import AnalysisError
from eventdj.state.session_state import SessionStateManager

logger = logging.getLogger(__name__)

MoodListener = Callable[[MoodSample], None]


class MoodSampler:
    """
    Throttled, single-flight mood sampling.

    On analyzer failure the previous sample stays current, the error is
    recorded and nothing is raised to the caller.
    """

    def __init__(
        self,
        analyzer: VisionAnalyzer,
        frame_provider: Optional[FrameProvider] = None,
        clock: Optional[MasterClock] = None,
        min_interval_seconds: float = 30.0,
        heartbeat_seconds: float = 5.0,
        session_state: Optional[SessionStateManager] = None,
    ):
        """
        Initialize the mood sampler.

        Args:
            analyzer: Vision analysis collaborator
            frame_provider: Default source of video frames
            clock: Time source (default: MasterClock)
            min_interval_seconds: Minimum time between successful sample starts
            heartbeat_seconds: Period of the "is it time yet" tick
            session_state: Receives degraded/healthy reports for vision
        """
        self._analyzer = analyzer
        self._frame_provider = frame_provider
        self._clock = clock or MasterClock()
        self._min_interval = min_interval_seconds
        self._heartbeat = heartbeat_seconds
        self._session_state = session_state

        self._in_flight = threading.Lock()
        self._state_lock = threading.Lock()
        self._current: Optional[MoodSample] = None
        self._last_success_start: Optional[float] = None
        self._last_error: Optional[str] = None
        self._listeners: List[MoodListener] = []

        self._stop_event = threading.Event()
        self._wakeup = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def current(self) -> Optional[MoodSample]:
        """Latest successful sample (None before the first one)."""
        with self._state_lock:
            return self._current

    @property
    def last_error(self) -> Optional[str]:
        with self._state_lock:
            return self._last_error

    def is_analyzing(self) -> bool:
        return self._in_flight.locked()

    def add_listener(self, callback: MoodListener) -> None:
        """
        Add a listener for new samples.

        Callback will be called with (sample: MoodSample) from the sampling thread.
        """
        self._listeners.append(callback)

    def due(self) -> bool:
        """True if the minimum interval has elapsed since the last successful sample start."""
        with self._state_lock:
            last = self._last_success_start
        return last is None or self._clock.monotonic() - last >= self._min_interval

    def sample(self, frame_provider: Optional[FrameProvider] = None) -> Optional[MoodSample]:
        """
        Take one sample if it is time and nothing is in flight.

        Args:
            frame_provider: Frame source (default: the one given at construction)

        Returns:
            The new MoodSample, or None if skipped or failed
        """
        if self._stop_event.is_set():
            return None
        if not self.due():
            logger.debug("[MOOD] Skipping tick, minimum interval not reached")
            return None
        if not self._in_flight.acquire(blocking=False):
            logger.debug("[MOOD] Analysis already in progress, skipping")
            return None

        try:
            sample = self._analyze(frame_provider or self._frame_provider)
        finally:
            self._in_flight.release()

        if sample is not None:
            self._notify_listeners(sample)
        return sample

    def _analyze(self, frame_provider: Optional[FrameProvider]) -> Optional[MoodSample]:
        if frame_provider is None:
            logger.debug("[MOOD] No frame provider, skipping")
            return None
        try:
            frame = frame_provider()
        except Exception as e:
            logger.warning(f"[MOOD] Frame provider failed: {e}")
            return None
        if not frame_ready(frame):
            logger.debug("[MOOD] Video not ready, skipping analysis")
            return None

        started_at = self._clock.monotonic()
        logger.debug("[MOOD] Starting analysis")
        try:
            analysis = self._analyzer.analyze(frame)
        except AnalysisError as e:
            self._record_failure(str(e))
            return None
        except Exception as e:
            logger.error(f"[MOOD] Unexpected analyzer error: {e}", exc_info=True)
            self._record_failure(f"unexpected error: {e}")
            return None

        if self._stop_event.is_set():
            logger.debug("[MOOD] Discarding analysis that finished after stop")
            return None

        sample = MoodSample.from_analysis(analysis, sampled_at=started_at)
        with self._state_lock:
            previous = self._current
            self._current = sample
            self._last_success_start = started_at
            self._last_error = None
        if self._session_state is not None:
            self._session_state.mark_healthy("vision")

        old_mood = previous.mood if previous else None
        logger.info(
            f"[MOOD] {old_mood} → {sample.mood} (energy={sample.energy:.0f}, "
            f"crowd={sample.crowd_size}, confidence={sample.confidence:.0f})"
        )
        return sample

    def _record_failure(self, reason: str) -> None:
        with self._state_lock:
            self._last_error = reason
        logger.warning(f"[MOOD] Analysis failed, keeping previous mood: {reason}")
        if self._session_state is not None:
            self._session_state.mark_degraded("vision", reason)

    def trigger(self) -> None:
        """
        Force a sample as soon as possible.

        Resets the interval clock and wakes the sampling thread. A sample
        already in flight is not duplicated.
        """
        with self._state_lock:
            self._last_success_start = None
        logger.info("[MOOD] Manual analysis triggered")
        self._wakeup.set()

    def _notify_listeners(self, sample: MoodSample) -> None:
        for callback in list(self._listeners):
            try:
                callback(sample)
            except Exception as e:
                logger.error(f"[MOOD] Listener callback error: {e}", exc_info=True)

    def _sample_loop(self) -> None:
        logger.info(f"[MOOD] Sampler started (interval={self._min_interval}s, heartbeat={self._heartbeat}s)")
        while not self._stop_event.is_set():
            try:
                self.sample()
            except Exception as e:
                logger.error(f"[MOOD] Sampling tick failed: {e}", exc_info=True)
            self._wakeup.wait(timeout=self._heartbeat)
            self._wakeup.clear()
        logger.info("[MOOD] Sampler stopped")

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            logger.warning("[MOOD] Sampler is already running")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._sample_loop, name="mood-sampler", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        """
        Stop sampling. An analysis still in flight is abandoned: its result is discarded.
        """
        self._stop_event.set()
        self._wakeup.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.info("[MOOD] Analysis still in flight at stop, result will be discarded")
        self._thread = None
