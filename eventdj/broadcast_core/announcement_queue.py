"""
Announcement Queue for eventdj.

Single consumer of every AnnouncementRequest. Pops the highest-priority,
oldest request, synthesizes it with the primary speech engine (falling back
to the secondary engine on any failure), ducks the music while it speaks and
waits a short cooldown before the next one.

Exactly one request is ever speaking. That holds for the background loop,
for direct process_next() calls and across cancel_current().
"""

import logging
import threading
from typing import Callable, List, Optional

from eventdj.broadcast_core.announcement import (
    AnnouncementRequest,
    ORIGIN_MANUAL,
    PRIORITY_MEDIUM,
)
from eventdj.broadcast_core.announcement_buffer import AnnouncementBuffer
from eventdj.clients.base import AudioHandle, SpeechEngine, VoiceParams
from eventdj.clock.master_clock import MasterClock
from eventdj.errors import SynthesisError
from eventdj.outputs.base_sink import PlaybackSink, SpeechOutput
from eventdj.state.session_state import SessionStateManager

logger = logging.getLogger(__name__)

OUTCOME_SPOKEN = "spoken"
OUTCOME_CANCELLED = "cancelled"
OUTCOME_DROPPED = "dropped"

StartedCallback = Callable[[AnnouncementRequest], None]
FinishedCallback = Callable[[AnnouncementRequest, str], None]


class AnnouncementQueue:
    """
    Priority announcement queue with a sequential speech processor.

    Emits:
    - started(request) when audio for a request begins playing
    - finished(request, outcome) with outcome spoken/cancelled/dropped
    """

    def __init__(
        self,
        primary: SpeechEngine,
        output: SpeechOutput,
        fallback: Optional[SpeechEngine] = None,
        sink: Optional[PlaybackSink] = None,
        clock: Optional[MasterClock] = None,
        cooldown_seconds: float = 1.0,
        duck_volume: float = 0.3,
        normal_volume: float = 1.0,
        voice_params: Optional[VoiceParams] = None,
        session_state: Optional[SessionStateManager] = None,
    ):
        """
        Initialize the announcement queue.

        Args:
            primary: Preferred speech engine
            output: Where synthesized clips are played
            fallback: Locally available engine used when primary fails
            sink: Music sink to duck while speaking (optional)
            clock: Time source (default: MasterClock)
            cooldown_seconds: Pause after each item before the next pop
            duck_volume: Music level while speaking
            normal_volume: Music level restored afterwards
            voice_params: Passed to the engines on every call
            session_state: Receives degraded/healthy reports for speech
        """
        self._primary = primary
        self._fallback = fallback
        self._output = output
        self._sink = sink
        self._clock = clock or MasterClock()
        self._cooldown_seconds = cooldown_seconds
        self._duck_volume = duck_volume
        self._normal_volume = normal_volume
        self._voice_params = voice_params
        self._session_state = session_state

        self._buffer = AnnouncementBuffer()
        self._speak_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._current: Optional[AnnouncementRequest] = None
        self._cancel_event = threading.Event()
        self._synthesis_waiter: Optional[threading.Event] = None
        self._wakeup = threading.Event()
        self._stop_event = threading.Event()
        self._closed = False
        self._thread: Optional[threading.Thread] = None
        self._started_listeners: List[StartedCallback] = []
        self._finished_listeners: List[FinishedCallback] = []

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------

    def enqueue(self, request: AnnouncementRequest) -> bool:
        """
        Add a request.

        Args:
            request: AnnouncementRequest to add

        Returns:
            False if the request was refused (queue stopped or empty text)
        """
        if self._closed:
            logger.warning(f"[ANNOUNCE] Queue stopped, refusing {request.origin} announcement")
            return False
        if not request.text or not request.text.strip():
            logger.warning(f"[ANNOUNCE] Refusing empty {request.origin} announcement")
            return False
        self._buffer.push(request)
        self._wakeup.set()
        logger.info(f"[ANNOUNCE] Queued [{request.priority}/{request.origin}] {request.text!r} (pending={self._buffer.size()})")
        return True

    def announce(self, text: str, priority: str = PRIORITY_MEDIUM,
                 origin: str = ORIGIN_MANUAL) -> Optional[AnnouncementRequest]:
        """
        Build and enqueue a request stamped with the current time.

        Returns:
            The request, or None if it was refused
        """
        request = AnnouncementRequest(text=text, priority=priority, origin=origin,
                                      enqueued_at=self._clock.monotonic())
        return request if self.enqueue(request) else None

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def cancel_current(self) -> Optional[AnnouncementRequest]:
        """
        Stop the speaking request now. Returns once audio output has stopped.

        A request still being synthesized is abandoned without waiting for
        the engine. The processor skips the cooldown after a cancelled item
        so the next request can be popped immediately.

        Returns:
            The request that was cancelled, or None if nothing was speaking
        """
        with self._state_lock:
            current = self._current
            if current is None:
                return None
            self._cancel_event.set()
            if self._synthesis_waiter is not None:
                self._synthesis_waiter.set()
        try:
            self._output.stop()
        except Exception as e:
            logger.error(f"[ANNOUNCE] Speech output stop failed: {e}", exc_info=True)
        logger.info(f"[ANNOUNCE] Cancelled {current.id}")
        return current

    def clear(self) -> int:
        """
        Drop every pending request. Does not touch the speaking one.

        Returns:
            Number of dropped requests
        """
        dropped = self._buffer.clear()
        if dropped:
            logger.info(f"[ANNOUNCE] Cleared {len(dropped)} pending announcements")
        return len(dropped)

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    @property
    def now_speaking(self) -> Optional[AnnouncementRequest]:
        with self._state_lock:
            return self._current

    def is_speaking(self) -> bool:
        return self.now_speaking is not None

    def size(self) -> int:
        return self._buffer.size()

    def pending(self) -> List[AnnouncementRequest]:
        return self._buffer.snapshot()

    def add_started_listener(self, callback: StartedCallback) -> None:
        self._started_listeners.append(callback)

    def add_finished_listener(self, callback: FinishedCallback) -> None:
        self._finished_listeners.append(callback)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process_next(self) -> Optional[AnnouncementRequest]:
        """
        Speak the next request, if any, then wait out the cooldown.

        Never raises: engine and output failures are logged and the request
        is dropped.

        Returns:
            The request that was processed, or None if the queue was empty
        """
        with self._speak_lock:
            with self._state_lock:
                request = self._buffer.pop()
                if request is None:
                    return None
                self._current = request
                self._cancel_event.clear()
                if self._closed:
                    self._cancel_event.set()

            outcome = OUTCOME_DROPPED
            try:
                outcome = self._speak(request)
            except Exception as e:
                logger.error(f"[ANNOUNCE] Unexpected error speaking {request.id}: {e}", exc_info=True)
            finally:
                with self._state_lock:
                    self._current = None
                    cancelled = self._cancel_event.is_set()
                    self._cancel_event.clear()
            if cancelled:
                outcome = OUTCOME_CANCELLED

            logger.info(f"[ANNOUNCE] {request.id} {outcome}")
            self._notify_finished(request, outcome)

            if outcome != OUTCOME_CANCELLED and self._cooldown_seconds > 0:
                self._stop_event.wait(self._cooldown_seconds)
            return request

    def _speak(self, request: AnnouncementRequest) -> str:
        started = [False]

        for engine in (self._primary, self._fallback):
            if engine is None:
                continue
            if self._cancel_event.is_set():
                return OUTCOME_CANCELLED
            try:
                handle = self._synthesize(engine, request)
                if handle is None or self._cancel_event.is_set():
                    return OUTCOME_CANCELLED
                self._play(request, handle, started)
                if engine is self._primary and self._session_state is not None:
                    self._session_state.mark_healthy("speech")
                return OUTCOME_SPOKEN
            except SynthesisError as e:
                if self._cancel_event.is_set():
                    return OUTCOME_CANCELLED
                logger.warning(f"[ANNOUNCE] {engine.name} failed for {request.id}: {e}")
                if engine is self._primary and self._session_state is not None:
                    self._session_state.mark_degraded("speech", f"{engine.name} unavailable")

        logger.error(f"[ANNOUNCE] All speech engines failed, dropping {request.id}: {request.text!r}")
        return OUTCOME_DROPPED

    def _synthesize(self, engine: SpeechEngine, request: AnnouncementRequest) -> Optional[AudioHandle]:
        """
        Run engine.speak() on a worker thread so cancel_current() can abandon it.

        Returns:
            The clip, or None if the request was cancelled first (the worker
            is left to finish on its own and its result is discarded)

        Raises:
            Whatever engine.speak() raised
        """
        result = {}
        waiter = threading.Event()

        def work():
            try:
                result["handle"] = engine.speak(request.text, self._voice_params)
            except Exception as e:
                result["error"] = e
            finally:
                waiter.set()

        with self._state_lock:
            if self._cancel_event.is_set():
                return None
            self._synthesis_waiter = waiter
        worker = threading.Thread(target=work, name=f"speech-{engine.name}", daemon=True)
        worker.start()
        try:
            waiter.wait()
        finally:
            with self._state_lock:
                self._synthesis_waiter = None

        if "handle" not in result and "error" not in result:
            logger.info(f"[ANNOUNCE] Abandoned {engine.name} synthesis for cancelled {request.id}")
            return None
        worker.join()
        if "error" in result:
            raise result["error"]
        return result["handle"]

    def _play(self, request: AnnouncementRequest, handle: AudioHandle, started: List[bool]) -> None:
        self._set_music_volume(self._duck_volume)
        try:
            if not started[0]:
                started[0] = True
                self._notify_started(request)
            logger.info(f"[ANNOUNCE] Speaking ({handle.engine}): {request.text!r}")
            self._output.play(handle)
        finally:
            self._set_music_volume(self._normal_volume)

    def _set_music_volume(self, level: float) -> None:
        if self._sink is None:
            return
        try:
            self._sink.set_volume(level)
        except Exception as e:
            logger.warning(f"[ANNOUNCE] Could not set music volume to {level:.2f}: {e}")

    def _notify_started(self, request: AnnouncementRequest) -> None:
        for callback in list(self._started_listeners):
            try:
                callback(request)
            except Exception as e:
                logger.error(f"[ANNOUNCE] Started listener error: {e}", exc_info=True)

    def _notify_finished(self, request: AnnouncementRequest, outcome: str) -> None:
        for callback in list(self._finished_listeners):
            try:
                callback(request, outcome)
            except Exception as e:
                logger.error(f"[ANNOUNCE] Finished listener error: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _process_loop(self) -> None:
        logger.info("[ANNOUNCE] Processor started")
        while not self._stop_event.is_set():
            if self.process_next() is None:
                self._wakeup.wait(timeout=0.5)
                self._wakeup.clear()
        logger.info("[ANNOUNCE] Processor stopped")

    def start(self) -> None:
        """Start the processor thread."""
        if self._thread is not None and self._thread.is_alive():
            logger.warning("[ANNOUNCE] Processor is already running")
            return
        self._closed = False
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._process_loop, name="announcement-queue", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """
        Refuse new requests, drop pending ones, cut the speaking one and join.
        """
        self._closed = True
        self._stop_event.set()
        self.clear()
        self.cancel_current()
        self._wakeup.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning(f"[ANNOUNCE] Processor thread did not stop within timeout ({timeout}s)")
        self._thread = None
