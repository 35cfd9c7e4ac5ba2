"""
Test doubles (fakes, stubs) for eventdj contract tests.

These provide minimal implementations of the collaborator interfaces
without real dependencies (network, camera, audio devices, wall clock).
"""

import threading
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

import numpy as np

from eventdj.broadcast_core.announcement import (
    AnnouncementRequest,
    ORIGIN_MANUAL,
    PRIORITY_MEDIUM,
)
from eventdj.clients.base import (
    AudioHandle,
    FaceMatch,
    FaceRecognizer,
    SpeechEngine,
    VisionAnalyzer,
    VoiceParams,
)
from eventdj.clock.master_clock import MasterClock
from eventdj.dj_logic.event_plan import VIPGuest
from eventdj.dj_logic.mood import VisionAnalysis
from eventdj.errors import AnalysisError, RecognitionError, SynthesisError
from eventdj.music_logic.track import Track
from eventdj.outputs.base_sink import PlaybackSink, SpeechOutput


def make_track(track_id: str, bpm: float = 120, genre: str = "Electronic",
               title: Optional[str] = None, artist: str = "Test Artist") -> Track:
    """Create a Track with sensible defaults."""
    return Track(
        id=track_id,
        title=title or f"Track {track_id}",
        artist=artist,
        duration_sec=180.0,
        bpm=bpm,
        genre=genre,
        source_ref=f"/fake/{track_id}.mp3",
        license="test",
    )


def make_frame(height: int = 8, width: int = 8) -> np.ndarray:
    """A small BGR frame that counts as ready."""
    return np.zeros((height, width, 3), dtype=np.uint8)


class FakeClock(MasterClock):
    """Manually advanced clock. Wall clock and monotonic time move together."""

    def __init__(self, start: Optional[datetime] = None, monotonic_start: float = 1000.0):
        self._now = start or datetime(2024, 6, 1, 18, 0, 0)
        self._monotonic = monotonic_start

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._monotonic

    def set_time(self, hour: int, minute: int, second: int = 0) -> None:
        self._now = self._now.replace(hour=hour, minute=minute, second=second)

    def advance(self, seconds: float) -> None:
        self._now = self._now + timedelta(seconds=seconds)
        self._monotonic += seconds


class FakeAnalyzer(VisionAnalyzer):
    """
    Vision analyzer returning scripted results.

    Each entry is a VisionAnalysis to return or an exception to raise. The
    last entry repeats. With a gate, analyze() blocks until the gate is set.
    """

    def __init__(self, results=None, gate: Optional[threading.Event] = None):
        self.results = list(results or [VisionAnalysis("happy", 60, 5, 60)])
        self.gate = gate
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()
        self.entered = threading.Event()

    def analyze(self, frame: np.ndarray) -> VisionAnalysis:
        with self._lock:
            self.calls += 1
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            index = min(self.calls - 1, len(self.results) - 1)
        self.entered.set()
        try:
            if self.gate is not None:
                self.gate.wait(timeout=2.0)
            result = self.results[index]
            if isinstance(result, Exception):
                raise result
            return result
        finally:
            with self._lock:
                self.in_flight -= 1


class FailingAnalyzer(FakeAnalyzer):
    def __init__(self, message: str = "quota exceeded"):
        super().__init__([AnalysisError(message)])


class FakeSpeechEngine(SpeechEngine):
    """
    Speech engine that records texts; optionally fails every call.

    With a gate, speak() blocks until the gate is set (at most 2s).
    """

    def __init__(self, name: str = "fake", fail: bool = False, gate: Optional[threading.Event] = None):
        self.name = name
        self.fail = fail
        self.gate = gate
        self.spoken: List[str] = []
        self.entered = threading.Event()

    def speak(self, text: str, voice_params: Optional[VoiceParams] = None) -> AudioHandle:
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=2.0)
        if self.fail:
            raise SynthesisError(f"{self.name} unavailable")
        self.spoken.append(text)
        return AudioHandle(data=text.encode("utf-8"), mime_type="audio/wav", engine=self.name)


class FakeSpeechOutput(SpeechOutput):
    """
    Speech output that records clips.

    With a gate, play() blocks until the gate is set or stop() is called.
    """

    def __init__(self, gate: Optional[threading.Event] = None):
        self.gate = gate
        self.played: List[AudioHandle] = []
        self.stops = 0
        self.playing = threading.Event()
        self._stopped = threading.Event()

    def play(self, handle: AudioHandle) -> None:
        self._stopped.clear()
        self.played.append(handle)
        self.playing.set()
        try:
            if self.gate is not None:
                while not self.gate.is_set() and not self._stopped.is_set():
                    self._stopped.wait(0.01)
        finally:
            self.playing.clear()

    def stop(self) -> None:
        self.stops += 1
        self._stopped.set()


class RecordingSink(PlaybackSink):
    """Playback sink that records every command."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.played: List[Track] = []
        self.volumes: List[float] = []
        self.stops = 0
        self.closed = False

    def play(self, track: Track) -> None:
        if self.fail:
            raise OSError("audio device unavailable")
        self.played.append(track)

    def stop(self) -> None:
        self.stops += 1

    def set_volume(self, level: float) -> None:
        self.volumes.append(level)

    def close(self) -> None:
        self.closed = True
        self.stop()


class FakeAnnouncementQueue:
    """
    Stand-in for AnnouncementQueue.

    enqueue() records the request and, unless hold is set, reports it as
    started immediately so transition cycles never wait.
    """

    def __init__(self, accept: bool = True, hold: bool = False):
        self.accept = accept
        self.hold = hold
        self.requests: List[AnnouncementRequest] = []
        self._started = []
        self._finished = []
        self._seq = 0.0

    def add_started_listener(self, callback) -> None:
        self._started.append(callback)

    def add_finished_listener(self, callback) -> None:
        self._finished.append(callback)

    def enqueue(self, request: AnnouncementRequest) -> bool:
        if not self.accept:
            return False
        self.requests.append(request)
        if not self.hold:
            for callback in self._started:
                callback(request)
        return True

    def announce(self, text: str, priority: str = PRIORITY_MEDIUM,
                 origin: str = ORIGIN_MANUAL) -> Optional[AnnouncementRequest]:
        self._seq += 1
        request = AnnouncementRequest(text=text, priority=priority, origin=origin, enqueued_at=self._seq)
        return request if self.enqueue(request) else None

    def release(self, request: AnnouncementRequest) -> None:
        for callback in self._started:
            callback(request)

    def texts(self) -> List[str]:
        return [r.text for r in self.requests]


class FakeRecognizer(FaceRecognizer):
    """Face recognizer returning fixed matches, or raising."""

    def __init__(self, matches: Optional[List[FaceMatch]] = None, error: Optional[str] = None):
        self.matches = matches or []
        self.error = error
        self.calls = 0

    def recognize(self, frame: np.ndarray, guests: Sequence[VIPGuest]) -> List[FaceMatch]:
        self.calls += 1
        if self.error:
            raise RecognitionError(self.error)
        return list(self.matches)
