import logging
import threading
from typing import Optional

from eventdj.clients.base import AudioHandle
from eventdj.music_logic.track import Track
from .base_sink import PlaybackSink, SpeechOutput

logger = logging.getLogger(__name__)


class NullSink(PlaybackSink):
    """A sink that only logs commands. Useful for dry runs without audio hardware."""

    def __init__(self):
        self.current: Optional[Track] = None
        self.volume = 1.0

    def play(self, track: Track) -> None:
        self.current = track
        logger.info(f"[SINK] play {track.title} by {track.artist}")

    def stop(self) -> None:
        self.current = None
        logger.info("[SINK] stop")

    def set_volume(self, level: float) -> None:
        self.volume = level
        logger.debug(f"[SINK] volume {level:.2f}")


class NullSpeechOutput(SpeechOutput):
    """Discards clips. play() returns at once unless a hold time is given."""

    def __init__(self, hold_seconds: float = 0.0):
        self._hold_seconds = hold_seconds
        self._stop_event = threading.Event()

    def play(self, handle: AudioHandle) -> None:
        self._stop_event.clear()
        logger.info(f"[SPEECH] ({handle.engine}) {len(handle.data)} bytes discarded")
        if self._hold_seconds > 0:
            self._stop_event.wait(self._hold_seconds)

    def stop(self) -> None:
        self._stop_event.set()
