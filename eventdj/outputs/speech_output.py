"""
Speech Output for eventdj.

Plays synthesized announcement clips through the same ffmpeg -> PCM path as
music. play() blocks the announcement processor until the clip ends;
stop() kills both subprocesses so the processor returns at once.
"""

import logging
import threading
from typing import Optional

from eventdj.broadcast_core.ffmpeg_decoder import FFmpegDecoder
from eventdj.clients.base import AudioHandle
from eventdj.errors import SynthesisError
from .base_sink import SpeechOutput
from .pcm_player import PcmPlayer

logger = logging.getLogger(__name__)


class FFmpegSpeechOutput(SpeechOutput):
    """Blocking clip playback with synchronous stop."""

    def __init__(self, ffmpeg_binary: str = "ffmpeg", player_binary: str = "aplay",
                 device: Optional[str] = None):
        self._ffmpeg_binary = ffmpeg_binary
        self._player_binary = player_binary
        self._device = device
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._decoder: Optional[FFmpegDecoder] = None
        self._player: Optional[PcmPlayer] = None

    def play(self, handle: AudioHandle) -> None:
        """
        Play a clip to the end.

        Raises:
            SynthesisError: If ffmpeg or the player cannot be started
        """
        with self._lock:
            self._stopped.clear()
            try:
                self._decoder = FFmpegDecoder("pipe:0", data=handle.data, binary=self._ffmpeg_binary)
                self._player = PcmPlayer(self._player_binary, self._device)
            except OSError as e:
                self._kill_locked()
                raise SynthesisError(f"cannot start speech playback: {e}") from e
            decoder, player = self._decoder, self._player

        logger.debug(f"[SPEECH] Playing {len(handle.data)} bytes from {handle.engine}")
        for frame in decoder.read_frames():
            if self._stopped.is_set() or not player.write(frame):
                break

        if self._stopped.is_set():
            logger.info("[SPEECH] Clip stopped")
            return
        player.drain()
        with self._lock:
            self._decoder = None
            self._player = None

    def stop(self) -> None:
        self._stopped.set()
        with self._lock:
            self._kill_locked()

    def _kill_locked(self) -> None:
        if self._decoder is not None:
            self._decoder.kill()
        if self._player is not None:
            self._player.kill()
        self._decoder = None
        self._player = None
