"""
FFmpeg Playback Sink for eventdj.

Decodes the track's source_ref with ffmpeg, applies the current volume to
every frame and writes the result to the PCM player. Volume changes take
effect on the next frame, which is what ducking under announcements needs.
"""

import logging
import threading
from typing import Optional

from eventdj.broadcast_core.ffmpeg_decoder import FFmpegDecoder, apply_gain
from eventdj.music_logic.track import Track
from .base_sink import PlaybackSink
from .pcm_player import PcmPlayer

logger = logging.getLogger(__name__)


class FFmpegPlaybackSink(PlaybackSink):
    """
    Music playback through ffmpeg and aplay.

    One worker thread per track; play() replaces the current worker.
    """

    def __init__(self, ffmpeg_binary: str = "ffmpeg", player_binary: str = "aplay",
                 device: Optional[str] = None):
        self._ffmpeg_binary = ffmpeg_binary
        self._player_binary = player_binary
        self._device = device
        self._volume = 1.0
        self._lock = threading.Lock()
        self._proc_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._decoder: Optional[FFmpegDecoder] = None
        self._player: Optional[PcmPlayer] = None

    def play(self, track: Track) -> None:
        with self._lock:
            self._stop_locked()
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._play_loop, args=(track, self._stop_event),
                name=f"playback-{track.id}", daemon=True,
            )
            self._thread.start()
        logger.info(f"[SINK] Playing {track.title} by {track.artist} ({track.source_ref})")

    def stop(self) -> None:
        with self._lock:
            self._stop_locked()

    def set_volume(self, level: float) -> None:
        self._volume = max(0.0, min(1.0, float(level)))
        logger.debug(f"[SINK] Volume {self._volume:.2f}")

    def _stop_locked(self) -> None:
        with self._proc_lock:
            self._stop_event.set()
            decoder, player = self._decoder, self._player
        if decoder is not None:
            decoder.kill()
        if player is not None:
            player.kill()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=3.0)
            if self._thread.is_alive():
                logger.warning("[SINK] Playback thread did not stop within timeout (3s)")
        self._thread = None
        self._decoder = None
        self._player = None

    def _play_loop(self, track: Track, stop_event: threading.Event) -> None:
        try:
            decoder = FFmpegDecoder(track.source_ref, binary=self._ffmpeg_binary)
        except OSError as e:
            logger.error(f"[SINK] Cannot start decoder for {track.id}: {e}")
            return
        try:
            player = PcmPlayer(self._player_binary, self._device)
        except OSError as e:
            logger.error(f"[SINK] Cannot start player for {track.id}: {e}")
            decoder.kill()
            return

        with self._proc_lock:
            if stop_event.is_set():
                decoder.kill()
                player.kill()
                return
            self._decoder = decoder
            self._player = player

        for frame in decoder.read_frames():
            if stop_event.is_set():
                break
            if not player.write(apply_gain(frame, self._volume)):
                break

        if stop_event.is_set():
            player.kill()
        else:
            player.drain()
            logger.info(f"[SINK] Track ended: {track.title}")
