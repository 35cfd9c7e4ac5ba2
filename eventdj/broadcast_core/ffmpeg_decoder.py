import logging
import os
import signal
import subprocess
import threading
from typing import Iterator, Optional

import numpy as np

logger = logging.getLogger(__name__)

SAMPLE_RATE = 48000
CHANNELS = 2


def apply_gain(frame: np.ndarray, gain: float) -> np.ndarray:
    """
    Scale an int16 PCM frame, clipping instead of wrapping.

    Args:
        frame: int16 array shaped (N, 2)
        gain: Multiplier (1.0 leaves the frame untouched)

    Returns:
        int16 array of the same shape
    """
    if gain >= 0.999:
        return frame
    scaled = frame.astype(np.float32) * max(0.0, gain)
    return np.clip(scaled, -32768, 32767).astype(np.int16)


class FFmpegDecoder:
    """
    Decodes any ffmpeg-readable source to PCM.
    - Source is a file path or URL, or in-memory bytes fed through stdin
    - Outputs 16-bit signed little-endian stereo at 48 kHz
    - Yields numpy int16 frames of shape (N, 2)

    ffmpeg runs in its own process group so Ctrl-C on the parent does not
    reach it and kill() takes down the whole group.
    """

    def __init__(self, source: str, frame_size: int = 1024, data: Optional[bytes] = None,
                 binary: str = "ffmpeg"):
        """
        Initialize FFmpeg decoder.

        Args:
            source: Path or URL to decode (ignored when data is given)
            frame_size: Number of samples per frame (default: 1024)
            data: Encoded audio to decode from memory
            binary: ffmpeg executable

        Raises:
            OSError: If ffmpeg cannot be started
        """
        self.source = "pipe:0" if data is not None else source
        self.frame_size = frame_size
        self._feeder: Optional[threading.Thread] = None

        args = [binary, "-hide_banner", "-loglevel", "error"]
        if data is None:
            args.append("-nostdin")
        args += ["-i", self.source, "-f", "s16le", "-ac", str(CHANNELS), "-ar", str(SAMPLE_RATE), "-"]

        self.proc = subprocess.Popen(
            args,
            stdin=subprocess.PIPE if data is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            bufsize=self.frame_size * 4,
            preexec_fn=os.setsid,
        )

        if data is not None:
            # Feed from a thread; writing everything up front can deadlock on a full stdout pipe
            self._feeder = threading.Thread(target=self._feed, args=(data,), daemon=True)
            self._feeder.start()

    def _feed(self, data: bytes) -> None:
        proc = self.proc
        if proc is None or proc.stdin is None:
            return
        try:
            proc.stdin.write(data)
        except (BrokenPipeError, ValueError, OSError):
            pass
        finally:
            try:
                proc.stdin.close()
            except (BrokenPipeError, ValueError, OSError):
                pass

    def read_frames(self) -> Iterator[np.ndarray]:
        """
        Generator yielding PCM frames as numpy int16 arrays shaped (N, 2).

        Each frame is exactly frame_size samples except possibly the last,
        which is padded with silence.
        """
        proc = self.proc
        if proc is None or proc.stdout is None:
            return
        bytes_per_frame = self.frame_size * 2 * CHANNELS
        buffer = bytearray()

        try:
            while True:
                try:
                    data = proc.stdout.read(bytes_per_frame * 2)
                except (ValueError, OSError):
                    # stdout closed by kill() from another thread
                    break
                if not data:
                    if buffer:
                        buffer.extend(b"\x00" * (bytes_per_frame - len(buffer)))
                        yield np.frombuffer(bytes(buffer), dtype=np.int16).reshape(-1, CHANNELS)
                    break

                buffer.extend(data)
                while len(buffer) >= bytes_per_frame:
                    frame_data = bytes(buffer[:bytes_per_frame])
                    del buffer[:bytes_per_frame]
                    yield np.frombuffer(frame_data, dtype=np.int16).reshape(-1, CHANNELS)
        finally:
            self.close()

    def kill(self, grace_period_seconds: float = 1.0) -> None:
        """
        Terminate the ffmpeg process group.

        SIGTERM first, SIGKILL if it has not exited within the grace period.
        Idempotent and safe to call from any thread.
        """
        proc = self.proc
        if proc is None:
            return
        if proc.poll() is not None:
            self.proc = None
            return

        try:
            pgid = os.getpgid(proc.pid)
            os.killpg(pgid, signal.SIGTERM)
            try:
                proc.wait(timeout=grace_period_seconds)
            except subprocess.TimeoutExpired:
                logger.warning(f"[DECODER] ffmpeg SIGKILL sent (pid={proc.pid}, pgid={pgid})")
                os.killpg(pgid, signal.SIGKILL)
                proc.wait(timeout=1)
        except ProcessLookupError:
            logger.debug(f"[DECODER] ffmpeg already exited (pid={proc.pid})")
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.error(f"[DECODER] Error killing ffmpeg (pid={proc.pid}): {e}")
        finally:
            self._close_pipes(proc)
            self.proc = None

    def close(self) -> None:
        """
        Clean up the ffmpeg process after normal end of stream. Safe to call multiple times.
        """
        proc = self.proc
        if proc is None:
            return
        self._close_pipes(proc)
        if proc.poll() is None:
            try:
                proc.terminate()
                proc.wait(timeout=2)
            except subprocess.TimeoutExpired:
                logger.warning(f"[DECODER] ffmpeg did not terminate, killing: {self.source}")
                proc.kill()
                proc.wait(timeout=1)
        self.proc = None

    @staticmethod
    def _close_pipes(proc: subprocess.Popen) -> None:
        for pipe in (proc.stdin, proc.stdout):
            if pipe is None:
                continue
            try:
                pipe.close()
            except (BrokenPipeError, ValueError, OSError):
                pass
