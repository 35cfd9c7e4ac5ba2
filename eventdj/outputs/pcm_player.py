"""
PCM Player for eventdj.

Writes int16 stereo 48 kHz frames to an ALSA player subprocess (aplay).
"""

import logging
import os
import signal
import subprocess
from typing import Optional

import numpy as np

from eventdj.broadcast_core.ffmpeg_decoder import CHANNELS, SAMPLE_RATE

logger = logging.getLogger(__name__)


class PcmPlayer:
    """
    Raw PCM output via aplay.

    The player runs in its own process group so kill() stops audio at once.
    """

    def __init__(self, binary: str = "aplay", device: Optional[str] = None):
        """
        Start the player process.

        Args:
            binary: aplay executable
            device: ALSA device name (e.g. "default" or "hw:1,0")

        Raises:
            OSError: If the player cannot be started
        """
        args = [binary, "-q", "-t", "raw", "-f", "S16_LE", "-r", str(SAMPLE_RATE), "-c", str(CHANNELS)]
        if device:
            args += ["-D", device]
        self.proc: Optional[subprocess.Popen] = subprocess.Popen(
            args,
            stdin=subprocess.PIPE,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            preexec_fn=os.setsid,
        )

    def write(self, frame: np.ndarray) -> bool:
        """
        Write one frame.

        Returns:
            False if the player has gone away (killed or crashed)
        """
        proc = self.proc
        if proc is None or proc.stdin is None:
            return False
        try:
            proc.stdin.write(frame.tobytes())
            return True
        except (BrokenPipeError, ValueError, OSError):
            return False

    def drain(self) -> None:
        """Close stdin and wait for buffered audio to finish playing."""
        proc = self.proc
        if proc is None:
            return
        try:
            if proc.stdin:
                proc.stdin.close()
            proc.wait()
        except (BrokenPipeError, ValueError, OSError):
            pass
        self.proc = None

    def kill(self) -> None:
        """Stop output immediately. Idempotent, safe from any thread."""
        proc = self.proc
        if proc is None:
            return
        self.proc = None
        try:
            os.killpg(os.getpgid(proc.pid), signal.SIGKILL)
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.warning(f"[PCM] Error killing player (pid={proc.pid}): {e}")
        try:
            if proc.stdin:
                proc.stdin.close()
        except (BrokenPipeError, ValueError, OSError):
            pass
        try:
            proc.wait(timeout=1)
        except subprocess.TimeoutExpired:
            logger.error(f"[PCM] Player did not exit after SIGKILL (pid={proc.pid})")
