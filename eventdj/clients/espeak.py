"""
Local espeak-ng speech engine for eventdj (fallback speech engine).
"""

import logging
import subprocess
from typing import Optional

from eventdj.clients.base import AudioHandle, SpeechEngine, VoiceParams
from eventdj.errors import SynthesisError

logger = logging.getLogger(__name__)


class EspeakSpeechEngine(SpeechEngine):
    """Runs espeak-ng and captures its WAV output from stdout."""

    name = "espeak"

    def __init__(self, binary: str = "espeak-ng", voice: str = "en",
                 words_per_minute: int = 160, timeout: float = 20.0):
        self.binary = binary
        self.voice = voice
        self.words_per_minute = words_per_minute
        self.timeout = timeout

    def speak(self, text: str, voice_params: Optional[VoiceParams] = None) -> AudioHandle:
        voice = self.voice
        if voice_params is not None and voice_params.extra.get("espeak_voice"):
            voice = voice_params.extra["espeak_voice"]
        args = [self.binary, "-v", voice, "-s", str(self.words_per_minute), "--stdout", text]

        try:
            result = subprocess.run(args, capture_output=True, timeout=self.timeout, check=False)
        except subprocess.TimeoutExpired as e:
            raise SynthesisError(f"{self.binary} timed out after {self.timeout}s") from e
        except OSError as e:
            raise SynthesisError(f"{self.binary} could not be started: {e}") from e

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise SynthesisError(f"{self.binary} exited with {result.returncode}: {stderr[:200]}")
        if not result.stdout:
            raise SynthesisError(f"{self.binary} produced no audio")

        logger.debug(f"[ESPEAK] Synthesized {len(result.stdout)} bytes")
        return AudioHandle(data=result.stdout, mime_type="audio/wav", engine=self.name)
