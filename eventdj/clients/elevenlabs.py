"""
ElevenLabs text-to-speech client for eventdj (primary speech engine).
"""

import logging
from typing import Optional

import httpx

from eventdj.clients.base import AudioHandle, SpeechEngine, VoiceParams
from eventdj.errors import SynthesisError

logger = logging.getLogger(__name__)

ELEVENLABS_BASE_URL = "https://api.elevenlabs.io/v1"
DEFAULT_VOICE_ID = "21m00Tcm4TlvDq8ikWAM"
DEFAULT_MODEL_ID = "eleven_multilingual_v2"


class ElevenLabsSpeechEngine(SpeechEngine):
    """
    Speech synthesis over the ElevenLabs REST API.

    Returns MPEG audio. Quota and auth failures (401/429) surface as
    SynthesisError so the announcement queue falls back to the local engine.
    """

    name = "elevenlabs"

    def __init__(self, api_key: Optional[str], voice_id: Optional[str] = None,
                 model_id: str = DEFAULT_MODEL_ID, timeout: float = 20.0,
                 client: Optional[httpx.Client] = None,
                 base_url: str = ELEVENLABS_BASE_URL):
        self.api_key = api_key
        self.voice_id = voice_id or DEFAULT_VOICE_ID
        self.model_id = model_id
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    def speak(self, text: str, voice_params: Optional[VoiceParams] = None) -> AudioHandle:
        if not self.api_key:
            raise SynthesisError("ELEVENLABS_API_KEY is not set")
        params = voice_params or VoiceParams(similarity_boost=0.8, style=0.2)
        voice_id = params.voice_id or self.voice_id
        body = {
            "text": text,
            "model_id": self.model_id,
            "voice_settings": {
                "stability": params.stability,
                "similarity_boost": params.similarity_boost,
                "style": params.style,
                **params.extra,
            },
        }

        try:
            response = self._client.post(
                f"{self.base_url}/text-to-speech/{voice_id}",
                json=body,
                headers={"xi-api-key": self.api_key, "Accept": "audio/mpeg"},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise SynthesisError(f"ElevenLabs request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise SynthesisError(f"ElevenLabs request failed: {e}") from e

        if response.status_code in (401, 429):
            raise SynthesisError(f"ElevenLabs quota/auth error (HTTP {response.status_code})")
        if response.status_code >= 400:
            raise SynthesisError(f"ElevenLabs API error: {response.status_code} - {response.text[:200]}")
        if not response.content:
            raise SynthesisError("ElevenLabs returned empty audio")

        logger.debug(f"[ELEVENLABS] Synthesized {len(response.content)} bytes for {len(text)} chars")
        return AudioHandle(
            data=response.content,
            mime_type=response.headers.get("content-type", "audio/mpeg"),
            engine=self.name,
        )

    def close(self) -> None:
        self._client.close()
