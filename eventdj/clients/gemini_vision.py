"""
Gemini vision client for eventdj.

Sends one JPEG frame with a fixed crowd-reading prompt to the Gemini
generateContent endpoint and parses the short text reply.
"""

import logging
from typing import Any, Dict, Optional

import httpx
import numpy as np

from eventdj.clients.base import VisionAnalyzer
from eventdj.clients.frames import encode_jpeg_base64
from eventdj.dj_logic.mood import VisionAnalysis, parse_analysis_text
from eventdj.errors import AnalysisError

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_MODEL = "gemini-2.5-flash-lite"

CROWD_PROMPT = """Analyze this image as a DJ reading the crowd. Focus on:

1. Count ONLY the clearly visible human faces/people in the image
2. Determine the dominant mood from facial expressions and body language
3. Rate the energy level of the scene from 1-10

Respond in this exact format:
Mood: [one word - excited/happy/energetic/chill/disappointed/bored/angry/sad/confused/surprised/focused/tired/neutral]
Energy: [number 1-10]
People: [exact count of visible people, if none visible say 0]

Example: "Mood: excited, Energy: 8, People: 3\""""


class GeminiVisionAnalyzer(VisionAnalyzer):
    """
    Crowd mood analysis over the Gemini REST API.

    Transport-only: every failure becomes an AnalysisError for the sampler
    to absorb.
    """

    def __init__(self, api_key: Optional[str], model: str = DEFAULT_MODEL,
                 timeout: float = 15.0, client: Optional[httpx.Client] = None,
                 base_url: str = GEMINI_BASE_URL):
        """
        Initialize the Gemini client.

        Args:
            api_key: Gemini API key (analysis fails cleanly while unset)
            model: Model name
            timeout: Request timeout in seconds
            client: httpx client to use (default: a new one)
            base_url: Models endpoint base
        """
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.url = f"{base_url.rstrip('/')}/{model}:generateContent"
        self._client = client or httpx.Client(timeout=timeout)
        logger.info(f"GeminiVisionAnalyzer initialized (model={model})")

    def _request_body(self, image_b64: str) -> Dict[str, Any]:
        return {
            "contents": [{
                "parts": [
                    {"text": CROWD_PROMPT},
                    {"inline_data": {"mime_type": "image/jpeg", "data": image_b64}},
                ]
            }],
            "generationConfig": {
                "temperature": 0.1,
                "topK": 1,
                "topP": 1,
                "maxOutputTokens": 256,
            },
        }

    def analyze(self, frame: np.ndarray) -> VisionAnalysis:
        if not self.api_key:
            raise AnalysisError("GEMINI_API_KEY is not set")
        try:
            image_b64 = encode_jpeg_base64(frame)
        except ValueError as e:
            raise AnalysisError(str(e)) from e

        try:
            response = self._client.post(
                self.url,
                json=self._request_body(image_b64),
                headers={"x-goog-api-key": self.api_key},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise AnalysisError(f"Gemini request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise AnalysisError(f"Gemini request failed: {e}") from e

        if response.status_code == 429:
            raise AnalysisError("Gemini quota exceeded (HTTP 429)")
        if response.status_code >= 400:
            raise AnalysisError(f"Gemini API error: {response.status_code} - {response.text[:200]}")

        try:
            text = response.json()["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise AnalysisError(f"Unexpected Gemini response: {e}") from e

        logger.debug(f"[GEMINI] Raw reply: {text!r}")
        return parse_analysis_text(text)

    def close(self) -> None:
        self._client.close()
