"""
Collaborator interfaces for eventdj.

The orchestration core talks to vision analysis, face recognition, speech
synthesis and the track catalog only through these request/response
contracts. Vendors are swappable; every implementation converts its own
failures into the matching EventDJError subclass.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np

from eventdj.dj_logic.event_plan import VIPGuest
from eventdj.dj_logic.mood import VisionAnalysis
from eventdj.music_logic.track import Track

# Returns the latest BGR video frame, or None if the camera is not ready
FrameProvider = Callable[[], Optional[np.ndarray]]


def frame_ready(frame: Optional[np.ndarray]) -> bool:
    """True if a frame holds pixels worth analysing."""
    return frame is not None and getattr(frame, "size", 0) > 0


@dataclass(frozen=True)
class FaceMatch:
    """A recognizer hit: guest id plus confidence in percent (0-100)."""
    guest_id: str
    confidence: float


@dataclass(frozen=True)
class AudioHandle:
    """
    Synthesized speech ready for playback.

    Attributes:
        data: Encoded audio bytes
        mime_type: e.g. audio/mpeg, audio/wav
        engine: Name of the engine that produced it
    """
    data: bytes
    mime_type: str
    engine: str


@dataclass(frozen=True)
class VoiceParams:
    """Voice settings passed through to speech engines that support them."""
    voice_id: Optional[str] = None
    stability: float = 0.5
    similarity_boost: float = 0.75
    style: float = 0.0
    extra: Dict[str, Any] = field(default_factory=dict)


class VisionAnalyzer(ABC):
    """Crowd analysis of a single frame."""

    @abstractmethod
    def analyze(self, frame: np.ndarray) -> VisionAnalysis:
        """
        Analyse one frame.

        Raises:
            AnalysisError: On timeout, quota, transport or parse failure
        """
        ...


class FaceRecognizer(ABC):
    """Matches faces in a frame against the registered guests."""

    @abstractmethod
    def recognize(self, frame: np.ndarray, guests: Sequence[VIPGuest]) -> List[FaceMatch]:
        """
        Find registered guests in a frame.

        Returns every match the service reports; thresholding is the caller's job.

        Raises:
            RecognitionError: On service failure
        """
        ...


class SpeechEngine(ABC):
    """Text to speech. Primary and fallback engines share this contract."""

    name = "speech"

    @abstractmethod
    def speak(self, text: str, voice_params: Optional[VoiceParams] = None) -> AudioHandle:
        """
        Synthesize text.

        Raises:
            SynthesisError: On any failure, including vendor quota errors
        """
        ...


class CatalogProvider(ABC):
    """Source of tracks used to populate the catalog."""

    @abstractmethod
    def list(self, genre: Optional[str] = None) -> List[Track]:
        """
        List available tracks, optionally by genre.

        Raises:
            CatalogError: On provider failure
        """
        ...

    @abstractmethod
    def search(self, query: str) -> List[Track]:
        """
        Free-text track search.

        Raises:
            CatalogError: On provider failure
        """
        ...
