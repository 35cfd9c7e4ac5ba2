"""
Crowd mood model for eventdj.

Defines the mood vocabulary, the fixed emotion -> mood lookup used by the DJ,
the parser for the vision vendor's text reply, and the MoodSample snapshot
published by the MoodSampler.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional

# Vocabulary the vision vendor is asked to answer in
MOOD_EXCITED = "excited"
MOOD_ENERGETIC = "energetic"
MOOD_HAPPY = "happy"
MOOD_CHILL = "chill"
MOOD_EUPHORIC = "euphoric"
MOOD_DISAPPOINTED = "disappointed"
MOOD_BORED = "bored"
MOOD_ANGRY = "angry"
MOOD_SAD = "sad"
MOOD_CONFUSED = "confused"
MOOD_SURPRISED = "surprised"
MOOD_FOCUSED = "focused"
MOOD_TIRED = "tired"
MOOD_NEUTRAL = "neutral"

# Synonyms the vendor sometimes answers with; first matching entry wins
MOOD_KEYWORDS: Dict[str, List[str]] = {
    MOOD_EXCITED: ["excited", "thrilled", "ecstatic", "pumped"],
    MOOD_ENERGETIC: ["energetic", "active", "dynamic", "lively"],
    MOOD_HAPPY: ["happy", "joyful", "cheerful", "pleased", "content"],
    MOOD_CHILL: ["chill", "relaxed", "calm", "peaceful", "mellow"],
    MOOD_EUPHORIC: ["euphoric", "elated", "blissful"],
    MOOD_DISAPPOINTED: ["disappointed", "dissatisfied", "underwhelmed", "deflated"],
    MOOD_BORED: ["bored", "uninterested", "disengaged", "apathetic", "indifferent"],
    MOOD_ANGRY: ["angry", "mad", "furious", "irritated", "annoyed", "frustrated"],
    MOOD_SAD: ["sad", "unhappy", "melancholy", "down", "depressed", "gloomy"],
    MOOD_CONFUSED: ["confused", "puzzled", "perplexed", "bewildered", "uncertain"],
    MOOD_SURPRISED: ["surprised", "shocked", "amazed", "astonished", "startled"],
    MOOD_FOCUSED: ["focused", "concentrated", "attentive", "engaged", "absorbed"],
    MOOD_TIRED: ["tired", "exhausted", "weary", "fatigued", "drained"],
    MOOD_NEUTRAL: ["neutral", "normal", "average", "okay"],
}

# Emotion reported by analysis -> mood the DJ acts on
EMOTION_TO_MOOD: Dict[str, str] = {
    MOOD_EXCITED: MOOD_EXCITED,
    MOOD_ENERGETIC: MOOD_ENERGETIC,
    MOOD_HAPPY: MOOD_HAPPY,
    MOOD_CHILL: MOOD_CHILL,
    MOOD_EUPHORIC: MOOD_EUPHORIC,
    MOOD_DISAPPOINTED: MOOD_DISAPPOINTED,
    MOOD_BORED: MOOD_BORED,
    MOOD_ANGRY: MOOD_ANGRY,
    MOOD_SAD: MOOD_SAD,
    MOOD_CONFUSED: MOOD_CONFUSED,
    MOOD_SURPRISED: MOOD_SURPRISED,
    MOOD_FOCUSED: MOOD_FOCUSED,
    MOOD_TIRED: MOOD_TIRED,
    MOOD_NEUTRAL: MOOD_CHILL,
}

DEFAULT_MOOD = MOOD_CHILL
LOW_CONFIDENCE = 10
DEFAULT_ENERGY_RATING = 5

_MOOD_RE = re.compile(r"mood:\s*(\w+)", re.IGNORECASE)
_ENERGY_RE = re.compile(r"energy:\s*(\d+)", re.IGNORECASE)
_PEOPLE_RE = re.compile(r"people:\s*(\d+)", re.IGNORECASE)
_PEOPLE_FALLBACK_RE = re.compile(r"(\d+)\s*(?:people|person|faces|individuals)", re.IGNORECASE)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class VisionAnalysis:
    """
    Result of one vision analysis call.

    Attributes:
        mood: Emotion word as reported (normalised to the vocabulary when parsed)
        energy_score: 0-100
        crowd_count: Visible people
        confidence: 0-100
    """
    mood: str
    energy_score: float
    crowd_count: int
    confidence: float


def normalize_emotion(word: Optional[str]) -> Optional[str]:
    """
    Map a reported emotion word onto the vocabulary.

    Returns:
        Vocabulary mood, or None if the word is not recognised
    """
    if not word:
        return None
    word = word.strip().lower()
    for mood, keywords in MOOD_KEYWORDS.items():
        if word == mood or word in keywords:
            return mood
    return None


def map_emotion_to_mood(emotion: Optional[str]) -> Optional[str]:
    """Fixed lookup from a vocabulary emotion to the DJ mood (None if unknown)."""
    mood = normalize_emotion(emotion)
    if mood is None:
        return None
    return EMOTION_TO_MOOD.get(mood)


def parse_analysis_text(text: str) -> VisionAnalysis:
    """
    Parse the vendor reply "Mood: <word>, Energy: <1-10>, People: <n>".

    Missing pieces fall back the way the vendor prompt was tuned: mood keywords
    anywhere in the text, energy rating 5, people from "<n> people". An energy
    rating outside 1-10 is ignored. Energy and confidence are both the rating
    scaled to 0-100. A reply with no recognisable mood comes back as neutral
    at low confidence.

    Args:
        text: Raw reply text

    Returns:
        VisionAnalysis (never raises)
    """
    text = text or ""
    mood = None

    mood_match = _MOOD_RE.search(text)
    if mood_match:
        mood = normalize_emotion(mood_match.group(1))
    else:
        lowered = text.lower()
        for candidate, keywords in MOOD_KEYWORDS.items():
            if any(keyword in lowered for keyword in keywords):
                mood = candidate
                break

    rating = DEFAULT_ENERGY_RATING
    energy_match = _ENERGY_RE.search(text)
    if energy_match and 1 <= int(energy_match.group(1)) <= 10:
        rating = int(energy_match.group(1))

    crowd = 0
    people_match = _PEOPLE_RE.search(text) or _PEOPLE_FALLBACK_RE.search(text)
    if people_match:
        crowd = int(people_match.group(1))

    if mood is None:
        return VisionAnalysis(mood=MOOD_NEUTRAL, energy_score=rating * 10,
                              crowd_count=crowd, confidence=LOW_CONFIDENCE)
    return VisionAnalysis(mood=mood, energy_score=rating * 10,
                          crowd_count=crowd, confidence=rating * 10)


@dataclass(frozen=True)
class MoodSample:
    """
    Immutable crowd mood snapshot.

    Superseded (never merged) by the next sample. Energy and confidence are
    clamped to 0-100 and crowd size to >= 0 on construction.

    Attributes:
        mood: DJ mood (lower-case)
        energy: 0-100
        crowd_size: Visible people (>= 0)
        confidence: 0-100
        sampled_at: Monotonic time the analysis started
    """
    mood: str
    energy: float
    crowd_size: int
    confidence: float
    sampled_at: float

    def __post_init__(self):
        object.__setattr__(self, "mood", (self.mood or DEFAULT_MOOD).lower())
        object.__setattr__(self, "energy", clamp(float(self.energy), 0.0, 100.0))
        object.__setattr__(self, "confidence", clamp(float(self.confidence), 0.0, 100.0))
        object.__setattr__(self, "crowd_size", max(0, int(self.crowd_size)))

    @classmethod
    def from_analysis(cls, analysis: VisionAnalysis, sampled_at: float) -> "MoodSample":
        """
        Build a sample from an analysis result.

        Unknown emotions become the neutral default mood at low confidence.
        """
        mood = map_emotion_to_mood(analysis.mood)
        if mood is None:
            return cls(mood=DEFAULT_MOOD, energy=analysis.energy_score,
                       crowd_size=analysis.crowd_count, confidence=LOW_CONFIDENCE,
                       sampled_at=sampled_at)
        return cls(mood=mood, energy=analysis.energy_score, crowd_size=analysis.crowd_count,
                   confidence=analysis.confidence, sampled_at=sampled_at)

    def to_dict(self) -> Dict[str, object]:
        return {
            "mood": self.mood,
            "energy": self.energy,
            "crowd_size": self.crowd_size,
            "confidence": self.confidence,
            "sampled_at": self.sampled_at,
        }
