"""
Contract tests for the crowd mood model.

Covers:
- Vendor reply parsing (mood words, synonyms, energy scaling, people count)
- Fallbacks for unparseable replies
- Emotion to mood lookup
- MoodSample clamping and immutability
"""

from dataclasses import FrozenInstanceError

import pytest

from eventdj.dj_logic.mood import (
    LOW_CONFIDENCE,
    MoodSample,
    VisionAnalysis,
    map_emotion_to_mood,
    normalize_emotion,
    parse_analysis_text,
)


class TestReplyParsing:
    """Parsing of "Mood: <word>, Energy: <1-10>, People: <n>"."""

    def test_parses_canonical_reply(self):
        """A well-formed reply yields mood, energy x10, people and confidence x10."""
        result = parse_analysis_text("Mood: excited, Energy: 8, People: 3")
        assert result == VisionAnalysis(mood="excited", energy_score=80, crowd_count=3, confidence=80)

    def test_synonym_maps_to_vocabulary(self):
        """Synonyms the vendor answers with map onto the mood vocabulary."""
        assert parse_analysis_text("Mood: Thrilled, Energy: 9, People: 10").mood == "excited"
        assert parse_analysis_text("Mood: relaxed, Energy: 3, People: 2").mood == "chill"

    def test_mood_keyword_anywhere_when_label_missing(self):
        """Without a Mood: label, the first keyword found in the text wins."""
        result = parse_analysis_text("The crowd looks pretty bored tonight, 12 people visible")
        assert result.mood == "bored"
        assert result.crowd_count == 12

    def test_missing_energy_uses_middle_rating(self):
        """A reply without an energy rating is treated as rating 5."""
        result = parse_analysis_text("Mood: happy, People: 4")
        assert result.energy_score == 50
        assert result.confidence == 50

    def test_out_of_range_energy_is_ignored(self):
        """Ratings outside 1-10 fall back to the middle rating."""
        assert parse_analysis_text("Mood: happy, Energy: 42, People: 1").energy_score == 50

    def test_unparseable_reply_is_neutral_low_confidence(self):
        """Nothing recognisable gives neutral mood at low confidence, never an exception."""
        result = parse_analysis_text("I cannot help with that.")
        assert result.mood == "neutral"
        assert result.confidence == LOW_CONFIDENCE
        assert result.crowd_count == 0

    def test_unknown_mood_word_is_neutral(self):
        result = parse_analysis_text("Mood: flabbergasted, Energy: 7, People: 2")
        assert result.mood == "neutral"
        assert result.confidence == LOW_CONFIDENCE
        assert result.energy_score == 70

    def test_empty_reply(self):
        assert parse_analysis_text("").mood == "neutral"


class TestEmotionLookup:
    """Fixed emotion to mood lookup."""

    def test_neutral_maps_to_chill(self):
        assert map_emotion_to_mood("neutral") == "chill"

    def test_known_emotion_maps_to_itself(self):
        assert map_emotion_to_mood("Excited") == "excited"

    def test_unknown_emotion_is_none(self):
        assert map_emotion_to_mood("flabbergasted") is None
        assert normalize_emotion(None) is None


class TestMoodSample:
    """MoodSample is an immutable, clamped snapshot."""

    def test_values_are_clamped(self):
        sample = MoodSample(mood="EXCITED", energy=140, crowd_size=-3, confidence=-5, sampled_at=1.0)
        assert sample.mood == "excited"
        assert sample.energy == 100
        assert sample.crowd_size == 0
        assert sample.confidence == 0

    def test_is_frozen(self):
        sample = MoodSample(mood="happy", energy=50, crowd_size=1, confidence=50, sampled_at=1.0)
        with pytest.raises(FrozenInstanceError):
            sample.mood = "sad"

    def test_from_analysis_maps_neutral_to_chill(self):
        sample = MoodSample.from_analysis(VisionAnalysis("neutral", 40, 2, 40), sampled_at=5.0)
        assert sample.mood == "chill"
        assert sample.confidence == 40
        assert sample.sampled_at == 5.0

    def test_from_analysis_unknown_mood_is_default_low_confidence(self):
        sample = MoodSample.from_analysis(VisionAnalysis("weird", 40, 2, 90), sampled_at=5.0)
        assert sample.mood == "chill"
        assert sample.confidence == LOW_CONFIDENCE
