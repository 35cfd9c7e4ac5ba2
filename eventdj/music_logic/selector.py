"""
Track selection for eventdj.

Pure functions: given the crowd signal and a catalog snapshot, narrow the
candidate set and pick a track. Nothing here holds state between calls.

Tier order for select_next():
1. Mood-curated tracks (explicit playlist membership), else the full catalog
2. Energy band on BPM (high energy keeps fast tracks, low energy keeps slow)
3. If the band emptied the set, back to the tier 1 set ignoring energy
4. Drop the currently playing track if anything else remains
5. Uniform random pick

Each tier only applies if it leaves a non-empty set, so mood correctness
beats energy precision and energy precision beats novelty.
"""

import logging
import random
from typing import Iterable, List, Optional, Sequence, Tuple

from eventdj.errors import SelectionExhausted
from eventdj.music_logic.catalog import TrackCatalog
from eventdj.music_logic.track import Track

logger = logging.getLogger(__name__)

HIGH_ENERGY_THRESHOLD: int = 80
LOW_ENERGY_THRESHOLD: int = 50
ENERGY_BPM_SPLIT: int = 130

# Phase energy targets are authored on a 1-10 scale; target BPM = target * 15 + 60
PHASE_BPM_PER_ENERGY: int = 15
PHASE_BPM_BASE: int = 60
PHASE_BPM_TOLERANCE: int = 30

STYLE_MATCH_WEIGHT: float = 3.0
ENERGY_MATCH_WEIGHT: float = 2.0
PREFERENCE_MATCH_WEIGHT: float = 1.0


def filter_energy_band(
    tracks: Sequence[Track],
    energy: float,
    high_threshold: int = HIGH_ENERGY_THRESHOLD,
    low_threshold: int = LOW_ENERGY_THRESHOLD,
    bpm_split: int = ENERGY_BPM_SPLIT,
) -> List[Track]:
    """
    Apply the energy band to a candidate set.

    Args:
        tracks: Candidates
        energy: Crowd energy 0-100
        high_threshold: Above this, only bpm >= bpm_split survives
        low_threshold: Below this, only bpm <= bpm_split survives
        bpm_split: BPM boundary (inclusive on both sides)

    Returns:
        Filtered list (may be empty); unchanged copy for mid-range energy
    """
    if energy > high_threshold:
        return [t for t in tracks if t.bpm >= bpm_split]
    if energy < low_threshold:
        return [t for t in tracks if t.bpm <= bpm_split]
    return list(tracks)


def _narrow(
    mood: Optional[str],
    energy: float,
    catalog: TrackCatalog,
    exclude_id: Optional[str],
    high_threshold: int,
    low_threshold: int,
    bpm_split: int,
) -> List[Track]:
    all_tracks = catalog.tracks()
    if not all_tracks:
        raise SelectionExhausted("catalog is empty")

    base = list(catalog.tracks_for_mood(mood)) or list(all_tracks)

    candidates = filter_energy_band(base, energy, high_threshold, low_threshold, bpm_split)
    if not candidates:
        logger.debug(f"[SELECT] Energy band {energy:.0f} emptied {len(base)} candidates, ignoring energy")
        candidates = base

    if exclude_id is not None and len(candidates) > 1:
        without_current = [t for t in candidates if t.id != exclude_id]
        if without_current:
            candidates = without_current
    return candidates


def select_next(
    mood: Optional[str],
    energy: float,
    catalog: TrackCatalog,
    exclude_id: Optional[str] = None,
    rng: Optional[random.Random] = None,
    high_threshold: int = HIGH_ENERGY_THRESHOLD,
    low_threshold: int = LOW_ENERGY_THRESHOLD,
    bpm_split: int = ENERGY_BPM_SPLIT,
) -> Optional[Track]:
    """
    Pick the next track for a mood and energy level.

    Args:
        mood: Mood name (case-insensitive); unknown moods use the full catalog
        energy: Crowd energy 0-100
        catalog: Catalog to select from
        exclude_id: Currently playing track id (avoided when possible)
        rng: Random source (default: module random)
        high_threshold: High-energy threshold
        low_threshold: Low-energy threshold
        bpm_split: BPM boundary for the energy band

    Returns:
        Selected Track, or None only if the catalog is empty
    """
    try:
        candidates = _narrow(mood, energy, catalog, exclude_id, high_threshold, low_threshold, bpm_split)
    except SelectionExhausted as e:
        logger.warning(f"[SELECT] No track for mood={mood} energy={energy:.0f}: {e}")
        return None

    track = (rng or random).choice(candidates)
    logger.info(
        f"[SELECT] mood={mood} energy={energy:.0f} -> {track.title} by {track.artist} "
        f"({track.bpm:.0f} bpm, {len(candidates)} candidates)"
    )
    return track


def phase_target_bpm(energy_target: float) -> float:
    """BPM that suits a phase energy target on the 1-10 scale."""
    return energy_target * PHASE_BPM_PER_ENERGY + PHASE_BPM_BASE


def _phase_weight(track: Track, style: str, target_bpm: float, preferences: Tuple[str, ...]) -> float:
    weight = 0.0
    if style and (style in track.genre.lower() or style in track.title.lower()):
        weight += STYLE_MATCH_WEIGHT
    if abs(track.bpm - target_bpm) < PHASE_BPM_TOLERANCE:
        weight += ENERGY_MATCH_WEIGHT
    if any(p and p in track.genre.lower() for p in preferences):
        weight += PREFERENCE_MATCH_WEIGHT
    return weight


def select_for_phase(
    phase,
    catalog: TrackCatalog,
    exclude_id: Optional[str] = None,
    music_preferences: Iterable[str] = (),
    rng: Optional[random.Random] = None,
) -> Optional[Track]:
    """
    Pick a track suited to an event phase.

    Tracks matching the phase music style (genre or title), the phase energy
    target, or the event's music preferences are weighted style > energy >
    preference. If nothing matches, every catalog track is equally likely.
    The current track is avoided when anything else is available.

    Args:
        phase: EventPhase with music_style and energy_target
        catalog: Catalog to select from
        exclude_id: Currently playing track id
        music_preferences: Genres the event organiser asked for
        rng: Random source (default: module random)

    Returns:
        Selected Track, or None if the catalog is empty
    """
    all_tracks = catalog.tracks()
    if not all_tracks:
        logger.warning(f"[SELECT] No track for phase {phase.phase_kind}: catalog is empty")
        return None

    style = (phase.music_style or "").lower()
    target_bpm = phase_target_bpm(phase.energy_target)
    preferences = tuple(p.lower() for p in music_preferences)

    weighted = [(t, _phase_weight(t, style, target_bpm, preferences)) for t in all_tracks]
    matching = [(t, w) for t, w in weighted if w > 0]
    if not matching:
        matching = [(t, 1.0) for t in all_tracks]

    if exclude_id is not None and len(matching) > 1:
        without_current = [(t, w) for t, w in matching if t.id != exclude_id]
        if without_current:
            matching = without_current

    tracks = [t for t, _ in matching]
    weights = [w for _, w in matching]
    track = (rng or random).choices(tracks, weights=weights, k=1)[0]
    logger.info(
        f"[SELECT] phase={phase.phase_kind} style={phase.music_style} energy={phase.energy_target} "
        f"-> {track.title} by {track.artist} ({len(tracks)} candidates)"
    )
    return track
