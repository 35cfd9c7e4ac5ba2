"""
Shared pytest fixtures for eventdj contract tests.

Contract tests use test doubles (fakes, stubs) to avoid real dependencies.
No network, camera, audio device, env file or wall clock is used.
"""

import random
import threading

import pytest

from eventdj.dj_logic.event_plan import EventPhase, EventPlan, SpecialMoment, VIPGuest
from eventdj.music_logic.catalog import MoodPlaylist, TrackCatalog
from eventdj.tests.contracts.test_doubles import (
    FakeAnnouncementQueue,
    FakeClock,
    RecordingSink,
    make_frame,
    make_track,
)


@pytest.fixture
def fake_clock():
    """Clock fixed at 2024-06-01 18:00:00, advanced by hand."""
    return FakeClock()


@pytest.fixture
def rng():
    """Seeded random source for reproducible picks."""
    return random.Random(42)


@pytest.fixture
def frame():
    return make_frame()


@pytest.fixture
def excited_tracks():
    """Four fast tracks curated for the excited mood."""
    return [make_track(f"ex-{bpm}", bpm=bpm, genre="Techno") for bpm in (135, 140, 150, 160)]


@pytest.fixture
def chill_tracks():
    return [make_track(f"ch-{bpm}", bpm=bpm, genre="Ambient") for bpm in (90, 100, 110)]


@pytest.fixture
def sample_catalog(excited_tracks, chill_tracks):
    """
    Catalog with an excited playlist (4 fast tracks), a chill playlist
    (3 slow tracks) and one uncurated mid-tempo track.
    """
    playlists = {
        "excited": MoodPlaylist("excited", "Excited", "", [t.id for t in excited_tracks], (130, 160), ["Techno"]),
        "chill": MoodPlaylist("chill", "Chill", "", [t.id for t in chill_tracks], (90, 120), ["Ambient"]),
        "happy": MoodPlaylist("happy", "Happy", "", [], (120, 135), ["Pop"]),
    }
    extra = make_track("mid-125", bpm=125, genre="Pop", title="Happy Days", artist="The Cues")
    return TrackCatalog(excited_tracks + chill_tracks + [extra], playlists=playlists)


@pytest.fixture
def fake_queue():
    """Announcement queue stand-in that reports every request as started at once."""
    return FakeAnnouncementQueue()


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def sample_plan():
    """
    Wedding plan: cocktail 18:00-19:00 (chill), dancing 19:00-21:00 (energetic),
    and two moments (19:30 first dance with a cue, 20:00 toast).
    """
    return EventPlan(
        id="wedding-1",
        name="Sam and Alex's Wedding",
        event_type="wedding",
        phases=(
            EventPhase("p1", "18:00", "cocktail", 3, "ambient", 60),
            EventPhase("p2", "19:00", "dancing", 8, "techno", 120),
        ),
        special_moments=(
            SpecialMoment("m1", "19:30", "first_dance", "First dance", music_cue="Happy Days"),
            SpecialMoment("m2", "20:00", "toast", "Toast by the best man"),
        ),
        music_preferences=("Techno", "Ambient"),
    )


@pytest.fixture
def sample_guests():
    return [
        VIPGuest(id="g-sarah", name="Sarah", role="bride"),
        VIPGuest(id="g-ceo", name="Jordan", role="ceo", personalized_greeting="Jordan is in the house!"),
    ]


@pytest.fixture(autouse=False)
def thread_leak_guard():
    """
    Detect threads left running by a test.

    Request explicitly in tests that start background loops.
    """
    before = set(t.ident for t in threading.enumerate())
    yield
    after = set(t.ident for t in threading.enumerate() if t.is_alive())
    leaked = after - before
    if leaked:
        leaked_threads = [t for t in threading.enumerate() if t.ident in leaked]
        thread_info = "\n".join(f"  - {t.name} (daemon={t.daemon})" for t in leaked_threads)
        assert False, f"Thread leak detected, shutdown incomplete.\nLeaked threads:\n{thread_info}"
