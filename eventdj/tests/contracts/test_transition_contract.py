"""
Contract tests for TransitionCoordinator.

Covers:
- IDLE → ANNOUNCING → SWAPPING → SETTLING → IDLE, no other edges
- At most one cycle in flight; mid-cycle samples are deferred, latest wins
- Swap waits for the announcement to start (bounded)
- Mood transitions need active playback and a changed mood
- Requested changes (manual, start) share the same state machine
- Sink failures leave now-playing untouched and mark playback degraded
"""

import random
import threading
import time

import pytest

from eventdj.broadcast_core.announcement import ORIGIN_AI, PRIORITY_HIGH, PRIORITY_IMMEDIATE
from eventdj.dj_logic.mood import MoodSample
from eventdj.dj_logic.transition import (
    ALLOWED_EDGES,
    REASON_MANUAL,
    REASON_MOOD,
    REASON_PHASE,
    REASON_START,
    TRANSITION_ANNOUNCING,
    TRANSITION_IDLE,
    TRANSITION_SETTLING,
    TRANSITION_SWAPPING,
    TransitionCoordinator,
)
from eventdj.music_logic.catalog import TrackCatalog
from eventdj.state.session_state import SESSION_STATE_DEGRADED, SessionStateManager
from eventdj.tests.contracts.test_doubles import FakeAnnouncementQueue, RecordingSink, make_track


def _sample(mood, energy=90.0, at=0.0):
    return MoodSample(mood=mood, energy=energy, crowd_size=10, confidence=80, sampled_at=at)


def _coordinator(catalog, queue, sink, clock, **kwargs):
    kwargs.setdefault("settle_seconds", 0)
    kwargs.setdefault("announce_wait_seconds", 0.5)
    kwargs.setdefault("rng", random.Random(7))
    return TransitionCoordinator(catalog, queue, sink, clock=clock, **kwargs)


def _wait_for(predicate, timeout=1.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


def _start_playing(coordinator, track=None):
    coordinator.start_playback(track)
    assert coordinator.process_pending() is True


class TestStateMachine:
    """Every cycle walks the four states in order."""

    def test_mood_cycle_walks_all_states(self, sample_catalog, fake_queue, recording_sink, fake_clock):
        coordinator = _coordinator(sample_catalog, fake_queue, recording_sink, fake_clock)
        _start_playing(coordinator)
        edges = []
        coordinator.add_state_listener(lambda old, new: edges.append((old, new)))

        coordinator.on_mood_sample(_sample("excited"))
        assert coordinator.process_pending() is True

        assert edges == [
            (TRANSITION_IDLE, TRANSITION_ANNOUNCING),
            (TRANSITION_ANNOUNCING, TRANSITION_SWAPPING),
            (TRANSITION_SWAPPING, TRANSITION_SETTLING),
            (TRANSITION_SETTLING, TRANSITION_IDLE),
        ]
        assert coordinator.state == TRANSITION_IDLE

    def test_illegal_edge_raises(self, sample_catalog, fake_queue, recording_sink, fake_clock):
        coordinator = _coordinator(sample_catalog, fake_queue, recording_sink, fake_clock)
        with pytest.raises(RuntimeError):
            coordinator._set_state(TRANSITION_SWAPPING)

    def test_requested_change_uses_same_cycle(self, sample_catalog, fake_queue, recording_sink, fake_clock):
        coordinator = _coordinator(sample_catalog, fake_queue, recording_sink, fake_clock)
        states = []
        coordinator.add_state_listener(lambda old, new: states.append(new))
        coordinator.request_track_change(sample_catalog.get("mid-125"), reason=REASON_MANUAL)
        assert coordinator.process_pending() is True
        assert states == [TRANSITION_ANNOUNCING, TRANSITION_SWAPPING, TRANSITION_SETTLING, TRANSITION_IDLE]
        assert fake_queue.requests == []
        assert coordinator.now_playing.get_state().reason == REASON_MANUAL


class TestMoodTransitions:
    """Mood samples become announced track changes."""

    def test_first_transition_is_immediate_then_high(self, sample_catalog, fake_queue, recording_sink, fake_clock):
        coordinator = _coordinator(sample_catalog, fake_queue, recording_sink, fake_clock)
        _start_playing(coordinator)

        coordinator.on_mood_sample(_sample("excited"))
        coordinator.process_pending()
        coordinator.on_mood_sample(_sample("chill", energy=30))
        coordinator.process_pending()

        assert [r.priority for r in fake_queue.requests] == [PRIORITY_IMMEDIATE, PRIORITY_HIGH]
        assert all(r.origin == ORIGIN_AI for r in fake_queue.requests)
        assert coordinator.transition_count == 2

    def test_announcement_names_new_track(self, sample_catalog, fake_queue, recording_sink, fake_clock,
                                          excited_tracks):
        coordinator = _coordinator(sample_catalog, fake_queue, recording_sink, fake_clock)
        _start_playing(coordinator)
        coordinator.on_mood_sample(_sample("excited"))
        coordinator.process_pending()

        new_track = recording_sink.played[-1]
        assert new_track.id in {t.id for t in excited_tracks}
        assert new_track.title in fake_queue.requests[-1].text
        assert coordinator.now_playing.current_track() == new_track
        assert coordinator.now_playing.get_state().reason == REASON_MOOD

    def test_same_mood_does_not_transition(self, sample_catalog, fake_queue, recording_sink, fake_clock):
        coordinator = _coordinator(sample_catalog, fake_queue, recording_sink, fake_clock)
        _start_playing(coordinator)
        coordinator.on_mood_sample(_sample("excited"))
        coordinator.process_pending()
        plays = len(recording_sink.played)

        coordinator.on_mood_sample(_sample("Excited", energy=95))
        assert coordinator.process_pending() is False
        assert len(recording_sink.played) == plays

    def test_start_pick_mood_counts_as_acted_on(self, sample_catalog, fake_queue, recording_sink, fake_clock,
                                                chill_tracks):
        coordinator = _coordinator(sample_catalog, fake_queue, recording_sink, fake_clock)
        coordinator.on_mood_sample(_sample("chill", energy=30))
        started = coordinator.start_playback()
        assert started.id in {t.id for t in chill_tracks}
        assert coordinator.last_acted_mood == "chill"

        assert coordinator.process_pending() is True
        coordinator.on_mood_sample(_sample("chill", energy=35))
        assert coordinator.process_pending() is False

        assert [t.id for t in recording_sink.played] == [started.id]
        assert fake_queue.requests == []
        assert coordinator.transition_count == 0

    def test_needs_active_playback(self, sample_catalog, fake_queue, recording_sink, fake_clock):
        coordinator = _coordinator(sample_catalog, fake_queue, recording_sink, fake_clock)
        coordinator.on_mood_sample(_sample("excited"))
        assert coordinator.process_pending() is False
        assert recording_sink.played == []
        assert fake_queue.requests == []

    def test_stop_playback_blocks_mood_transitions(self, sample_catalog, fake_queue, recording_sink, fake_clock):
        coordinator = _coordinator(sample_catalog, fake_queue, recording_sink, fake_clock)
        _start_playing(coordinator)
        coordinator.stop_playback()
        assert recording_sink.stops == 1
        assert coordinator.now_playing.get_state() is None

        coordinator.on_mood_sample(_sample("excited"))
        assert coordinator.process_pending() is False

    def test_single_track_catalog_stays_put(self, fake_queue, recording_sink, fake_clock):
        catalog = TrackCatalog([make_track("only", bpm=140)], playlists={})
        coordinator = _coordinator(catalog, fake_queue, recording_sink, fake_clock)
        _start_playing(coordinator)
        coordinator.on_mood_sample(_sample("excited"))
        assert coordinator.process_pending() is False
        assert fake_queue.requests == []


class TestStartPlayback:
    """A start pick only fills silence; it never displaces another request."""

    def test_start_pick_yields_to_pending_phase_request(self, sample_catalog, fake_queue, recording_sink,
                                                        fake_clock, excited_tracks):
        coordinator = _coordinator(sample_catalog, fake_queue, recording_sink, fake_clock)
        phase_track = excited_tracks[-1]
        coordinator.request_track_change(phase_track, reason=REASON_PHASE)

        assert coordinator.start_playback() is None
        assert coordinator.process_pending() is True

        assert recording_sink.played == [phase_track]
        assert coordinator.now_playing.get_state().reason == REASON_PHASE
        assert coordinator.process_pending() is False

    def test_start_pick_skipped_while_playing(self, sample_catalog, fake_queue, recording_sink, fake_clock):
        coordinator = _coordinator(sample_catalog, fake_queue, recording_sink, fake_clock)
        _start_playing(coordinator, sample_catalog.get("mid-125"))
        assert coordinator.start_playback() is None
        assert coordinator.process_pending() is False

    def test_explicit_track_still_requested(self, sample_catalog, fake_queue, recording_sink, fake_clock):
        coordinator = _coordinator(sample_catalog, fake_queue, recording_sink, fake_clock)
        _start_playing(coordinator, sample_catalog.get("mid-125"))
        assert coordinator.start_playback(sample_catalog.get("ch-90")).id == "ch-90"
        assert coordinator.process_pending() is True
        assert coordinator.now_playing.get_state().reason == REASON_START


class TestAnnouncementGate:
    """The swap follows the announcement start, with a bounded wait."""

    def test_swap_waits_for_started(self, sample_catalog, recording_sink, fake_clock):
        queue = FakeAnnouncementQueue(hold=True)
        coordinator = _coordinator(sample_catalog, queue, recording_sink, fake_clock, announce_wait_seconds=2.0)
        _start_playing(coordinator)
        plays = len(recording_sink.played)

        coordinator.on_mood_sample(_sample("excited"))
        worker = threading.Thread(target=coordinator.process_pending)
        worker.start()
        assert _wait_for(lambda: queue.requests), "announcement never enqueued"

        assert coordinator.state == TRANSITION_ANNOUNCING
        assert len(recording_sink.played) == plays

        queue.release(queue.requests[-1])
        worker.join(1.0)
        assert len(recording_sink.played) == plays + 1
        assert coordinator.state == TRANSITION_IDLE

    def test_wait_times_out_and_swaps(self, sample_catalog, recording_sink, fake_clock):
        queue = FakeAnnouncementQueue(hold=True)
        coordinator = _coordinator(sample_catalog, queue, recording_sink, fake_clock, announce_wait_seconds=0.05)
        _start_playing(coordinator)
        coordinator.on_mood_sample(_sample("excited"))
        assert coordinator.process_pending() is True
        assert coordinator.now_playing.current_track().id.startswith("ex-")

    def test_refused_announcement_still_swaps(self, sample_catalog, recording_sink, fake_clock):
        queue = FakeAnnouncementQueue(accept=False)
        coordinator = _coordinator(sample_catalog, queue, recording_sink, fake_clock)
        _start_playing(coordinator)
        coordinator.on_mood_sample(_sample("excited"))
        assert coordinator.process_pending() is True
        assert coordinator.now_playing.current_track().id.startswith("ex-")


class TestExclusivity:
    """At most one cycle runs; mid-cycle input is deferred, latest wins."""

    def test_mid_cycle_samples_are_deferred(self, sample_catalog, recording_sink, fake_clock):
        queue = FakeAnnouncementQueue(hold=True)
        coordinator = _coordinator(sample_catalog, queue, recording_sink, fake_clock, announce_wait_seconds=2.0)
        _start_playing(coordinator)
        states = []
        coordinator.add_state_listener(lambda old, new: states.append(new))

        coordinator.on_mood_sample(_sample("excited"))
        worker = threading.Thread(target=coordinator.process_pending)
        worker.start()
        assert _wait_for(lambda: queue.requests), "announcement never enqueued"

        assert coordinator.process_pending() is False
        coordinator.on_mood_sample(_sample("bored", energy=60))
        coordinator.on_mood_sample(_sample("chill", energy=30))
        assert coordinator.state == TRANSITION_ANNOUNCING

        queue.release(queue.requests[-1])
        worker.join(1.0)
        assert states.count(TRANSITION_ANNOUNCING) == 1

        queue.hold = False
        assert coordinator.process_pending() is True
        assert coordinator.last_acted_mood == "chill"
        assert states.count(TRANSITION_ANNOUNCING) == 2

    def test_request_beats_pending_mood(self, sample_catalog, fake_queue, recording_sink, fake_clock):
        coordinator = _coordinator(sample_catalog, fake_queue, recording_sink, fake_clock)
        _start_playing(coordinator)
        coordinator.on_mood_sample(_sample("excited"))
        coordinator.request_track_change(sample_catalog.get("mid-125"))
        coordinator.process_pending()
        assert coordinator.now_playing.current_track().id == "mid-125"

    def test_threaded_inputs_never_overlap_cycles(self, sample_catalog, fake_queue, recording_sink, fake_clock,
                                                  thread_leak_guard):
        """Under concurrent mood input the observed edge sequence stays legal."""
        coordinator = _coordinator(sample_catalog, fake_queue, recording_sink, fake_clock, settle_seconds=0.001)
        edges = []
        lock = threading.Lock()

        def record(old, new):
            with lock:
                edges.append((old, new))

        coordinator.add_state_listener(record)
        coordinator.start()
        coordinator.start_playback()
        moods = ["excited", "chill", "bored", "happy"]

        def feed(offset):
            for i in range(25):
                coordinator.on_mood_sample(_sample(moods[(i + offset) % len(moods)], energy=40 + i))

        feeders = [threading.Thread(target=feed, args=(n,)) for n in range(3)]
        for t in feeders:
            t.start()
        for t in feeders:
            t.join(2.0)
        time.sleep(0.2)
        coordinator.stop()

        assert edges, "at least the start cycle must run"
        for old, new in edges:
            assert new in ALLOWED_EDGES[old] or new == TRANSITION_IDLE
        for (_, prev_new), (next_old, _) in zip(edges, edges[1:]):
            assert prev_new == next_old


class TestFailures:
    """Sink failures never corrupt now-playing."""

    def test_sink_failure_keeps_now_playing(self, sample_catalog, fake_queue, fake_clock):
        state = SessionStateManager()
        state.on_started()
        sink = RecordingSink()
        coordinator = _coordinator(sample_catalog, fake_queue, sink, fake_clock, session_state=state)
        _start_playing(coordinator)
        before = coordinator.now_playing.current_track()

        sink.fail = True
        coordinator.on_mood_sample(_sample("excited"))
        coordinator.process_pending()

        assert coordinator.now_playing.current_track() == before
        assert coordinator.state == TRANSITION_IDLE
        assert state.get_state().session_state == SESSION_STATE_DEGRADED

    def test_already_playing_request_ignored(self, sample_catalog, fake_queue, recording_sink, fake_clock):
        coordinator = _coordinator(sample_catalog, fake_queue, recording_sink, fake_clock)
        track = sample_catalog.get("mid-125")
        _start_playing(coordinator, track)
        coordinator.request_track_change(track)
        assert coordinator.process_pending() is False
        assert recording_sink.played == [track]

    def test_listener_errors_are_contained(self, sample_catalog, fake_queue, recording_sink, fake_clock):
        coordinator = _coordinator(sample_catalog, fake_queue, recording_sink, fake_clock)

        def broken(*args):
            raise ValueError("listener bug")

        coordinator.add_state_listener(broken)
        coordinator.add_track_change_listener(broken)
        _start_playing(coordinator)
        assert coordinator.now_playing.get_state().reason == REASON_START
