"""
Contract tests for the event plan model and its loaders.
"""

import json

import pytest

from eventdj.dj_logic.event_plan import (
    EventPhase,
    EventPlan,
    format_hhmm,
    load_event_plan,
    load_guest_list,
    parse_hhmm,
)


class TestTimes:
    """HH:MM parsing and formatting."""

    def test_parse(self):
        assert parse_hhmm("00:00") == 0
        assert parse_hhmm("19:30") == 19 * 60 + 30
        assert parse_hhmm(" 7:05 ") == 7 * 60 + 5

    @pytest.mark.parametrize("value", ["24:00", "12:60", "noon", "", None])
    def test_parse_rejects_invalid(self, value):
        with pytest.raises(ValueError):
            parse_hhmm(value)

    def test_format_wraps(self):
        assert format_hhmm(25 * 60 + 5) == "01:05"


class TestPhaseWindow:
    """A phase covers [start, start + duration), wrapping at midnight."""

    def test_half_open_window(self):
        phase = EventPhase("p", "19:00", "dancing", 8, "techno", 60)
        assert phase.contains(parse_hhmm("19:00"))
        assert phase.contains(parse_hhmm("19:59"))
        assert not phase.contains(parse_hhmm("20:00"))
        assert not phase.contains(parse_hhmm("18:59"))

    def test_window_across_midnight(self):
        phase = EventPhase("late", "23:30", "closing", 4, "", 90)
        assert phase.contains(parse_hhmm("23:45"))
        assert phase.contains(parse_hhmm("00:59"))
        assert not phase.contains(parse_hhmm("01:00"))


class TestPlanParsing:
    """Plans accept snake_case and the exported camelCase form."""

    def test_camel_case_export(self):
        plan = EventPlan.from_dict({
            "id": "evt-9",
            "name": "Launch Night",
            "type": "corporate",
            "eventFlow": [{"id": "f1", "time": "18:00", "phase": "arrival", "energyTarget": 4,
                           "musicStyle": "lounge", "duration": 30}],
            "specialMoments": [{"id": "s1", "time": "18:30", "type": "speech", "description": "CEO keynote",
                                "musicCue": "Intro"}],
            "musicPreferences": ["House"],
            "expectedAttendees": 120,
        })
        assert plan.event_type == "corporate"
        assert plan.phases[0].phase_kind == "arrival"
        assert plan.phases[0].duration_min == 30
        assert plan.special_moments[0].moment_kind == "speech"
        assert plan.special_moments[0].music_cue == "Intro"
        assert plan.music_preferences == ("House",)
        assert plan.expected_attendees == 120

    def test_defaults(self):
        plan = EventPlan.from_dict({"name": "Party", "phases": [{"time": "20:00"}]})
        assert plan.id == "Party"
        assert plan.event_type == "party"
        assert plan.phases[0].id == "phase-0"
        assert plan.phases[0].duration_min == 60

    def test_missing_name(self):
        with pytest.raises(ValueError):
            EventPlan.from_dict({"phases": []})

    def test_moment_time_is_zero_padded(self):
        plan = EventPlan.from_dict({"name": "x", "specialMoments": [{"id": "s", "time": "9:05", "type": "toast"}]})
        assert plan.special_moments[0].time == "09:05"
        assert plan.special_moments[0].minute_of_day == 9 * 60 + 5

    def test_invalid_moment_time(self):
        with pytest.raises(ValueError):
            EventPlan.from_dict({"name": "x", "specialMoments": [{"time": "25:00"}]})

    def test_moment_lookup(self, sample_plan):
        assert sample_plan.moment("m2").moment_kind == "toast"
        assert sample_plan.moment("missing") is None


class TestLoaders:
    """JSON file loaders."""

    def test_load_event_plan(self, tmp_path):
        path = tmp_path / "plan.json"
        path.write_text(json.dumps({"name": "Garden Party", "event_type": "party"}))
        assert load_event_plan(str(path)).name == "Garden Party"

    def test_load_guest_list_from_object(self, tmp_path):
        path = tmp_path / "guests.json"
        path.write_text(json.dumps({"guests": [
            {"id": "g1", "name": "Riley", "role": "speaker", "faceImageUrl": "http://img/1.jpg"},
        ]}))
        guests = load_guest_list(str(path))
        assert guests[0].reference_image == "http://img/1.jpg"
        assert guests[0].recognition_count == 0
        assert guests[0].last_seen is None

    def test_load_guest_list_from_list(self, tmp_path):
        path = tmp_path / "guests.json"
        path.write_text(json.dumps([{"id": "g1", "name": "Riley"}, {"id": "g2", "name": "Casey"}]))
        assert [g.id for g in load_guest_list(str(path))] == ["g1", "g2"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_event_plan(str(tmp_path / "nope.json"))
