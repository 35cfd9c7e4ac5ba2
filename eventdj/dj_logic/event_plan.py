"""
Event Plan model for eventdj.

An EventPlan is authored once at event configuration time and does not
change afterwards. The one exception is SpecialMoment.triggered, which is
owned by the EventTimelineCoordinator and flips False -> True exactly once.

VIPGuest records carry recognition bookkeeping (recognition_count,
last_seen) that only the recognition handler mutates.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60

# Phase kinds
PHASE_ARRIVAL = "arrival"
PHASE_COCKTAIL = "cocktail"
PHASE_DINNER = "dinner"
PHASE_DANCING = "dancing"
PHASE_CLOSING = "closing"

# Moment kinds
MOMENT_ENTRANCE = "entrance"
MOMENT_SPEECH = "speech"
MOMENT_CAKE_CUTTING = "cake_cutting"
MOMENT_FIRST_DANCE = "first_dance"
MOMENT_TOAST = "toast"
MOMENT_SURPRISE = "surprise"


def parse_hhmm(value: str) -> int:
    """
    Convert an "HH:MM" wall-clock string to minutes after midnight.

    Raises:
        ValueError: If the string is not a valid 24-hour time
    """
    try:
        hours_str, minutes_str = value.strip().split(":")
        hours, minutes = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError) as e:
        raise ValueError(f"invalid HH:MM time: {value!r}") from e
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f"invalid HH:MM time: {value!r}")
    return hours * 60 + minutes


def format_hhmm(minutes: int) -> str:
    minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _get(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass(frozen=True)
class EventPhase:
    """
    One authored segment of the event timeline.

    Attributes:
        id: Phase id
        time: Start time "HH:MM"
        phase_kind: arrival/cocktail/dinner/dancing/closing (free text allowed)
        energy_target: Target energy on a 1-10 scale
        music_style: Style hint matched against genre and title
        duration_min: Length in minutes; the phase covers [time, time + duration_min)
    """
    id: str
    time: str
    phase_kind: str
    energy_target: float
    music_style: str
    duration_min: int

    @property
    def start_minute(self) -> int:
        return parse_hhmm(self.time)

    def contains(self, minute_of_day: int) -> bool:
        """True if the minute falls inside [start, start + duration), wrapping at midnight."""
        offset = (minute_of_day - self.start_minute) % MINUTES_PER_DAY
        return offset < self.duration_min

    @classmethod
    def from_dict(cls, data: Dict[str, Any], index: int = 0) -> "EventPhase":
        time_str = format_hhmm(parse_hhmm(str(data["time"])))
        return cls(
            id=str(_get(data, "id", default=f"phase-{index}")),
            time=time_str,
            phase_kind=str(_get(data, "phase_kind", "phaseKind", "phase", default="")),
            energy_target=float(_get(data, "energy_target", "energyTarget", default=5)),
            music_style=str(_get(data, "music_style", "musicStyle", default="")),
            duration_min=int(_get(data, "duration_min", "durationMin", "duration", default=60)),
        )


@dataclass
class SpecialMoment:
    """
    A one-time scheduled cue.

    Attributes:
        id: Moment id (idempotence key)
        time: Trigger minute "HH:MM"
        moment_kind: entrance/speech/cake_cutting/first_dance/toast/surprise
        description: What happens
        music_cue: Optional text matched against track title/artist
        announcement_template: Optional text overriding the kind phrasing
        triggered: Set once by the timeline coordinator, never reset
    """
    id: str
    time: str
    moment_kind: str
    description: str
    music_cue: Optional[str] = None
    announcement_template: Optional[str] = None
    triggered: bool = False

    @property
    def minute_of_day(self) -> int:
        return parse_hhmm(self.time)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], index: int = 0) -> "SpecialMoment":
        time_str = format_hhmm(parse_hhmm(str(data["time"])))
        return cls(
            id=str(_get(data, "id", default=f"moment-{index}")),
            time=time_str,
            moment_kind=str(_get(data, "moment_kind", "momentKind", "type", default="")),
            description=str(_get(data, "description", default="")),
            music_cue=_get(data, "music_cue", "musicCue"),
            announcement_template=_get(data, "announcement_template", "announcementTemplate"),
            triggered=bool(_get(data, "triggered", default=False)),
        )


@dataclass
class VIPGuest:
    """
    A guest the face recognition watcher looks for.

    Attributes:
        id: Guest id (matches the recognizer's guest ids)
        name: Name used in announcements
        role: bride/groom/birthday_person/ceo/guest_of_honor/speaker (free text allowed)
        reference_image: Reference image handed to the face recognizer (URL or path)
        personalized_greeting: Optional greeting overriding the role phrasing
        recognition_count: Times recognised this session (never decreases)
        last_seen: Monotonic time of the last recognition, None if never seen
    """
    id: str
    name: str
    role: str = ""
    reference_image: Optional[str] = None
    personalized_greeting: Optional[str] = None
    recognition_count: int = 0
    last_seen: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VIPGuest":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            role=str(data.get("role", "")),
            reference_image=_get(data, "reference_image", "referenceImage", "faceImageUrl"),
            personalized_greeting=_get(data, "personalized_greeting", "personalizedGreeting"),
        )


@dataclass(frozen=True)
class EventPlan:
    """
    Immutable event configuration.

    Attributes:
        id: Event id
        name: Event name used in announcements
        event_type: wedding/birthday/corporate/party/festival/club/conference
        phases: Timeline phases, in authored order
        special_moments: Scheduled moments, in authored order
        music_preferences: Genres the organiser asked for
        venue: Venue name
        expected_attendees: Expected headcount
        start_time: Event start "HH:MM" (informational)
        end_time: Event end "HH:MM" (informational)
    """
    id: str
    name: str
    event_type: str
    phases: Tuple[EventPhase, ...] = ()
    special_moments: Tuple[SpecialMoment, ...] = ()
    music_preferences: Tuple[str, ...] = ()
    venue: str = ""
    expected_attendees: int = 0
    start_time: Optional[str] = None
    end_time: Optional[str] = None

    def moment(self, moment_id: str) -> Optional[SpecialMoment]:
        for moment in self.special_moments:
            if moment.id == moment_id:
                return moment
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EventPlan":
        """
        Build a plan from a plain dict.

        Accepts the field names used here as well as the exported camelCase
        form (type, eventFlow, specialMoments, musicPreferences).

        Raises:
            ValueError: On a missing name or an invalid time
        """
        if not data.get("name"):
            raise ValueError("event plan needs a name")
        phases = tuple(
            EventPhase.from_dict(item, i)
            for i, item in enumerate(_get(data, "phases", "eventFlow", default=[]))
        )
        moments = tuple(
            SpecialMoment.from_dict(item, i)
            for i, item in enumerate(_get(data, "special_moments", "specialMoments", default=[]))
        )
        return cls(
            id=str(_get(data, "id", default=data["name"])),
            name=str(data["name"]),
            event_type=str(_get(data, "event_type", "eventType", "type", default="party")),
            phases=phases,
            special_moments=moments,
            music_preferences=tuple(_get(data, "music_preferences", "musicPreferences", default=[])),
            venue=str(data.get("venue", "")),
            expected_attendees=int(_get(data, "expected_attendees", "expectedAttendees", default=0)),
            start_time=_get(data, "start_time", "startTime"),
            end_time=_get(data, "end_time", "endTime"),
        )


def load_event_plan(path: str) -> EventPlan:
    """Load an EventPlan from a JSON file."""
    with open(Path(path), "r", encoding="utf-8") as f:
        plan = EventPlan.from_dict(json.load(f))
    logger.info(f"Loaded event plan '{plan.name}' ({len(plan.phases)} phases, {len(plan.special_moments)} moments)")
    return plan


def load_guest_list(path: str) -> List[VIPGuest]:
    """
    Load VIP guests from a JSON file.

    The file is a list of guest dicts, or an object with a "guests" list.
    """
    with open(Path(path), "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("guests", [])
    guests = [VIPGuest.from_dict(item) for item in data]
    logger.info(f"Loaded {len(guests)} VIP guests")
    return guests
