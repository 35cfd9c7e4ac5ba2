"""
Announcement text for eventdj.

Only the templating structure lives here: which template set applies to
which situation and which fields fill it. Producers pick text here and push
it into the AnnouncementQueue; they never speak directly.
"""

import random
from typing import Optional

from eventdj.dj_logic.event_plan import EventPlan, SpecialMoment, VIPGuest
from eventdj.music_logic.track import Track

DEFAULT_DJ_NAME = "your DJ"

MOOD_CHANGE_TEMPLATES = [
    "{dj} here! Feeling the {new} energy! Switching to {title}!",
    "The crowd wants {new} vibes! Here comes {title} by {artist}!",
    "{dj} reading the room... {new} mood detected! Playing {title}!",
    "Energy shift to {new}! Perfect time for {title}!",
    "{new} vibes incoming! Dropping {title} right now!",
    "Smooth transition to {new} mode with {title}! Let's go!",
]

# Used when the previous mood is known, so the shift can be named
MOOD_SHIFT_TEMPLATES = [
    "From {old} to {new}! {title} by {artist}, coming up!",
    "The room just went from {old} to {new}. Here's {title}!",
]

WELCOME_TEMPLATES = {
    "wedding": "Welcome to {name}! Love is in the air and we're here to celebrate!",
    "birthday": "Happy birthday celebration for {name}! Let's make this day unforgettable!",
    "corporate": "Welcome to {name}! Thank you for joining us at this special corporate gathering!",
    "party": "Welcome to {name}! Get ready for an incredible party experience!",
    "festival": "Welcome to {name} festival! The energy is electric and the music is about to begin!",
    "club": "Welcome to {name}! The night is young and the beats are calling!",
    "conference": "Welcome to {name}. We look forward to an enlightening and productive session.",
}

VIP_ROLE_TEMPLATES = {
    "bride": "Ladies and gentlemen, please welcome our beautiful bride, {name}!",
    "groom": "Everyone, let's give a warm welcome to our handsome groom, {name}!",
    "birthday_person": "The star of the show has arrived! Happy birthday to {name}!",
    "ceo": "Please join me in welcoming our CEO, {name}!",
    "guest_of_honor": "We have a very special guest with us tonight, {name}!",
    "speaker": "Our distinguished speaker {name} has joined us!",
}

MOMENT_TEMPLATES = {
    "entrance": "It's time for the grand entrance! Everyone please welcome our special guests!",
    "speech": "Ladies and gentlemen, we have a special speech coming up. Please give your attention!",
    "cake_cutting": "It's time for the moment we've all been waiting for, the cake cutting ceremony!",
    "first_dance": "Now for a very special moment, the first dance!",
    "toast": "Please raise your glasses for a special toast!",
    "surprise": "We have a wonderful surprise for everyone! Get ready!",
}


def mood_change_announcement(old_mood: Optional[str], new_mood: str, track: Track,
                             rng: Optional[random.Random] = None,
                             dj_name: str = DEFAULT_DJ_NAME) -> str:
    """
    Text for a mood-triggered track change.

    Args:
        old_mood: Mood acted on before (None on the first transition)
        new_mood: Mood being acted on now
        track: Incoming track
        rng: Random source (default: module random)
        dj_name: Name the DJ refers to itself by

    Returns:
        Announcement text
    """
    templates = MOOD_CHANGE_TEMPLATES
    if old_mood and old_mood.lower() != new_mood.lower():
        templates = MOOD_CHANGE_TEMPLATES + MOOD_SHIFT_TEMPLATES
    template = (rng or random).choice(templates)
    text = template.format(dj=dj_name, old=(old_mood or "").lower(), new=new_mood.lower(),
                           title=track.title, artist=track.artist)
    return text[0].upper() + text[1:]


def welcome_announcement(plan: Optional[EventPlan]) -> str:
    if plan is None:
        return "Welcome to this amazing event!"
    template = WELCOME_TEMPLATES.get(plan.event_type.lower(), "Welcome to {name}!")
    return template.format(name=plan.name)


def vip_announcement(guest: VIPGuest) -> str:
    """Personalized greeting if the guest has one, else the phrasing for their role."""
    if guest.personalized_greeting:
        return guest.personalized_greeting
    template = VIP_ROLE_TEMPLATES.get(guest.role.lower(), "Please welcome our special guest, {name}!")
    return template.format(name=guest.name)


def moment_announcement(moment: SpecialMoment) -> str:
    if moment.announcement_template:
        return moment.announcement_template
    return MOMENT_TEMPLATES.get(moment.moment_kind.lower(), f"It's time for {moment.description}!")
