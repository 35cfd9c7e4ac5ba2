"""
Announcement request model for eventdj.

Every producer (mood transitions, the event timeline, VIP recognition, the
application) describes what it wants said as an AnnouncementRequest and
pushes it into the AnnouncementQueue. Producers own nothing about delivery
order.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Literal

Priority = Literal["immediate", "high", "medium", "low"]
Origin = Literal["ai", "vip", "system", "manual"]

PRIORITY_IMMEDIATE = "immediate"
PRIORITY_HIGH = "high"
PRIORITY_MEDIUM = "medium"
PRIORITY_LOW = "low"

ORIGIN_AI = "ai"
ORIGIN_VIP = "vip"
ORIGIN_SYSTEM = "system"
ORIGIN_MANUAL = "manual"

# Lower rank is spoken first
PRIORITY_RANK: Dict[str, int] = {
    PRIORITY_IMMEDIATE: 0,
    PRIORITY_HIGH: 1,
    PRIORITY_MEDIUM: 2,
    PRIORITY_LOW: 3,
}

ALLOWED_ORIGINS = {ORIGIN_AI, ORIGIN_VIP, ORIGIN_SYSTEM, ORIGIN_MANUAL}


@dataclass(frozen=True)
class AnnouncementRequest:
    """
    One thing to be said.

    Attributes:
        text: Text to speak
        priority: immediate/high/medium/low
        origin: ai/vip/system/manual
        enqueued_at: Monotonic time the request was enqueued
        id: Unique request id
    """
    text: str
    priority: Priority
    origin: Origin
    enqueued_at: float
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self):
        if self.priority not in PRIORITY_RANK:
            raise ValueError(f"unknown announcement priority: {self.priority!r}")
        if self.origin not in ALLOWED_ORIGINS:
            raise ValueError(f"unknown announcement origin: {self.origin!r}")

    @property
    def rank(self) -> int:
        return PRIORITY_RANK[self.priority]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "priority": self.priority,
            "origin": self.origin,
            "enqueued_at": self.enqueued_at,
        }
