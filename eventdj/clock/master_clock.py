"""
Master Clock for eventdj.

Provides the single time source shared by every loop in a session: wall-clock
time for the event timeline and monotonic time for intervals, cooldowns and
suppression windows.
"""

import logging
import time
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)


class MasterClock:
    """
    Master timing service.

    Wall-clock time (now()) is used only where the event plan is authored in
    wall-clock terms (phases, special moments). Everything measured as a
    duration uses monotonic().
    """

    def now(self) -> datetime:
        """
        Get current wall-clock time.

        Returns:
            Current local datetime
        """
        return datetime.now()

    def monotonic(self) -> float:
        """
        Get a monotonic timestamp in seconds.

        Returns:
            Monotonic seconds (only differences are meaningful)
        """
        return time.monotonic()

    def minute_key(self, at: Optional[datetime] = None) -> str:
        """
        Format a wall-clock time as the "HH:MM" key used by event plans.

        Args:
            at: Time to format (default: now())

        Returns:
            Zero-padded "HH:MM" string
        """
        at = at or self.now()
        return f"{at.hour:02d}:{at.minute:02d}"
