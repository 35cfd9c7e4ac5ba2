"""
Announcement Buffer for eventdj.

Priority queue of pending AnnouncementRequests, ordered by
(priority rank, enqueued_at). Equal keys keep insertion order. Once popped,
a request is gone for good.
"""

import heapq
import itertools
import logging
import threading
from typing import List, Optional, Tuple

from eventdj.broadcast_core.announcement import AnnouncementRequest

logger = logging.getLogger(__name__)


class AnnouncementBuffer:
    """
    Thread-safe priority queue for AnnouncementRequests.

    Any thread may push; only the announcement processor pops.
    """

    def __init__(self):
        """Initialize the announcement buffer."""
        self._heap: List[Tuple[int, float, int, AnnouncementRequest]] = []
        self._seq = itertools.count()
        self._lock = threading.Lock()

    def push(self, request: AnnouncementRequest) -> None:
        """
        Add a request.

        Args:
            request: AnnouncementRequest to add
        """
        with self._lock:
            heapq.heappush(self._heap, (request.rank, request.enqueued_at, next(self._seq), request))
        logger.debug(f"Buffered: id={request.id}, priority={request.priority}, origin={request.origin}")

    def pop(self) -> Optional[AnnouncementRequest]:
        """
        Remove and return the highest-priority, oldest request.

        Returns:
            AnnouncementRequest, or None if the buffer is empty
        """
        with self._lock:
            if not self._heap:
                return None
            request = heapq.heappop(self._heap)[-1]
        logger.debug(f"Popped: id={request.id}, priority={request.priority}")
        return request

    def peek(self) -> Optional[AnnouncementRequest]:
        """Return the next request without removing it."""
        with self._lock:
            return self._heap[0][-1] if self._heap else None

    def empty(self) -> bool:
        with self._lock:
            return not self._heap

    def size(self) -> int:
        with self._lock:
            return len(self._heap)

    def clear(self) -> List[AnnouncementRequest]:
        """
        Drop every pending request.

        Returns:
            The dropped requests, in the order they would have been spoken
        """
        with self._lock:
            dropped = [entry[-1] for entry in sorted(self._heap)]
            self._heap.clear()
        if dropped:
            logger.debug(f"Buffer cleared ({len(dropped)} dropped)")
        return dropped

    def snapshot(self) -> List[AnnouncementRequest]:
        """Pending requests in speaking order (for status and debugging)."""
        with self._lock:
            return [entry[-1] for entry in sorted(self._heap)]

    def dump(self) -> List[str]:
        return [f"{r.priority}:{r.origin}:{r.id} {r.text[:40]!r}" for r in self.snapshot()]
