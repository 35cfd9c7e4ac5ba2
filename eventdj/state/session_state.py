"""
Session State Manager

Provides the single degraded-state indicator surfaced to the application.
Collaborator failures never stop a session; they show up here instead,
and clear again when the collaborator recovers.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)


SESSION_STATE_IDLE = "IDLE"
SESSION_STATE_RUNNING = "RUNNING"
SESSION_STATE_DEGRADED = "DEGRADED"
SESSION_STATE_STOPPED = "STOPPED"

ALLOWED_STATES = {
    SESSION_STATE_IDLE,
    SESSION_STATE_RUNNING,
    SESSION_STATE_DEGRADED,
    SESSION_STATE_STOPPED,
}


@dataclass(frozen=True)
class SessionState:
    """
    Immutable session status snapshot.

    Attributes:
        session_state: One of ALLOWED_STATES
        since: Monotonic time the state was entered
        degraded_reason: Human-readable summary when DEGRADED, else None
    """
    session_state: str
    since: float
    degraded_reason: Optional[str] = None


class SessionStateManager:
    """
    Manages SessionState.

    Components report problems per source ("vision", "speech", ...). The
    session is DEGRADED while any source has an open problem. Only changes
    of the summarised state reach listeners.
    """

    def __init__(self):
        """Initialize state manager."""
        self._lock = threading.RLock()
        self._problems: Dict[str, str] = {}
        self._running = False
        self._state = SessionState(session_state=SESSION_STATE_IDLE, since=time.monotonic())
        self._listeners = []

    def on_started(self) -> None:
        with self._lock:
            self._running = True
            self._problems.clear()
            self._update()

    def on_stopped(self) -> None:
        with self._lock:
            self._running = False
            self._update()

    def mark_degraded(self, source: str, reason: str) -> None:
        """
        Record an open problem for a source.

        Args:
            source: Component or collaborator name
            reason: Short description of the failure
        """
        with self._lock:
            if self._problems.get(source) == reason:
                return
            self._problems[source] = reason
            self._update()

    def mark_healthy(self, source: str) -> None:
        """Clear the open problem for a source, if any."""
        with self._lock:
            if self._problems.pop(source, None) is not None:
                self._update()

    def get_state(self) -> SessionState:
        with self._lock:
            return self._state

    def is_degraded(self) -> bool:
        return self.get_state().session_state == SESSION_STATE_DEGRADED

    def add_listener(self, callback) -> None:
        """
        Add a listener callback for state changes.

        Callback will be called with (state: SessionState).
        """
        with self._lock:
            self._listeners.append(callback)

    def _update(self) -> None:
        if not self._running:
            new_name = SESSION_STATE_STOPPED if self._state.session_state != SESSION_STATE_IDLE else SESSION_STATE_IDLE
            reason = None
        elif self._problems:
            new_name = SESSION_STATE_DEGRADED
            reason = "; ".join(f"{source}: {msg}" for source, msg in sorted(self._problems.items()))
        else:
            new_name = SESSION_STATE_RUNNING
            reason = None

        if new_name == self._state.session_state and reason == self._state.degraded_reason:
            return

        old_name = self._state.session_state
        self._state = SessionState(session_state=new_name, since=time.monotonic(), degraded_reason=reason)
        if new_name != old_name:
            logger.info(f"[SESSION] {old_name} → {new_name}" + (f" ({reason})" if reason else ""))
        else:
            logger.info(f"[SESSION] {new_name} ({reason})")
        self._notify_listeners(self._state)

    def _notify_listeners(self, state: SessionState) -> None:
        for callback in list(self._listeners):
            try:
                callback(state)
            except Exception as e:
                logger.error(f"[SESSION] Listener callback error: {e}", exc_info=True)
