# =============================================================================
# lms_core/offline/events.py
# Process-wide signals for UI collaborators
# =============================================================================
"""
EventBus - named, payload-free signals.

Two signals are raised by the core:

- ``new_activity``: the poller observed unread messages or notifications
- ``session_data_changed``: settings/profile data was updated locally
"""

from __future__ import annotations
import logging
import threading
from collections import defaultdict
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

NEW_ACTIVITY = "new_activity"
SESSION_DATA_CHANGED = "session_data_changed"

Listener = Callable[[], None]


class EventBus:
    """
    Thread-safe registry of listeners per signal name.

    Usage:
        events = EventBus()
        events.subscribe(NEW_ACTIVITY, refresh_badges)
        events.emit(NEW_ACTIVITY)
    """

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)
        self._counts: Dict[str, int] = defaultdict(int)
        self._lock = threading.Lock()

    def subscribe(self, name: str, listener: Listener) -> None:
        with self._lock:
            if listener not in self._listeners[name]:
                self._listeners[name].append(listener)

    def unsubscribe(self, name: str, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners[name]:
                self._listeners[name].remove(listener)

    def emit(self, name: str) -> None:
        """Call every listener of a signal; listener errors are logged, not raised."""
        with self._lock:
            listeners = list(self._listeners[name])
            self._counts[name] += 1
        logger.debug(f"Event '{name}' -> {len(listeners)} listener(s)")
        for listener in listeners:
            try:
                listener()
            except Exception as e:
                logger.error(f"Error in '{name}' listener: {e}")

    def emitted(self, name: str) -> int:
        """How many times a signal has been raised."""
        with self._lock:
            return self._counts[name]
