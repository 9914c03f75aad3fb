# =============================================================================
# lms_core/offline/background_poller.py
# Periodic unread-activity check
# =============================================================================
"""
BackgroundPoller - a single repeating timer raising ``new_activity``.

State machine:

    STOPPED --start()--> RUNNING   one cycle immediately, then every interval
    RUNNING --stop()-->  STOPPED   no further cycles or events

Each Running period gets its own thread, stop event and generation number.
A cycle that finishes after ``stop()`` (or after the session token was
cleared) sees a stale generation and discards its result, so no event is
raised once the poller has stopped.
"""

from __future__ import annotations
import threading
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional
import logging

from lms_core.errors import ErrorContext, error_boundary
from lms_core.offline.events import NEW_ACTIVITY

logger = logging.getLogger(__name__)


class PollerState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class BackgroundPoller:
    """
    Auth-scoped activity poller.

    Usage:
        poller = BackgroundPoller(orchestrator, events, session_context=session)
        poller.start()   # no-op if already running
        poller.stop()    # no-op if already stopped
    """

    DEFAULT_INTERVAL = 30.0  # seconds

    def __init__(
        self,
        orchestrator,
        events,
        session_context=None,
        interval: float = DEFAULT_INTERVAL,
        retry_queue=None,
        sender: Optional[Callable[..., Any]] = None,
    ):
        self.orchestrator = orchestrator
        self.events = events
        self.session_context = session_context
        self.interval = interval
        self.retry_queue = retry_queue
        self.sender = sender

        self._lock = threading.RLock()
        self._state = PollerState.STOPPED
        self._generation = 0
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self.cycles = 0
        self.last_poll: Optional[Dict[str, Any]] = None

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is PollerState.RUNNING

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> bool:
        """
        Enter RUNNING and poll immediately.

        Returns:
            False if the poller was already running (no second timer is created)
        """
        with self._lock:
            if self._state is PollerState.RUNNING:
                logger.debug("Poller already running")
                return False

            self._generation += 1
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._poll_loop,
                args=(self._generation, self._stop_event),
                daemon=True,
                name=f"BackgroundPoller-{self._generation}",
            )
            self._state = PollerState.RUNNING
            self._thread.start()

        logger.info(f"Background poller started (every {self.interval}s)")
        return True

    def stop(self, wait: bool = False, timeout: Optional[float] = None) -> bool:
        """
        Enter STOPPED. An in-flight request is not aborted, its result is discarded.

        Args:
            wait: Block until the polling thread exits
            timeout: Upper bound for the wait

        Returns:
            False if the poller was already stopped
        """
        with self._lock:
            if self._state is PollerState.STOPPED:
                return False
            self._generation += 1
            self._state = PollerState.STOPPED
            self._stop_event.set()
            thread = self._thread

        logger.info("Background poller stopped")
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        return True

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the most recent polling thread to exit."""
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _poll_loop(self, generation: int, stop_event: threading.Event) -> None:
        """Background polling loop."""
        while not stop_event.is_set():
            self._cycle(generation)

            # Wait for interval or stop signal
            if stop_event.wait(timeout=self.interval):
                break

    # =========================================================================
    # POLL CYCLE
    # =========================================================================

    def _is_current(self, generation: int) -> bool:
        if generation != self._generation or self._state is not PollerState.RUNNING:
            return False
        if self.session_context is not None and not self.session_context.is_authenticated:
            return False
        return True

    def poll_once(self) -> bool:
        """Run one cycle for the current Running period (nothing happens when stopped)."""
        return self._cycle(self._generation)

    @error_boundary(default_return=None)
    def _read_counts(self):
        return (
            self.orchestrator.unread_count_with_status(),
            self.orchestrator.notification_count_with_status(),
        )

    def _cycle(self, generation: int) -> bool:
        """
        Replay queued writes, read the activity counts, raise the event.

        Returns:
            True if ``new_activity`` was raised
        """
        if not self._is_current(generation):
            return False

        if self.retry_queue is not None and self.sender is not None:
            with ErrorContext("Replaying queued mutations"):
                self.retry_queue.replay(self.sender)

        counts = self._read_counts()
        if counts is None:
            return False
        unread, notifications = counts

        self.cycles += 1
        # Locally computed fallbacks are not news
        observed = [r.count for r in (unread, notifications) if r.is_remote]
        if not observed:
            logger.debug("Poll cycle could not reach the server, waiting for next tick")
            return False

        with self._lock:
            if not self._is_current(generation):
                logger.debug("Discarding result of a poll cycle that outlived its session")
                return False

            self.last_poll = {
                "unread_messages": unread.count if unread.is_remote else None,
                "unread_notifications": notifications.count if notifications.is_remote else None,
                "at": datetime.now(),
            }
            if any(count > 0 for count in observed):
                # Raised under the lock so stop() cannot interleave with it
                self.events.emit(NEW_ACTIVITY)
                return True
        return False
