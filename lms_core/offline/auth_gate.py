# =============================================================================
# lms_core/offline/auth_gate.py
# Session-token driven poller lifecycle
# =============================================================================
"""
AuthLifecycleGate - keeps the BackgroundPoller in step with the session.

- token present  -> poller RUNNING
- token absent   -> poller STOPPED

Token changes made in this process arrive through SessionContext callbacks.
Changes made by another process sharing the LocalStore (a second window
logging in or out) are picked up by a watcher thread that periodically
re-reads the persisted token. Duplicate signals are harmless: the poller's
start/stop are idempotent, so at most one poller ever runs.
"""

from __future__ import annotations
import threading
from typing import Optional
import logging

from lms_core.errors import safe_execute

logger = logging.getLogger(__name__)


class AuthLifecycleGate:
    """
    Drives the poller from session-token transitions.

    Usage:
        gate = AuthLifecycleGate(session, poller)
        gate.start()      # begins observing; starts the poller if logged in
        session.clear()   # poller stops
        gate.stop()
    """

    DEFAULT_WATCH_INTERVAL = 2.0  # seconds

    def __init__(self, session_context, poller, watch_interval: Optional[float] = DEFAULT_WATCH_INTERVAL):
        self.session_context = session_context
        self.poller = poller
        self.watch_interval = watch_interval

        self._lock = threading.RLock()
        self._active = False
        self._watch_thread: Optional[threading.Thread] = None
        self._stop_watching = threading.Event()

    @property
    def is_active(self) -> bool:
        return self._active

    def start(self) -> None:
        """Begin observing the session token."""
        with self._lock:
            if self._active:
                return
            self._active = True
            self.session_context.register_callback(self._on_token_change)
            self._stop_watching.clear()
            if self.watch_interval:
                self._watch_thread = threading.Thread(
                    target=self._watch_loop,
                    daemon=True,
                    name="AuthTokenWatcher",
                )
                self._watch_thread.start()

        logger.info("Auth lifecycle gate started")
        self.sync()

    def stop(self) -> None:
        """Stop observing and stop the poller."""
        with self._lock:
            if not self._active:
                return
            self._active = False
            self.session_context.unregister_callback(self._on_token_change)
            self._stop_watching.set()
            thread = self._watch_thread
            self._watch_thread = None

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5)
        self.poller.stop()
        logger.info("Auth lifecycle gate stopped")

    def sync(self) -> None:
        """Apply the current token state to the poller."""
        self._on_token_change(self.session_context.token)

    def check_external(self) -> bool:
        """Re-read the persisted token once; True if it changed."""
        return self.session_context.refresh()

    def _wants_poller(self) -> bool:
        with self._lock:
            return self._active and self.session_context.is_authenticated

    def _on_token_change(self, token: Optional[str]) -> None:
        if not self._active:
            return
        # Driven outside the gate lock: a new_activity listener may log out
        # while the poller lock is held. Loops until the poller matches the session.
        while True:
            wanted = self._wants_poller()
            if wanted:
                if self.poller.start():
                    logger.info("Session present, poller started")
            else:
                if self.poller.stop():
                    logger.info("Session ended, poller stopped")
            if self._wants_poller() == wanted:
                return

    def _watch_loop(self) -> None:
        """Background loop watching for token changes made by other processes."""
        while not self._stop_watching.wait(timeout=self.watch_interval):
            safe_execute(self.check_external, default=False, error_message="Error checking session token")
