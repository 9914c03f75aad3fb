# =============================================================================
# lms_core/offline/connection_manager.py
# Connection Status Tracking
# =============================================================================
"""
ConnectionManager - tracks API reachability from request outcomes.

Features:
- Passive detection: the connector reports every success/failure
- Consecutive failure counting and last-online timestamp
- Event callbacks for status changes (e.g. an "offline mode" banner)
- Thread-safe
"""

from __future__ import annotations
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional
import logging

logger = logging.getLogger(__name__)


class ConnectionStatus(Enum):
    """Connection status states."""
    ONLINE = "online"           # Last request reached the server
    OFFLINE = "offline"         # Last request never reached the server
    UNKNOWN = "unknown"         # No request made yet


@dataclass
class ConnectionState:
    """Current connection state with metadata."""
    status: ConnectionStatus = ConnectionStatus.UNKNOWN
    last_check: Optional[datetime] = None
    last_online: Optional[datetime] = None
    consecutive_failures: int = 0
    error_message: Optional[str] = None


class ConnectionManager:
    """
    Connection status derived from the outcome of API requests.

    Usage:
        manager = ConnectionManager()
        connector = LmsConnector(config, connection=manager)
        if manager.is_offline:
            # show cached data banner
    """

    def __init__(self):
        self._state = ConnectionState()
        self._callbacks: List[Callable[[ConnectionState], None]] = []
        self._lock = threading.Lock()

    @property
    def state(self) -> ConnectionState:
        """Snapshot of the current connection state."""
        with self._lock:
            return replace(self._state)

    @property
    def status(self) -> ConnectionStatus:
        return self._state.status

    @property
    def is_online(self) -> bool:
        return self._state.status == ConnectionStatus.ONLINE

    @property
    def is_offline(self) -> bool:
        return self._state.status == ConnectionStatus.OFFLINE

    def record_success(self) -> None:
        """A request reached the server (any HTTP status)."""
        now = datetime.now()
        with self._lock:
            old_status = self._state.status
            self._state.status = ConnectionStatus.ONLINE
            self._state.last_check = now
            self._state.last_online = now
            self._state.consecutive_failures = 0
            self._state.error_message = None
        self._status_changed(old_status)

    def record_failure(self, error: Optional[str] = None) -> None:
        """A request never reached the server."""
        with self._lock:
            old_status = self._state.status
            self._state.status = ConnectionStatus.OFFLINE
            self._state.last_check = datetime.now()
            self._state.consecutive_failures += 1
            self._state.error_message = error
        self._status_changed(old_status)

    def _status_changed(self, old_status: ConnectionStatus) -> None:
        new_status = self._state.status
        if old_status != new_status:
            logger.info(f"Connection status changed: {old_status.value} -> {new_status.value}")
            self._notify_callbacks()

    def register_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """
        Register a callback for connection status changes.

        Args:
            callback: Function called with ConnectionState when status changes
        """
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """Remove a registered callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        """Notify all registered callbacks of status change."""
        state = self.state
        for callback in list(self._callbacks):
            try:
                callback(state)
            except Exception as e:
                logger.error(f"Error in connection callback: {e}")

    def get_status_display(self) -> dict:
        """Get status information for UI display."""
        state = self.state
        return {
            "status": state.status.value,
            "is_online": state.status == ConnectionStatus.ONLINE,
            "last_check": state.last_check.isoformat() if state.last_check else None,
            "last_online": state.last_online.isoformat() if state.last_online else None,
            "failures": state.consecutive_failures,
            "error": state.error_message,
        }
