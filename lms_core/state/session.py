# =============================================================================
# lms_core/state/session.py
# Session token context
# =============================================================================
"""
SessionContext - the process-wide session token, passed explicitly.

The token is created at login and destroyed at logout. When a LocalStore is
given, the token is also persisted under ``session:token`` so that another
process sharing the same store file observes logins and logouts; ``refresh``
picks up such external changes.
"""

from __future__ import annotations
import hashlib
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

SESSION_KEY = "session:token"

TokenCallback = Callable[[Optional[str]], None]


class SessionContext:
    """
    Holder of the current session token and user record.

    Usage:
        session = SessionContext(store)
        session.register_callback(lambda token: print("token is now", token))
        session.set_token("abc", user={"id": 1, "role": "student"})
        session.clear()
    """

    def __init__(self, store=None):
        self._store = store
        self._lock = threading.RLock()
        self._token: Optional[str] = None
        self._user: Optional[Dict[str, Any]] = None
        self._callbacks: List[TokenCallback] = []

        if store is not None:
            self._token, self._user = self._read_persisted()

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return bool(self._token)

    @property
    def owner_id(self) -> Optional[str]:
        """
        Stable identity of the logged-in session.

        The user id when the user record carries one, otherwise a
        fingerprint of the token. None when logged out.
        """
        token, user = self._token, self._user
        if not token:
            return None
        if isinstance(user, dict) and user.get("id") is not None:
            return f"user:{user['id']}"
        return "token:" + hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]

    def set_token(self, token: str, user: Optional[Dict[str, Any]] = None) -> None:
        """Install a token (login)."""
        if not token:
            raise ValueError("token must be a non-empty string")
        with self._lock:
            changed = token != self._token
            self._token = token
            self._user = user
            if self._store is not None:
                self._store.set(SESSION_KEY, {"token": token, "user": user})
        if changed:
            logger.info("Session token set")
            self._notify_callbacks()

    def clear(self) -> None:
        """Destroy the token (logout)."""
        with self._lock:
            changed = self._token is not None
            self._token = None
            self._user = None
            if self._store is not None:
                self._store.delete(SESSION_KEY)
        if changed:
            logger.info("Session token cleared")
            self._notify_callbacks()

    def refresh(self) -> bool:
        """
        Re-read the persisted token.

        Returns:
            True if another process changed it since the last read
        """
        if self._store is None:
            return False
        with self._lock:
            token, user = self._read_persisted()
            if token == self._token:
                return False
            self._token = token
            self._user = user
        logger.info(f"Session token changed externally ({'login' if token else 'logout'})")
        self._notify_callbacks()
        return True

    def _read_persisted(self):
        data = self._store.get(SESSION_KEY)
        if not isinstance(data, dict) or not data.get("token"):
            return None, None
        return data["token"], data.get("user")

    def register_callback(self, callback: TokenCallback) -> None:
        """
        Register a callback for token changes.

        Args:
            callback: Function called with the new token (None after logout)
        """
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: TokenCallback) -> None:
        """Remove a registered callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        """Notify all registered callbacks of a token change."""
        token = self._token
        for callback in list(self._callbacks):
            try:
                callback(token)
            except Exception as e:
                logger.error(f"Error in session callback: {e}")
