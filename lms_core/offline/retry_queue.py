# =============================================================================
# lms_core/offline/retry_queue.py
# Bounded queue of best-effort mutations awaiting the server
# =============================================================================
"""
RetryQueue - persisted list of best-effort mutations the server has not
accepted yet.

Entries live under ``lms:sync_queue`` in the LocalStore, so they survive a
restart. The queue keeps at most ``max_size`` entries (oldest dropped) and
gives up on an entry after ``max_attempts`` failed sends. Replaying an entry
only re-sends the request; the local patch was applied when it was queued.

Each entry records the session that queued it. Entries owned by another
session (a different user logged in since) are dropped instead of being
sent with the wrong bearer token.
"""

from __future__ import annotations
import threading
import uuid
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import logging

from lms_core.errors import LmsError, NetworkUnavailableError
from lms_core.offline.local_store import LocalStore

logger = logging.getLogger(__name__)

QUEUE_KEY = "lms:sync_queue"

Sender = Callable[[str, str, Optional[Dict[str, Any]]], Any]


@dataclass
class QueuedMutation:
    """A request to re-send."""
    id: str
    operation: str
    method: str
    endpoint: str
    body: Optional[Dict[str, Any]] = None
    attempts: int = 0
    created_at: Optional[str] = None
    last_attempt: Optional[str] = None
    error_message: Optional[str] = None
    owner: Optional[str] = None


class RetryQueue:
    """
    Bounded, persisted retry queue.

    Usage:
        queue = RetryQueue(store, max_size=100, max_attempts=5, session_context=session)
        queue.enqueue("send_message", "POST", "api/messages/conversations/1/messages", body)
        queue.replay(connector.send)
    """

    def __init__(
        self,
        store: LocalStore,
        max_size: int = 100,
        max_attempts: int = 5,
        session_context=None,
    ):
        self.store = store
        self.max_size = max_size
        self.max_attempts = max_attempts
        self.session_context = session_context
        self._lock = threading.RLock()

    def _load(self) -> List[QueuedMutation]:
        data = self.store.get(QUEUE_KEY, default=[])
        if not isinstance(data, list):
            logger.warning("Discarding unreadable retry queue")
            return []
        entries = []
        for item in data:
            try:
                entries.append(QueuedMutation(**item))
            except TypeError as e:
                logger.warning(f"Dropping unreadable queue entry: {e}")
        return entries

    def _save(self, entries: List[QueuedMutation]) -> None:
        self.store.set(QUEUE_KEY, [asdict(entry) for entry in entries])

    def pending(self) -> List[QueuedMutation]:
        with self._lock:
            return self._load()

    def __len__(self) -> int:
        return len(self.pending())

    def enqueue(
        self,
        operation: str,
        method: str,
        endpoint: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> QueuedMutation:
        """Add a request; drops the oldest entries beyond max_size."""
        entry = QueuedMutation(
            id=uuid.uuid4().hex,
            operation=operation,
            method=method,
            endpoint=endpoint,
            body=body,
            created_at=datetime.now().isoformat(),
            owner=self._current_owner(),
        )
        with self._lock:
            entries = self._load()
            entries.append(entry)
            overflow = len(entries) - self.max_size
            if overflow > 0:
                dropped = entries[:overflow]
                entries = entries[overflow:]
                for old in dropped:
                    logger.warning(f"Retry queue full, dropping {old.operation} queued at {old.created_at}")
            self._save(entries)
        logger.info(f"Queued {operation} for retry ({method} {endpoint})")
        return entry

    def _current_owner(self) -> Optional[str]:
        if self.session_context is None:
            return None
        return self.session_context.owner_id

    def clear(self) -> None:
        with self._lock:
            self.store.delete(QUEUE_KEY)

    def replay(self, send: Sender) -> Dict[str, int]:
        """
        Re-send queued requests in order.

        Stops at the first network failure; the remaining entries wait for
        the next replay without an attempt being counted.

        Args:
            send: Callable(method, endpoint, body) raising LmsError on failure

        Returns:
            Counts of synced, failed and dropped entries
        """
        stats = {"synced": 0, "failed": 0, "dropped": 0}
        snapshot = self.pending()
        if not snapshot:
            return stats

        logger.info(f"Replaying {len(snapshot)} queued mutation(s)")
        synced_ids = set()
        foreign_ids = set()
        attempted: Dict[str, QueuedMutation] = {}

        for entry in snapshot:
            # Checked per entry: the session may change while replaying
            if entry.owner != self._current_owner():
                logger.warning(f"Dropping {entry.operation} queued by another session")
                foreign_ids.add(entry.id)
                continue

            entry.last_attempt = datetime.now().isoformat()
            try:
                send(entry.method, entry.endpoint, entry.body)
                synced_ids.add(entry.id)
                stats["synced"] += 1
                continue
            except LmsError as e:
                entry.attempts += 1
                entry.error_message = e.message
                attempted[entry.id] = entry
                stats["failed"] += 1
                logger.debug(f"Replay of {entry.operation} failed ({entry.attempts}): {e}")
                if isinstance(e, NetworkUnavailableError):
                    break

        with self._lock:
            # Entries enqueued while replaying are kept untouched
            remaining = []
            for entry in self._load():
                if entry.id in synced_ids:
                    continue
                if entry.id in foreign_ids:
                    stats["dropped"] += 1
                    continue
                updated = attempted.get(entry.id, entry)
                if updated.attempts >= self.max_attempts:
                    logger.warning(
                        f"Giving up on {updated.operation} after {updated.attempts} attempt(s): "
                        f"{updated.error_message}"
                    )
                    stats["dropped"] += 1
                    continue
                remaining.append(updated)
            self._save(remaining)

        logger.info(
            f"Replay complete: {stats['synced']} synced, {stats['failed']} failed, "
            f"{stats['dropped']} dropped"
        )
        return stats
