# =============================================================================
# lms_core/offline/sync_orchestrator.py
# Cache-aside read path
# =============================================================================
"""
SyncOrchestrator - the single read API used by UI code and the poller.

For every resource kind:
- Remote call succeeds: map the payload, replace the stored collection, return it
- Remote call fails for any reason: log it, return the stored collection
  (or the documented seed before the first successful fetch)

No exception ever propagates out of a read.

Usage:
------
orchestrator = SyncOrchestrator(connector, store)
courses = orchestrator.fetch_courses()
result = orchestrator.fetch_with_status(ResourceKind.GRADES)
print(result.source)  # "remote", "cache" or "seed"
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from lms_core.errors import LmsError
from lms_core.models.entities import (
    Announcement,
    Assignment,
    ClassSession,
    Contact,
    Conversation,
    Course,
    Entity,
    Grade,
    Message,
    Notification,
    ResourceKind,
    Settings,
    Student,
)
from lms_core.offline.adapters import (
    SOURCE_REMOTE,
    SOURCE_SEED,
    ResourceAdapter,
    build_adapters,
)
from lms_core.offline.local_store import LocalStore

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of one read, with where the data came from."""
    kind: ResourceKind
    items: List[Entity]
    source: str
    scope: Optional[Any] = None
    error: Optional[Exception] = None

    @property
    def is_remote(self) -> bool:
        return self.source == SOURCE_REMOTE


@dataclass
class CountResult:
    """Outcome of an activity-count read."""
    count: int
    source: str
    error: Optional[Exception] = None

    @property
    def is_remote(self) -> bool:
        return self.source == SOURCE_REMOTE


class SyncOrchestrator:
    """
    Cache-aside engine over the resource adapters.

    Concurrent fetches of the same kind may race; each ends in a single
    whole-collection write, so the last writer wins and readers never see a
    partial snapshot.
    """

    def __init__(
        self,
        connector,
        store: LocalStore,
        adapters: Optional[Dict[ResourceKind, ResourceAdapter]] = None,
    ):
        self.connector = connector
        self.store = store
        self.adapters = adapters or build_adapters(store)

    def adapter(self, kind: ResourceKind) -> ResourceAdapter:
        return self.adapters[kind]

    # =========================================================================
    # GENERIC READ PATH
    # =========================================================================

    def fetch_with_status(
        self,
        kind: ResourceKind,
        scope: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> SyncResult:
        """
        Fetch a collection and report its source.

        Args:
            kind: Resource kind
            scope: Narrowing value (course id, conversation id, search query)
            params: Extra query parameters for the remote call

        Returns:
            SyncResult; never raises
        """
        adapter = self.adapter(kind)
        label = adapter.key(scope)

        try:
            raw = self.connector.fetch(kind, scope, params)
            items = adapter.map(raw)
            adapter.write_cache(items, scope)
            logger.debug(f"Fetched {len(items)} record(s) for {label}")
            return SyncResult(kind, items, SOURCE_REMOTE, scope)
        except LmsError as e:
            logger.warning(f"Fetch failed for {label}, serving local copy: {e}")
            error: Exception = e
        except Exception as e:
            logger.warning(f"Unexpected error fetching {label}, serving local copy: {e}", exc_info=True)
            error = e

        try:
            items, source = adapter.read_cache_with_source(scope)
        except Exception as e:
            logger.error(f"Local store unreadable for {label}, serving seed: {e}")
            items, source = adapter.seed(scope), SOURCE_SEED
        return SyncResult(kind, items, source, scope, error)

    def fetch(
        self,
        kind: ResourceKind,
        scope: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> List[Entity]:
        """Fetch a collection; falls back to the local copy on any failure."""
        return self.fetch_with_status(kind, scope, params).items

    def read_cached(self, kind: ResourceKind, scope: Optional[Any] = None) -> List[Entity]:
        """Local copy only, without a remote call."""
        return self.adapter(kind).read_cache(scope)

    def last_synced(self, kind: ResourceKind, scope: Optional[Any] = None) -> Optional[datetime]:
        """When the collection was last written, or None if it never was."""
        return self.adapter(kind).last_updated(scope)

    # =========================================================================
    # TYPED READS
    # =========================================================================

    def fetch_courses(self) -> List[Course]:
        return self.fetch(ResourceKind.COURSES)

    def fetch_assignments(self, course_id: Optional[Any] = None) -> List[Assignment]:
        """All assignments, or those of one course."""
        return self.fetch(ResourceKind.ASSIGNMENTS, course_id)

    def fetch_grades(self) -> List[Grade]:
        return self.fetch(ResourceKind.GRADES)

    def fetch_schedule(self, course_id: Optional[Any] = None) -> List[ClassSession]:
        return self.fetch(ResourceKind.SCHEDULE, course_id)

    def fetch_contacts(self, query: Optional[str] = None) -> List[Contact]:
        """User directory, optionally filtered by a search query."""
        return self.fetch(ResourceKind.CONTACTS, query or None)

    def fetch_conversations(self) -> List[Conversation]:
        return self.fetch(ResourceKind.CONVERSATIONS)

    def fetch_messages(self, conversation_id: Any) -> List[Message]:
        """Messages of one conversation in chronological order."""
        return self.fetch(ResourceKind.MESSAGES, conversation_id)

    def fetch_announcements(self) -> List[Announcement]:
        return self.fetch(ResourceKind.ANNOUNCEMENTS)

    def fetch_settings(self) -> Settings:
        items = self.fetch(ResourceKind.SETTINGS)
        return items[0] if items else Settings(id=0)

    def fetch_notifications(self) -> List[Notification]:
        return self.fetch(ResourceKind.NOTIFICATIONS)

    def fetch_students(self) -> List[Student]:
        return self.fetch(ResourceKind.STUDENTS)

    # =========================================================================
    # ACTIVITY COUNTS
    # =========================================================================

    def unread_count_with_status(self) -> CountResult:
        """Unread messages; falls back to the stored conversations."""
        try:
            return CountResult(self.connector.fetch_unread_count(), SOURCE_REMOTE)
        except Exception as e:
            logger.warning(f"Unread count unavailable, computing from local copy: {e}")
            conversations, source = self.adapter(ResourceKind.CONVERSATIONS).read_cache_with_source()
            return CountResult(sum(c.unread_count for c in conversations), source, e)

    def notification_count_with_status(self) -> CountResult:
        """Unread notifications; falls back to the stored notifications."""
        try:
            return CountResult(self.connector.fetch_notification_count(), SOURCE_REMOTE)
        except Exception as e:
            logger.warning(f"Notification count unavailable, computing from local copy: {e}")
            notifications, source = self.adapter(ResourceKind.NOTIFICATIONS).read_cache_with_source()
            return CountResult(sum(1 for n in notifications if not n.is_read), source, e)

    def fetch_unread_count(self) -> int:
        return self.unread_count_with_status().count

    def fetch_notification_count(self) -> int:
        return self.notification_count_with_status().count

    def get_status(self) -> Dict[str, Any]:
        """Stored collections and when each was last written."""
        df = self.store.to_dataframe(prefix="lms:")
        return {
            "collections": len(df),
            "last_write": df["updated_at"].max().isoformat() if not df.empty else None,
            "keys": df["key"].tolist(),
        }
