# =============================================================================
# lms_core/offline/adapters.py
# Resource Cache Adapters
# =============================================================================
"""
One adapter per resource kind. An adapter:

- maps a raw API payload onto entities with its ``FieldMap``
- reads and replaces its slice of the LocalStore
- computes the fallback served when the remote call fails

Adapters never touch the network.
"""

from __future__ import annotations
import copy
import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type

from lms_core.errors import MalformedResponseError
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
from lms_core.offline.local_store import LocalStore
from lms_core.offline.mapping import (
    FieldMap,
    FieldSpec,
    as_bool,
    as_float,
    as_id,
    as_int,
    as_int_list,
    as_str,
    attachment_from,
    chronological,
    nested,
    nested_list,
    unwrap_records,
)
from lms_core.offline.seeds import seed_records

logger = logging.getLogger(__name__)

KEY_PREFIX = "lms:"

SOURCE_REMOTE = "remote"
SOURCE_CACHE = "cache"
SOURCE_SEED = "seed"


def storage_key(kind: ResourceKind, scope: Optional[Any] = None) -> str:
    """``lms:<kind>`` or ``lms:<kind>:<scope>``."""
    key = f"{KEY_PREFIX}{kind.value}"
    if scope is not None:
        key = f"{key}:{scope}"
    return key


# =============================================================================
# FIELD MAPS
# =============================================================================

_ATTACHMENT = attachment_from(
    url_keys=("attachment_url", "attachmentUrl"),
    type_keys=("attachment_type", "attachmentType"),
)


def _announcement_important(raw: Mapping[str, Any]) -> Any:
    # Older servers only send the audience; student-wide notices count as important
    if raw.get("important") is not None:
        return raw["important"]
    target = raw.get("target")
    if target is None:
        return None
    return target in ("all", "students")


COURSE_FIELDS = FieldMap(
    FieldSpec("id", convert=as_id),
    FieldSpec("code", aliases=("course_code", "courseCode"), default="", convert=as_str),
    FieldSpec("title", aliases=("name", "course_name", "courseName"), default="", convert=as_str),
    FieldSpec("description", default="", convert=as_str),
    FieldSpec("instructor", aliases=("instructor_name", "instructorName"), default="", convert=as_str),
    FieldSpec("schedule", default="", convert=as_str),
    FieldSpec("campus", default="", convert=as_str),
    FieldSpec("credits", default=0, convert=as_int),
    FieldSpec("category", default="", convert=as_str),
    FieldSpec("image", aliases=("image_url", "imageUrl"), default="", convert=as_str),
    FieldSpec("rating", default=0.0, convert=as_float),
    FieldSpec("enrolled", aliases=("is_enrolled", "isEnrolled"), default=False, convert=as_bool),
    FieldSpec("progress", default=0, convert=as_int),
    FieldSpec("color", default="#1976d2", convert=as_str),
    FieldSpec("status", default="active", convert=as_str),
)

ASSIGNMENT_FIELDS = FieldMap(
    FieldSpec("id", convert=as_id),
    FieldSpec("title", default="", convert=as_str),
    FieldSpec("course_id", aliases=("courseId", "course.id"), convert=as_int),
    FieldSpec("course_name", aliases=("courseName", "course.title"), default="", convert=as_str),
    FieldSpec("course_code", aliases=("courseCode", "course.code"), default="", convert=as_str),
    FieldSpec("due_date", aliases=("dueDate",), convert=as_str),
    FieldSpec("status", default="pending", convert=as_str),
    FieldSpec("description", default="", convert=as_str),
    FieldSpec("instructions", default="", convert=as_str),
    FieldSpec("max_points", aliases=("maxPoints", "points"), default=100, convert=as_int),
    FieldSpec("score", aliases=("grade", "submission.grade"), convert=as_float),
    FieldSpec("feedback", aliases=("submission.feedback",), convert=as_str),
    FieldSpec(
        "submission_file",
        aliases=("submissionFile", "file_url", "submission.file_url"),
        convert=as_str,
    ),
    FieldSpec(
        "submission_date",
        aliases=("submissionDate", "submitted_at", "submission.submitted_at"),
        convert=as_str,
    ),
    FieldSpec(
        "submission_text",
        aliases=("submissionText", "submission.submission_text"),
        convert=as_str,
    ),
    FieldSpec("submission_id", aliases=("submissionId", "submission.id"), convert=as_int),
    FieldSpec("instructor_name", aliases=("instructorName",), default="", convert=as_str),
    FieldSpec("attachment", extract=_ATTACHMENT),
)

GRADE_COURSE_FIELDS = FieldMap(
    FieldSpec("id", convert=as_id),
    FieldSpec("code", aliases=("course_code",), default="", convert=as_str),
    FieldSpec("title", aliases=("name",), default="", convert=as_str),
    FieldSpec("credits", default=0, convert=as_int),
    FieldSpec("color", default="#1976d2", convert=as_str),
)

GRADE_ITEM_FIELDS = FieldMap(
    FieldSpec("name", aliases=("title",), default="", convert=as_str),
    FieldSpec("score", convert=as_float),
    FieldSpec("total", aliases=("max_points", "maxPoints"), default=100, convert=as_float),
    FieldSpec("weight", default=0, convert=as_float),
)

GRADE_FIELDS = FieldMap(
    FieldSpec("id", convert=as_id),
    FieldSpec("course", convert=nested(GRADE_COURSE_FIELDS)),
    FieldSpec("assignments", aliases=("items",), default=[], convert=nested_list(GRADE_ITEM_FIELDS)),
    FieldSpec("final_grade", aliases=("finalGrade",), convert=as_float),
    FieldSpec("term", default="", convert=as_str),
)

SCHEDULE_FIELDS = FieldMap(
    FieldSpec("id", convert=as_id),
    FieldSpec("course_id", aliases=("courseId", "course.id"), convert=as_int),
    FieldSpec("course_name", aliases=("courseName", "course.title"), default="", convert=as_str),
    FieldSpec("course_code", aliases=("courseCode", "course.code"), default="", convert=as_str),
    FieldSpec("date", aliases=("session_date", "sessionDate"), convert=as_str),
    FieldSpec("time", default="", convert=as_str),
    FieldSpec("location", aliases=("room",), default="", convert=as_str),
    FieldSpec("instructor", aliases=("instructor_name", "instructorName"), default="", convert=as_str),
    FieldSpec("type", aliases=("session_type", "sessionType"), default="lecture", convert=as_str),
    FieldSpec("status", default="upcoming", convert=as_str),
    FieldSpec("meeting_link", aliases=("meetingLink",), convert=as_str),
    FieldSpec("attended", convert=as_bool),
    FieldSpec("color", default="#1976d2", convert=as_str),
)

CONTACT_FIELDS = FieldMap(
    FieldSpec("id", convert=as_id),
    FieldSpec("full_name", aliases=("fullName", "name"), default="", convert=as_str),
    FieldSpec("email", default="", convert=as_str),
    FieldSpec("role", default="student", convert=as_str),
    FieldSpec("profile_image", aliases=("profileImage",), convert=as_str),
    FieldSpec("campus", convert=as_str),
    FieldSpec("status", default="offline", convert=as_str),
    FieldSpec("last_active", aliases=("lastActive",), convert=as_str),
)

MESSAGE_FIELDS = FieldMap(
    FieldSpec("id", convert=as_id),
    FieldSpec("conversation_id", aliases=("conversationId",), convert=as_id),
    FieldSpec("sender_id", aliases=("senderId", "sender.id"), convert=as_int),
    FieldSpec("sender_name", aliases=("senderName", "sender.fullName"), default="", convert=as_str),
    FieldSpec("sender_profile_image", aliases=("senderProfileImage",), convert=as_str),
    FieldSpec("content", default="", convert=as_str),
    FieldSpec("attachment", extract=_ATTACHMENT),
    FieldSpec("created_at", aliases=("createdAt",), convert=as_str),
    FieldSpec("updated_at", aliases=("updatedAt",), convert=as_str),
    FieldSpec("read_by", aliases=("readBy",), default=[], convert=as_int_list),
)

CONVERSATION_FIELDS = FieldMap(
    FieldSpec("id", convert=as_id),
    FieldSpec("title", convert=as_str),
    FieldSpec("type", default="direct", convert=as_str),
    FieldSpec("unread_count", aliases=("unreadCount",), default=0, convert=as_int),
    FieldSpec("last_message", aliases=("lastMessage",), convert=nested(MESSAGE_FIELDS)),
    FieldSpec("participants", default=[], convert=nested_list(CONTACT_FIELDS)),
    FieldSpec("other_participant", aliases=("otherParticipant",), convert=nested(CONTACT_FIELDS)),
    FieldSpec("created_at", aliases=("createdAt",), convert=as_str),
    FieldSpec("updated_at", aliases=("updatedAt",), convert=as_str),
)

ANNOUNCEMENT_FIELDS = FieldMap(
    FieldSpec("id", convert=as_id),
    FieldSpec("title", default="", convert=as_str),
    FieldSpec("content", default="", convert=as_str),
    FieldSpec("date", aliases=("created_at", "createdAt"), convert=as_str),
    FieldSpec("author", aliases=("author_name", "authorName"), default="Administrator", convert=as_str),
    FieldSpec("campus", default="All Campuses", convert=as_str),
    FieldSpec("important", default=False, convert=as_bool, extract=_announcement_important),
    FieldSpec("read", aliases=("is_read", "isRead"), default=False, convert=as_bool),
)

NOTIFICATION_FIELDS = FieldMap(
    FieldSpec("id", convert=as_id),
    FieldSpec("title", default="", convert=as_str),
    FieldSpec("message", aliases=("content", "body"), default="", convert=as_str),
    FieldSpec("type", default="system", convert=as_str),
    FieldSpec("related_id", aliases=("relatedId",), convert=as_int),
    FieldSpec("is_read", aliases=("isRead", "read"), default=False, convert=as_bool),
    FieldSpec("created_at", aliases=("createdAt",), convert=as_str),
)

SETTINGS_FIELDS = FieldMap(
    FieldSpec("id", default=0, convert=as_id),
    FieldSpec("user_id", aliases=("userId",), convert=as_int),
    FieldSpec("first_name", aliases=("firstName",), default="", convert=as_str),
    FieldSpec("last_name", aliases=("lastName",), default="", convert=as_str),
    FieldSpec("email", default="", convert=as_str),
    FieldSpec("phone", default="", convert=as_str),
    FieldSpec("campus", default="", convert=as_str),
    FieldSpec("theme", default="dark", convert=as_str),
    FieldSpec("language", default="English", convert=as_str),
    FieldSpec("email_notifications", aliases=("emailNotifications",), default=True, convert=as_bool),
    FieldSpec("push_notifications", aliases=("pushNotifications",), default=True, convert=as_bool),
    FieldSpec(
        "assignment_notifications",
        aliases=("assignmentNotifications",),
        default=True,
        convert=as_bool,
    ),
    FieldSpec(
        "message_notifications",
        aliases=("messageNotifications",),
        default=True,
        convert=as_bool,
    ),
    FieldSpec(
        "announcement_notifications",
        aliases=("announcementNotifications",),
        default=True,
        convert=as_bool,
    ),
    FieldSpec("profile_visibility", aliases=("profileVisibility",), default=True, convert=as_bool),
    FieldSpec("show_online_status", aliases=("showOnlineStatus",), default=True, convert=as_bool),
    FieldSpec("show_last_seen", aliases=("showLastSeen",), default=True, convert=as_bool),
    FieldSpec("profile_picture", aliases=("profilePicture", "profileImage"), convert=as_str),
    FieldSpec("student_id", aliases=("studentId",), convert=as_int),
)

STUDENT_FIELDS = FieldMap(
    FieldSpec("id", convert=as_id),
    FieldSpec("full_name", aliases=("fullName",), default="", convert=as_str),
    FieldSpec("first_name", aliases=("firstName",), default="", convert=as_str),
    FieldSpec("last_name", aliases=("lastName",), default="", convert=as_str),
    FieldSpec("email", default="", convert=as_str),
    FieldSpec("campus", default="", convert=as_str),
    FieldSpec("profile_image", aliases=("profileImage", "profilePicture"), convert=as_str),
    FieldSpec("status", default="active", convert=as_str),
    FieldSpec("progress", default=0, convert=as_int),
    FieldSpec("grade", convert=as_str),
    FieldSpec("student_id", aliases=("studentId",), convert=as_str),
)


# =============================================================================
# ADAPTERS
# =============================================================================

class ResourceAdapter:
    """
    Mapping and storage for one resource kind.

    Subclasses set ``kind``, ``entity_type`` and ``fields`` and may override
    ``cached`` / ``matches_scope`` for scoped collections.
    """

    kind: ResourceKind
    entity_type: Type[Entity]
    fields: FieldMap

    def __init__(self, store: LocalStore):
        self.store = store

    def key(self, scope: Optional[Any] = None) -> str:
        return storage_key(self.kind, scope)

    # -------------------------------------------------------------------------
    # Mapping
    # -------------------------------------------------------------------------

    def map(self, raw: Any) -> List[Entity]:
        """
        Convert a raw API payload into entities.

        Raises:
            MalformedResponseError: payload or a record has an unexpected shape
        """
        records = unwrap_records(raw, self.kind.value)
        mapped = [self._map_record(record) for record in records]
        return [self._build(record) for record in self._order(mapped)]

    def _map_record(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        data = self.fields.apply(record)
        if data.get("id") is None:
            raise MalformedResponseError(
                f"{self.kind.value} record without id",
                resource=self.kind.value,
                expected="id",
                actual="missing",
            )
        return data

    def _order(self, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return records

    def _build(self, data: Dict[str, Any]) -> Entity:
        try:
            return self.entity_type.from_dict(data)
        except (TypeError, ValueError) as e:
            raise MalformedResponseError(
                f"Cannot build {self.entity_type.__name__}",
                resource=self.kind.value,
                expected=self.entity_type.__name__,
                actual=repr(e),
            )

    # -------------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------------

    def cached(self, scope: Optional[Any] = None) -> Optional[List[Entity]]:
        """Last stored snapshot, or None if there is none (or it is unreadable)."""
        return self._load(self.key(scope))

    def _load(self, key: str) -> Optional[List[Entity]]:
        data = self.store.get(key)
        if data is None:
            return None
        if not isinstance(data, list):
            logger.warning(f"Ignoring non-list snapshot under '{key}'")
            return None
        try:
            return [self.entity_type.from_dict(item) for item in data]
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable snapshot under '{key}': {e}")
            return None

    def write_cache(self, items: List[Entity], scope: Optional[Any] = None) -> None:
        """Atomically replace the stored collection."""
        self.store.set(self.key(scope), [item.to_dict() for item in items])

    def has_cache(self, scope: Optional[Any] = None) -> bool:
        return self.cached(scope) is not None

    def last_updated(self, scope: Optional[Any] = None):
        return self.store.last_updated(self.key(scope))

    # -------------------------------------------------------------------------
    # Fallback
    # -------------------------------------------------------------------------

    def matches_scope(self, record: Mapping[str, Any], scope: Any) -> bool:
        """Whether a seed record belongs to a scoped collection."""
        return True

    def seed(self, scope: Optional[Any] = None) -> List[Entity]:
        """Fresh copies of the documented seed set."""
        records = [
            r for r in seed_records(self.kind, scope)
            if scope is None or self.matches_scope(r, scope)
        ]
        return [self.entity_type.from_dict(copy.deepcopy(r)) for r in records]

    def read_cache_with_source(self, scope: Optional[Any] = None) -> Tuple[List[Entity], str]:
        items = self.cached(scope)
        if items is not None:
            return items, SOURCE_CACHE
        return self.seed(scope), SOURCE_SEED

    def read_cache(self, scope: Optional[Any] = None) -> List[Entity]:
        """Last-known collection, or the seed set before any successful fetch."""
        return self.read_cache_with_source(scope)[0]

    def fallback(self, scope: Optional[Any] = None) -> List[Entity]:
        """Value served when the remote call fails."""
        return self.read_cache(scope)


def _same_course(record: Mapping[str, Any], scope: Any) -> bool:
    return str(record.get("course_id")) == str(scope)


class CourseAdapter(ResourceAdapter):
    kind = ResourceKind.COURSES
    entity_type = Course
    fields = COURSE_FIELDS


class AssignmentAdapter(ResourceAdapter):
    """Assignments; scoped by course id."""

    kind = ResourceKind.ASSIGNMENTS
    entity_type = Assignment
    fields = ASSIGNMENT_FIELDS

    def cached(self, scope=None):
        items = super().cached(scope)
        if items is not None or scope is None:
            return items
        # No per-course snapshot yet: derive it from the full list
        everything = super().cached(None)
        if everything is None:
            return None
        return [a for a in everything if str(a.course_id) == str(scope)]

    def matches_scope(self, record, scope):
        return _same_course(record, scope)


class GradeAdapter(ResourceAdapter):
    kind = ResourceKind.GRADES
    entity_type = Grade
    fields = GRADE_FIELDS


class ScheduleAdapter(ResourceAdapter):
    kind = ResourceKind.SCHEDULE
    entity_type = ClassSession
    fields = SCHEDULE_FIELDS

    def matches_scope(self, record, scope):
        return _same_course(record, scope)


class ContactAdapter(ResourceAdapter):
    """User directory; scoped by search query."""

    kind = ResourceKind.CONTACTS
    entity_type = Contact
    fields = CONTACT_FIELDS

    # Most recent search results kept; older query snapshots are deleted
    max_query_snapshots = 20

    def write_cache(self, items, scope=None):
        super().write_cache(items, scope)
        if scope is not None:
            self._prune_queries()

    def _prune_queries(self) -> None:
        keys = self.store.keys(prefix=self.key() + ":")
        overflow = len(keys) - self.max_query_snapshots
        if overflow <= 0:
            return
        keys.sort(key=lambda key: self.store.last_updated(key) or datetime.min)
        for key in keys[:overflow]:
            self.store.delete(key)
        logger.debug(f"Pruned {overflow} old contact search snapshot(s)")

    def matches_scope(self, record, scope):
        query = str(scope).lower()
        return query in str(record.get("full_name", "")).lower() or \
            query in str(record.get("email", "")).lower()


class ConversationAdapter(ResourceAdapter):
    kind = ResourceKind.CONVERSATIONS
    entity_type = Conversation
    fields = CONVERSATION_FIELDS


class MessageAdapter(ResourceAdapter):
    """Messages of one conversation, kept in chronological order."""

    kind = ResourceKind.MESSAGES
    entity_type = Message
    fields = MESSAGE_FIELDS

    def _order(self, records):
        return chronological(records)

    def write_cache(self, items, scope=None):
        ordered = chronological([item.to_dict() for item in items])
        self.store.set(self.key(scope), ordered)


class AnnouncementAdapter(ResourceAdapter):
    kind = ResourceKind.ANNOUNCEMENTS
    entity_type = Announcement
    fields = ANNOUNCEMENT_FIELDS


class SettingsAdapter(ResourceAdapter):
    """The settings record; stored as a one-element collection."""

    kind = ResourceKind.SETTINGS
    entity_type = Settings
    fields = SETTINGS_FIELDS

    def map(self, raw):
        return super().map(raw)[:1]


class NotificationAdapter(ResourceAdapter):
    kind = ResourceKind.NOTIFICATIONS
    entity_type = Notification
    fields = NOTIFICATION_FIELDS


class StudentAdapter(ResourceAdapter):
    kind = ResourceKind.STUDENTS
    entity_type = Student
    fields = STUDENT_FIELDS


ADAPTER_TYPES: List[Type[ResourceAdapter]] = [
    CourseAdapter,
    AssignmentAdapter,
    GradeAdapter,
    ScheduleAdapter,
    ContactAdapter,
    ConversationAdapter,
    MessageAdapter,
    AnnouncementAdapter,
    SettingsAdapter,
    NotificationAdapter,
    StudentAdapter,
]


def build_adapters(store: LocalStore) -> Dict[ResourceKind, ResourceAdapter]:
    """One adapter per resource kind, all sharing the same store."""
    return {adapter_type.kind: adapter_type(store) for adapter_type in ADAPTER_TYPES}
