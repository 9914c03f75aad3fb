# =============================================================================
# lms_core/models/entities.py
# Stable internal schema for every cached resource kind
# =============================================================================
"""
Entity dataclasses shared by the adapters, the orchestrator and the gateway.

Entities are immutable by convention: code that needs a changed copy uses
``dataclasses.replace`` and writes the whole collection back. ``to_dict`` /
``from_dict`` are the Local Store serialization; ``from_dict`` only accepts
internal (already reconciled) field names.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Union

EntityId = Union[int, str]


class ResourceKind(Enum):
    """Resource collections known to the Local Store."""
    COURSES = "courses"
    ASSIGNMENTS = "assignments"
    GRADES = "grades"
    SCHEDULE = "schedule"
    CONTACTS = "contacts"
    CONVERSATIONS = "conversations"
    MESSAGES = "messages"
    ANNOUNCEMENTS = "announcements"
    SETTINGS = "settings"
    NOTIFICATIONS = "notifications"
    STUDENTS = "students"


@dataclass
class Entity:
    """Base class for cached records."""
    id: EntityId

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class Attachment:
    """Single file attached to a message or assignment."""
    url: str
    mime_type: Optional[str] = None

    @classmethod
    def from_value(cls, value: Any) -> Optional[Attachment]:
        if value is None or isinstance(value, Attachment):
            return value
        if isinstance(value, dict) and value.get("url"):
            return cls(url=value["url"], mime_type=value.get("mime_type"))
        return None


# =============================================================================
# COURSES & COURSEWORK
# =============================================================================

@dataclass
class Course(Entity):
    code: str = ""
    title: str = ""
    description: str = ""
    instructor: str = ""
    schedule: str = ""
    campus: str = ""
    credits: int = 0
    category: str = ""
    image: str = ""
    rating: float = 0.0
    enrolled: bool = False
    progress: int = 0
    color: str = "#1976d2"
    status: str = "active"


@dataclass
class Assignment(Entity):
    title: str = ""
    course_id: Optional[int] = None
    course_name: str = ""
    course_code: str = ""
    due_date: Optional[str] = None
    status: str = "pending"
    description: str = ""
    instructions: str = ""
    max_points: int = 100
    score: Optional[float] = None
    feedback: Optional[str] = None
    submission_file: Optional[str] = None
    submission_date: Optional[str] = None
    submission_text: Optional[str] = None
    submission_id: Optional[int] = None
    instructor_name: str = ""
    attachment: Optional[Attachment] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Assignment:
        assignment = super().from_dict(data)
        assignment.attachment = Attachment.from_value(assignment.attachment)
        return assignment


@dataclass
class GradeCourse:
    id: int
    code: str = ""
    title: str = ""
    credits: int = 0
    color: str = "#1976d2"


@dataclass
class GradeItem:
    name: str = ""
    score: Optional[float] = None
    total: float = 100
    weight: float = 0


@dataclass
class Grade(Entity):
    course: Optional[GradeCourse] = None
    assignments: List[GradeItem] = field(default_factory=list)
    final_grade: Optional[float] = None
    term: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Grade:
        grade = super().from_dict(data)
        if isinstance(grade.course, dict):
            grade.course = GradeCourse(**grade.course)
        grade.assignments = [
            item if isinstance(item, GradeItem) else GradeItem(**item)
            for item in (grade.assignments or [])
        ]
        return grade


@dataclass
class ClassSession(Entity):
    course_id: Optional[int] = None
    course_name: str = ""
    course_code: str = ""
    date: Optional[str] = None
    time: str = ""
    location: str = ""
    instructor: str = ""
    type: str = "lecture"
    status: str = "upcoming"
    meeting_link: Optional[str] = None
    attended: Optional[bool] = None
    color: str = "#1976d2"


# =============================================================================
# MESSAGING
# =============================================================================

@dataclass
class Contact(Entity):
    full_name: str = ""
    email: str = ""
    role: str = "student"
    profile_image: Optional[str] = None
    campus: Optional[str] = None
    status: str = "offline"
    last_active: Optional[str] = None


@dataclass
class Message(Entity):
    conversation_id: Optional[EntityId] = None
    sender_id: Optional[int] = None
    sender_name: str = ""
    sender_profile_image: Optional[str] = None
    content: str = ""
    attachment: Optional[Attachment] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    read_by: List[int] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Message:
        message = super().from_dict(data)
        message.attachment = Attachment.from_value(message.attachment)
        message.read_by = list(message.read_by or [])
        return message


@dataclass
class Conversation(Entity):
    title: Optional[str] = None
    type: str = "direct"
    unread_count: int = 0
    last_message: Optional[Message] = None
    participants: List[Contact] = field(default_factory=list)
    other_participant: Optional[Contact] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Conversation:
        conversation = super().from_dict(data)
        if isinstance(conversation.last_message, dict):
            conversation.last_message = Message.from_dict(conversation.last_message)
        if isinstance(conversation.other_participant, dict):
            conversation.other_participant = Contact.from_dict(conversation.other_participant)
        conversation.participants = [
            p if isinstance(p, Contact) else Contact.from_dict(p)
            for p in (conversation.participants or [])
        ]
        return conversation


# =============================================================================
# NOTICES, PROFILE, ROSTER
# =============================================================================

@dataclass
class Announcement(Entity):
    title: str = ""
    content: str = ""
    date: Optional[str] = None
    author: str = "Administrator"
    campus: str = "All Campuses"
    important: bool = False
    read: bool = False


@dataclass
class Notification(Entity):
    title: str = ""
    message: str = ""
    type: str = "system"
    related_id: Optional[int] = None
    is_read: bool = False
    created_at: Optional[str] = None


@dataclass
class Settings(Entity):
    user_id: Optional[int] = None
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    campus: str = ""
    theme: str = "dark"
    language: str = "English"
    email_notifications: bool = True
    push_notifications: bool = True
    assignment_notifications: bool = True
    message_notifications: bool = True
    announcement_notifications: bool = True
    profile_visibility: bool = True
    show_online_status: bool = True
    show_last_seen: bool = True
    profile_picture: Optional[str] = None
    student_id: Optional[int] = None


@dataclass
class Student(Entity):
    full_name: str = ""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    campus: str = ""
    profile_image: Optional[str] = None
    status: str = "active"
    progress: int = 0
    grade: Optional[str] = None
    student_id: Optional[str] = None
