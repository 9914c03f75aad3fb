"""Entity schemas for cached LMS resources."""

from lms_core.models.entities import (
    EntityId,
    ResourceKind,
    Entity,
    Attachment,
    Course,
    Assignment,
    GradeCourse,
    GradeItem,
    Grade,
    ClassSession,
    Contact,
    Message,
    Conversation,
    Announcement,
    Notification,
    Settings,
    Student,
)

__all__ = [
    "EntityId",
    "ResourceKind",
    "Entity",
    "Attachment",
    "Course",
    "Assignment",
    "GradeCourse",
    "GradeItem",
    "Grade",
    "ClassSession",
    "Contact",
    "Message",
    "Conversation",
    "Announcement",
    "Notification",
    "Settings",
    "Student",
]
