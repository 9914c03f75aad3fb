# =============================================================================
# lms_core/offline/seeds.py
# Deterministic placeholder datasets
# =============================================================================
"""
Seed data served when a resource has never been fetched successfully and the
remote call fails. Records use internal field names. Seeds are never written
to the Local Store by a read; they only become stored state when a mutation
is applied on top of them.

Documented seeds per resource kind:
    courses        3 catalogue courses, none enrolled, progress 0
    assignments    3 assignments (one per course), one already submitted
    grades         2 grade sheets with a pending final item each
    schedule       3 upcoming class sessions, attendance unset
    contacts       2 staff directory entries
    conversations  1 direct conversation with 1 unread message
    messages       conversation 1: 2 messages
    announcements  2 campus announcements
    settings       1 default preference record
    notifications  empty
    students       2 roster entries
"""

from typing import Any, Dict, List, Optional

from lms_core.models.entities import ResourceKind


SEED_DATA: Dict[ResourceKind, List[Dict[str, Any]]] = {
    ResourceKind.COURSES: [
        {
            "id": 1, "code": "CS-101", "title": "Introduction to Computing",
            "description": "Foundations of programming, data and problem solving.",
            "instructor": "Dr. Ada Reyes", "schedule": "Mon, Wed 10:00-11:30 AM",
            "campus": "Main Campus", "credits": 3, "category": "Computer Science",
            "rating": 4.6, "color": "#1976d2",
        },
        {
            "id": 2, "code": "MTH-210", "title": "Discrete Mathematics",
            "description": "Logic, sets, combinatorics and graph theory.",
            "instructor": "Prof. Leon Cruz", "schedule": "Tue, Thu 1:00-2:30 PM",
            "campus": "Main Campus", "credits": 4, "category": "Mathematics",
            "rating": 4.3, "color": "#e91e63",
        },
        {
            "id": 3, "code": "ENG-150", "title": "Technical Writing",
            "description": "Writing clear documentation, reports and proposals.",
            "instructor": "Dr. Mira Santos", "schedule": "Fri 3:00-6:00 PM",
            "campus": "North Campus", "credits": 3, "category": "Communication",
            "rating": 4.8, "color": "#9c27b0",
        },
    ],
    ResourceKind.ASSIGNMENTS: [
        {
            "id": 1, "title": "Algorithm Journal", "course_id": 1,
            "course_name": "Introduction to Computing", "course_code": "CS-101",
            "due_date": "2025-06-15", "status": "pending",
            "description": "Document five algorithms you used this week.",
            "instructions": "One page per algorithm, include a trace.",
            "max_points": 100, "instructor_name": "Dr. Ada Reyes",
        },
        {
            "id": 2, "title": "Proof Set 3", "course_id": 2,
            "course_name": "Discrete Mathematics", "course_code": "MTH-210",
            "due_date": "2025-06-10", "status": "submitted",
            "description": "Induction and pigeonhole proofs.",
            "instructions": "Typeset your answers.",
            "max_points": 100, "submission_file": "proof_set_3.pdf",
            "submission_date": "2025-06-08", "instructor_name": "Prof. Leon Cruz",
        },
        {
            "id": 3, "title": "Installation Guide", "course_id": 3,
            "course_name": "Technical Writing", "course_code": "ENG-150",
            "due_date": "2025-06-20", "status": "pending",
            "description": "Write an installation guide for a tool of your choice.",
            "instructions": "Target a reader with no prior context.",
            "max_points": 100, "instructor_name": "Dr. Mira Santos",
        },
    ],
    ResourceKind.GRADES: [
        {
            "id": 1,
            "course": {"id": 1, "code": "CS-101", "title": "Introduction to Computing",
                       "credits": 3, "color": "#1976d2"},
            "assignments": [
                {"name": "Algorithm Journal", "score": 85, "total": 100, "weight": 20},
                {"name": "Midterm Exam", "score": 78, "total": 100, "weight": 30},
                {"name": "Final Exam", "score": None, "total": 100, "weight": 50},
            ],
            "final_grade": None,
            "term": "Spring 2025",
        },
        {
            "id": 2,
            "course": {"id": 2, "code": "MTH-210", "title": "Discrete Mathematics",
                       "credits": 4, "color": "#e91e63"},
            "assignments": [
                {"name": "Proof Set 1", "score": 95, "total": 100, "weight": 25},
                {"name": "Proof Set 2", "score": 88, "total": 100, "weight": 25},
                {"name": "Final Project", "score": None, "total": 100, "weight": 50},
            ],
            "final_grade": None,
            "term": "Spring 2025",
        },
    ],
    ResourceKind.SCHEDULE: [
        {
            "id": 1, "course_id": 1, "course_name": "Introduction to Computing",
            "course_code": "CS-101", "date": "2025-06-16", "time": "10:00-11:30 AM",
            "location": "Room 302, Main Campus", "instructor": "Dr. Ada Reyes",
            "type": "lecture", "status": "upcoming", "color": "#1976d2",
        },
        {
            "id": 2, "course_id": 2, "course_name": "Discrete Mathematics",
            "course_code": "MTH-210", "date": "2025-06-17", "time": "1:00-2:30 PM",
            "location": "Room 205, Main Campus", "instructor": "Prof. Leon Cruz",
            "type": "seminar", "status": "upcoming", "color": "#e91e63",
        },
        {
            "id": 3, "course_id": 3, "course_name": "Technical Writing",
            "course_code": "ENG-150", "date": "2025-06-20", "time": "3:00-6:00 PM",
            "location": "Lab 101, North Campus", "instructor": "Dr. Mira Santos",
            "type": "lab", "status": "upcoming", "color": "#9c27b0",
        },
    ],
    ResourceKind.CONTACTS: [
        {
            "id": 101, "full_name": "Dr. Ada Reyes", "email": "ada.reyes@lms.example",
            "role": "faculty", "campus": "Main Campus", "status": "online",
        },
        {
            "id": 102, "full_name": "Registrar Office", "email": "registrar@lms.example",
            "role": "admin", "campus": "Main Campus", "status": "offline",
        },
    ],
    ResourceKind.CONVERSATIONS: [
        {
            "id": 1, "title": None, "type": "direct", "unread_count": 1,
            "last_message": {
                "id": 2, "conversation_id": 1, "sender_id": 101,
                "sender_name": "Dr. Ada Reyes",
                "content": "Please submit your journal by Friday.",
                "created_at": "2025-06-12T14:30:00Z",
            },
            "other_participant": {
                "id": 101, "full_name": "Dr. Ada Reyes", "role": "faculty",
                "status": "online",
            },
            "created_at": "2025-06-11T09:00:00Z",
            "updated_at": "2025-06-12T14:30:00Z",
        },
    ],
    ResourceKind.ANNOUNCEMENTS: [
        {
            "id": 1, "title": "Summer Registration Open",
            "content": "Register for summer courses before June 30th.",
            "date": "2025-06-01", "author": "Registrar Office",
            "campus": "All Campuses", "important": True, "read": False,
        },
        {
            "id": 2, "title": "Scheduled Maintenance",
            "content": "The portal will be unavailable on Sunday from 2AM to 5AM.",
            "date": "2025-06-08", "author": "IT Department",
            "campus": "All Campuses", "important": True, "read": False,
        },
    ],
    ResourceKind.SETTINGS: [
        {"id": 0, "theme": "dark", "language": "English"},
    ],
    ResourceKind.NOTIFICATIONS: [],
    ResourceKind.STUDENTS: [
        {
            "id": 1, "full_name": "Jamie Lim", "first_name": "Jamie", "last_name": "Lim",
            "email": "jamie.lim@lms.example", "campus": "Main Campus",
            "status": "active", "progress": 75, "grade": "85.5", "student_id": "ST2025001",
        },
        {
            "id": 2, "full_name": "Noor Haddad", "first_name": "Noor", "last_name": "Haddad",
            "email": "noor.haddad@lms.example", "campus": "Main Campus",
            "status": "excellent", "progress": 95, "grade": "94.2", "student_id": "ST2025002",
        },
    ],
}

# Messages are scoped per conversation id
SEED_MESSAGES: Dict[str, List[Dict[str, Any]]] = {
    "1": [
        {
            "id": 1, "conversation_id": 1, "sender_id": 0, "sender_name": "Me",
            "content": "Is the journal due this Friday?",
            "created_at": "2025-06-12T11:45:00Z", "read_by": [0, 101],
        },
        {
            "id": 2, "conversation_id": 1, "sender_id": 101, "sender_name": "Dr. Ada Reyes",
            "content": "Please submit your journal by Friday.",
            "created_at": "2025-06-12T14:30:00Z", "read_by": [101],
        },
    ],
}


def seed_records(kind: ResourceKind, scope: Optional[str] = None) -> List[Dict[str, Any]]:
    """Raw seed records for a resource kind (callers must not mutate them)."""
    if kind is ResourceKind.MESSAGES:
        return SEED_MESSAGES.get(str(scope), []) if scope is not None else []
    return SEED_DATA.get(kind, [])
