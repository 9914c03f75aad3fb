"""
LMS REST API Connector
Route table and typed calls for every resource and mutation the core uses
"""
from typing import Any, Dict, Optional
import logging

import requests

from lms_core.errors import MalformedResponseError
from lms_core.models.entities import ResourceKind
from .base_connector import BaseAPIConnector, APIConfig

logger = logging.getLogger(__name__)

ROLES = ("student", "faculty", "admin")


class LmsConnector(BaseAPIConnector):
    """
    Connector for the LMS backend.

    Usage:
        connector = LmsConnector(APIConfig("lms", "http://localhost:5000"), session_context=ctx)
        raw = connector.fetch(ResourceKind.COURSES)
        connector.send("POST", "api/student/courses/enroll", {"courseId": 3})
    """

    # Collection routes; {role} is the signed-in portal
    ROUTES: Dict[ResourceKind, str] = {
        ResourceKind.COURSES: "api/{role}/courses",
        ResourceKind.ASSIGNMENTS: "api/student/assignments",
        ResourceKind.GRADES: "api/student/grades",
        ResourceKind.SCHEDULE: "api/student/schedule",
        ResourceKind.CONTACTS: "api/messages/users",
        ResourceKind.CONVERSATIONS: "api/messages/conversations",
        ResourceKind.ANNOUNCEMENTS: "api/{role}/announcements",
        ResourceKind.SETTINGS: "api/user/settings",
        ResourceKind.NOTIFICATIONS: "api/{role}/notifications",
        ResourceKind.STUDENTS: "api/faculty/students",
    }

    # Routes for collections narrowed by a scope value
    SCOPED_ROUTES: Dict[ResourceKind, str] = {
        ResourceKind.ASSIGNMENTS: "api/{role}/courses/{scope}/assignments",
        ResourceKind.SCHEDULE: "api/{role}/courses/{scope}/schedule",
        ResourceKind.MESSAGES: "api/messages/conversations/{scope}/messages",
    }

    UNREAD_MESSAGES_ROUTE = "api/messages/unread-count"
    UNREAD_NOTIFICATIONS_ROUTE = "api/{role}/notifications/count"
    COURSE_PROGRESS_ROUTE = "api/student/courses/{course_id}/progress"

    def __init__(
        self,
        config: APIConfig,
        role: str = "student",
        session_context=None,
        session: Optional[requests.Session] = None,
        connection=None,
    ):
        super().__init__(config, session=session, connection=connection)
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role}")
        self.role = role
        self.session_context = session_context

    def _auth_headers(self) -> Dict[str, str]:
        token = self.session_context.token if self.session_context is not None else None
        return {"Authorization": f"Bearer {token}"} if token else {}

    def path(self, template: str, **values: Any) -> str:
        """Fill a route template with the role and the given values"""
        return template.format(role=self.role, **values)

    def route_for(self, kind: ResourceKind, scope: Optional[Any] = None) -> str:
        """
        Collection route for a resource kind.

        Contacts are scoped by search query, which travels as a parameter.
        """
        if scope is not None and kind in self.SCOPED_ROUTES:
            return self.path(self.SCOPED_ROUTES[kind], scope=scope)
        if kind not in self.ROUTES:
            raise ValueError(f"No route for {kind.value} with scope {scope!r}")
        return self.path(self.ROUTES[kind])

    # =========================================================================
    # READS
    # =========================================================================

    def fetch(
        self,
        kind: ResourceKind,
        scope: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """GET the raw payload for a resource collection"""
        query = dict(params or {})
        if kind is ResourceKind.CONTACTS and scope:
            query.setdefault("query", scope)
        return self._make_request(self.route_for(kind, scope), params=query or None)

    def fetch_unread_count(self) -> int:
        """Unread message count across all conversations"""
        return self._count(self._make_request(self.UNREAD_MESSAGES_ROUTE), "unread-count")

    def fetch_notification_count(self) -> int:
        """Unread notification count for the current role"""
        return self._count(
            self._make_request(self.path(self.UNREAD_NOTIFICATIONS_ROUTE)),
            "notifications/count",
        )

    def fetch_course_progress(self, course_id: Any) -> Any:
        return self._make_request(self.path(self.COURSE_PROGRESS_ROUTE, course_id=course_id))

    @staticmethod
    def _count(payload: Any, resource: str) -> int:
        if isinstance(payload, dict):
            payload = payload.get("count")
        if isinstance(payload, bool) or not isinstance(payload, (int, float)):
            raise MalformedResponseError(
                "Count response without a numeric count",
                resource=resource,
                expected='{"count": n}',
                actual=type(payload).__name__,
            )
        return int(payload)

    # =========================================================================
    # WRITES
    # =========================================================================

    def send(self, method: str, endpoint: str, body: Optional[Dict[str, Any]] = None) -> Any:
        """Issue a mutation; returns the decoded acknowledgement"""
        logger.debug(f"{method} {endpoint}")
        return self._make_request(endpoint, method=method, data=body)
