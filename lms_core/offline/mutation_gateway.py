# =============================================================================
# lms_core/offline/mutation_gateway.py
# Write path with a per-operation consistency policy
# =============================================================================
"""
MutationGateway - every write goes through here.

The remote call is always attempted first. What happens next depends on the
operation's policy:

    STRICT       server failure -> rejected result, LocalStore untouched
                 server success -> LocalStore patched to match
    BEST_EFFORT  LocalStore patched regardless of the outcome; a failed
                 request is queued for replay (when a RetryQueue is given)

The classification lives in ``MUTATION_POLICIES`` and must not be changed
casually: strict operations gate grading and enrollment correctness.

Usage:
------
gateway = MutationGateway(connector, store, events=events, retry_queue=queue)
result = gateway.submit_assignment(4, submission_text="My answer")
if not result:
    show_error(result.error)       # e.g. "Network/Unavailable"
"""

from __future__ import annotations
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from lms_core.errors import (
    LmsError,
    NetworkUnavailableError,
    ServerError,
    ValidationError,
    handle_error,
)
from lms_core.models.entities import (
    Attachment,
    Entity,
    Message,
    ResourceKind,
    Settings,
)
from lms_core.offline.adapters import ResourceAdapter, build_adapters
from lms_core.offline.events import SESSION_DATA_CHANGED
from lms_core.offline.local_store import LocalStore
from lms_core.services.base_service import BaseService, ServiceResult


class Policy(Enum):
    """Consistency policy of a mutation."""
    STRICT = "strict"
    BEST_EFFORT = "best_effort"


class Operation(Enum):
    """Mutations supported by the gateway (values are the method names)."""
    SUBMIT_ASSIGNMENT = "submit_assignment"
    ENROLL_COURSE = "enroll_course"
    UNENROLL_COURSE = "unenroll_course"
    CHANGE_PASSWORD = "change_password"
    SEND_MESSAGE = "send_message"
    MARK_CONVERSATION_READ = "mark_conversation_read"
    UPDATE_SETTINGS = "update_settings"
    MARK_ATTENDANCE = "mark_attendance"
    UPDATE_STUDENT_STATUS = "update_student_status"
    UPDATE_STUDENT_PROGRESS = "update_student_progress"
    MARK_NOTIFICATION_READ = "mark_notification_read"
    MARK_ALL_NOTIFICATIONS_READ = "mark_all_notifications_read"
    CLEAR_NOTIFICATIONS = "clear_notifications"
    MARK_ANNOUNCEMENT_READ = "mark_announcement_read"


MUTATION_POLICIES: Dict[Operation, Policy] = {
    Operation.SUBMIT_ASSIGNMENT: Policy.STRICT,
    Operation.ENROLL_COURSE: Policy.STRICT,
    Operation.UNENROLL_COURSE: Policy.STRICT,
    Operation.CHANGE_PASSWORD: Policy.STRICT,
    Operation.SEND_MESSAGE: Policy.BEST_EFFORT,
    Operation.MARK_CONVERSATION_READ: Policy.BEST_EFFORT,
    Operation.UPDATE_SETTINGS: Policy.BEST_EFFORT,
    Operation.MARK_ATTENDANCE: Policy.BEST_EFFORT,
    Operation.UPDATE_STUDENT_STATUS: Policy.BEST_EFFORT,
    Operation.UPDATE_STUDENT_PROGRESS: Policy.BEST_EFFORT,
    # The notification menu only updates after the server confirms
    Operation.MARK_NOTIFICATION_READ: Policy.STRICT,
    Operation.MARK_ALL_NOTIFICATIONS_READ: Policy.STRICT,
    Operation.CLEAR_NOTIFICATIONS: Policy.STRICT,
    Operation.MARK_ANNOUNCEMENT_READ: Policy.BEST_EFFORT,
}

# Settings fields the server accepts in an update
EDITABLE_SETTINGS = (
    "first_name", "last_name", "phone", "campus", "theme", "language",
    "email_notifications", "push_notifications", "assignment_notifications",
    "message_notifications", "announcement_notifications", "profile_visibility",
    "show_online_status", "show_last_seen", "profile_picture",
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _same_id(left: Any, right: Any) -> bool:
    return str(left) == str(right)


@dataclass
class MutationRequest:
    """One remote write plus the local patch that mirrors it."""
    operation: Operation
    method: str
    endpoint: Optional[str]
    body: Optional[Dict[str, Any]]
    apply: Callable[[Any], Any]

    @property
    def policy(self) -> Policy:
        return MUTATION_POLICIES[self.operation]


class MutationGateway(BaseService):
    """
    Remote-first write path with local patching.

    Every operation returns a ServiceResult. Best-effort results carry
    ``metadata["synced"]`` telling whether the server accepted the change.
    """

    def __init__(
        self,
        connector,
        store: LocalStore,
        adapters: Optional[Dict[ResourceKind, ResourceAdapter]] = None,
        events=None,
        retry_queue=None,
        session_context=None,
    ):
        super().__init__()
        self.connector = connector
        self.store = store
        self.adapters = adapters or build_adapters(store)
        self.events = events
        self.retry_queue = retry_queue
        self.session_context = session_context

    # =========================================================================
    # CORE
    # =========================================================================

    def mutate(self, operation: Operation, payload: Optional[Dict[str, Any]] = None) -> ServiceResult:
        """Run an operation by name with keyword payload."""
        return getattr(self, operation.value)(**(payload or {}))

    def execute(self, request: MutationRequest) -> ServiceResult:
        """
        Send a request and apply its local patch according to its policy.

        Returns:
            ServiceResult with the patched entity (or None) as data
        """
        operation = request.operation.value

        if request.endpoint is None:
            # Nothing to tell the server; the change only exists locally
            data = self._apply_locally(request, None)
            return ServiceResult.ok(data, metadata={"synced": False, "local_only": True})

        with self.log_operation(f"{operation} ({request.method} {request.endpoint})"):
            try:
                response = self.connector.send(request.method, request.endpoint, request.body)
            except Exception as e:
                return self._on_failure(request, e)

        data = self._apply_locally(request, response)
        return ServiceResult.ok(data, metadata={"synced": True})

    def _on_failure(self, request: MutationRequest, error: Exception) -> ServiceResult:
        operation = request.operation.value

        if request.policy is Policy.STRICT:
            handle_error(error, level="warning")
            self.logger.info(f"{operation} rejected, local data unchanged")
            return ServiceResult.from_exception(error)

        message = error.message if isinstance(error, LmsError) else str(error)
        self.logger.warning(f"{operation} not synced, applying locally: {message}")

        queued = False
        if self.retry_queue is not None and self._retryable(error):
            self.retry_queue.enqueue(operation, request.method, request.endpoint, request.body)
            queued = True

        data = self._apply_locally(request, None)
        return ServiceResult.ok(data, metadata={"synced": False, "queued": queued, "error": message})

    @staticmethod
    def _retryable(error: Exception) -> bool:
        """Only failures a later resend can fix are queued."""
        if isinstance(error, NetworkUnavailableError):
            return True
        return isinstance(error, ServerError) and (error.status_code or 0) >= 500

    def _apply_locally(self, request: MutationRequest, response: Any) -> Any:
        try:
            return request.apply(response)
        except Exception as e:
            # The server state is authoritative; the next fetch repairs the cache
            self.logger.error(f"Local patch for {request.operation.value} failed: {e}", exc_info=True)
            return None

    def _reject(self, error: ValidationError) -> ServiceResult:
        handle_error(error, level="warning")
        return ServiceResult.from_exception(error)

    # =========================================================================
    # LOCAL PATCH HELPERS
    # =========================================================================

    def _scopes(self, kind: ResourceKind) -> List[Optional[str]]:
        """The unscoped collection plus every stored scoped snapshot."""
        base = self.adapters[kind].key()
        return [None] + [key[len(base) + 1:] for key in self.store.keys(prefix=base + ":")]

    def _patch(
        self,
        kind: ResourceKind,
        item_id: Any,
        changes: Dict[str, Any],
    ) -> Optional[Entity]:
        """
        Apply field changes to one entity in every stored snapshot holding it.

        Returns:
            The patched entity, or None if no snapshot holds it
        """
        adapter = self.adapters[kind]
        patched = None
        for scope in self._scopes(kind):
            items = adapter.read_cache(scope) if scope is None else (adapter.cached(scope) or [])
            if not any(_same_id(item.id, item_id) for item in items):
                continue
            items = [replace(item, **changes) if _same_id(item.id, item_id) else item for item in items]
            adapter.write_cache(items, scope)
            patched = next(item for item in items if _same_id(item.id, item_id))

        if patched is None:
            self.logger.debug(f"{kind.value} {item_id} is not stored locally, nothing to patch")
        return patched

    def _patch_all(self, kind: ResourceKind, changes: Dict[str, Any]) -> List[Entity]:
        adapter = self.adapters[kind]
        items = [replace(item, **changes) for item in adapter.read_cache()]
        adapter.write_cache(items)
        return items

    def _current_user(self) -> Dict[str, Any]:
        user = self.session_context.user if self.session_context is not None else None
        return user or {}

    # =========================================================================
    # COURSEWORK (strict)
    # =========================================================================

    def submit_assignment(
        self,
        assignment_id: Any,
        submission_text: Optional[str] = None,
        file_url: Optional[str] = None,
        file_type: Optional[str] = None,
    ) -> ServiceResult:
        """Submit text and/or an uploaded file for an assignment."""
        if not (submission_text and submission_text.strip()) and not file_url:
            return self._reject(
                ValidationError("A submission needs text or a file", field="submission")
            )

        body = {"submissionText": submission_text, "fileUrl": file_url, "fileType": file_type}
        body = {k: v for k, v in body.items() if v is not None}

        def apply(response):
            submission = response.get("submission") if isinstance(response, dict) else None
            submission = submission if isinstance(submission, dict) else {}
            return self._patch(ResourceKind.ASSIGNMENTS, assignment_id, {
                "status": "submitted",
                "submission_text": submission_text,
                "submission_file": file_url,
                "submission_date": submission.get("submitted_at") or _now_iso(),
                "submission_id": submission.get("id"),
            })

        return self.execute(MutationRequest(
            Operation.SUBMIT_ASSIGNMENT, "POST",
            f"api/student/assignments/{assignment_id}/submit", body, apply,
        ))

    def enroll_course(self, course_id: Any) -> ServiceResult:
        return self.execute(MutationRequest(
            Operation.ENROLL_COURSE, "POST", "api/student/courses/enroll", {"courseId": course_id},
            lambda response: self._patch(ResourceKind.COURSES, course_id, {"enrolled": True}),
        ))

    def unenroll_course(self, course_id: Any) -> ServiceResult:
        return self.execute(MutationRequest(
            Operation.UNENROLL_COURSE, "DELETE", f"api/student/courses/unenroll/{course_id}", None,
            lambda response: self._patch(
                ResourceKind.COURSES, course_id, {"enrolled": False, "progress": 0}
            ),
        ))

    def change_password(self, current_password: str, new_password: str) -> ServiceResult:
        """Change the account password; nothing is cached."""
        if not current_password:
            return self._reject(ValidationError("Current password is required", field="current_password"))
        if not new_password:
            return self._reject(ValidationError("New password is required", field="new_password"))

        return self.execute(MutationRequest(
            Operation.CHANGE_PASSWORD, "PUT", "api/user/password",
            {"currentPassword": current_password, "newPassword": new_password},
            lambda response: None,
        ))

    # =========================================================================
    # MESSAGING (best-effort)
    # =========================================================================

    def send_message(
        self,
        conversation_id: Any,
        content: str = "",
        attachment_url: Optional[str] = None,
        attachment_type: Optional[str] = None,
    ) -> ServiceResult:
        """
        Send a message. When the server does not answer, the message is
        appended locally with a ``local-`` id and the current time.
        """
        if not (content and content.strip()) and not attachment_url:
            return self._reject(ValidationError("A message needs content or an attachment", field="content"))

        body = {"content": content, "attachmentUrl": attachment_url, "attachmentType": attachment_type}
        body = {k: v for k, v in body.items() if v is not None}

        def apply(response):
            message = self._server_message(response)
            if message is None:
                user = self._current_user()
                message = Message(
                    id=f"local-{uuid.uuid4().hex}",
                    conversation_id=conversation_id,
                    sender_id=user.get("id"),
                    sender_name=user.get("full_name") or user.get("fullName") or "",
                    sender_profile_image=user.get("profile_image") or user.get("profileImage"),
                    content=content,
                    attachment=Attachment(attachment_url, attachment_type) if attachment_url else None,
                    created_at=_now_iso(),
                    read_by=[user["id"]] if user.get("id") is not None else [],
                )
            if message.conversation_id is None:
                message = replace(message, conversation_id=conversation_id)
            self._append_message(conversation_id, message)
            return message

        return self.execute(MutationRequest(
            Operation.SEND_MESSAGE, "POST",
            f"api/messages/conversations/{conversation_id}/messages", body, apply,
        ))

    def _server_message(self, response: Any) -> Optional[Message]:
        if not isinstance(response, dict):
            return None
        try:
            return self.adapters[ResourceKind.MESSAGES].map(response)[0]
        except LmsError as e:
            self.logger.debug(f"Acknowledgement is not a message record: {e}")
            return None

    def _append_message(self, conversation_id: Any, message: Message) -> None:
        messages = self.adapters[ResourceKind.MESSAGES]
        thread = [m for m in messages.read_cache(conversation_id) if not _same_id(m.id, message.id)]
        messages.write_cache(thread + [message], conversation_id)

        # Keep the conversation list preview in step; unread_count is untouched
        self._patch(ResourceKind.CONVERSATIONS, conversation_id, {
            "last_message": message,
            "updated_at": message.created_at,
        })

    def mark_conversation_read(self, conversation_id: Any) -> ServiceResult:
        """The only operation that resets a conversation's unread count."""
        return self.execute(MutationRequest(
            Operation.MARK_CONVERSATION_READ, "POST",
            f"api/messages/conversations/{conversation_id}/read", {},
            lambda response: self._patch(ResourceKind.CONVERSATIONS, conversation_id, {"unread_count": 0}),
        ))

    # =========================================================================
    # PROFILE (best-effort)
    # =========================================================================

    def update_settings(self, changes: Optional[Dict[str, Any]] = None, **kwargs: Any) -> ServiceResult:
        """Update profile/preference fields; raises the session-data-changed event."""
        changes = {**(changes or {}), **kwargs}
        unknown = sorted(set(changes) - set(EDITABLE_SETTINGS))
        if not changes or unknown:
            return self._reject(ValidationError(
                f"Unsupported settings: {', '.join(unknown)}" if unknown else "No settings to update",
                field="settings",
            ))

        def apply(response):
            adapter = self.adapters[ResourceKind.SETTINGS]
            current = adapter.read_cache()
            settings = current[0] if current else Settings(id=0)
            settings = replace(settings, **changes)
            adapter.write_cache([settings])
            if self.events is not None:
                self.events.emit(SESSION_DATA_CHANGED)
            return settings

        return self.execute(MutationRequest(
            Operation.UPDATE_SETTINGS, "PUT", "api/user/settings",
            {_camel(name): value for name, value in changes.items()}, apply,
        ))

    # =========================================================================
    # SCHEDULE & ROSTER (best-effort)
    # =========================================================================

    def mark_attendance(self, session_id: Any, attended: bool = True) -> ServiceResult:
        return self.execute(MutationRequest(
            Operation.MARK_ATTENDANCE, "POST", f"api/student/schedule/{session_id}/attendance",
            {"attended": attended},
            lambda response: self._patch(ResourceKind.SCHEDULE, session_id, {"attended": attended}),
        ))

    def update_student_status(self, student_id: Any, status: str) -> ServiceResult:
        if not status:
            return self._reject(ValidationError("Status is required", field="status"))
        return self.execute(MutationRequest(
            Operation.UPDATE_STUDENT_STATUS, "PUT", f"api/faculty/students/{student_id}/status",
            {"status": status},
            lambda response: self._patch(ResourceKind.STUDENTS, student_id, {"status": status}),
        ))

    def update_student_progress(self, student_id: Any, course_id: Any, progress: int) -> ServiceResult:
        if isinstance(progress, bool) or not isinstance(progress, int) or not 0 <= progress <= 100:
            return self._reject(ValidationError("Progress must be an integer from 0 to 100", field="progress"))
        return self.execute(MutationRequest(
            Operation.UPDATE_STUDENT_PROGRESS, "PATCH",
            f"api/faculty/courses/{course_id}/students/{student_id}/progress",
            {"progress": progress},
            lambda response: self._patch(ResourceKind.STUDENTS, student_id, {"progress": progress}),
        ))

    # =========================================================================
    # NOTIFICATIONS (strict) & ANNOUNCEMENTS (best-effort, local only)
    # =========================================================================

    def _notifications_path(self) -> str:
        return self.connector.path("api/{role}/notifications")

    def mark_notification_read(self, notification_id: Any) -> ServiceResult:
        return self.execute(MutationRequest(
            Operation.MARK_NOTIFICATION_READ, "PATCH", f"{self._notifications_path()}/{notification_id}", {},
            lambda response: self._patch(ResourceKind.NOTIFICATIONS, notification_id, {"is_read": True}),
        ))

    def mark_all_notifications_read(self) -> ServiceResult:
        return self.execute(MutationRequest(
            Operation.MARK_ALL_NOTIFICATIONS_READ, "PATCH", self._notifications_path(), {},
            lambda response: self._patch_all(ResourceKind.NOTIFICATIONS, {"is_read": True}),
        ))

    def clear_notifications(self) -> ServiceResult:
        def apply(response):
            self.adapters[ResourceKind.NOTIFICATIONS].write_cache([])
            return []

        return self.execute(MutationRequest(
            Operation.CLEAR_NOTIFICATIONS, "DELETE", self._notifications_path(), None, apply,
        ))

    def mark_announcement_read(self, announcement_id: Any) -> ServiceResult:
        # The backend keeps no per-user read state for announcements
        return self.execute(MutationRequest(
            Operation.MARK_ANNOUNCEMENT_READ, "POST", None, None,
            lambda response: self._patch(ResourceKind.ANNOUNCEMENTS, announcement_id, {"read": True}),
        ))

