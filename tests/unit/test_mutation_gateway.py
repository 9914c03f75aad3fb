# =============================================================================
# tests/unit/test_mutation_gateway.py
# Unit Tests for the policy-driven write path
# =============================================================================

import pytest

from lms_core.errors import ServerError
from lms_core.models import Assignment, Course, ResourceKind
from lms_core.offline import (
    MUTATION_POLICIES,
    SESSION_DATA_CHANGED,
    Operation,
    Policy,
)


@pytest.fixture
def cached_assignments(orchestrator, connector):
    connector.respond("api/student/assignments", [
        {"id": 4, "courseId": 3, "title": "Essay", "status": "pending"},
        {"id": 5, "courseId": 3, "title": "Lab", "status": "pending"},
    ])
    return orchestrator.fetch_assignments()


class TestPolicies:
    """Every operation has exactly one policy"""

    def test_every_operation_classified(self):
        assert set(MUTATION_POLICIES) == set(Operation)

    @pytest.mark.parametrize("operation", [
        Operation.SUBMIT_ASSIGNMENT,
        Operation.ENROLL_COURSE,
        Operation.UNENROLL_COURSE,
        Operation.CHANGE_PASSWORD,
    ])
    def test_correctness_critical_operations_are_strict(self, operation):
        assert MUTATION_POLICIES[operation] is Policy.STRICT

    @pytest.mark.parametrize("operation", [
        Operation.SEND_MESSAGE,
        Operation.MARK_CONVERSATION_READ,
        Operation.UPDATE_SETTINGS,
        Operation.MARK_ATTENDANCE,
    ])
    def test_ux_operations_are_best_effort(self, operation):
        assert MUTATION_POLICIES[operation] is Policy.BEST_EFFORT


class TestStrictMutations:
    """Strict writes only touch the store after the server accepts them"""

    def test_submit_success_patches_store(self, gateway, connector, adapters, cached_assignments):
        connector.respond(
            "api/student/assignments/4/submit",
            {"message": "ok", "submission": {"id": 901, "submitted_at": "2025-06-18T10:00:00Z"}},
            method="POST",
        )

        result = gateway.submit_assignment(4, submission_text="My essay")

        assert result.success
        assert result.metadata == {"synced": True}
        assert result.data.status == "submitted"
        assert result.data.submission_id == 901
        stored = {a.id: a for a in adapters[ResourceKind.ASSIGNMENTS].read_cache()}
        assert stored[4].status == "submitted"
        assert stored[4].submission_text == "My essay"
        assert stored[5].status == "pending"

    def test_submit_request_body(self, gateway, connector, cached_assignments):
        connector.respond("api/student/assignments/4/submit", {}, method="POST")

        gateway.submit_assignment(4, file_url="https://files.test/essay.pdf", file_type="application/pdf")

        method, endpoint, _, body = connector.calls[-1]
        assert (method, endpoint) == ("POST", "api/student/assignments/4/submit")
        assert body == {"fileUrl": "https://files.test/essay.pdf", "fileType": "application/pdf"}

    def test_submit_offline_is_rejected_and_store_untouched(
        self, gateway, connector, store, cached_assignments, retry_queue
    ):
        before = store.get("lms:assignments")
        connector.offline = True

        result = gateway.submit_assignment(4, submission_text="My essay")

        assert not result.success
        assert result.error == "Network/Unavailable"
        assert result.error_code == "NET_001"
        assert store.get("lms:assignments") == before
        assert len(retry_queue) == 0

    def test_submit_server_error_keeps_server_message(self, gateway, connector, store, cached_assignments):
        before = store.get("lms:assignments")
        connector.respond(
            "api/student/assignments/4/submit",
            ServerError("Submission window closed", status_code=409),
            method="POST",
        )

        result = gateway.submit_assignment(4, submission_text="Late")

        assert not result
        assert result.error == "Submission window closed"
        assert store.get("lms:assignments") == before

    def test_strict_offline_before_any_fetch_writes_nothing(self, gateway, connector, store):
        connector.offline = True

        gateway.enroll_course(2)

        assert not store.has("lms:courses")

    def test_empty_submission_rejected_without_request(self, gateway, connector):
        result = gateway.submit_assignment(4, submission_text="   ")

        assert not result.success
        assert result.error_code == "VAL_001"
        assert connector.calls == []

    def test_enroll_patches_seeded_course(self, gateway, connector, adapters):
        """A confirmed write on top of the seed persists the patched seed"""
        connector.respond("api/student/courses/enroll", {"message": "Enrolled"}, method="POST")

        result = gateway.enroll_course(2)

        assert result.success
        courses = adapters[ResourceKind.COURSES].read_cache_with_source()
        assert courses[1] == "cache"
        assert [c.enrolled for c in courses[0]] == [False, True, False]

    def test_unenroll_resets_progress(self, gateway, connector, adapters):
        adapters[ResourceKind.COURSES].write_cache([Course(id=7, enrolled=True, progress=60)])
        connector.respond("api/student/courses/unenroll/7", None, method="DELETE")

        gateway.unenroll_course(7)

        course = adapters[ResourceKind.COURSES].read_cache()[0]
        assert (course.enrolled, course.progress) == (False, 0)

    def test_change_password_validation(self, gateway, connector):
        assert gateway.change_password("", "new").error_code == "VAL_001"
        assert connector.calls == []

    def test_change_password_sends_camel_case(self, gateway, connector):
        connector.respond("api/user/password", {"message": "Password updated"}, method="PUT")

        result = gateway.change_password("old-secret", "new-secret")

        assert result.success
        assert connector.calls[-1][3] == {"currentPassword": "old-secret", "newPassword": "new-secret"}

    def test_notification_read_is_strict(self, gateway, connector, orchestrator, adapters):
        connector.respond("api/student/notifications", [
            {"id": 1, "title": "Graded", "isRead": False},
            {"id": 2, "title": "Due soon", "isRead": False},
        ])
        orchestrator.fetch_notifications()
        connector.offline = True

        result = gateway.mark_notification_read(1)

        assert not result.success
        assert not any(n.is_read for n in adapters[ResourceKind.NOTIFICATIONS].read_cache())

    def test_mark_all_and_clear_notifications(self, gateway, connector, orchestrator, adapters):
        connector.respond("api/student/notifications", [{"id": 1}, {"id": 2}])
        connector.respond("api/student/notifications", {}, method="PATCH")
        connector.respond("api/student/notifications", None, method="DELETE")
        orchestrator.fetch_notifications()

        assert gateway.mark_all_notifications_read().success
        assert all(n.is_read for n in adapters[ResourceKind.NOTIFICATIONS].read_cache())

        assert gateway.clear_notifications().success
        assert adapters[ResourceKind.NOTIFICATIONS].read_cache() == []


class TestBestEffortMutations:
    """Best-effort writes always update the local copy"""

    def test_send_message_offline_appends_local_message(self, gateway, connector, adapters, session):
        session.set_token("t0k3n", user={"id": 7, "full_name": "Jamie Lim"})
        connector.offline = True

        result = gateway.send_message(1, "On my way")

        assert result.success
        assert result.metadata["synced"] is False
        assert result.metadata["queued"] is True
        message = result.data
        assert str(message.id).startswith("local-")
        assert message.created_at is not None
        assert message.sender_id == 7

        thread = adapters[ResourceKind.MESSAGES].read_cache(1)
        assert [m.content for m in thread][-1] == "On my way"
        assert len(thread) == 3  # two seed messages + the new one

        conversation = adapters[ResourceKind.CONVERSATIONS].read_cache()[0]
        assert conversation.last_message.content == "On my way"
        assert conversation.unread_count == 1

    def test_send_message_online_uses_server_record(self, gateway, connector, adapters):
        connector.respond(
            "api/messages/conversations/1/messages",
            {"id": 55, "conversationId": 1, "senderId": 7, "content": "Hi",
             "createdAt": "2025-06-13T08:00:00Z"},
            method="POST",
        )

        result = gateway.send_message(1, "Hi")

        assert result.metadata == {"synced": True}
        assert result.data.id == 55
        assert adapters[ResourceKind.MESSAGES].read_cache(1)[-1].id == 55

    def test_client_error_is_applied_but_not_queued(self, gateway, connector, retry_queue, adapters):
        connector.respond(
            "api/messages/conversations/1/read",
            ServerError("Forbidden", status_code=403),
            method="POST",
        )

        result = gateway.mark_conversation_read(1)

        assert result.success
        assert result.metadata["synced"] is False
        assert result.metadata["queued"] is False
        assert result.metadata["error"] == "Forbidden"
        assert len(retry_queue) == 0
        assert adapters[ResourceKind.CONVERSATIONS].read_cache()[0].unread_count == 0

    def test_update_settings_emits_session_event(self, gateway, connector, events, adapters):
        calls = []
        events.subscribe(SESSION_DATA_CHANGED, lambda: calls.append(1))
        connector.respond("api/user/settings", {"message": "Settings updated"}, method="PUT")

        result = gateway.update_settings(theme="light", email_notifications=False)

        assert result.success
        assert connector.calls[-1][3] == {"theme": "light", "emailNotifications": False}
        assert adapters[ResourceKind.SETTINGS].read_cache()[0].theme == "light"
        assert calls == [1]

    def test_update_settings_rejects_unknown_fields(self, gateway, connector):
        result = gateway.update_settings(role="admin")

        assert result.error_code == "VAL_001"
        assert connector.calls == []

    def test_mark_attendance_offline(self, gateway, connector, adapters):
        connector.offline = True

        result = gateway.mark_attendance(2)

        assert result.metadata["synced"] is False
        sessions = {s.id: s for s in adapters[ResourceKind.SCHEDULE].read_cache()}
        assert sessions[2].attended is True

    def test_student_progress_validation(self, gateway):
        assert gateway.update_student_progress(1, 3, 120).error_code == "VAL_001"
        assert gateway.update_student_progress(1, 3, True).error_code == "VAL_001"

    def test_student_status_and_progress(self, gateway, connector, adapters):
        connector.offline = True

        gateway.update_student_status(1, "at-risk")
        gateway.update_student_progress(1, 3, 80)

        student = adapters[ResourceKind.STUDENTS].read_cache()[0]
        assert (student.status, student.progress) == ("at-risk", 80)

    def test_announcement_read_is_local_only(self, gateway, connector, adapters):
        result = gateway.mark_announcement_read(1)

        assert result.metadata == {"synced": False, "local_only": True}
        assert connector.calls == []
        assert adapters[ResourceKind.ANNOUNCEMENTS].read_cache()[0].read is True

    def test_mutate_dispatches_by_operation(self, gateway, connector):
        connector.offline = True

        result = gateway.mutate(Operation.MARK_ATTENDANCE, {"session_id": 1, "attended": False})

        assert result.metadata["synced"] is False

    def test_patch_reaches_scoped_snapshots(self, gateway, connector, adapters):
        adapter = adapters[ResourceKind.ASSIGNMENTS]
        adapter.write_cache([Assignment(id=4, course_id=3)])
        adapter.write_cache([Assignment(id=4, course_id=3)], 3)
        connector.respond("api/student/assignments/4/submit", {}, method="POST")

        gateway.submit_assignment(4, submission_text="Done")

        assert adapter.read_cache()[0].status == "submitted"
        assert adapter.read_cache(3)[0].status == "submitted"
