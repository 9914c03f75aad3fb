# =============================================================================
# tests/integration/test_client_flow.py
# Integration Tests for the client (Login → Read → Write → Poll → Logout)
# =============================================================================

import threading
from unittest.mock import MagicMock

import pytest
import requests

from conftest import wait_until
from lms_core.api import ClientConfig
from lms_core.client import LmsClient, create_client
from lms_core.models import ResourceKind
from lms_core.offline import NEW_ACTIVITY, SOURCE_CACHE


BASE_URL = "http://lms.test"


class FakeServer:
    """In-process stand-in for the LMS REST API behind a requests.Session"""

    def __init__(self):
        self.online = True
        self.routes = {}
        self.requests = []
        self._lock = threading.Lock()

    def route(self, method, path, body, status_code=200):
        self.routes[(method, path)] = (status_code, body)

    def request(self, method, url, params=None, json=None, headers=None, timeout=None):
        path = url[len(BASE_URL) + 1:]
        with self._lock:
            self.requests.append((method, path, json, headers))
        if not self.online:
            raise requests.exceptions.ConnectionError("connection refused")

        status_code, body = self.routes.get((method, path), (404, {"message": "Not found"}))
        response = MagicMock()
        response.status_code = status_code
        response.content = b"" if body is None else b"{...}"
        response.json.return_value = body
        return response

    def sent(self, method, path):
        with self._lock:
            return [r for r in self.requests if r[0] == method and r[1] == path]

    def session(self):
        http = MagicMock(spec=requests.Session)
        http.request.side_effect = self.request
        return http


@pytest.fixture
def server():
    server = FakeServer()
    server.route("GET", "api/student/courses", [
        {"id": 1, "courseCode": "CS-101", "courseName": "Introduction to Computing", "credits": 3},
        {"id": 4, "courseCode": "BIO-110", "courseName": "Cell Biology", "credits": 4, "isEnrolled": True},
    ])
    server.route("GET", "api/student/assignments", [
        {"id": 7, "courseId": 4, "title": "Lab report", "status": "pending"},
    ])
    server.route("GET", "api/messages/conversations", [
        {"id": 1, "unreadCount": 0, "otherParticipant": {"id": 101, "fullName": "Dr. Kim"}},
    ])
    server.route("GET", "api/messages/conversations/1/messages", [
        {"id": 30, "conversationId": 1, "senderId": 101, "content": "Hello",
         "createdAt": "2025-06-12T09:00:00Z"},
    ])
    server.route("GET", "api/messages/unread-count", {"count": 0})
    server.route("GET", "api/student/notifications/count", {"count": 0})
    return server


@pytest.fixture
def config(tmp_path):
    return ClientConfig(
        base_url=BASE_URL,
        poll_interval=0.05,
        token_watch_interval=0.05,
        store_path=str(tmp_path / "lms_cache.db"),
    )


@pytest.fixture
def client(config, server):
    client = create_client(config=config, http_session=server.session())
    yield client
    client.close()


class TestClientFlow:
    """
    End-to-end flow over a fake server:
    1. Login starts the poller
    2. Reads are cached and served offline
    3. Offline writes follow their policy
    4. Queued writes are replayed once the server is back
    5. Logout stops the poller
    """

    def test_login_starts_poller_and_raises_activity(self, client, server):
        activity = threading.Event()
        client.events.subscribe(NEW_ACTIVITY, activity.set)
        server.route("GET", "api/messages/unread-count", {"count": 2})

        client.login("t0k3n", user={"id": 7, "full_name": "Jamie Lim"})

        assert client.poller.is_running
        assert activity.wait(2)
        assert server.requests[0][3] == {"Authorization": "Bearer t0k3n"}

    def test_reads_survive_going_offline(self, client, server):
        online = client.orchestrator.fetch_courses()
        server.online = False

        result = client.orchestrator.fetch_with_status(ResourceKind.COURSES)

        assert result.source == SOURCE_CACHE
        assert result.items == online
        assert client.connection.is_offline

    def test_offline_writes_follow_policy(self, client, server):
        client.orchestrator.fetch_assignments()
        client.orchestrator.fetch_messages(1)
        server.online = False

        strict = client.gateway.submit_assignment(7, submission_text="Draft")
        relaxed = client.gateway.send_message(1, "Running late")

        assert not strict.success
        assert strict.error == "Network/Unavailable"
        assert client.orchestrator.read_cached(ResourceKind.ASSIGNMENTS)[0].status == "pending"

        assert relaxed.success
        assert relaxed.metadata["queued"] is True
        thread = client.orchestrator.fetch_messages(1)
        assert [m.content for m in thread] == ["Hello", "Running late"]
        assert str(thread[-1].id).startswith("local-")

    def test_queued_write_replayed_after_reconnect(self, client, server):
        client.login("t0k3n", user={"id": 7})
        client.poller.stop()
        client.poller.join(2)
        server.online = False
        client.gateway.send_message(1, "Queued while offline")
        assert len(client.retry_queue) == 1

        server.online = True
        server.route("POST", "api/messages/conversations/1/messages", {"id": 31, "content": "ok"})
        client.poller.start()

        assert wait_until(lambda: len(client.retry_queue) == 0)
        body = server.sent("POST", "api/messages/conversations/1/messages")[-1][2]
        assert body == {"content": "Queued while offline"}

    def test_logout_stops_poller(self, client, server):
        client.login("t0k3n")
        assert wait_until(lambda: client.poller.cycles >= 1)

        client.logout()
        cycles = client.poller.cycles
        client.poller.join(2)

        assert not client.poller.is_running
        assert client.poller.cycles <= cycles + 1
        assert client.get_status()["poller"] == "stopped"

    def test_logout_discards_queued_writes(self, client, server):
        client.login("t0k3n", user={"id": 7})
        client.poller.stop()
        client.poller.join(2)
        server.online = False
        client.gateway.update_settings(theme="light")
        assert len(client.retry_queue) == 1

        client.logout()
        server.online = True
        server.route("PUT", "api/user/settings", {})
        client.login("other-token", user={"id": 8})
        client.poller.poll_once()

        assert len(client.retry_queue) == 0
        assert not any(
            headers == {"Authorization": "Bearer other-token"}
            for _, _, _, headers in server.sent("PUT", "api/user/settings")
        )

    def test_grade_analytics_offline(self, client, server):
        server.online = False

        assert client.grades.calculate_gpa() == 3.27
        assert client.grades.course_progress(2).data == 100


class TestClientRestart:
    """State shared through the store file outlives a client"""

    def test_session_and_queue_survive_restart(self, config, server):
        first = LmsClient(config, http_session=server.session())
        first.login("t0k3n", user={"id": 7})
        server.online = False
        first.gateway.update_settings(theme="light")
        first.close()

        second = LmsClient(config, http_session=server.session())
        try:
            assert second.is_authenticated
            assert len(second.retry_queue) == 1
            assert second.orchestrator.fetch_settings().theme == "light"
        finally:
            second.close()

    def test_external_logout_stops_poller(self, config, server):
        first = LmsClient(config, http_session=server.session())
        second = LmsClient(config, http_session=server.session())
        try:
            first.login("t0k3n")
            second.start()
            assert wait_until(lambda: second.poller.is_running)

            first.logout()

            assert wait_until(lambda: not second.poller.is_running)
        finally:
            first.close()
            second.close()
