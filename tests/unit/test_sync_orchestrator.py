# =============================================================================
# tests/unit/test_sync_orchestrator.py
# Unit Tests for the cache-aside read path
# =============================================================================

from unittest.mock import MagicMock

import pytest

from lms_core.errors import MalformedResponseError, ServerError
from lms_core.models import ResourceKind, Settings
from lms_core.offline import SOURCE_CACHE, SOURCE_REMOTE, SOURCE_SEED, SyncOrchestrator


class TestFetchRemote:
    """Successful remote reads replace the cache"""

    def test_remote_success_is_cached(self, orchestrator, connector, adapters, remote_courses):
        connector.respond("api/student/courses", remote_courses)

        result = orchestrator.fetch_with_status(ResourceKind.COURSES)

        assert result.source == SOURCE_REMOTE
        assert result.is_remote
        assert [c.id for c in result.items] == [10, 11]
        assert adapters[ResourceKind.COURSES].read_cache() == result.items

    def test_remote_empty_list_replaces_cache(self, orchestrator, connector, remote_courses):
        connector.respond("api/student/courses", remote_courses)
        orchestrator.fetch_courses()

        connector.respond("api/student/courses", [])

        assert orchestrator.fetch_courses() == []
        assert orchestrator.read_cached(ResourceKind.COURSES) == []

    def test_role_route(self, store, session):
        from conftest import FakeConnector

        faculty = FakeConnector(session_context=session, role="faculty")
        faculty.respond("api/faculty/courses", [{"id": 1, "title": "Taught course"}])

        courses = SyncOrchestrator(faculty, store).fetch_courses()

        assert courses[0].title == "Taught course"

    def test_scoped_fetch_uses_scoped_route_and_key(self, orchestrator, connector, store):
        connector.respond("api/student/courses/3/assignments", [{"id": 5, "courseId": 3, "title": "Essay"}])

        assignments = orchestrator.fetch_assignments(3)

        assert [a.id for a in assignments] == [5]
        assert store.has("lms:assignments:3")
        assert not store.has("lms:assignments")

    def test_contacts_query_sent_as_parameter(self, orchestrator, connector):
        connector.respond("api/messages/users", [{"id": 101, "fullName": "Dr. Kim"}])

        contacts = orchestrator.fetch_contacts("kim")

        assert contacts[0].full_name == "Dr. Kim"
        assert connector.calls[-1][2] == {"query": "kim"}

    def test_settings_returns_single_record(self, orchestrator, connector):
        connector.respond("api/user/settings", {"data": {"id": 3, "theme": "light"}})

        settings = orchestrator.fetch_settings()

        assert settings == Settings(id=3, theme="light")


class TestFetchFallback:
    """Failed reads serve the last snapshot, then the seed"""

    def test_offline_before_any_fetch_serves_seed(self, orchestrator, connector, store):
        connector.offline = True

        result = orchestrator.fetch_with_status(ResourceKind.COURSES)

        assert result.source == SOURCE_SEED
        assert [c.code for c in result.items] == ["CS-101", "MTH-210", "ENG-150"]
        assert result.error is not None
        # Reads never write seeds
        assert not store.has("lms:courses")

    def test_offline_after_fetch_serves_cache(self, orchestrator, connector, remote_courses):
        connector.respond("api/student/courses", remote_courses)
        online = orchestrator.fetch_courses()

        connector.offline = True
        result = orchestrator.fetch_with_status(ResourceKind.COURSES)

        assert result.source == SOURCE_CACHE
        assert result.items == online

    @pytest.mark.parametrize("failure", [
        ServerError("Internal error", status_code=500),
        ServerError("Unauthorized", status_code=401),
        ["not", "records"],
        [{"title": "no id"}],
    ])
    def test_any_failure_keeps_cache_intact(self, orchestrator, connector, remote_courses, failure):
        """Server errors and malformed payloads never touch the stored snapshot"""
        connector.respond("api/student/courses", remote_courses)
        online = orchestrator.fetch_courses()

        connector.respond("api/student/courses", failure)
        result = orchestrator.fetch_with_status(ResourceKind.COURSES)

        assert result.source == SOURCE_CACHE
        assert result.items == online

    def test_malformed_payload_reports_error(self, orchestrator, connector):
        connector.respond("api/student/grades", "<html>")

        result = orchestrator.fetch_with_status(ResourceKind.GRADES)

        assert isinstance(result.error, MalformedResponseError)
        assert result.source == SOURCE_SEED

    def test_unexpected_exception_never_propagates(self, store):
        broken = MagicMock()
        broken.fetch.side_effect = RuntimeError("boom")

        result = SyncOrchestrator(broken, store).fetch_with_status(ResourceKind.ANNOUNCEMENTS)

        assert result.source == SOURCE_SEED
        assert len(result.items) == 2

    def test_unreadable_store_serves_seed(self, connector):
        store = MagicMock()
        store.get.side_effect = RuntimeError("disk error")
        connector.offline = True

        result = SyncOrchestrator(connector, store).fetch_with_status(ResourceKind.COURSES)

        assert result.source == SOURCE_SEED
        assert len(result.items) == 3

    def test_grades_round_trip_unchanged(self, orchestrator, connector):
        """Remote grades are cached as returned and served identically offline"""
        connector.respond("api/student/grades", [{
            "id": 1,
            "course": {"id": 10},
            "assignments": [
                {"score": 85, "total": 100, "weight": 50},
                {"score": None, "total": 100, "weight": 50},
            ],
        }])

        online = orchestrator.fetch_grades()
        connector.offline = True
        offline = orchestrator.fetch_grades()

        assert offline == online
        assert online[0].course.id == 10
        assert [a.score for a in online[0].assignments] == [85.0, None]


class TestCounts:
    """Activity counts with local fallbacks"""

    def test_remote_counts(self, orchestrator, connector):
        connector.respond("api/messages/unread-count", {"count": 4})
        connector.respond("api/student/notifications/count", {"count": 1})

        assert orchestrator.unread_count_with_status().count == 4
        assert orchestrator.unread_count_with_status().is_remote
        assert orchestrator.fetch_notification_count() == 1

    def test_unread_count_falls_back_to_conversations(self, orchestrator, connector, remote_conversations):
        connector.respond("api/messages/conversations", remote_conversations)
        orchestrator.fetch_conversations()
        connector.offline = True

        result = orchestrator.unread_count_with_status()

        assert result.count == 2
        assert result.source == SOURCE_CACHE

    def test_counts_from_seed(self, orchestrator, connector):
        connector.offline = True

        assert orchestrator.fetch_unread_count() == 1
        assert orchestrator.notification_count_with_status().count == 0

    def test_malformed_count_falls_back(self, orchestrator, connector):
        connector.respond("api/messages/unread-count", {"total": "many"})

        result = orchestrator.unread_count_with_status()

        assert not result.is_remote
        assert isinstance(result.error, MalformedResponseError)


class TestStatus:
    """Freshness metadata"""

    def test_last_synced(self, orchestrator, connector, remote_courses):
        assert orchestrator.last_synced(ResourceKind.COURSES) is None

        connector.respond("api/student/courses", remote_courses)
        orchestrator.fetch_courses()

        assert orchestrator.last_synced(ResourceKind.COURSES) is not None

    def test_get_status(self, orchestrator, connector, remote_courses):
        connector.respond("api/student/courses", remote_courses)
        orchestrator.fetch_courses()

        status = orchestrator.get_status()

        assert status["collections"] == 1
        assert status["keys"] == ["lms:courses"]
        assert status["last_write"] is not None
