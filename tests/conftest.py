# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import copy
import threading
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest

from lms_core.api import APIConfig, LmsConnector
from lms_core.errors import NetworkUnavailableError, ServerError
from lms_core.offline import (
    EventBus,
    LocalStore,
    MutationGateway,
    RetryQueue,
    SyncOrchestrator,
    build_adapters,
)
from lms_core.state import SessionContext


# =============================================================================
# FAKE BACKEND
# =============================================================================

class FakeConnector(LmsConnector):
    """
    LmsConnector with scripted responses instead of HTTP.

    Responses are registered per (method, endpoint). A registered exception
    is raised instead of returned. Unregistered routes answer 404, and
    ``offline = True`` makes every request fail as if the network were down.
    """

    def __init__(self, session_context=None, role: str = "student"):
        super().__init__(
            APIConfig(api_name="lms", base_url="http://lms.test"),
            role=role,
            session_context=session_context,
            session=MagicMock(),
        )
        self.responses: Dict[Tuple[str, str], Any] = {}
        self.calls: List[Tuple[str, str, Optional[dict], Optional[dict]]] = []
        self.offline = False
        self._lock = threading.Lock()

    def respond(self, endpoint: str, payload: Any, method: str = "GET") -> None:
        self.responses[(method, endpoint)] = payload

    def _make_request(self, endpoint, method="GET", params=None, data=None):
        with self._lock:
            self.calls.append((method, endpoint, params, data))
        if self.offline:
            raise NetworkUnavailableError(url=endpoint, cause="connection refused")
        key = (method, endpoint)
        if key not in self.responses:
            raise ServerError("Not Found", status_code=404, url=endpoint)
        payload = self.responses[key]
        if isinstance(payload, Exception):
            raise payload
        return copy.deepcopy(payload)

    def requests_to(self, endpoint: str, method: Optional[str] = None) -> list:
        return [c for c in self.calls if c[1] == endpoint and (method is None or c[0] == method)]


# =============================================================================
# CORE FIXTURES
# =============================================================================

@pytest.fixture
def store():
    """Isolated in-memory store"""
    local = LocalStore(LocalStore.MEMORY)
    local.initialize()
    yield local
    local.close()


@pytest.fixture
def session(store):
    """Session context persisted in the test store"""
    return SessionContext(store)


@pytest.fixture
def connector(session):
    return FakeConnector(session_context=session)


@pytest.fixture
def adapters(store):
    return build_adapters(store)


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def orchestrator(connector, store, adapters):
    return SyncOrchestrator(connector, store, adapters)


@pytest.fixture
def retry_queue(store, session):
    return RetryQueue(store, max_size=10, max_attempts=3, session_context=session)


@pytest.fixture
def gateway(connector, store, adapters, events, retry_queue, session):
    return MutationGateway(
        connector,
        store,
        adapters=adapters,
        events=events,
        retry_queue=retry_queue,
        session_context=session,
    )


# =============================================================================
# SAMPLE PAYLOADS
# =============================================================================

@pytest.fixture
def remote_courses():
    """Courses as the API sends them (mixed naming)"""
    return [
        {"id": 10, "course_code": "BIO-110", "name": "Cell Biology", "credits": 3,
         "instructor_name": "Dr. Kim", "isEnrolled": True, "progress": 40},
        {"id": "11", "code": "CHE-120", "title": "General Chemistry", "credits": "4",
         "enrolled": False},
    ]


@pytest.fixture
def remote_grades():
    """Grade sheets with graded and ungraded items"""
    return [
        {
            "id": 1,
            "course": {"id": 10, "code": "BIO-110", "name": "Cell Biology", "credits": 3},
            "assignments": [
                {"name": "Lab 1", "score": 90, "total": 100, "weight": 40},
                {"name": "Exam", "score": 80, "total": 100, "weight": 60},
            ],
        },
        {
            "id": 2,
            "course": {"id": 11, "code": "CHE-120", "name": "General Chemistry", "credits": 4},
            "assignments": [
                {"title": "Quiz", "score": 45, "max_points": 50, "weight": 50},
                {"title": "Final", "score": None, "max_points": 100, "weight": 50},
            ],
        },
    ]


@pytest.fixture
def remote_conversations():
    return [
        {
            "id": 1,
            "type": "direct",
            "unreadCount": 2,
            "lastMessage": {"id": 9, "content": "See you", "createdAt": "2025-06-12T10:00:00Z"},
            "otherParticipant": {"id": 101, "fullName": "Dr. Kim", "role": "faculty"},
            "updatedAt": "2025-06-12T10:00:00Z",
        },
    ]


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def wait_until(predicate, timeout: float = 2.0, interval: float = 0.01) -> bool:
    """Poll a predicate until it holds or the timeout expires"""
    done = threading.Event()
    deadline = timeout
    while deadline > 0:
        if predicate():
            return True
        done.wait(interval)
        deadline -= interval
    return predicate()
