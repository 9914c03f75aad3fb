# =============================================================================
# lms_core/client.py
# Client facade - wires the sync core together
# =============================================================================
"""
LmsClient - one object holding every collaborator of the sync core.

Usage:
------
from lms_core.client import create_client

client = create_client(base_url="http://localhost:5000", role="student")
client.login(token, user={"id": 7, "full_name": "Jamie Lim"})

courses = client.orchestrator.fetch_courses()
client.events.subscribe(NEW_ACTIVITY, refresh_badges)
result = client.gateway.submit_assignment(4, submission_text="My answer")

client.logout()      # poller stops
client.close()
"""

from __future__ import annotations
from typing import Any, Dict, Optional
import logging

import requests

from lms_core.api import LmsConnector, ClientConfig, load_config
from lms_core.logging import setup_logging
from lms_core.offline import (
    AuthLifecycleGate,
    BackgroundPoller,
    ConnectionManager,
    EventBus,
    LocalStore,
    MutationGateway,
    RetryQueue,
    SyncOrchestrator,
    build_adapters,
)
from lms_core.services import GradeService
from lms_core.state import SessionContext

logger = logging.getLogger(__name__)


class LmsClient:
    """
    Facade over the store, session, read path, write path and poller.

    Components are built once and shared; nothing here is process-global,
    so several clients (e.g. with ``:memory:`` stores in tests) can coexist.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        http_session: Optional[requests.Session] = None,
        store: Optional[LocalStore] = None,
    ):
        self.config = config or ClientConfig()

        self.store = store or LocalStore(self.config.store_path)
        self.store.initialize()

        self.session = SessionContext(self.store)
        self.connection = ConnectionManager()
        self.events = EventBus()

        self.connector = LmsConnector(
            self.config.to_api_config(),
            role=self.config.role,
            session_context=self.session,
            session=http_session,
            connection=self.connection,
        )

        self.adapters = build_adapters(self.store)
        self.orchestrator = SyncOrchestrator(self.connector, self.store, self.adapters)
        self.retry_queue = RetryQueue(
            self.store,
            max_size=self.config.retry_queue_size,
            max_attempts=self.config.max_retry_attempts,
            session_context=self.session,
        )
        self.gateway = MutationGateway(
            self.connector,
            self.store,
            adapters=self.adapters,
            events=self.events,
            retry_queue=self.retry_queue,
            session_context=self.session,
        )
        self.grades = GradeService(self.orchestrator)

        self.poller = BackgroundPoller(
            self.orchestrator,
            self.events,
            session_context=self.session,
            interval=self.config.poll_interval,
            retry_queue=self.retry_queue,
            sender=self.connector.send,
        )
        self.gate = AuthLifecycleGate(
            self.session,
            self.poller,
            watch_interval=self.config.token_watch_interval,
        )
        self._closed = False

    # =========================================================================
    # SESSION
    # =========================================================================

    def start(self) -> None:
        """Begin following the session token (starts the poller if logged in)."""
        self.gate.start()

    def login(self, token: str, user: Optional[Dict[str, Any]] = None) -> None:
        """Install a session token; the poller follows through the gate."""
        if not self.gate.is_active:
            self.gate.start()
        self.session.set_token(token, user)

    def logout(self) -> None:
        """Destroy the session token; the poller stops and queued writes are discarded."""
        self.retry_queue.clear()
        self.session.clear()

    @property
    def is_authenticated(self) -> bool:
        return self.session.is_authenticated

    # =========================================================================
    # STATUS
    # =========================================================================

    def get_status(self) -> Dict[str, Any]:
        """Connectivity, poller and storage summary for an "offline mode" banner."""
        return {
            "connection": self.connection.get_status_display(),
            "poller": self.poller.state.value,
            "pending_mutations": len(self.retry_queue),
            "store": self.orchestrator.get_status(),
        }

    def close(self) -> None:
        """Stop background work and release the store and HTTP session."""
        if self._closed:
            return
        self._closed = True
        self.gate.stop()
        self.poller.stop()
        self.poller.join(timeout=5)
        self.connector.close()
        self.store.close()
        logger.info("LMS client closed")

    def __enter__(self) -> LmsClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def create_client(
    config: Optional[ClientConfig] = None,
    config_path: Optional[str] = None,
    http_session: Optional[requests.Session] = None,
    **overrides: Any,
) -> LmsClient:
    """
    Build a client from a config object, or from a TOML file plus overrides.

    Args:
        config: Ready-made configuration (config_path/overrides are ignored)
        config_path: TOML file read by ``load_config``
        http_session: requests.Session to use (mainly for tests)
        **overrides: ClientConfig field values

    Raises:
        ConfigurationError: invalid settings
    """
    if config is None:
        config = load_config(config_path, **overrides)
    setup_logging(config.log_level)
    logger.info(f"Creating LMS client for {config.base_url} as {config.role}")
    return LmsClient(config, http_session=http_session)
