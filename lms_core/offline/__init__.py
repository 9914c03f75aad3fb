# =============================================================================
# lms_core/offline/__init__.py
# Client-side sync and resilience layer
# =============================================================================
"""
Offline-First Sync Module

Architecture:
------------
    UI ──► SyncOrchestrator ──► ResourceAdapter ◄──► LocalStore
               │                                        ▲
               └──────────► LmsConnector (REST API)     │
                                 ▲                      │
    UI ──► MutationGateway ──────┘──── local patch ─────┘
                 │
                 └── RetryQueue (best-effort writes awaiting the server)

    SessionContext ──► AuthLifecycleGate ──► BackgroundPoller ──► EventBus
                                                   │                "new_activity"
                                                   └─► SyncOrchestrator counts

Usage:
------
from lms_core.offline import SyncOrchestrator, MutationGateway

courses = orchestrator.fetch_courses()             # never raises
result = gateway.send_message(1, "On my way")      # best-effort
result = gateway.submit_assignment(4, "Answer")    # strict
"""

from lms_core.offline.local_store import LocalStore

from lms_core.offline.adapters import (
    KEY_PREFIX,
    SOURCE_CACHE,
    SOURCE_REMOTE,
    SOURCE_SEED,
    ResourceAdapter,
    build_adapters,
    storage_key,
)

from lms_core.offline.events import (
    EventBus,
    NEW_ACTIVITY,
    SESSION_DATA_CHANGED,
)

from lms_core.offline.connection_manager import (
    ConnectionManager,
    ConnectionState,
    ConnectionStatus,
)

from lms_core.offline.sync_orchestrator import (
    CountResult,
    SyncOrchestrator,
    SyncResult,
)

from lms_core.offline.retry_queue import (
    QUEUE_KEY,
    QueuedMutation,
    RetryQueue,
)

from lms_core.offline.mutation_gateway import (
    MUTATION_POLICIES,
    MutationGateway,
    MutationRequest,
    Operation,
    Policy,
)

from lms_core.offline.background_poller import (
    BackgroundPoller,
    PollerState,
)

from lms_core.offline.auth_gate import AuthLifecycleGate

__all__ = [
    # Storage
    "LocalStore",
    "KEY_PREFIX",
    "storage_key",
    "ResourceAdapter",
    "build_adapters",
    "SOURCE_CACHE",
    "SOURCE_REMOTE",
    "SOURCE_SEED",

    # Signals
    "EventBus",
    "NEW_ACTIVITY",
    "SESSION_DATA_CHANGED",

    # Connectivity
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStatus",

    # Read path
    "SyncOrchestrator",
    "SyncResult",
    "CountResult",

    # Write path
    "MutationGateway",
    "MutationRequest",
    "Operation",
    "Policy",
    "MUTATION_POLICIES",
    "RetryQueue",
    "QueuedMutation",
    "QUEUE_KEY",

    # Background work
    "BackgroundPoller",
    "PollerState",
    "AuthLifecycleGate",
]
