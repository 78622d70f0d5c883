# DEALROOM Core - Access Control & Lifecycle Enforcement
"""
Access decisions, room lifecycle and audit trail for deal data rooms.

Modules:
    constants: System-wide constants and configuration values
    exceptions: Centralized exception hierarchy
    clock: Injectable time sources
    models: Roles, actions, rooms, grants, documents
    permissions: Static role x action matrix
    lifecycle: Room status resolution and administrative transitions
    grants: Per-subject access grants
    documents: Document metadata catalog
    audit_log: Append-only hash-chained audit trail
    viewer: Restricted viewer sessions
    engine: Access decision engine
"""

from .constants import (
    VERSION,
    SYSTEM_NAME,
    ZOOM_MIN_PCT,
    ZOOM_MAX_PCT,
    ZOOM_STEP_PCT,
    VIEWER_SESSION_TIMEOUT_MIN,
)

from .exceptions import (
    DealRoomError,
    InvalidInputError,
    NotFoundError,
    InvalidTransitionError,
    SessionClosedError,
    StorageUnavailableError,
    ConfigurationError,
    is_recoverable,
)

from .clock import (
    Clock,
    SystemClock,
    ManualClock,
)

from .models import (
    Role,
    Action,
    PartyType,
    RoomStatus,
    GrantStatus,
    Outcome,
    ReasonCode,
    Subject,
    Room,
    Grant,
    Document,
)

from .permissions import (
    MatrixEntry,
    is_role_allowed,
)

from .lifecycle import (
    LifecycleCommand,
    RoomLifecycle,
    resolve_status,
    is_hard_delete_eligible,
)

from .grants import GrantStore

from .documents import DocumentCatalog

from .audit_log import (
    AuditAction,
    AuditEvent,
    AuditQuery,
    AuditPage,
    AuditLogConfig,
    InMemoryAuditBackend,
    AuditLog,
)

from .viewer import (
    SessionState,
    ViewerInteraction,
    ViewerConfig,
    ViewerSession,
    NullScheduler,
    ViewerSessionManager,
    SessionHandle,
)

from .engine import (
    EngineConfig,
    Decision,
    InviteResult,
    DocumentResult,
    AccessDecisionEngine,
)

__version__ = "1.0.0"

__all__ = [
    # Version
    "__version__",

    # Constants
    "VERSION",
    "SYSTEM_NAME",
    "ZOOM_MIN_PCT",
    "ZOOM_MAX_PCT",
    "ZOOM_STEP_PCT",
    "VIEWER_SESSION_TIMEOUT_MIN",

    # Exceptions
    "DealRoomError",
    "InvalidInputError",
    "NotFoundError",
    "InvalidTransitionError",
    "SessionClosedError",
    "StorageUnavailableError",
    "ConfigurationError",
    "is_recoverable",

    # Clock
    "Clock",
    "SystemClock",
    "ManualClock",

    # Models
    "Role",
    "Action",
    "PartyType",
    "RoomStatus",
    "GrantStatus",
    "Outcome",
    "ReasonCode",
    "Subject",
    "Room",
    "Grant",
    "Document",

    # Permission Matrix
    "MatrixEntry",
    "is_role_allowed",

    # Lifecycle
    "LifecycleCommand",
    "RoomLifecycle",
    "resolve_status",
    "is_hard_delete_eligible",

    # Stores
    "GrantStore",
    "DocumentCatalog",

    # Audit Log
    "AuditAction",
    "AuditEvent",
    "AuditQuery",
    "AuditPage",
    "AuditLogConfig",
    "InMemoryAuditBackend",
    "AuditLog",

    # Viewer
    "SessionState",
    "ViewerInteraction",
    "ViewerConfig",
    "ViewerSession",
    "NullScheduler",
    "ViewerSessionManager",
    "SessionHandle",

    # Engine
    "EngineConfig",
    "Decision",
    "InviteResult",
    "DocumentResult",
    "AccessDecisionEngine",
]
