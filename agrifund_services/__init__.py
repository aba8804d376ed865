"""
agrifund_services -- Package init and public API.

Responsibility:
    Orchestration over the kernel: role authority, per-project
    serialization, notification sinks and the transaction-owning
    LifecycleEngine facade.

Architecture position:
    Services -- the only layer that commits.

    Dependency direction:
        agrifund_services/ -> agrifund_kernel/  (allowed)
        agrifund_services/ -> agrifund_config/  (allowed)
        agrifund_kernel/   -> agrifund_services/ (FORBIDDEN)
"""

from agrifund_services.authority import ActorAuthority, OPERATION_ROLES, roles_for
from agrifund_services.lifecycle_engine import LifecycleEngine
from agrifund_services.notifications import (
    InMemoryNotificationSink,
    LoggingNotificationSink,
    NotificationEvent,
    NotificationKind,
    NotificationSink,
    build_sink,
)
from agrifund_services.project_locks import ProjectLockRegistry

__all__ = [
    "ActorAuthority",
    "InMemoryNotificationSink",
    "LifecycleEngine",
    "LoggingNotificationSink",
    "NotificationEvent",
    "NotificationKind",
    "NotificationSink",
    "OPERATION_ROLES",
    "ProjectLockRegistry",
    "build_sink",
    "roles_for",
]
