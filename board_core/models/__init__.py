from .core import (
    AuditLog,
    BoardEntity,
    Project,
    Proposal,
    TimeStampedModel,
    UserRole,
)
from .notification import Notification
from .workflow_event import WorkflowTransition

__all__ = [
    "AuditLog",
    "BoardEntity",
    "Notification",
    "Project",
    "Proposal",
    "TimeStampedModel",
    "UserRole",
    "WorkflowTransition",
]
