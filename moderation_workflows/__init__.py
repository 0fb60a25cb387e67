"""
User-action status workflows.

Reacts to a user's moderation status changing and fans the event out to
independent handlers that gate payments, notify webhook integrators, email the
user and resolve open appeals, each step recorded so retries never repeat a
completed side effect.
"""

from .models import StatusChangeEvent, UserActionStatus
from .scheduler.dispatcher import WorkflowDispatcher
from .services.workflow_service import WorkflowCoordinator

__all__ = ["StatusChangeEvent", "UserActionStatus", "WorkflowCoordinator", "WorkflowDispatcher"]
