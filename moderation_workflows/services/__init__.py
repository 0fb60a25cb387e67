from .workflow_service import WorkflowCoordinator

__all__ = ["WorkflowCoordinator"]
