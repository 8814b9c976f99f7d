"""Task-related exceptions."""

from .base import AppPermissionError, BaseAppException, ConflictError, NotFoundError


class TaskNotFoundError(NotFoundError):
    """Raised when a task is not found."""

    def __init__(self, message: str = "Task not found"):
        super().__init__(message=message)
        self.error_code = "TASK_NOT_FOUND"
        self.detail["error_code"] = self.error_code


class TaskPermissionError(AppPermissionError):
    """Raised when the actor is neither an admin nor an assignee of the task."""

    def __init__(self, message: str = "Access Denied. You are not assigned to this task."):
        super().__init__(message=message)
        self.error_code = "TASK_PERMISSION_DENIED"
        self.detail["error_code"] = self.error_code


class InvalidTaskOperationError(BaseAppException):
    """Raised when a transition is not allowed from the task's current state."""

    def __init__(self, message: str = "Invalid task operation"):
        super().__init__(message=message, status_code=400, error_code="INVALID_TASK_OPERATION")


class AlreadyAssignedError(ConflictError):
    """Raised when inviting a user who is already assigned to the task."""

    def __init__(self, message: str = "User is already assigned."):
        super().__init__(message=message)
        self.error_code = "ALREADY_ASSIGNED"
        self.detail["error_code"] = self.error_code
