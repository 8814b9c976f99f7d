"""Project-related exceptions."""

from .base import ConflictError, NotFoundError


class ProjectNotFoundError(NotFoundError):
    """Raised when a project is not found."""

    def __init__(self, message: str = "Project not found"):
        super().__init__(message=message)
        self.error_code = "PROJECT_NOT_FOUND"
        self.detail["error_code"] = self.error_code


class AlreadyMemberError(ConflictError):
    """Raised when adding a user who is already a project member."""

    def __init__(self, message: str = "User is already a member"):
        super().__init__(message=message)
        self.error_code = "ALREADY_MEMBER"
        self.detail["error_code"] = self.error_code
