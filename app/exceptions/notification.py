"""Notification and admin-request exceptions."""

from .base import AppPermissionError, BaseAppException, ConflictError, NotFoundError


class NotificationNotFoundError(NotFoundError):
    """Raised when a notification does not exist (or was already consumed)."""

    def __init__(self, message: str = "Notification not found"):
        super().__init__(message=message)
        self.error_code = "NOTIFICATION_NOT_FOUND"
        self.detail["error_code"] = self.error_code


class AdminRequestNotFoundError(NotFoundError):
    """Raised when an admin request does not exist."""

    def __init__(self, message: str = "Request not found"):
        super().__init__(message=message)
        self.error_code = "ADMIN_REQUEST_NOT_FOUND"
        self.detail["error_code"] = self.error_code


class DuplicateAdminRequestError(ConflictError):
    """Raised when an identical request is already pending."""

    def __init__(self, message: str = "A request for this user is already pending."):
        super().__init__(message=message)
        self.error_code = "DUPLICATE_ADMIN_REQUEST"
        self.detail["error_code"] = self.error_code


class SelfApprovalError(AppPermissionError):
    """Raised when the requester tries to approve their own request."""

    def __init__(
        self,
        message: str = "You cannot approve your own request. Another admin is required.",
    ):
        super().__init__(message=message)
        self.error_code = "SELF_APPROVAL_FORBIDDEN"
        self.detail["error_code"] = self.error_code


class InvalidAdminRequestError(BaseAppException):
    """Raised when a request is approved through the wrong action."""

    def __init__(self, message: str = "Invalid request type"):
        super().__init__(message=message, status_code=400, error_code="INVALID_ADMIN_REQUEST")
