"""Taskflow domain exceptions

The server maps each class to an HTTP status in server.errors.
"""

from typing import Dict, List, Optional


class TaskflowError(Exception):
    """Base exception"""

    pass


class ValidationError(TaskflowError):
    """Input rejected, keyed by field name"""

    def __init__(self, errors: Dict[str, List[str]]):
        self.errors = errors
        first = next(iter(errors.values()), [""])
        super().__init__(first[0] if first else "The given data was invalid.")

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls({field: [message]})


class AuthenticationError(TaskflowError):
    """Missing, expired or revoked credentials"""

    def __init__(self, message: str = "Unauthenticated."):
        super().__init__(message)


class PermissionDeniedError(TaskflowError):
    """Row exists but belongs to another user"""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class NotFoundError(TaskflowError):
    """Row does not exist"""

    def __init__(self, resource: str, resource_id: Optional[object] = None):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found")


class ThrottledError(ValidationError):
    """Too many attempts for the same key"""

    def __init__(self, field: str, message: str, retry_after: int, message_key: Optional[str] = None):
        self.field = field
        self.retry_after = retry_after
        # catalogue key of ``message``, filled with ``seconds``
        self.message_key = message_key
        super().__init__({field: [message]})


class DeliveryError(TaskflowError):
    """A notification channel failed to deliver"""

    pass
