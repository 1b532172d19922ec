"""
Error kinds raised by the session store.

Callers tell them apart by type: ``ValidationError`` and ``NotFoundError``
are the caller's fault, ``StorageError`` is ours.
"""


class SessionStoreError(Exception):
    """Base exception for every session store failure."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(SessionStoreError):
    """
    Raised when caller input breaks a record invariant (empty host,
    malformed identifier).

    HTTP Status: 400 Bad Request
    """

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class NotFoundError(SessionStoreError):
    """
    Raised when the referenced room or user does not exist.

    HTTP Status: 404 Not Found
    """

    def __init__(self, entity: str, key):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity.capitalize()} not found: {key}")


class StorageError(SessionStoreError):
    """
    Raised when the database is unavailable, timed out, or failed in an
    unexpected way. Transient faults have already been retried.

    HTTP Status: 503 Service Unavailable
    """

    def __init__(self, operation: str, reason: str, transient: bool = False):
        self.operation = operation
        self.reason = reason
        self.transient = transient
        super().__init__(f"Storage failure during {operation}: {reason}")
