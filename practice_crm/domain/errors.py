"""Domain error hierarchy."""


class CRMError(Exception):
    """Base class for errors raised by the contact lifecycle core."""

    def __init__(self, message: str) -> None:
        """
        Initialize error.

        Args:
            message: Human-readable description surfaced to callers
        """
        super().__init__(message)
        self.message = message


class InvalidInputError(CRMError):
    """Malformed or missing input, illegal enum value or past-dated scheduling."""


class NotFoundError(CRMError):
    """Identifier does not resolve to a contact."""


class ConflictError(CRMError):
    """Concurrent write or uniqueness violation; the caller may retry."""


class StorageError(CRMError):
    """The contact store failed to read or write."""


class NotificationError(CRMError):
    """The outbound email/SMS collaborator failed."""

    def __init__(self, message: str, retryable: bool = False) -> None:
        """
        Initialize notification error.

        Args:
            message: Error description
            retryable: Whether a later attempt may succeed
        """
        super().__init__(message)
        self.retryable = retryable
