class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AuthenticationError(DomainError):
    """Raised when the caller has no identity."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class NotFoundError(DomainError):
    """Raised when a chat or message does not exist."""


class InvalidStateError(DomainError):
    """Raised when an operation is not valid for the chat's current status."""


class InvalidDepartmentError(ValidationError):
    """Raised when the target department is not one of the known departments."""


class TooManyFilesError(ValidationError):
    """Raised when an operation carries more attachments than allowed."""


class PayloadTooLargeError(ValidationError):
    """Raised when an attachment exceeds the size limit."""
