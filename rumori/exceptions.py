"""
Error taxonomy for the Rumori client.

Every exception raised by a service carries an ``ErrorKind`` so the
presentation layer can branch on the kind instead of the class.
"""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Discriminator shared by all client errors."""
    # Authentication
    NOT_AUTHENTICATED = "not_authenticated"
    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_NOT_VERIFIED = "email_not_verified"
    EMAIL_ALREADY_EXISTS = "email_already_exists"
    NOT_AUTHORIZED = "not_authorized"
    # Resource
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    # Transport / decoding
    NETWORK = "network"
    DECODING = "decoding"
    # Local
    VALIDATION = "validation"
    STORAGE = "storage"
    MEDIA = "media"
    OPERATION_IN_PROGRESS = "operation_in_progress"
    CONFIGURATION = "configuration"
    BACKEND = "backend"


class RumoriError(Exception):
    """Base exception class for the Rumori client."""

    kind: ErrorKind = ErrorKind.BACKEND

    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details
        super().__init__(self.message)


class AuthenticationError(RumoriError):
    """Base class for identity and session failures."""


class NotAuthenticatedError(AuthenticationError):
    """Raised when an operation needs a signed-in user and there is none."""
    kind = ErrorKind.NOT_AUTHENTICATED


class InvalidCredentialsError(AuthenticationError):
    """Raised when email or password are rejected."""
    kind = ErrorKind.INVALID_CREDENTIALS


class EmailNotVerifiedError(AuthenticationError):
    """Raised when the account exists but the email link was not followed yet."""
    kind = ErrorKind.EMAIL_NOT_VERIFIED


class EmailAlreadyExistsError(AuthenticationError):
    """Raised when signing up with an email that is already registered."""
    kind = ErrorKind.EMAIL_ALREADY_EXISTS


class NotAuthorizedError(AuthenticationError):
    """Raised when the current user may not touch a resource."""
    kind = ErrorKind.NOT_AUTHORIZED


class NotFoundError(RumoriError):
    """Raised when a profile, project or feedback item does not exist."""
    kind = ErrorKind.NOT_FOUND


class ConflictError(RumoriError):
    """Raised on unique constraint violations (duplicate username, profile)."""
    kind = ErrorKind.CONFLICT


class InsufficientBalanceError(RumoriError):
    """Raised when a spend would take the coin balance below zero."""
    kind = ErrorKind.INSUFFICIENT_BALANCE


class NetworkError(RumoriError):
    """Raised when the backend cannot be reached."""
    kind = ErrorKind.NETWORK


class DecodingError(RumoriError):
    """Raised when a backend response does not have the expected shape."""
    kind = ErrorKind.DECODING


class ValidationError(RumoriError):
    """Raised when input validation fails before anything is sent."""
    kind = ErrorKind.VALIDATION


class FileUploadError(RumoriError):
    """Raised when storage upload, lookup or removal fails."""
    kind = ErrorKind.STORAGE


class MediaProcessingError(RumoriError):
    """Raised when audio or image preparation fails."""
    kind = ErrorKind.MEDIA


class OperationInProgressError(RumoriError):
    """Raised when the same non-atomic operation is already in flight."""
    kind = ErrorKind.OPERATION_IN_PROGRESS


class ConfigurationError(RumoriError):
    """Raised when configuration is invalid."""
    kind = ErrorKind.CONFIGURATION


class BackendError(RumoriError):
    """Raised when the backend rejects a request for any other reason."""
    kind = ErrorKind.BACKEND
