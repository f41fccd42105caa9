"""Custom exception classes for the Polygraf server.

Every exception carries a stable ``code`` and a default user-facing message so
callers can tell "try a different token" apart from "try again".
"""


class PolygrafException(Exception):
    """
    Base exception class for all Polygraf errors.
    """
    code = "INTERNAL_ERROR"
    default_message = "Internal error"
    retryable = False

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)


class AccessTokenNotFoundError(PolygrafException):
    """
    Raised when no access token matches the presented string.
    """
    code = "TOKEN_NOT_FOUND"
    default_message = "Invalid access token"


class AccessTokenAlreadyUsedError(PolygrafException):
    """
    Raised when an access token has already been redeemed, either at the
    initial lookup or by a concurrent redeemer inside the transaction.
    """
    code = "TOKEN_ALREADY_USED"
    default_message = "This access token has already been used"


class AccessTokenExpiredError(PolygrafException):
    """
    Raised when an access token is past its expiry time.
    """
    code = "TOKEN_EXPIRED"
    default_message = "This access token has expired"


class IdentityIssuanceFailedError(PolygrafException):
    """
    Raised when the identity provider cannot issue a new identity.
    """
    code = "IDENTITY_ISSUANCE_FAILED"
    default_message = "Could not create a session, please try again"
    retryable = True


class GuestAccessDisabledError(PolygrafException):
    """
    Raised when guest access is requested but not configured.
    """
    code = "GUEST_ACCESS_DISABLED"
    default_message = "Guest access is disabled"


class StorageFailureError(PolygrafException):
    """
    Raised when the backing store fails for a transient or backend reason.
    Safe to retry the whole operation.
    """
    code = "STORAGE_FAILURE"
    default_message = "Storage failure, please try again"
    retryable = True


class TransactionAbortedError(StorageFailureError):
    """
    Raised when a transaction cannot acquire or commit under contention.
    No partial state survives, so the whole operation may be retried.
    """
    code = "TRANSACTION_ABORTED"
    default_message = "The operation conflicted with another request, please try again"


class ObjectTooLargeError(StorageFailureError):
    """
    Raised when an object would need more writes than one atomic batch allows.
    """
    code = "OBJECT_TOO_LARGE"
    default_message = "Object is too large to store atomically"
    retryable = False


class ObjectNotFoundError(PolygrafException):
    """
    Raised when a requested object does not exist.
    """
    code = "OBJECT_NOT_FOUND"
    default_message = "Object not found"


class CorruptObjectError(PolygrafException):
    """
    Raised when a chunked object's stored chunks do not match its metadata.
    """
    code = "CORRUPT_OBJECT"
    default_message = "Stored object is corrupt"


class InvalidSessionError(PolygrafException):
    """
    Raised when a session key is missing, malformed or revoked.
    """
    code = "INVALID_SESSION"
    default_message = "Invalid or expired session"


class UnauthorizedAccessError(PolygrafException):
    """
    Raised when a caller lacks the role required for an operation.
    """
    code = "UNAUTHORIZED_ACCESS"
    default_message = "Not allowed"
