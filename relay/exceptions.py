"""Custom exception classes for the relay."""

from fastapi import status

from common.constants import REASON_INVALID_SESSION


class RelayException(Exception):
    """
    Base exception class for all relay errors.

    Subclasses carry the machine-readable code and HTTP status used when the
    error is converted to a response at the request boundary.
    """
    code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class MissingParametersError(RelayException):
    """
    Raised when a required request field is absent or empty.
    """
    code = "MISSING_PARAMETERS"
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidChunkError(RelayException):
    """
    Raised when a chunk index, total count or payload is malformed or out of bounds.
    """
    code = "INVALID_CHUNK"
    status_code = status.HTTP_400_BAD_REQUEST


class TotalChunksMismatchError(RelayException):
    """
    Raised when an upload declares a total chunk count different from the stored metadata.
    """
    code = "TOTAL_CHUNKS_MISMATCH"
    status_code = status.HTTP_409_CONFLICT


class ChunkAlreadyConfirmedError(RelayException):
    """
    Raised when uploading an index the receiver has already confirmed.
    """
    code = "CHUNK_ALREADY_CONFIRMED"
    status_code = status.HTTP_409_CONFLICT


class InvalidSessionError(RelayException):
    """
    Raised when a session identifier contains characters outside [A-Za-z0-9_].
    """
    code = "INVALID_SESSION"
    reason = REASON_INVALID_SESSION
    status_code = status.HTTP_400_BAD_REQUEST


class SessionNotFoundError(InvalidSessionError):
    """
    Raised when a well-formed session identifier has no storage location.
    """
    status_code = status.HTTP_404_NOT_FOUND


class ChunkNotFoundError(RelayException):
    """
    Raised when a chunk file does not exist (not uploaded yet, or already confirmed).
    """
    code = "CHUNK_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class MetadataNotFoundError(RelayException):
    """
    Raised when a session exists but chunk 0 has not been uploaded yet.
    """
    code = "METADATA_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class AdmissionRejectedError(RelayException):
    """
    Raised by strict admission when an upload would exceed quota or free space.
    """
    code = "ADMISSION_REJECTED"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, reason: str):
        super().__init__(f"Upload rejected: {reason}")
        self.reason = reason


class AllocationError(RelayException):
    """
    Raised when a session storage location cannot be created.
    """
    code = "ALLOCATION_FAILED"
    status_code = status.HTTP_507_INSUFFICIENT_STORAGE


class StorageError(RelayException):
    """
    Raised when reading or writing chunk files fails.
    """
    code = "STORAGE_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class PasswordAlreadySetError(RelayException):
    """
    Raised when the initial password setup runs a second time.
    """
    code = "PASSWORD_ALREADY_SET"
    status_code = status.HTTP_409_CONFLICT


class PasswordNotSetError(RelayException):
    """
    Raised when logging in before the initial password has been set.
    """
    code = "PASSWORD_NOT_SET"
    status_code = status.HTTP_409_CONFLICT


class InvalidCredentialsError(RelayException):
    """
    Raised when a login password does not match.
    """
    code = "INVALID_CREDENTIALS"
    status_code = status.HTTP_401_UNAUTHORIZED


class InvalidAPIKeyError(RelayException):
    """
    Raised when an API key is missing, malformed or was never issued.
    """
    code = "INVALID_API_KEY"
    status_code = status.HTTP_401_UNAUTHORIZED


class UnknownActionError(RelayException):
    """
    Raised when the action selector names no known operation.
    """
    code = "UNKNOWN_ACTION"
    status_code = status.HTTP_400_BAD_REQUEST


class MethodNotAllowedError(RelayException):
    """
    Raised when a state-changing action arrives as GET.
    """
    code = "METHOD_NOT_ALLOWED"
    status_code = status.HTTP_405_METHOD_NOT_ALLOWED
