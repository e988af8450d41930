"""
Error Codes and Exception Hierarchy.

Every failure the service reports carries a machine-readable code and a
human-readable message. API responses use the same envelope:

    {
        "success": false,
        "error": "<ERROR_CODE>",
        "message": "<human readable message>"
    }

Retryability:
    Only ProviderTransportError is retryable. The provider client retries
    it internally; every other error surfaces immediately.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """Standardized error codes for API responses."""
    UNKNOWN_SPEAKER = "UNKNOWN_SPEAKER"             # Speaker has no voice mapping
    EMPTY_TEXT = "EMPTY_TEXT"                       # Nothing to synthesize
    MISSING_AUDIO_URL = "MISSING_AUDIO_URL"         # Provider answered without audio
    PROVIDER_TRANSPORT = "PROVIDER_TRANSPORT"       # Network-class failure
    PROVIDER_REJECTED = "PROVIDER_REJECTED"         # Non-2xx or malformed response
    ALREADY_IN_PROGRESS = "ALREADY_IN_PROGRESS"     # Duplicate generation
    NO_CONTENT = "NO_CONTENT"                       # Text variant empty or absent
    NOT_FOUND = "NOT_FOUND"                         # Subject/record absent
    STORAGE_UPLOAD_FAILED = "STORAGE_UPLOAD_FAILED" # Blob store write failed
    DATA_STORE_ERROR = "DATA_STORE_ERROR"           # Data store unreachable or failing
    INVALID_INPUT = "INVALID_INPUT"                 # Malformed caller input
    INTERNAL_ERROR = "INTERNAL_ERROR"               # Unexpected error


class VoiceProxyError(Exception):
    """
    Base exception for voice-proxy errors.

    Attributes:
        message: Human-readable error message.
        code: Error code from ErrorCode class.
        details: Optional dictionary with additional context.
    """
    retryable = False

    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to standardized error response dict for API."""
        result: Dict[str, Any] = {
            "success": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class UnknownSpeakerError(VoiceProxyError):
    """Raised when a speaker is outside the closed set or has no voice id."""
    def __init__(self, speaker: str, supported: Optional[list] = None):
        details = {"speaker": speaker}
        if supported is not None:
            details["supported"] = list(supported)
        super().__init__(f"Unsupported speaker: {speaker}", ErrorCode.UNKNOWN_SPEAKER, details)
        self.speaker = speaker


class EmptyTextError(VoiceProxyError):
    """Raised when text is empty after preprocessing."""
    def __init__(self, message: str = "Text must not be empty"):
        super().__init__(message, ErrorCode.EMPTY_TEXT)


class MissingAudioUrlError(VoiceProxyError):
    """Raised when the provider response omits the audio URL."""
    def __init__(self, message: str = "Provider response is missing the audio URL", details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.MISSING_AUDIO_URL, details)


class ProviderTransportError(VoiceProxyError):
    """Network-class provider failure (timeout, reset, DNS, TLS). Retryable."""
    retryable = True

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.PROVIDER_TRANSPORT, details)


class ProviderRejectedError(VoiceProxyError):
    """Non-2xx or malformed provider response. Not retried."""
    def __init__(self, message: str, status: Optional[int] = None, body: str = ""):
        details: Dict[str, Any] = {}
        if status is not None:
            details["status"] = status
        if body:
            details["body"] = body[:500]
        super().__init__(message, ErrorCode.PROVIDER_REJECTED, details)
        self.status = status
        self.body = body


class AlreadyInProgressError(VoiceProxyError):
    """Raised when another generation already holds the same key."""
    def __init__(self, key: str):
        super().__init__(
            f"Generation already in progress for {key}",
            ErrorCode.ALREADY_IN_PROGRESS,
            {"key": key},
        )
        self.key = key


class NoContentError(VoiceProxyError):
    """Raised when the requested text variant is empty or absent."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.NO_CONTENT, details)


class NotFoundError(VoiceProxyError):
    """Raised when a subject or record does not exist."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.NOT_FOUND, details)


class StorageUploadFailedError(VoiceProxyError):
    """Raised when the blob store rejects an upload."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.STORAGE_UPLOAD_FAILED, details)


class DataStoreError(VoiceProxyError):
    """Raised when the external data store fails (not for absent records)."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.DATA_STORE_ERROR, details)


class InvalidInputError(VoiceProxyError):
    """Raised when caller input is malformed."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.INVALID_INPUT, details)


# HTTP status for each error code; anything missing maps to 500.
HTTP_STATUS = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.UNKNOWN_SPEAKER: 400,
    ErrorCode.EMPTY_TEXT: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.NO_CONTENT: 404,
    ErrorCode.ALREADY_IN_PROGRESS: 409,
    ErrorCode.PROVIDER_TRANSPORT: 502,
    ErrorCode.PROVIDER_REJECTED: 502,
    ErrorCode.MISSING_AUDIO_URL: 502,
    ErrorCode.STORAGE_UPLOAD_FAILED: 502,
    ErrorCode.DATA_STORE_ERROR: 502,
}


def http_status_for(error: VoiceProxyError) -> int:
    return HTTP_STATUS.get(error.code, 500)
