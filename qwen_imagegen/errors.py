"""Failure taxonomy for image operations."""

from __future__ import annotations

INVALID_REQUEST = "InvalidRequest"
ENVIRONMENT_NOT_READY = "EnvironmentNotReady"
CREDENTIAL_UNAVAILABLE = "CredentialUnavailable"
CHAT_CREATION_FAILED = "ChatCreationFailed"
NO_RESOURCE_FOUND = "NoResourceFound"
FETCH_FAILED = "FetchFailed"
INTERNAL_ERROR = "InternalError"


class ImageGenError(RuntimeError):
    """Raised inside the pipeline; converted to a failure result by the engine."""

    reason = INTERNAL_ERROR

    def __init__(self, message: str, *, excerpt: str | None = None) -> None:
        super().__init__(message)
        self.excerpt = excerpt


class InvalidRequest(ImageGenError, ValueError):
    reason = INVALID_REQUEST


class EnvironmentNotReady(ImageGenError):
    reason = ENVIRONMENT_NOT_READY


class CredentialUnavailable(ImageGenError):
    reason = CREDENTIAL_UNAVAILABLE


class ChatCreationFailed(ImageGenError):
    reason = CHAT_CREATION_FAILED


class NoResourceFound(ImageGenError):
    reason = NO_RESOURCE_FOUND


class FetchFailed(ImageGenError):
    reason = FETCH_FAILED
