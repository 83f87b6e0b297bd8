"""Client-specific exceptions."""

from __future__ import annotations

from typing import Mapping


class QueuedHTTPError(Exception):
    """Base exception for all client failures."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: object = None,
        headers: Mapping[str, str] | None = None,
        request_id: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.headers = dict(headers) if headers is not None else {}
        self.request_id = request_id
        self.cause = cause

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        if self.status_code is None:
            return str(self.args[0])
        return f"{self.status_code}: {self.args[0]}"


class InvalidArgumentError(QueuedHTTPError, ValueError):
    """Raised when a client or request argument is invalid."""


class FileReadError(QueuedHTTPError):
    """Recorded when a local file cannot be appended to a multipart body."""

    def __init__(self, message: str, *, path: str | None = None, cause: Exception | None = None) -> None:
        super().__init__(message, cause=cause)
        self.path = path


class TransportError(QueuedHTTPError):
    """Raised for transport-level failures like DNS, TCP and TLS errors."""


class RequestTimeoutError(TransportError):
    """Raised when a request exceeds the configured timeout."""


class UnacceptableResponseError(QueuedHTTPError):
    """Raised for non-acceptable status codes or content types."""


class ResponseDecodeError(UnacceptableResponseError):
    """Raised when a response body cannot be decoded or validated."""


class OperationCancelledError(QueuedHTTPError):
    """Outcome of an operation cancelled before delivering a callback."""
