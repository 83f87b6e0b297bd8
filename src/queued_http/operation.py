"""Request operations: the unit of work executed by a work queue."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Literal, Mapping

import httpx
from pydantic import TypeAdapter, ValidationError

from .exceptions import (
    OperationCancelledError,
    QueuedHTTPError,
    ResponseDecodeError,
    UnacceptableResponseError,
)
from .request_options import RequestOptions


logger = logging.getLogger(__name__)

SuccessCallback = Callable[[Any], None]
FailureCallback = Callable[[httpx.Response | None, QueuedHTTPError], None]
Sender = Callable[[httpx.Request], httpx.Response]

DEFAULT_ACCEPTABLE_STATUS_CODES = range(200, 300)


@dataclass(frozen=True)
class OperationOutcome:
    """Terminal result of a request operation."""

    kind: Literal["success", "failure", "cancelled"]
    payload: Any = None
    response: httpx.Response | None = None
    error: QueuedHTTPError | None = None

    @property
    def succeeded(self) -> bool:
        return self.kind == "success"

    @property
    def cancelled(self) -> bool:
        return self.kind == "cancelled"


def _media_type(response: httpx.Response) -> str:
    return response.headers.get("content-type", "").split(";", 1)[0].strip().lower()


def _is_json(media_type: str) -> bool:
    return media_type == "application/json" or media_type.endswith("+json")


def _error_details(response: httpx.Response) -> tuple[str, dict[str, Any]]:
    raw_body = None
    parsed_body = None
    try:
        raw_body = response.text
        if _is_json(_media_type(response)):
            parsed_body = response.json()
    except (UnicodeDecodeError, ValueError):
        parsed_body = None

    message = str(parsed_body or raw_body or response.reason_phrase or "request failed")
    if isinstance(parsed_body, Mapping):
        if isinstance(parsed_body.get("error"), str):
            message = parsed_body["error"]
        elif isinstance(parsed_body.get("message"), str):
            message = parsed_body["message"]

    return message, {
        "status_code": response.status_code,
        "body": parsed_body if parsed_body is not None else raw_body,
        "headers": MappingProxyType(dict(response.headers)),
        "request_id": response.headers.get("x-request-id"),
    }


def validate_response(response: httpx.Response, options: RequestOptions) -> None:
    """Raise ``UnacceptableResponseError`` for unacceptable status codes or content types."""
    acceptable_codes = options.acceptable_status_codes or DEFAULT_ACCEPTABLE_STATUS_CODES
    if response.status_code not in acceptable_codes:
        message, details = _error_details(response)
        raise UnacceptableResponseError(message, **details)

    if options.acceptable_content_types and response.content:
        media_type = _media_type(response)
        acceptable = {value.lower() for value in options.acceptable_content_types}
        if media_type not in acceptable:
            _, details = _error_details(response)
            raise UnacceptableResponseError(f"Unacceptable content type: {media_type or 'none'}", **details)


def decode_response(response: httpx.Response, options: RequestOptions) -> Any:
    """Decode the response body according to its content type."""
    if response.status_code == 204 or not response.content:
        return None
    media_type = _media_type(response)
    if _is_json(media_type):
        try:
            payload = response.json()
        except ValueError as exc:
            raise ResponseDecodeError(
                "Response body is not valid JSON",
                status_code=response.status_code,
                body=response.content,
                headers=MappingProxyType(dict(response.headers)),
                cause=exc,
            ) from exc
    elif options.response_model is not None:
        raise ResponseDecodeError(
            f"Cannot validate {media_type or 'untyped'} response against a model",
            status_code=response.status_code,
            body=response.content,
        )
    elif media_type.startswith("text/"):
        return response.text
    else:
        return response.content

    if options.response_model is None:
        return payload
    try:
        return TypeAdapter(options.response_model).validate_python(payload)
    except ValidationError as exc:
        raise ResponseDecodeError(
            "Response body failed model validation",
            status_code=response.status_code,
            body=payload,
            cause=exc,
        ) from exc


class RequestOperation:
    """A request paired with its completion callbacks.

    Exactly one terminal outcome is recorded. ``on_success`` or ``on_failure``
    is invoked at most once, on the thread that runs the operation, and
    neither is invoked once the operation has been cancelled.
    """

    def __init__(
        self,
        request: httpx.Request,
        send: Sender,
        *,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
        options: RequestOptions | None = None,
    ) -> None:
        self.request = request
        self.options = options or RequestOptions()
        self._send = send
        self._on_success = on_success
        self._on_failure = on_failure
        self._lock = threading.Lock()
        self._started = False
        self._cancelled = False
        self._outcome: OperationOutcome | None = None
        self._finished = threading.Event()

    def __repr__(self) -> str:
        return f"<RequestOperation {self.method} {self.url}>"

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def url(self) -> str:
        return str(self.request.url)

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def is_finished(self) -> bool:
        return self._finished.is_set()

    @property
    def outcome(self) -> OperationOutcome | None:
        return self._outcome

    def matches(self, method: str, url: str) -> bool:
        return self.method == method.upper() and self.url == url

    def cancel(self) -> bool:
        """Request cancellation. Returns ``False`` if the operation already finished."""
        with self._lock:
            if self._outcome is not None:
                return False
            self._cancelled = True
            if not self._started:
                self._finish(self._cancelled_outcome())
        return True

    def wait(self, timeout: float | None = None) -> OperationOutcome | None:
        """Block until the operation finishes and return its outcome."""
        self._finished.wait(timeout)
        return self._outcome

    def run(self) -> None:
        with self._lock:
            if self._cancelled or self._started:
                return
            self._started = True

        response: httpx.Response | None = None
        try:
            response = self._send(self.request)
            validate_response(response, self.options)
            payload = decode_response(response, self.options)
        except QueuedHTTPError as exc:
            outcome = OperationOutcome("failure", response=response, error=exc)
        except Exception as exc:
            logger.exception("Unexpected error running %r", self)
            outcome = OperationOutcome(
                "failure",
                response=response,
                error=QueuedHTTPError(f"Unexpected error: {exc}", cause=exc),
            )
        else:
            outcome = OperationOutcome("success", payload=payload, response=response)

        with self._lock:
            if self._cancelled:
                logger.debug("Dropping callbacks for cancelled %r", self)
                self._finish(self._cancelled_outcome(response))
                return
            self._outcome = outcome

        try:
            self._deliver(outcome)
        finally:
            self._finished.set()

    def _cancelled_outcome(self, response: httpx.Response | None = None) -> OperationOutcome:
        error = OperationCancelledError(f"{self.method} {self.url} was cancelled")
        return OperationOutcome("cancelled", response=response, error=error)

    def _finish(self, outcome: OperationOutcome) -> None:
        self._outcome = outcome
        self._finished.set()

    def _deliver(self, outcome: OperationOutcome) -> None:
        try:
            if outcome.succeeded:
                logger.debug("%r succeeded", self)
                if self._on_success is not None:
                    self._on_success(outcome.payload)
            else:
                logger.debug("%r failed: %s", self, outcome.error)
                if self._on_failure is not None:
                    self._on_failure(outcome.response, outcome.error)
        except Exception:
            logger.exception("Completion callback for %r raised", self)
