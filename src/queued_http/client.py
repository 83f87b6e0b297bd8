"""Request client bound to a base URL and a work queue."""

from __future__ import annotations

import locale
import logging
import os
import platform
import threading
from typing import Any, Callable, Mapping

import httpx

from .config import ClientSettings
from .encoding import (
    FORM_URLENCODED,
    QUERY_STRING_METHODS,
    ParameterEncoding,
    json_body_from_parameters,
    query_string_from_parameters,
)
from .exceptions import InvalidArgumentError, RequestTimeoutError, TransportError
from .multipart import MultipartFormData, multipart_content_type
from .operation import FailureCallback, RequestOperation, SuccessCallback
from .request_options import RequestOptions
from .security import basic_auth_value, bearer_auth_value, sanitize_headers, token_auth_value
from .work_queue import ThreadPoolWorkQueue, WorkQueue


logger = logging.getLogger(__name__)

USER_AGENT_PRODUCT = "queued-http-client/0.1.0"
AUTHORIZATION = "Authorization"

BodyConstructor = Callable[[MultipartFormData], None]


def _preferred_languages() -> list[str]:
    candidates = [value for value in os.getenv("LANGUAGE", "").split(":") if value]
    if not candidates:
        try:
            code = locale.getlocale()[0]
        except ValueError:
            code = None
        if code:
            candidates.append(code)

    languages: list[str] = []
    for candidate in candidates:
        tag = candidate.split(".", 1)[0].split("@", 1)[0].replace("_", "-").lower()
        if not tag or tag in {"c", "posix"} or tag in languages:
            continue
        languages.append(tag)
    return languages


def accept_language_header() -> str:
    languages = [tag for tag in _preferred_languages() if tag != "en-us"]
    return ", ".join(languages + ["en-us;q=0.8"]) if languages else "en-us"


def default_user_agent() -> str:
    system = platform.system() or "unknown"
    return f"{USER_AGENT_PRODUCT} (Python {platform.python_version()}; {system})"


def _find_header(headers: Mapping[str, str], name: str) -> str | None:
    lowered = name.lower()
    for key in headers:
        if key.lower() == lowered:
            return key
    return None


def _put_header(headers: dict[str, str], name: str, value: str | None) -> None:
    existing = _find_header(headers, name)
    if existing is not None:
        del headers[existing]
    if value is not None:
        headers[name] = str(value)


def _normalize_method(method: str) -> str:
    if not method or not method.strip():
        raise InvalidArgumentError("HTTP method must not be empty")
    return method.strip().upper()


class RequestClient:
    """Builds requests against a base URL and runs them on a work queue.

    Default headers and the Authorization value are copied onto each request at
    build time, so mutating them never affects requests that were already built.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        string_encoding: str | None = None,
        timeout: float | None = None,
        max_concurrent_requests: int | None = None,
        follow_redirects: bool | None = None,
        parameter_encoding: ParameterEncoding | str | None = None,
        settings: ClientSettings | None = None,
        headers: Mapping[str, str] | None = None,
        httpx_client: httpx.Client | None = None,
        work_queue: WorkQueue | None = None,
    ) -> None:
        overrides = {
            "base_url": base_url,
            "string_encoding": string_encoding,
            "timeout": timeout,
            "max_concurrent_requests": max_concurrent_requests,
            "follow_redirects": follow_redirects,
            "parameter_encoding": parameter_encoding,
        }
        if settings is None:
            self.settings = ClientSettings.from_env(**overrides)
        else:
            explicit = {key: value for key, value in overrides.items() if value is not None}
            self.settings = ClientSettings.create(**{**settings.model_dump(), **explicit}) if explicit else settings
        self._base_url = httpx.URL(self.settings.base_url)
        self.parameter_encoding = self.settings.parameter_encoding

        self._lock = threading.Lock()
        self._default_headers: dict[str, str] = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip",
            "Accept-Language": accept_language_header(),
            "User-Agent": default_user_agent(),
        }
        self._authorization: str | None = None
        for name, value in (headers or {}).items():
            self.set_default_header(str(name), value)

        self._httpx = httpx_client or httpx.Client(
            timeout=self.settings.timeout,
            follow_redirects=self.settings.follow_redirects,
            trust_env=False,
        )
        self._work_queue = work_queue or ThreadPoolWorkQueue(self.settings.max_concurrent_requests)
        logger.debug("Created client for %s", self.base_url)

    def __enter__(self) -> "RequestClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._work_queue.shutdown(wait=True)
        self._httpx.close()

    @property
    def base_url(self) -> str:
        return str(self._base_url)

    @property
    def string_encoding(self) -> str:
        return self.settings.string_encoding

    @property
    def timeout(self) -> float:
        return self.settings.timeout

    @property
    def work_queue(self) -> WorkQueue:
        return self._work_queue

    # Default headers and authorization

    @property
    def default_headers(self) -> dict[str, str]:
        with self._lock:
            return self._snapshot_headers()

    def _snapshot_headers(self) -> dict[str, str]:
        headers = dict(self._default_headers)
        if self._authorization is not None:
            headers[AUTHORIZATION] = self._authorization
        return headers

    def get_default_header(self, name: str) -> str | None:
        with self._lock:
            if name.lower() == AUTHORIZATION.lower():
                return self._authorization
            key = _find_header(self._default_headers, name)
            return None if key is None else self._default_headers[key]

    def set_default_header(self, name: str, value: str | None) -> None:
        """Set a header sent with every request; ``None`` removes it."""
        if not name:
            raise InvalidArgumentError("header name must not be empty")
        with self._lock:
            if name.lower() == AUTHORIZATION.lower():
                self._authorization = None if value is None else str(value)
                return
            _put_header(self._default_headers, name, value)

    def set_basic_auth(self, username: str, password: str) -> None:
        self._set_authorization(basic_auth_value(username, password, encoding=self.string_encoding))

    def set_token_auth(self, token: str) -> None:
        self._set_authorization(token_auth_value(token))

    def set_bearer_auth(self, token: str) -> None:
        self._set_authorization(bearer_auth_value(token))

    def clear_auth(self) -> None:
        self._set_authorization(None)

    def _set_authorization(self, value: str | None) -> None:
        with self._lock:
            self._authorization = value

    # Request construction

    def resolve_url(self, path: str | httpx.URL) -> httpx.URL:
        """Resolve ``path`` against the base URL; absolute URLs replace it."""
        if isinstance(path, str) and "\x00" in path:
            raise InvalidArgumentError("Invalid path characters")
        try:
            return self._base_url.join(path or "")
        except httpx.InvalidURL as exc:
            raise InvalidArgumentError(f"Invalid request path: {path!r}", cause=exc) from exc

    def _request_headers(self, options: RequestOptions | None) -> dict[str, str]:
        with self._lock:
            headers = self._snapshot_headers()
        if options is not None and options.headers:
            for name, value in options.headers.items():
                _put_header(headers, str(name), value)
        return headers

    def _request_extensions(self, options: RequestOptions | None) -> dict[str, Any]:
        timeout = options.timeout if options is not None and options.timeout is not None else self.timeout
        if timeout <= 0:
            raise InvalidArgumentError("timeout must be greater than 0")
        return {"timeout": httpx.Timeout(timeout).as_dict()}

    def build_request(
        self,
        method: str,
        path: str,
        parameters: Mapping[str, Any] | None = None,
        *,
        options: RequestOptions | None = None,
    ) -> httpx.Request:
        """Build a request with parameters in the query string or the body.

        ``GET`` and ``HEAD`` parameters are appended to the URL; every other method
        carries them as an ``application/x-www-form-urlencoded`` body, or as JSON
        when the client's parameter encoding is ``ParameterEncoding.JSON``.
        """
        method = _normalize_method(method)
        url = self.resolve_url(path)
        headers = self._request_headers(options)
        content: bytes | None = None

        if parameters:
            if method in QUERY_STRING_METHODS:
                query = query_string_from_parameters(parameters, self.string_encoding).encode("ascii")
                if url.query:
                    query = url.query + b"&" + query
                url = url.copy_with(query=query)
            elif self.parameter_encoding is ParameterEncoding.JSON:
                _put_header(headers, "Content-Type", f"application/json; charset={self.string_encoding}")
                content = json_body_from_parameters(parameters, self.string_encoding)
            else:
                _put_header(headers, "Content-Type", FORM_URLENCODED)
                content = query_string_from_parameters(parameters, self.string_encoding).encode("ascii")

        request = httpx.Request(
            method,
            url,
            headers=headers,
            content=content,
            extensions=self._request_extensions(options),
        )
        logger.debug("Built %s %s headers=%s", method, request.url, sanitize_headers(headers))
        return request

    def build_multipart_request(
        self,
        method: str,
        path: str,
        parameters: Mapping[str, Any] | None = None,
        construct_body: BodyConstructor | None = None,
        *,
        options: RequestOptions | None = None,
    ) -> httpx.Request:
        """Build a ``multipart/form-data`` request.

        ``parameters`` become form-data parts first, then ``construct_body`` is
        called once with the ``MultipartFormData`` builder to append further parts.
        The builder must not be used after the callback returns.
        """
        method = _normalize_method(method)
        if method in QUERY_STRING_METHODS:
            raise InvalidArgumentError(f"{method} requests cannot carry a multipart body")
        url = self.resolve_url(path)
        headers = self._request_headers(options)

        form = MultipartFormData(encoding=self.string_encoding)
        form.append_parameters(parameters)
        if construct_body is not None:
            construct_body(form)
        for error in form.errors:
            logger.warning("Skipped multipart file for %s %s: %s", method, url, error)

        body = form.to_bytes()
        _put_header(headers, "Content-Type", multipart_content_type(form.boundary))
        _put_header(headers, "Content-Length", str(len(body)))

        request = httpx.Request(
            method,
            url,
            headers=headers,
            content=body,
            extensions=self._request_extensions(options),
        )
        logger.debug(
            "Built multipart %s %s parts=%d length=%d",
            method,
            request.url,
            form.part_count,
            len(body),
        )
        return request

    # Dispatch

    def _send(self, request: httpx.Request) -> httpx.Response:
        if "timeout" not in request.extensions:
            request.extensions["timeout"] = httpx.Timeout(self.timeout).as_dict()
        logger.debug("Sending %s %s", request.method, request.url)
        try:
            return self._httpx.send(request)
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError("Request timed out", cause=exc) from exc
        except httpx.RequestError as exc:
            raise TransportError(f"Network error: {exc}", cause=exc) from exc

    def _apply_options(self, request: httpx.Request, options: RequestOptions) -> None:
        for name, value in (options.headers or {}).items():
            if value is None:
                if name in request.headers:
                    del request.headers[name]
            else:
                request.headers[str(name)] = str(value)
        if options.timeout is not None:
            request.extensions["timeout"] = self._request_extensions(options)["timeout"]

    def enqueue(
        self,
        request: httpx.Request,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
        *,
        options: RequestOptions | None = None,
    ) -> RequestOperation:
        """Submit ``request`` to the work queue and return its operation.

        Exactly one of ``on_success(payload)`` or ``on_failure(response, error)``
        is called from a worker thread unless the operation is cancelled first.
        Header and timeout overrides in ``options`` are applied to ``request``
        before it is submitted.
        """
        if options is not None:
            self._apply_options(request, options)
        operation = RequestOperation(
            request,
            self._send,
            on_success=on_success,
            on_failure=on_failure,
            options=options,
        )
        self._work_queue.submit(operation)
        return operation

    def request(
        self,
        method: str,
        path: str,
        parameters: Mapping[str, Any] | None = None,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
        *,
        options: RequestOptions | None = None,
    ) -> RequestOperation:
        request = self.build_request(method, path, parameters, options=options)
        return self.enqueue(request, on_success, on_failure, options=options)

    def get(
        self,
        path: str,
        parameters: Mapping[str, Any] | None = None,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
        *,
        options: RequestOptions | None = None,
    ) -> RequestOperation:
        return self.request("GET", path, parameters, on_success, on_failure, options=options)

    def head(
        self,
        path: str,
        parameters: Mapping[str, Any] | None = None,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
        *,
        options: RequestOptions | None = None,
    ) -> RequestOperation:
        return self.request("HEAD", path, parameters, on_success, on_failure, options=options)

    def post(
        self,
        path: str,
        parameters: Mapping[str, Any] | None = None,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
        *,
        options: RequestOptions | None = None,
    ) -> RequestOperation:
        return self.request("POST", path, parameters, on_success, on_failure, options=options)

    def put(
        self,
        path: str,
        parameters: Mapping[str, Any] | None = None,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
        *,
        options: RequestOptions | None = None,
    ) -> RequestOperation:
        return self.request("PUT", path, parameters, on_success, on_failure, options=options)

    def patch(
        self,
        path: str,
        parameters: Mapping[str, Any] | None = None,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
        *,
        options: RequestOptions | None = None,
    ) -> RequestOperation:
        return self.request("PATCH", path, parameters, on_success, on_failure, options=options)

    def delete(
        self,
        path: str,
        parameters: Mapping[str, Any] | None = None,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
        *,
        options: RequestOptions | None = None,
    ) -> RequestOperation:
        return self.request("DELETE", path, parameters, on_success, on_failure, options=options)

    def cancel_matching(self, method: str, url: str | httpx.URL) -> int:
        """Cancel queued or running operations whose method and URL match exactly."""
        method = _normalize_method(method)
        target = str(self.resolve_url(url))
        cancelled = self._work_queue.cancel_matching(lambda operation: operation.matches(method, target))
        logger.debug("cancel_matching %s %s cancelled=%d", method, target, cancelled)
        return cancelled

    def cancel_all(self) -> int:
        return self._work_queue.cancel_matching(lambda operation: True)

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        return self._work_queue.wait_until_idle(timeout)
