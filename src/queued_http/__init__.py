"""Base-URL bound HTTP client with queued, callback-based dispatch."""

from .client import RequestClient
from .config import ClientSettings
from .encoding import ParameterEncoding
from .exceptions import (
    FileReadError,
    InvalidArgumentError,
    OperationCancelledError,
    QueuedHTTPError,
    RequestTimeoutError,
    ResponseDecodeError,
    TransportError,
    UnacceptableResponseError,
)
from .multipart import MultipartFormData
from .operation import OperationOutcome, RequestOperation
from .request_options import RequestOptions
from .work_queue import ThreadPoolWorkQueue, WorkQueue

__version__ = "0.1.0"

__all__ = [
    "RequestClient",
    "ClientSettings",
    "ParameterEncoding",
    "RequestOptions",
    "MultipartFormData",
    "RequestOperation",
    "OperationOutcome",
    "WorkQueue",
    "ThreadPoolWorkQueue",
    "QueuedHTTPError",
    "InvalidArgumentError",
    "FileReadError",
    "TransportError",
    "RequestTimeoutError",
    "UnacceptableResponseError",
    "ResponseDecodeError",
    "OperationCancelledError",
    "__version__",
]
