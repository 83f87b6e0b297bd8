"""Parameter serialization for query strings and request bodies."""

from __future__ import annotations

import enum
import json
from datetime import date, datetime
from typing import Any, Iterator, Mapping
from urllib.parse import quote

from .exceptions import InvalidArgumentError


FORM_URLENCODED = "application/x-www-form-urlencoded"

# Methods whose parameters are carried in the query string instead of the body.
QUERY_STRING_METHODS = frozenset({"GET", "HEAD"})


class ParameterEncoding(str, enum.Enum):
    FORM = "form"
    JSON = "json"


def _coerce_scalar(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


def flatten_parameters(parameters: Mapping[str, Any] | None, prefix: str | None = None) -> Iterator[tuple[str, Any]]:
    """Yield ``(field, value)`` pairs for a possibly nested parameter mapping.

    Nested mappings become ``key[sub]`` fields and sequences become ``key[]``
    fields. Field order follows the mapping's iteration order.
    """
    if not parameters:
        return
    for key, value in parameters.items():
        field = str(key) if prefix is None else f"{prefix}[{key}]"
        yield from _flatten_value(field, value)


def _flatten_value(field: str, value: Any) -> Iterator[tuple[str, Any]]:
    if isinstance(value, Mapping):
        yield from flatten_parameters(value, prefix=field)
    elif isinstance(value, (list, tuple, set, frozenset)):
        for item in value:
            yield from _flatten_value(f"{field}[]", item)
    else:
        yield field, _coerce_scalar(value)


def percent_escape(value: str | bytes, encoding: str = "utf-8") -> str:
    if isinstance(value, bytes):
        return quote(value, safe="")
    try:
        return quote(value, safe="", encoding=encoding)
    except UnicodeEncodeError as exc:
        raise InvalidArgumentError(f"Cannot encode {value!r} as {encoding}", cause=exc) from exc


def query_string_from_parameters(parameters: Mapping[str, Any] | None, encoding: str = "utf-8") -> str:
    """Serialize parameters as ``application/x-www-form-urlencoded`` text.

    A ``None`` value serializes as the bare field name.
    """
    pairs: list[str] = []
    for field, value in flatten_parameters(parameters):
        escaped_field = percent_escape(field, encoding)
        if value is None:
            pairs.append(escaped_field)
            continue
        if not isinstance(value, (str, bytes)):
            value = str(value)
        pairs.append(f"{escaped_field}={percent_escape(value, encoding)}")
    return "&".join(pairs)


def json_body_from_parameters(parameters: Mapping[str, Any] | None, encoding: str = "utf-8") -> bytes:
    try:
        text = json.dumps(dict(parameters or {}), default=_json_default)
    except (TypeError, ValueError) as exc:
        raise InvalidArgumentError("parameters are not JSON serializable", cause=exc) from exc
    return text.encode(encoding)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
