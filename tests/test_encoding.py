from __future__ import annotations

import json
from datetime import datetime
from urllib.parse import parse_qsl

import pytest

from queued_http.encoding import (
    flatten_parameters,
    json_body_from_parameters,
    query_string_from_parameters,
)
from queued_http.exceptions import InvalidArgumentError


def test_flat_parameters_round_trip() -> None:
    parameters = {"name": "Jane Doe", "q": "a&b=c", "page": "2"}
    encoded = query_string_from_parameters(parameters)

    assert dict(parse_qsl(encoded)) == parameters


def test_nested_mappings_and_sequences_use_bracket_fields() -> None:
    parameters = {"user": {"name": "jane", "roles": ["admin", "dev"]}, "ids": (1, 2)}

    assert list(flatten_parameters(parameters)) == [
        ("user[name]", "jane"),
        ("user[roles][]", "admin"),
        ("user[roles][]", "dev"),
        ("ids[]", 1),
        ("ids[]", 2),
    ]
    assert parse_qsl(query_string_from_parameters(parameters)) == [
        ("user[name]", "jane"),
        ("user[roles][]", "admin"),
        ("user[roles][]", "dev"),
        ("ids[]", "1"),
        ("ids[]", "2"),
    ]


def test_none_value_serializes_as_bare_field() -> None:
    assert query_string_from_parameters({"flag": None, "a": "b"}) == "flag&a=b"


def test_scalars_are_coerced() -> None:
    encoded = query_string_from_parameters(
        {"on": True, "off": False, "when": datetime(2024, 1, 2, 3, 4, 5)}
    )
    assert dict(parse_qsl(encoded)) == {
        "on": "true",
        "off": "false",
        "when": "2024-01-02T03:04:05",
    }


def test_string_encoding_controls_percent_escapes() -> None:
    assert query_string_from_parameters({"city": "Malmö"}) == "city=Malm%C3%B6"
    assert query_string_from_parameters({"city": "Malmö"}, "latin-1") == "city=Malm%F6"


def test_reserved_characters_are_escaped() -> None:
    assert query_string_from_parameters({"path": "/a b?c"}) == "path=%2Fa%20b%3Fc"


def test_empty_parameters_produce_empty_string() -> None:
    assert query_string_from_parameters(None) == ""
    assert query_string_from_parameters({}) == ""


def test_json_body_from_parameters() -> None:
    body = json_body_from_parameters({"a": 1, "tags": ["x"]})
    assert json.loads(body) == {"a": 1, "tags": ["x"]}


def test_json_body_rejects_unserializable_values() -> None:
    with pytest.raises(InvalidArgumentError, match="not JSON serializable"):
        json_body_from_parameters({"bad": object()})
