from __future__ import annotations

import base64
import json
from urllib.parse import parse_qsl

import pytest

from queued_http import InvalidArgumentError, ParameterEncoding, RequestClient, RequestOptions


@pytest.fixture
def client():
    with RequestClient("https://api.example.com/v1/") as client:
        yield client


def test_relative_path_resolves_against_base_url(client) -> None:
    request = client.build_request("GET", "users/42")
    assert str(request.url) == "https://api.example.com/v1/users/42"


def test_absolute_url_overrides_base_url(client) -> None:
    request = client.build_request("GET", "https://other.example.com/ping")
    assert str(request.url) == "https://other.example.com/ping"


def test_root_relative_path(client) -> None:
    request = client.build_request("GET", "/status")
    assert str(request.url) == "https://api.example.com/status"


def test_get_parameters_go_to_query_string(client) -> None:
    parameters = {"q": "hello world", "page": "2", "sort": "-created"}
    request = client.build_request("get", "search", parameters)

    assert request.method == "GET"
    assert dict(parse_qsl(request.url.query.decode())) == parameters
    assert request.content == b""
    assert "Content-Type" not in request.headers


def test_get_parameters_extend_existing_query(client) -> None:
    request = client.build_request("GET", "search?lang=en", {"q": "x"})
    assert parse_qsl(request.url.query.decode()) == [("lang", "en"), ("q", "x")]


@pytest.mark.parametrize("method", ["POST", "PUT", "DELETE", "PATCH"])
def test_body_methods_use_form_encoding(client, method) -> None:
    parameters = {"name": "Jane", "note": "a&b=c ö"}
    request = client.build_request(method, "users", parameters)

    assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
    assert dict(parse_qsl(request.content.decode())) == parameters
    assert request.url.query == b""


def test_body_method_without_parameters_has_no_body(client) -> None:
    request = client.build_request("POST", "users")
    assert request.content == b""
    assert "Content-Type" not in request.headers


def test_json_parameter_encoding() -> None:
    with RequestClient("https://api.example.com", parameter_encoding=ParameterEncoding.JSON) as client:
        post = client.build_request("POST", "/users", {"name": "Jane", "tags": ["a"]})
        get = client.build_request("GET", "/users", {"page": 1})

    assert post.headers["Content-Type"] == "application/json; charset=utf-8"
    assert json.loads(post.content) == {"name": "Jane", "tags": ["a"]}
    assert get.url.query == b"page=1"


def test_string_encoding_applies_to_parameters() -> None:
    with RequestClient("https://api.example.com", string_encoding="latin-1") as client:
        request = client.build_request("GET", "/cities", {"name": "Malmö"})
    assert request.url.query == b"name=Malm%F6"


def test_default_headers_and_auth_are_copied(client) -> None:
    client.set_default_header("X-Client", "tests")
    client.set_basic_auth("u", "p")
    request = client.build_request("GET", "me")

    assert request.headers["X-Client"] == "tests"
    assert request.headers["Accept"] == "application/json"
    assert request.headers["Authorization"] == "Basic " + base64.b64encode(b"u:p").decode()

    client.clear_auth()
    assert "Authorization" not in client.build_request("GET", "me").headers


def test_removed_default_header_is_not_sent(client) -> None:
    client.set_default_header("X", "1")
    client.set_default_header("X", None)
    assert "X" not in client.build_request("GET", "me").headers


def test_mutations_do_not_affect_built_requests(client) -> None:
    client.set_token_auth("first")
    request = client.build_request("GET", "me")
    client.set_token_auth("second")
    client.set_default_header("Accept", "text/plain")

    assert request.headers["Authorization"] == 'Token token="first"'
    assert request.headers["Accept"] == "application/json"


def test_header_names_keep_their_case(client) -> None:
    client.set_default_header("X-Request-Source", "sdk")
    request = client.build_request("GET", "me")
    assert (b"X-Request-Source", b"sdk") in request.headers.raw


def test_request_options_override_headers_and_timeout(client) -> None:
    options = RequestOptions(headers={"accept": "text/csv", "User-Agent": None}, timeout=3.0)
    request = client.build_request("GET", "export", options=options)

    assert request.headers["Accept"] == "text/csv"
    assert "User-Agent" not in request.headers
    assert request.extensions["timeout"]["read"] == 3.0


def test_invalid_arguments(client) -> None:
    with pytest.raises(InvalidArgumentError):
        client.build_request("", "users")
    with pytest.raises(InvalidArgumentError):
        client.build_request("GET", "users\x00")
    with pytest.raises(InvalidArgumentError):
        client.build_request("GET", "users", options=RequestOptions(timeout=-1))


def test_unencodable_parameters_raise_invalid_argument() -> None:
    with RequestClient("https://api.example.com", string_encoding="latin-1") as client:
        with pytest.raises(InvalidArgumentError, match="Cannot encode"):
            client.build_request("GET", "/x", {"q": "€"})
        with pytest.raises(InvalidArgumentError, match="Cannot encode"):
            client.build_request("POST", "/x", {"q": "€"})
        with pytest.raises(InvalidArgumentError, match="Cannot encode"):
            client.build_multipart_request("POST", "/x", {"q": "€"})
