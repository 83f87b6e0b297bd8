"""Construction of ``multipart/form-data`` request bodies."""

from __future__ import annotations

import logging
import os
import secrets
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import unquote, urlparse

from .encoding import flatten_parameters
from .exceptions import FileReadError, InvalidArgumentError


logger = logging.getLogger(__name__)

CRLF = b"\r\n"


def generate_boundary() -> str:
    return "Boundary+" + secrets.token_hex(16).upper()


def multipart_content_type(boundary: str) -> str:
    return f"multipart/form-data; boundary={boundary}"


def _generated_filename(name: str) -> str:
    return f"{name}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True)
class _Part:
    header_lines: tuple[bytes, ...]
    body: bytes


@dataclass(frozen=True)
class _Raw:
    content: bytes


@dataclass
class MultipartFormData:
    """Ordered multipart body handed to a body-construction callback.

    Parts and raw fragments are serialized in the order they are appended.
    File read failures are recorded in ``errors`` instead of being raised.
    """

    boundary: str = field(default_factory=generate_boundary)
    encoding: str = "utf-8"
    errors: list[FileReadError] = field(default_factory=list)
    _segments: list[_Part | _Raw] = field(default_factory=list, repr=False)

    def _encode(self, value: str | bytes) -> bytes:
        if isinstance(value, bytes):
            return value
        try:
            return str(value).encode(self.encoding)
        except UnicodeEncodeError as exc:
            raise InvalidArgumentError(f"Cannot encode {value!r} as {self.encoding}", cause=exc) from exc

    def append_part(self, headers: Mapping[str, str] | None, body: bytes | str) -> None:
        """Append a part with caller-supplied headers.

        Header names and values must not contain CR or LF.
        """
        lines: list[bytes] = []
        for key, value in (headers or {}).items():
            line = f"{key}: {value}"
            if "\r" in line or "\n" in line:
                raise InvalidArgumentError(f"Multipart header {key!r} must not contain CR or LF")
            lines.append(self._encode(line))
        self._segments.append(_Part(header_lines=tuple(lines), body=self._encode(body)))

    def append_form_field(self, value: bytes | str, name: str) -> None:
        if not name:
            raise InvalidArgumentError("form field name must not be empty")
        self.append_part({"Content-Disposition": f'form-data; name="{_quote_parameter(name)}"'}, value)

    def append_file_field(self, data: bytes, mime_type: str, name: str) -> None:
        """Append file data under ``name`` with a generated unique filename."""
        if not name:
            raise InvalidArgumentError("file field name must not be empty")
        if not mime_type:
            raise InvalidArgumentError("file field mime_type must not be empty")
        self._append_file_part(data, mime_type, name, _generated_filename(name))

    def append_file(
        self,
        file: str | os.PathLike[str],
        mime_type: str,
        file_name: str,
        *,
        name: str | None = None,
    ) -> FileReadError | None:
        """Append the contents of a local file.

        ``file`` is a filesystem path or a ``file://`` URI. Returns the recorded
        ``FileReadError`` when the file cannot be read, otherwise ``None``.
        """
        if not mime_type:
            raise InvalidArgumentError("file mime_type must not be empty")
        if not file_name:
            raise InvalidArgumentError("file_name must not be empty")
        try:
            path = _local_path(file)
            data = path.read_bytes()
        except (OSError, ValueError) as exc:
            error = FileReadError(f"Unable to read {file}: {exc}", path=str(file), cause=exc)
            self.errors.append(error)
            logger.debug("Recorded multipart file read error for %s: %s", file, exc)
            return error
        self._append_file_part(data, mime_type, name or file_name, file_name)
        return None

    def append_raw(self, data: bytes) -> None:
        self._segments.append(_Raw(content=bytes(data)))

    def append_text(self, text: str) -> None:
        self._segments.append(_Raw(content=self._encode(text)))

    def append_parameters(self, parameters: Mapping[str, Any] | None) -> None:
        for field_name, value in flatten_parameters(parameters):
            self.append_form_field("" if value is None else _as_field_value(value), field_name)

    def _append_file_part(self, data: bytes, mime_type: str, name: str, file_name: str) -> None:
        self.append_part(
            {
                "Content-Disposition": (
                    f'form-data; name="{_quote_parameter(name)}"; filename="{_quote_parameter(file_name)}"'
                ),
                "Content-Type": mime_type,
            },
            data,
        )

    @property
    def part_count(self) -> int:
        return sum(1 for segment in self._segments if isinstance(segment, _Part))

    def to_bytes(self) -> bytes:
        """Serialize every segment followed by the closing boundary."""
        delimiter = b"--" + self.boundary.encode("ascii")
        chunks: list[bytes] = []
        for segment in self._segments:
            if isinstance(segment, _Raw):
                chunks.append(segment.content)
                continue
            chunks.append(delimiter + CRLF)
            for line in segment.header_lines:
                chunks.append(line + CRLF)
            chunks.append(CRLF)
            chunks.append(segment.body)
            chunks.append(CRLF)
        chunks.append(delimiter + b"--" + CRLF)
        return b"".join(chunks)


def _quote_parameter(value: str) -> str:
    if "\r" in value or "\n" in value:
        raise InvalidArgumentError(f"Content-Disposition parameter {value!r} must not contain CR or LF")
    return value.replace('"', "%22")


def _as_field_value(value: Any) -> str | bytes:
    if isinstance(value, (str, bytes)):
        return value
    return str(value)


def _local_path(file: str | os.PathLike[str]) -> Path:
    raw = os.fspath(file)
    parsed = urlparse(raw)
    if parsed.scheme == "file":
        if parsed.netloc not in ("", "localhost"):
            raise ValueError(f"Unsupported file host: {parsed.netloc}")
        return Path(unquote(parsed.path))
    if parsed.scheme and len(parsed.scheme) > 1:
        raise ValueError(f"Unsupported file URI scheme: {parsed.scheme}")
    return Path(raw)
