"""Per-request overrides for the request client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Collection, Mapping


@dataclass(frozen=True)
class RequestOptions:
    headers: Mapping[str, str | None] | None = None
    timeout: float | None = None
    acceptable_status_codes: Collection[int] | None = None
    acceptable_content_types: Collection[str] | None = None
    response_model: Any | None = None
