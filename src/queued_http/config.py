"""Client settings and environment loading."""

from __future__ import annotations

import codecs
import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .encoding import ParameterEncoding
from .exceptions import InvalidArgumentError
from .security import validate_base_url


ENV_PREFIX = "QUEUED_HTTP_"

_ENV_FIELDS = {
    "base_url": "BASE_URL",
    "string_encoding": "STRING_ENCODING",
    "timeout": "TIMEOUT",
    "max_concurrent_requests": "MAX_CONCURRENT_REQUESTS",
}


class ClientSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: str
    string_encoding: str = "utf-8"
    timeout: float = Field(default=30.0, gt=0)
    max_concurrent_requests: int = Field(default=4, ge=1)
    follow_redirects: bool = True
    parameter_encoding: ParameterEncoding = ParameterEncoding.FORM

    @field_validator("base_url")
    @classmethod
    def _check_base_url(cls, value: str) -> str:
        try:
            return validate_base_url(value)
        except InvalidArgumentError as exc:
            raise ValueError(str(exc)) from exc

    @field_validator("string_encoding")
    @classmethod
    def _check_encoding(cls, value: str) -> str:
        try:
            return codecs.lookup(value).name
        except LookupError as exc:
            raise ValueError(f"Unknown string encoding: {value}") from exc

    @classmethod
    def create(cls, **values: Any) -> "ClientSettings":
        """Validate ``values``, raising ``InvalidArgumentError`` on failure."""
        try:
            return cls(**values)
        except ValidationError as exc:
            raise InvalidArgumentError(f"Invalid client settings: {exc}", cause=exc) from exc

    @classmethod
    def from_env(cls, **overrides: Any) -> "ClientSettings":
        """Load settings from ``QUEUED_HTTP_*`` variables; explicit overrides win."""
        values: dict[str, Any] = {}
        for field_name, suffix in _ENV_FIELDS.items():
            raw = os.getenv(ENV_PREFIX + suffix)
            if raw:
                values[field_name] = raw
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls.create(**values)
