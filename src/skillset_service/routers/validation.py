"""Shared request validation helpers for routers."""

from __future__ import annotations

import json
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from skillset_service.core.exceptions import ServiceError

ModelT = TypeVar("ModelT", bound=BaseModel)

# Fields whose type validators report a generic value_error
_INVALID_FIELD_MESSAGES: dict[str, str] = {
    "email": "Valid email is required",
}


def parse_json_body(raw_body: bytes) -> dict[str, Any]:
    """Parse JSON body, raising ServiceError on failure."""
    try:
        data = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ServiceError(
            "INVALID_JSON",
            "Request body is not valid JSON",
            400,
            {},
        ) from exc

    if not isinstance(data, dict):
        raise ServiceError(
            "INVALID_JSON",
            "Request body must be a JSON object",
            400,
            {},
        )

    return data


def _first_error_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request body"

    first = errors[0]
    field_name = ".".join(str(part) for part in first.get("loc", ()))
    error_type = first.get("type", "")

    if error_type == "missing":
        return f"Missing required field: {field_name}"
    if error_type == "value_error":
        ctx = first.get("ctx") or {}
        if "error" in ctx:
            return str(ctx["error"])
        if field_name in _INVALID_FIELD_MESSAGES:
            return _INVALID_FIELD_MESSAGES[field_name]
        return str(first.get("msg", "Invalid value"))
    if error_type == "string_type":
        return f"Field '{field_name}' must be a string"
    return f"Field '{field_name}': {first.get('msg', 'Invalid value')}"


def parse_model(model: type[ModelT], data: dict[str, Any]) -> ModelT:
    """Validate a parsed JSON object against a request model.

    Only the first validation problem is reported, as a 400 INVALID_PAYLOAD.
    """
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ServiceError(
            "INVALID_PAYLOAD",
            _first_error_message(exc),
            400,
            {},
        ) from exc


def read_model(raw_body: bytes, model: type[ModelT]) -> ModelT:
    """Parse and validate a request body in one step. An empty body counts as ``{}``."""
    data = {} if raw_body == b"" else parse_json_body(raw_body)
    return parse_model(model, data)
