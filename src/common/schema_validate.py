"""JSON Schema validation for registry payloads and on-disk caches.

Wraps jsonschema Draft7 validation so fetch boundaries reject malformed data
with a single, readable error instead of passing loosely-typed JSON through.
"""

from __future__ import annotations

from typing import Any, Dict

from jsonschema import Draft7Validator


class SchemaError(ValueError):
    """Raised when data fails to validate against a provided schema."""


REGISTRY_DOCUMENT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "versions": {
            "type": "object",
            "additionalProperties": {"type": "object"},
        },
        "time": {"type": "object"},
    },
}

REGISTRY_CACHE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["formatVersion", "time", "versions"],
    "properties": {
        "formatVersion": {"type": "integer"},
        "time": {"type": "object"},
        "versions": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {
                    "scripts": {"type": ["object", "null"]},
                },
            },
        },
    },
}

DOWNLOADS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["downloads"],
    "properties": {
        "downloads": {"type": "number"},
    },
}

DOWNLOADS_CACHE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": {"type": "number"},
}

NODE_ADVISORIES_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": {
        "type": "object",
        "required": ["vulnerable"],
        "properties": {
            "cve": {"type": "array", "items": {"type": "string"}},
            "vulnerable": {"type": "string"},
            "patched": {"type": "string"},
            "overview": {"type": "string"},
        },
    },
}


def validate(schema: Dict[str, Any], data: Any, *, what: str) -> None:
    """Validate data strictly and raise on the first error.

    Args:
        schema: Draft-07 JSON Schema dict.
        data:   Payload to validate.
        what:   Human-readable payload description used in the error message.
    """
    validator = Draft7Validator(schema)
    errs = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    if errs:
        first = errs[0]
        path = "/".join([str(p) for p in first.path])
        msg = f"Invalid {what} at '{path}': {first.message}"
        raise SchemaError(msg)
