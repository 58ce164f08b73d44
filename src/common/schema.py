"""JSON Schema validation for configuration and manifest documents.

Wraps jsonschema Draft7 validation and reports the first error with a
slash-separated path so messages point at the offending key.
"""

from __future__ import annotations

from typing import Any, Dict

from jsonschema import Draft7Validator


class SchemaError(ValueError):
    """Raised when data fails to validate against a provided schema."""


CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "resolver": {
            "type": "object",
            "properties": {
                "max_steps": {"type": "integer", "minimum": 1},
                "allow_prerelease": {"type": "boolean"},
                "tool_version": {"type": "string"},
            },
            "additionalProperties": False,
        },
        "http": {
            "type": "object",
            "properties": {
                "timeout": {"type": "number", "exclusiveMinimum": 0},
                "retries": {"type": "integer", "minimum": 1},
                "cache_ttl": {"type": "integer", "minimum": 0},
                "max_concurrency": {"type": "integer", "minimum": 1},
            },
            "additionalProperties": False,
        },
        "default_source": {"type": "string"},
    },
    "additionalProperties": True,
}

_REQUIREMENT_SCHEMA: Dict[str, Any] = {
    "oneOf": [
        {"type": "string"},
        {"type": "array", "items": {"type": "string"}},
        {"type": "null"},
        {
            "type": "object",
            "properties": {
                "version": {
                    "oneOf": [
                        {"type": "string"},
                        {"type": "array", "items": {"type": "string"}},
                    ]
                },
                "platforms": {"type": "array", "items": {"type": "string"}},
                "groups": {"type": "array", "items": {"type": "string"}},
                "source": {"type": "string"},
            },
            "additionalProperties": False,
        },
    ]
}

MANIFEST_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "sources": {
            "type": "array",
            "items": {
                "oneOf": [
                    {"type": "string"},
                    {
                        "type": "object",
                        "properties": {
                            "gem": {"type": "string"},
                            "git": {"type": "string"},
                            "path": {"type": "string"},
                            "revision": {"type": "string"},
                            "branch": {"type": "string"},
                            "tag": {"type": "string"},
                        },
                        "additionalProperties": False,
                    },
                ]
            },
        },
        "platforms": {"type": "array", "items": {"type": "string"}},
        "ruby": {"type": "string"},
        "dependencies": {
            "oneOf": [
                {"type": "object", "additionalProperties": _REQUIREMENT_SCHEMA},
                {"type": "array", "items": {"type": "string"}},
            ]
        },
    },
    "required": ["dependencies"],
    "additionalProperties": False,
}


def validate(schema: Dict[str, Any], data: Any, what: str = "document") -> None:
    """Validate data strictly and raise on the first error.

    Args:
        schema: Draft-07 JSON Schema dict.
        data:   Parsed document to validate.
        what:   Label used in the error message.
    """
    validator = Draft7Validator(schema)
    errs = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    if errs:
        first = errs[0]
        path = "/".join([str(p) for p in first.path])
        raise SchemaError(f"Invalid {what} at '{path}': {first.message}")


def validate_config(data: Any) -> None:
    """Validate a configuration document."""
    validate(CONFIG_SCHEMA, data, "config")


def validate_manifest(data: Any) -> None:
    """Validate a manifest document."""
    validate(MANIFEST_SCHEMA, data, "manifest")
