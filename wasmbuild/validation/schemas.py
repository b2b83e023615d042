from __future__ import annotations

from typing import Any, Dict, List

from jsonschema import Draft202012Validator

SCHEMA_VERSION = "1.0.0"
SCHEMA_URI = "https://json-schema.org/draft/2020-12/schema"

# Package names double as directory and artifact names
PACKAGE_NAME_SCHEMA: Dict[str, Any] = {
    "type": "string",
    "minLength": 1,
    "pattern": r"^[^/\\]+$",
    "not": {"enum": [".", ".."]},
}

PACKAGE_ENTRY_SCHEMA: Dict[str, Any] = {
    "oneOf": [
        PACKAGE_NAME_SCHEMA,
        {
            "type": "object",
            "required": ["name"],
            "additionalProperties": False,
            "properties": {
                "name": PACKAGE_NAME_SCHEMA,
                "path": {"type": "string", "minLength": 1},
            },
        },
    ]
}

TOOLCHAIN_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "program": {"type": "string", "minLength": 1},
        "subcommand": {"type": ["string", "null"]},
        "target": {"type": ["string", "null"]},
        "release": {"type": "boolean"},
        "extra_args": {"type": "array", "items": {"type": "string"}},
        "artifact_extension": {"type": "string", "minLength": 1},
        "output_subdir": {"type": ["string", "null"]},
    },
}

BUILD_CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": SCHEMA_URI,
    "type": "object",
    "required": ["packages"],
    "properties": {
        "schemaVersion": {"type": "string"},
        "source_root": {"type": "string"},
        "output_dir": {"type": "string"},
        "packages": {"type": "array", "items": PACKAGE_ENTRY_SCHEMA},
        "toolchain": TOOLCHAIN_SCHEMA,
    },
}

BUILD_CONFIG_VALIDATOR = Draft202012Validator(BUILD_CONFIG_SCHEMA)


def config_errors(payload: Any) -> List[str]:
    """Return readable schema violations for a build config document."""
    errors = sorted(BUILD_CONFIG_VALIDATOR.iter_errors(payload), key=lambda e: [str(p) for p in e.path])
    return [f"- {list(e.path)}: {e.message}" for e in errors]


PACKAGE_NAMES_VALIDATOR = Draft202012Validator({"type": "array", "items": PACKAGE_NAME_SCHEMA})


def package_name_errors(names: List[str]) -> List[str]:
    """Return violations for package names given outside the config file."""
    return [
        f"- {names[e.path[0]]!r}: {e.message}" if e.path else f"- {e.message}"
        for e in PACKAGE_NAMES_VALIDATOR.iter_errors(names)
    ]
