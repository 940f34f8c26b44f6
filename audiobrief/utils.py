"""
AudioBrief Utilities - Shared helper functions.

Responsibilities:
- Time formatting with the local UTC offset
- JSON serialization helpers
- Packaged JSON Schema loading and validation

Invariants:
- All timestamps use ISO-8601 format with an explicit offset
- Serialized JSON is deterministic (sorted keys)
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping

import jsonschema


SCHEMA_DIR = Path(__file__).parent / "schemas"

SCHEMA_FILES = {
    "report": "report.schema.json",
    "semantic_response": "semantic_response.schema.json",
}


def local_now() -> datetime:
    """Return the current local civil time as an aware datetime."""
    return datetime.now().astimezone()


def now_iso() -> str:
    """
    Return current time as ISO-8601 with the local offset.

    Returns:
        ISO-8601 formatted string, e.g., "2025-12-23T17:02:10+01:00"
    """
    return local_now().isoformat(timespec="seconds")


def serialize_json(data: Mapping[str, Any]) -> str:
    """
    Serialize dictionary to JSON deterministically.

    Args:
        data: Dictionary to serialize.

    Returns:
        JSON string with sorted keys, 2-space indent, trailing newline.
    """
    return json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def load_schema(schema_name: str) -> dict:
    """
    Load a packaged JSON Schema by name.

    Raises:
        ValueError: If the schema name is unknown.
    """
    if schema_name not in SCHEMA_FILES:
        raise ValueError(f"Unknown schema: {schema_name}. Valid: {list(SCHEMA_FILES.keys())}")

    schema_path = SCHEMA_DIR / SCHEMA_FILES[schema_name]
    with open(schema_path, "r", encoding="utf-8") as f:
        return json.load(f)


def validate_document(document: Any, schema: Mapping[str, Any]) -> list[str]:
    """
    Validate a document against a Draft 7 schema.

    Returns:
        "path: message" strings, empty if the document is valid.
    """
    validator = jsonschema.Draft7Validator(schema)
    return [
        f"{'.'.join(str(p) for p in error.absolute_path) or '(root)'}: {error.message}"
        for error in validator.iter_errors(document)
    ]
