"""
Schema validation for stored records.

Each record kind (the project list, requirements, implementation scope,
mockups, store.yaml) has a <kind>.schema.json in workstate/schemas/. Saves
validate before anything touches disk; tiered loads validate each tier so a
corrupt primary falls through to the backup.
"""

import json
from pathlib import Path
from typing import Any, Callable

import jsonschema

SCHEMAS_DIR = Path(__file__).parent.parent / "schemas"


class ValidationError(Exception):
    """A record does not match its schema.

    field is the dotted location of the first offending value, "(root)" for
    the record itself.
    """

    def __init__(self, schema_name: str, message: str, field: str = None):
        self.schema_name = schema_name
        self.field = field
        super().__init__(f"[{schema_name}] {message}" + (f" at {field}" if field else ""))


_schemas: dict[str, dict] = {}


def _load_schema(schema_name: str) -> dict:
    schema = _schemas.get(schema_name)
    if schema is None:
        schema_path = SCHEMAS_DIR / f"{schema_name}.schema.json"
        if not schema_path.exists():
            raise ValidationError(schema_name, f"No schema for record kind at {schema_path}")
        schema = json.loads(schema_path.read_text(encoding="utf-8"))
        _schemas[schema_name] = schema
    return schema


def validate(data: Any, schema_name: str) -> None:
    """
    Check a decoded record against the schema for its kind.

    Args:
        data: Record as stored (dicts and lists, not dataclasses)
        schema_name: Record kind, e.g. "projects", "requirements", "scope"

    Raises:
        ValidationError: On the first mismatch
    """
    try:
        jsonschema.validate(instance=data, schema=_load_schema(schema_name))
    except jsonschema.ValidationError as e:
        field = ".".join(str(p) for p in e.absolute_path) if e.absolute_path else "(root)"
        raise ValidationError(schema_name, e.message, field) from None


def validator_for(schema_name: str) -> Callable[[Any], None]:
    """Bind validate() to one record kind, for TieredReader.load(validator=...)."""
    def _validate(data: Any) -> None:
        validate(data, schema_name)
    return _validate


def validate_before_write(data: Any, schema_name: str, filepath: Path) -> None:
    """Refuse a save whose record would not load back.

    Raises:
        ValidationError: Naming the record file that was not written
    """
    try:
        validate(data, schema_name)
    except ValidationError as e:
        raise ValidationError(
            schema_name,
            f"Refusing to write invalid data to {filepath}: {e}"
        ) from None
