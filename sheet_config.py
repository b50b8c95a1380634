"""
Sheet schema configuration.

A schema maps the column headers expected in a worksheet to the canonical
field names used for storage, and carries one validation rule per column.
Rules are a tagged union on ``kind`` so a malformed schema is rejected when
it is built rather than when the first row is validated.
"""
import json
import logging
import os
from types import MappingProxyType
from typing import Annotated, Dict, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

logger = logging.getLogger(__name__)

# The header is the first worksheet row; data rows follow it directly.
HEADER_ROW_NUMBER = 1
FIRST_DATA_ROW_NUMBER = HEADER_ROW_NUMBER + 1

DEFAULT_SCHEMA_NAME = "default"


class SchemaConfigError(Exception):
    """Raised when a schema definition cannot be loaded or is inconsistent."""


class _BaseRule(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    required: bool = False
    allowed_values: Optional[Tuple[str, ...]] = None


class StringRule(_BaseRule):
    kind: Literal["string"] = "string"


class NumberRule(_BaseRule):
    kind: Literal["number"] = "number"
    min: Optional[float] = None


class DateRule(_BaseRule):
    kind: Literal["date"] = "date"
    current_month: bool = False


Rule = Annotated[Union[StringRule, NumberRule, DateRule], Field(discriminator="kind")]


class Schema(BaseModel):
    """
    Column mapping and validation rules applied to one sheet.

    Attributes:
        column_mapping: Source column header -> canonical field name, in output order
        validation_rules: Source column header -> rule, in validation order
        key_field: Canonical field that must be non-empty for a row to be importable
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    column_mapping: Dict[str, str]
    validation_rules: Dict[str, Rule]
    key_field: str = "name"

    @model_validator(mode="after")
    def _check_consistency(self) -> "Schema":
        unruled = [col for col in self.column_mapping if col not in self.validation_rules]
        if unruled:
            raise ValueError(f"columns without validation rules: {', '.join(unruled)}")

        canonical = list(self.column_mapping.values())
        duplicates = sorted({name for name in canonical if canonical.count(name) > 1})
        if duplicates:
            raise ValueError(f"duplicate canonical fields: {', '.join(duplicates)}")

        if self.key_field not in canonical:
            raise ValueError(f"key field {self.key_field!r} is not a mapped canonical field")
        return self

    @property
    def required_columns(self) -> Tuple[str, ...]:
        """Headers that must be present before any row of a sheet is read."""
        return tuple(self.column_mapping)


DEFAULT_SCHEMA = Schema(
    column_mapping={
        "Name": "name",
        "Amount": "amount",
        "Date": "date",
        "Verified": "verified",
    },
    validation_rules={
        "Name": StringRule(required=True),
        "Amount": NumberRule(required=True, min=0.01),
        "Date": DateRule(required=True, current_month=True),
        "Verified": StringRule(required=False, allowed_values=("Yes", "No")),
    },
)

_SCHEMA_FILE_ADAPTER = TypeAdapter(Dict[str, Schema])


class SchemaRegistry:
    """Read-only lookup of schemas by sheet name with a "default" fallback."""

    def __init__(self, schemas: Optional[Mapping[str, Schema]] = None):
        merged: Dict[str, Schema] = {DEFAULT_SCHEMA_NAME: DEFAULT_SCHEMA}
        if schemas:
            merged.update(schemas)
        self._schemas = MappingProxyType(merged)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._schemas)

    def resolve(self, sheet_name: str) -> Schema:
        return self._schemas.get(sheet_name, self._schemas[DEFAULT_SCHEMA_NAME])

    @classmethod
    def from_file(cls, path: str) -> "SchemaRegistry":
        """
        Build a registry from a JSON file of schema name -> schema definition.

        Args:
            path: Path to the JSON file

        Returns:
            SchemaRegistry: Registry holding the file's schemas plus the built-in default

        Raises:
            SchemaConfigError: If the file is missing, unreadable or invalid
        """
        if not os.path.exists(path):
            raise SchemaConfigError(f"schema config not found: {path}")
        try:
            with open(path, encoding="utf-8") as fh:
                raw = json.load(fh)
            schemas = _SCHEMA_FILE_ADAPTER.validate_python(raw)
        except json.JSONDecodeError as e:
            raise SchemaConfigError(f"invalid schema config JSON: {e}") from e
        except ValidationError as e:
            raise SchemaConfigError(f"schema config validation failed: {e}") from e

        logger.info("Loaded sheet schemas", extra={"schema_path": path, "schemas": sorted(schemas)})
        return cls(schemas)


def build_registry(schema_config_path: Optional[str] = None) -> SchemaRegistry:
    if schema_config_path:
        return SchemaRegistry.from_file(schema_config_path)
    return SchemaRegistry()
