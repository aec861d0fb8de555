"""JSON Schema (2020-12) validation of the published manifest."""

import json
import logging
from pathlib import Path
from typing import Any, List

from jsonschema import Draft202012Validator, FormatChecker
from jsonschema.exceptions import ValidationError

from divicatalog.models.config import ConfigError

logger = logging.getLogger(__name__)


class SchemaValidationError(RuntimeError):
    def __init__(self, errors: List[ValidationError]) -> None:
        self.errors = errors
        super().__init__(f"Schema validation failed with {len(errors)} error(s)")

    def describe(self) -> List[str]:
        return [format_error(error) for error in self.errors]


def format_error(error: ValidationError) -> str:
    path = "/" + "/".join(str(part) for part in error.absolute_path)
    return f"{path}: {error.message}"


def load_schema(path: Path) -> dict:
    """Load and check the schema itself.

    Raises:
        ConfigError: if the schema is missing, not JSON, or not a valid 2020-12 schema.
    """
    try:
        schema = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigError(f"Manifest schema not found: {path}")
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Manifest schema {path} is not valid JSON: {exc}")

    try:
        Draft202012Validator.check_schema(schema)
    except Exception as exc:
        raise ConfigError(f"Manifest schema {path} is invalid: {exc}")
    return schema


def validate_manifest(manifest: Any, schema: dict) -> None:
    """Raise :class:`SchemaValidationError` listing every violation in *manifest*."""
    validator = Draft202012Validator(schema, format_checker=FormatChecker())
    errors = sorted(validator.iter_errors(manifest), key=lambda e: list(map(str, e.absolute_path)))
    if errors:
        raise SchemaValidationError(errors)


def validate_manifest_file(manifest_path: Path, schema_path: Path) -> None:
    schema = load_schema(schema_path)
    manifest = json.loads(Path(manifest_path).read_text(encoding="utf-8"))
    validate_manifest(manifest, schema)
    logger.info("validate: %s is valid", manifest_path)
