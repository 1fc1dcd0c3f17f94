"""JSON schemas for knowledge documents.

Built-in schemas cover the well-known documents the workflow and the quality
gates read. Projects may declare their own schema file per document name in
the ``[schemas]`` config table; a declared schema replaces the built-in one.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError

from stagegate.config.domains import DocumentNamesConfig
from stagegate.core.errors.schema import SchemaValidationError

logger = logging.getLogger(__name__)

TEST_KNOWLEDGE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "tests": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {
                    "status": {"enum": ["pending", "failing", "passing", "skipped"]},
                    "description": {"type": "string"},
                },
            },
        },
    },
}

_FUNCTION_RECORD = {
    "type": "object",
    "required": ["complexity"],
    "properties": {
        "name": {"type": "string"},
        "module": {"type": "string"},
        "complexity": {"type": "number", "minimum": 0},
    },
}

CODEBASE_INDEX_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "modules": {"type": "object"},
        "functions": {
            "oneOf": [
                {
                    "type": "array",
                    "items": {**_FUNCTION_RECORD, "required": ["name", "complexity"]},
                },
                {"type": "object", "additionalProperties": _FUNCTION_RECORD},
            ],
        },
    },
}

DEPENDENCY_INDEX_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "edges": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["source", "target"],
                "properties": {
                    "source": {"type": "string"},
                    "target": {"type": "string"},
                },
            },
        },
    },
}

COVERAGE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "layers": {
            "type": "object",
            "additionalProperties": {"type": "number", "minimum": 0, "maximum": 100},
        },
    },
}


def builtin_schemas(names: DocumentNamesConfig) -> Dict[str, Dict[str, Any]]:
    """Built-in schemas keyed by the configured document names."""
    return {
        names.test_knowledge: TEST_KNOWLEDGE_SCHEMA,
        names.codebase_index: CODEBASE_INDEX_SCHEMA,
        names.dependency_index: DEPENDENCY_INDEX_SCHEMA,
        names.coverage: COVERAGE_SCHEMA,
    }


def _format_error_path(path: Any) -> str:
    parts = [str(part) for part in path]
    return "/".join(parts) if parts else "<root>"


class SchemaRegistry:
    """Resolves and applies the declared schema for each document name."""

    def __init__(
        self,
        names: Optional[DocumentNamesConfig] = None,
        schema_files: Optional[Mapping[str, Path]] = None,
    ) -> None:
        self._builtin = builtin_schemas(names or DocumentNamesConfig())
        self._schema_files = dict(schema_files or {})
        self._loaded: Dict[str, Dict[str, Any]] = {}

    def has_schema(self, name: str) -> bool:
        return name in self._schema_files or name in self._builtin

    def schema_for(self, name: str) -> Optional[Dict[str, Any]]:
        """Return the schema declared for ``name``, or None.

        Raises:
            SchemaError: If a declared schema file is unreadable or invalid.
        """
        if name in self._loaded:
            return self._loaded[name]

        path = self._schema_files.get(name)
        if path is None:
            return self._builtin.get(name)

        try:
            schema = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise SchemaError(f"Cannot load schema file {path}: {exc}") from exc
        Draft202012Validator.check_schema(schema)
        self._loaded[name] = schema
        logger.debug("Loaded schema for %s from %s", name, path)
        return schema

    def validate(self, name: str, content: Mapping[str, Any]) -> List[str]:
        """Return sorted schema violations of ``content`` (empty when valid)."""
        try:
            schema = self.schema_for(name)
        except SchemaError as exc:
            return [f"schema for {name} is unusable: {exc.message}"]
        if schema is None:
            return []

        validator = Draft202012Validator(schema)
        return sorted(
            f"{_format_error_path(error.absolute_path)}: {error.message}"
            for error in validator.iter_errors(dict(content))
        )

    def ensure_valid(self, name: str, content: Mapping[str, Any]) -> None:
        """Raise SchemaValidationError when ``content`` violates its schema."""
        errors = self.validate(name, content)
        if errors:
            raise SchemaValidationError(name, errors)
