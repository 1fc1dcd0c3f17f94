"""Tests for document schema resolution and validation."""

import json

import pytest

from stagegate.config import DocumentNamesConfig
from stagegate.core.errors.schema import SchemaValidationError
from stagegate.core.knowledge import SchemaRegistry


@pytest.fixture
def registry():
    return SchemaRegistry(DocumentNamesConfig())


class TestBuiltinSchemas:
    def test_documents_without_schema_are_always_valid(self, registry):
        assert not registry.has_schema("notes")
        assert registry.validate("notes", {"anything": [1, "two"]}) == []

    def test_valid_codebase_index_list_and_mapping(self, registry):
        as_list = {"functions": [{"name": "run", "complexity": 3}]}
        as_map = {"functions": {"run": {"complexity": 3}}}
        assert registry.validate("codebase-index", as_list) == []
        assert registry.validate("codebase-index", as_map) == []

    def test_negative_complexity_is_reported(self, registry):
        errors = registry.validate(
            "codebase-index", {"functions": [{"name": "run", "complexity": -1}]}
        )
        assert errors

    def test_coverage_out_of_range(self, registry):
        errors = registry.validate("coverage-report", {"layers": {"core": 120}})
        assert len(errors) == 1
        assert errors[0].startswith("layers/core:")

    def test_test_knowledge_status_enum(self, registry):
        errors = registry.validate(
            "test-knowledge", {"tests": {"t1": {"status": "flaky"}}}
        )
        assert len(errors) == 1

    def test_configured_names_are_honored(self):
        registry = SchemaRegistry(DocumentNamesConfig(coverage="cov"))
        assert registry.has_schema("cov")
        assert not registry.has_schema("coverage-report")

    def test_ensure_valid_raises(self, registry):
        with pytest.raises(SchemaValidationError) as exc_info:
            registry.ensure_valid("dependency-index", {"edges": [{"source": "a"}]})
        assert exc_info.value.document == "dependency-index"


class TestDeclaredSchemas:
    def test_declared_schema_replaces_builtin(self, tmp_path):
        schema_path = tmp_path / "cov.json"
        schema_path.write_text(json.dumps({"type": "object", "required": ["owner"]}))
        registry = SchemaRegistry(
            DocumentNamesConfig(), {"coverage-report": schema_path}
        )

        assert registry.validate("coverage-report", {"owner": "qa"}) == []
        assert len(registry.validate("coverage-report", {"layers": {}})) == 1

    def test_unusable_schema_file_is_a_validation_error(self, tmp_path):
        schema_path = tmp_path / "broken.json"
        schema_path.write_text("{not json")
        registry = SchemaRegistry(DocumentNamesConfig(), {"notes": schema_path})

        errors = registry.validate("notes", {})
        assert len(errors) == 1
        assert "unusable" in errors[0]
