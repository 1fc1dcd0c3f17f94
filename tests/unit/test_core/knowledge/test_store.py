"""Tests for the versioned knowledge store."""

import json

import pytest

from stagegate.core.errors.storage import (
    DocumentCorrupted,
    DocumentNotFound,
    VersionConflictError,
)
from stagegate.core.knowledge import KnowledgeStore, document_name_problem


@pytest.fixture
def store(tmp_path):
    return KnowledgeStore(tmp_path)


class TestDocumentNames:
    @pytest.mark.parametrize("name", ["alpha", "test-knowledge", "v1.index", "a_b"])
    def test_valid_names(self, name):
        assert document_name_problem(name) is None

    @pytest.mark.parametrize("name", ["", ".hidden", "../x", "a/b", "x" * 129, None])
    def test_invalid_names(self, name):
        assert document_name_problem(name) is not None

    def test_store_refuses_invalid_names(self, store):
        with pytest.raises(ValueError):
            store.read("../escape")


class TestReadAndCommit:
    def test_unknown_document_reads_empty_at_version_zero(self, store):
        document, version = store.read("alpha")
        assert version == 0
        assert document.content == {}
        assert store.list_documents() == []

    def test_commit_creates_next_version(self, store):
        first = store.commit("alpha", {"x": 1}, expected_version=0, session_id="s1")
        second = store.commit("alpha", {"x": 2}, expected_version=1)

        assert (first.version, second.version) == (1, 2)
        assert store.versions("alpha") == [1, 2]
        assert store.read_version("alpha", 1).content == {"x": 1}
        assert store.read_version("alpha", 1).session_id == "s1"
        assert store.read("alpha")[0].content == {"x": 2}
        assert store.list_documents() == ["alpha"]

    def test_commit_on_moved_version_conflicts(self, store):
        store.commit("alpha", {"x": 1}, expected_version=0)
        with pytest.raises(VersionConflictError) as exc_info:
            store.commit("alpha", {"x": 2}, expected_version=0)
        assert exc_info.value.actual_version == 1

    def test_versions_are_immutable_files(self, store):
        store.commit("alpha", {"x": 1}, expected_version=0)
        path = store.documents_path / "alpha" / "00000001.json"
        before = path.read_text()
        store.commit("alpha", {"x": 2}, expected_version=1)
        assert path.read_text() == before

    def test_history_is_oldest_first(self, store):
        for version in range(3):
            store.commit("alpha", {"n": version}, expected_version=version)
        assert [doc.content["n"] for doc in store.history("alpha")] == [0, 1, 2]

    def test_missing_version(self, store):
        with pytest.raises(DocumentNotFound):
            store.read_version("alpha", 4)

    def test_survives_new_instance(self, tmp_path):
        KnowledgeStore(tmp_path).commit("alpha", {"x": 1}, expected_version=0)
        document, version = KnowledgeStore(tmp_path).read("alpha")
        assert version == 1
        assert document.content == {"x": 1}


class TestCorruption:
    def test_checksum_mismatch(self, store):
        store.commit("alpha", {"x": 1}, expected_version=0)
        path = store.documents_path / "alpha" / "00000001.json"
        data = json.loads(path.read_text())
        data["content"]["x"] = 99
        path.write_text(json.dumps(data))

        with pytest.raises(DocumentCorrupted, match="checksum"):
            store.read("alpha")

    def test_invalid_json(self, store):
        store.commit("alpha", {"x": 1}, expected_version=0)
        (store.documents_path / "alpha" / "00000001.json").write_text("{not json")
        with pytest.raises(DocumentCorrupted):
            store.read_version("alpha", 1)
