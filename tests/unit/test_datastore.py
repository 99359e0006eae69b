"""Unit tests for the JSON-backed document and chunk store."""

import json

import pytest

from docquery.errors import DocumentNotFoundError
from docquery.models.chunk import DocumentChunk
from docquery.models.document import Document
from docquery.models.enums import DocumentType
from docquery.store.datastore import DataStore


@pytest.fixture
def store(tmp_path):
    return DataStore(tmp_path / "documents.json", tmp_path / "chunks.json")


def _document(title="Handbook", content="Some content."):
    return Document(title=title, document_type=DocumentType.TXT, content=content, tags=["hr"])


def _chunks(document, n=3):
    return [
        DocumentChunk(
            document_id=document.id,
            chunk_index=i,
            text=f"chunk {i}",
            embedding=[float(i), 1.0],
        )
        for i in range(n)
    ]


class TestDocuments:
    def test_create_and_get(self, store):
        doc = store.create_document(_document())
        assert store.get_document(doc.id) is doc
        assert store.list_documents() == [doc]

    def test_get_missing_returns_none(self, store):
        assert store.get_document("missing") is None

    def test_update_changes_fields_and_timestamp(self, store):
        doc = store.create_document(_document())
        before = doc.updated_at
        updated = store.update_document(doc.id, title="New title", tags=["a", "b"])
        assert updated.title == "New title"
        assert updated.tags == ["a", "b"]
        assert updated.content == "Some content."
        assert updated.updated_at >= before

    def test_update_missing_raises(self, store):
        with pytest.raises(DocumentNotFoundError):
            store.update_document("missing", title="x")

    def test_delete_cascades_to_chunks(self, store):
        doc = store.create_document(_document())
        other = store.create_document(_document(title="Other"))
        store.create_chunks_bulk(_chunks(doc) + _chunks(other, 2))

        assert store.delete_document(doc.id) is True
        assert store.get_document(doc.id) is None
        assert store.get_chunks_by_document(doc.id) == []
        assert store.count_chunks(other.id) == 2

    def test_delete_missing_returns_false(self, store):
        assert store.delete_document("missing") is False


class TestChunks:
    def test_chunks_returned_in_index_order(self, store):
        doc = store.create_document(_document())
        store.create_chunks_bulk(list(reversed(_chunks(doc))))
        assert [c.chunk_index for c in store.get_chunks_by_document(doc.id)] == [0, 1, 2]
        assert store.count_chunks(doc.id) == 3

    def test_delete_chunks_by_document(self, store):
        doc = store.create_document(_document())
        store.create_chunks_bulk(_chunks(doc))
        deleted = store.delete_chunks_by_document(doc.id)
        assert sorted(c.external_id for c in deleted) == [f"{doc.id}:{i}" for i in range(3)]
        assert store.list_chunks() == []
        assert store.get_document(doc.id) is not None

    def test_lookup_by_external_id(self, store):
        doc = store.create_document(_document())
        store.create_chunks_bulk(_chunks(doc))
        chunk = store.get_chunk_by_external_id(f"{doc.id}:1")
        assert chunk is not None
        assert chunk.text == "chunk 1"

    @pytest.mark.parametrize("external_id", ["missing:0", "no-separator", "doc:notanumber", ":3"])
    def test_lookup_unknown_or_malformed_returns_none(self, store, external_id):
        assert store.get_chunk_by_external_id(external_id) is None

    def test_iter_embeddings_skips_chunks_without_vectors(self, store):
        doc = store.create_document(_document())
        store.create_chunks_bulk([
            DocumentChunk(document_id=doc.id, chunk_index=0, text="a", embedding=[1.0, 0.0]),
            DocumentChunk(document_id=doc.id, chunk_index=1, text="b"),
        ])
        assert list(store.iter_embeddings()) == [(f"{doc.id}:0", [1.0, 0.0])]


class TestPersistence:
    def test_reload_restores_documents_and_chunks(self, store, tmp_path):
        doc = store.create_document(_document())
        store.create_chunks_bulk(_chunks(doc))

        reopened = DataStore(tmp_path / "documents.json", tmp_path / "chunks.json")

        restored = reopened.get_document(doc.id)
        assert restored.title == doc.title
        assert restored.document_type is DocumentType.TXT
        assert restored.created_at == doc.created_at
        assert [c.embedding for c in reopened.get_chunks_by_document(doc.id)] == [
            [0.0, 1.0], [1.0, 1.0], [2.0, 1.0],
        ]

    def test_files_are_json_lists(self, store, tmp_path):
        doc = store.create_document(_document())
        store.create_chunks_bulk(_chunks(doc, 1))
        documents = json.loads((tmp_path / "documents.json").read_text(encoding="utf-8"))
        chunks = json.loads((tmp_path / "chunks.json").read_text(encoding="utf-8"))
        assert documents[0]["id"] == doc.id
        assert documents[0]["document_type"] == "txt"
        assert chunks[0]["document_id"] == doc.id

    def test_in_memory_store_writes_nothing(self, tmp_path):
        store = DataStore()
        store.create_document(_document())
        assert list(tmp_path.iterdir()) == []
