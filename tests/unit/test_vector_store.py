"""Test Qdrant vector index adapter against the local in-memory client"""

import pytest
from qdrant_client import QdrantClient

from app.exceptions import VectorIndexUnavailable
from app.rag.vector_store import VectorStore, chunk_key, point_id


@pytest.fixture()
def store():
    return VectorStore(collection_name="test_chunks", vector_size=4, client=QdrantClient(":memory:"))


def test_point_ids_are_stable_uuids():
    assert chunk_key(7, 2) == "7_chunk_2"
    assert point_id(7, 2) == point_id("7", 2)
    assert point_id(7, 2) != point_id(7, 3)


def test_upsert_and_query(store):
    assert store.upsert(1, ["north", "east"], [[1.0, 0.0, 0.0, 0.0], [0.0, 1.0, 0.0, 0.0]], "pdf")
    assert store.count() == 2

    hits = store.query([1.0, 0.1, 0.0, 0.0], limit=2)

    assert [hit.text for hit in hits] == ["north", "east"]
    assert hits[0].id == "1_chunk_0"
    assert hits[0].document_id == "1"
    assert hits[0].source == "pdf"
    assert hits[0].distance < hits[1].distance
    assert hits[0].distance == pytest.approx(1 - 1 / (1.01 ** 0.5), abs=1e-4)


def test_upsert_replaces_same_chunk(store):
    store.upsert(1, ["old"], [[1.0, 0.0, 0.0, 0.0]], "pdf")
    store.upsert(1, ["new"], [[1.0, 0.0, 0.0, 0.0]], "pdf")

    assert store.count() == 1
    assert store.query([1.0, 0.0, 0.0, 0.0], limit=5)[0].text == "new"


def test_upsert_clears_stale_chunks_of_document(store):
    """Re-indexing a document with fewer chunks leaves none of the old ones behind"""
    vectors = [[1.0, 0.0, 0.0, 0.0], [0.0, 1.0, 0.0, 0.0], [0.0, 0.0, 1.0, 0.0]]
    store.upsert(1, ["a", "b", "c"], vectors, "pdf", bot_id="bot-a")
    store.upsert(1, ["fresh"], [[1.0, 0.0, 0.0, 0.0]], "url", bot_id="bot-b")

    hits = store.query([1.0, 1.0, 1.0, 0.0], limit=10)

    assert [(hit.text, hit.bot_id) for hit in hits] == [("fresh", "bot-b")]


def test_query_filter_by_bot(store):
    store.upsert(1, ["mine"], [[1.0, 0.0, 0.0, 0.0]], "pdf", bot_id="bot-a")
    store.upsert(2, ["theirs"], [[1.0, 0.0, 0.0, 0.0]], "pdf", bot_id="bot-b")

    hits = store.query(
        [1.0, 0.0, 0.0, 0.0], limit=10, filter_conditions={"document_id": ["1", "2"], "bot_id": "bot-a"}
    )

    assert [(hit.document_id, hit.bot_id) for hit in hits] == [("1", "bot-a")]


def test_query_filter_by_document(store):
    store.upsert(1, ["one"], [[1.0, 0.0, 0.0, 0.0]], "pdf")
    store.upsert(2, ["two"], [[1.0, 0.0, 0.0, 0.0]], "url")
    store.upsert(3, ["three"], [[1.0, 0.0, 0.0, 0.0]], "pdf")

    hits = store.query([1.0, 0.0, 0.0, 0.0], limit=10, filter_conditions={"document_id": ["1", "3"]})

    assert sorted(hit.document_id for hit in hits) == ["1", "3"]


def test_delete_by_document_id(store):
    store.upsert(1, ["a", "b"], [[1.0, 0.0, 0.0, 0.0], [0.0, 1.0, 0.0, 0.0]], "pdf")
    store.upsert(2, ["c"], [[0.0, 0.0, 1.0, 0.0]], "pdf")

    assert store.delete_by_document_id(1)

    assert store.count() == 1
    assert [hit.document_id for hit in store.query([1.0, 1.0, 1.0, 0.0], limit=10)] == ["2"]


def test_mismatched_lengths_are_not_written(store):
    assert not store.upsert(1, ["a", "b"], [[1.0, 0.0, 0.0, 0.0]], "pdf")
    assert store.count() == 0


class DownClient:
    def get_collections(self):
        raise ConnectionError("connection refused")


def test_unreachable_index():
    """Writes report failure, queries raise, availability is False"""
    store = VectorStore(collection_name="test_chunks", vector_size=4, client=DownClient())

    assert not store.is_available()
    assert not store.upsert(1, ["a"], [[1.0, 0.0, 0.0, 0.0]], "pdf")
    assert not store.delete_by_document_id(1)
    assert store.count() == 0
    with pytest.raises(VectorIndexUnavailable):
        store.query([1.0, 0.0, 0.0, 0.0], limit=1)
