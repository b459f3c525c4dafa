"""Test bot-scoped retrieval"""

import pytest

from app.rag.types import ChunkRecord, DocumentRecord, RetrievedChunk, VectorHit


def store_document(repository, bot_id, filename, texts, user_id="user-1"):
    return repository.create_document(DocumentRecord(
        bot_id=bot_id,
        user_id=user_id,
        filename=filename,
        source="pdf",
        file_size=100,
        chunks=[ChunkRecord(content=text, chunk_index=i) for i, text in enumerate(texts)],
        processed=True
    ))


def hit(document_id, index, distance, text=None, bot_id="bot-1"):
    return VectorHit(
        id=f"{document_id}_chunk_{index}",
        document_id=str(document_id),
        chunk_index=index,
        text=text or f"doc {document_id} chunk {index}",
        distance=distance,
        source="pdf",
        bot_id=bot_id
    )


def test_no_documents_returns_empty(retriever, vector_store):
    assert retriever.retrieve("bot-empty", "anything") == []
    assert vector_store.queries == []


def test_top_k_ordered_by_score(retriever, repository, vector_store):
    """Scores are 1 - distance, best first, cut to top_k"""
    doc_id = store_document(repository, "bot-1", "guide.pdf", [f"chunk {i}" for i in range(10)])
    distances = [0.9, 0.1, 0.5, 0.3, 0.8, 0.05, 0.7, 0.6, 0.4, 0.2]
    vector_store.preset_hits = [hit(doc_id, i, d) for i, d in enumerate(distances)]

    results = retriever.retrieve("bot-1", "question", top_k=3)

    assert [r.text for r in results] == [
        f"doc {doc_id} chunk 5", f"doc {doc_id} chunk 1", f"doc {doc_id} chunk 9"
    ]
    assert [r.score for r in results] == pytest.approx([0.95, 0.9, 0.8])
    assert all(r.source_name == "guide.pdf" for r in results)
    assert vector_store.queries[0] == (6, {"document_id": [str(doc_id)], "bot_id": "bot-1"})


def test_other_bots_hits_are_filtered_out(retriever, repository, vector_store):
    """Hits from another bot's documents never leak into results"""
    mine = store_document(repository, "bot-a", "mine.pdf", ["my chunk"])
    theirs = store_document(repository, "bot-b", "theirs.pdf", ["their chunk"], user_id="user-2")
    vector_store.preset_hits = [
        hit(theirs, 0, 0.01, bot_id="bot-b"),
        hit(mine, 0, 0.4, bot_id="bot-a"),
        hit(theirs, 1, 0.02, bot_id="bot-b"),
    ]

    results = retriever.retrieve("bot-a", "question")

    assert [r.source_name for r in results] == ["mine.pdf"]
    assert results[0].score == pytest.approx(0.6)


def test_stale_point_from_another_bot_is_dropped(retriever, repository, vector_store):
    """A point whose payload names another bot is ignored even when its document id matches"""
    doc_id = store_document(repository, "bot-b", "current.pdf", ["current chunk"])
    vector_store.preset_hits = [
        hit(doc_id, 0, 0.01, text="left over from bot-a", bot_id="bot-a"),
        hit(doc_id, 0, 0.3, text="current chunk", bot_id="bot-b"),
    ]

    results = retriever.retrieve("bot-b", "question")

    assert [r.text for r in results] == ["current chunk"]


def test_deleted_document_does_not_leak_when_index_delete_fails(document_service, processor, vector_store):
    """Points left behind by a failed index delete never surface for the next bot"""
    secret = " ".join(f"alpha{i} secret" for i in range(150))
    first = processor.ingest_text("bot-a", "user-a", "private.txt", secret)

    vector_store.fail_delete = True
    assert document_service.delete_document(first.document_id, "user-a")
    assert vector_store.count() > 0

    public = " ".join(f"beta{i} public" for i in range(150))
    second = processor.ingest_text("bot-b", "user-b", "public.txt", public)

    results = document_service.retrieve("bot-b", secret[:1000])

    assert second.document_id != first.document_id
    assert results
    assert all(r.source_name == "public.txt" for r in results)
    assert not any("secret" in r.text for r in results)


def test_real_ingestion_is_searchable(processor, retriever):
    """Chunks written by the processor are found through the vector index"""
    text = " ".join(f"word{i}" for i in range(200))
    processor.ingest_text("bot-1", "user-1", "notes", text)

    results = retriever.retrieve("bot-1", text[:1000])

    assert results
    assert results[0].source_name == "notes"
    assert results == sorted(results, key=lambda r: r.score, reverse=True)


def test_fallback_when_index_unavailable(retriever, repository, vector_store):
    """Stored chunks in order with a neutral score"""
    store_document(repository, "bot-1", "first.pdf", ["a0", "a1"])
    store_document(repository, "bot-1", "second.pdf", ["b0", "b1"])
    vector_store.available = False

    results = retriever.retrieve("bot-1", "question", top_k=3)

    assert results == [
        RetrievedChunk(text="a0", score=0.5, source_name="first.pdf"),
        RetrievedChunk(text="a1", score=0.5, source_name="first.pdf"),
        RetrievedChunk(text="b0", score=0.5, source_name="second.pdf"),
    ]
    assert vector_store.queries == []


def test_fallback_when_query_fails(retriever, repository, vector_store):
    store_document(repository, "bot-1", "doc.pdf", ["only chunk"])
    vector_store.fail_query = True

    results = retriever.retrieve("bot-1", "question")

    assert [r.text for r in results] == ["only chunk"]
    assert results[0].score == 0.5


def test_fallback_when_no_hits_for_bot(retriever, repository, vector_store):
    """An empty filtered result falls back to the metadata store"""
    store_document(repository, "bot-1", "doc.pdf", ["c0"])
    vector_store.preset_hits = [hit(9999, 0, 0.1)]

    results = retriever.retrieve("bot-1", "question")

    assert [r.text for r in results] == ["c0"]


def test_metadata_failure_returns_empty(retriever):
    class BrokenRepository:
        def find_documents(self, bot_id, processed=True):
            raise RuntimeError("database is locked")

    retriever.repository = BrokenRepository()

    assert retriever.retrieve("bot-1", "question") == []


def test_format_context_groups_by_source(retriever):
    results = [
        RetrievedChunk(text="first a", score=0.9, source_name="a.pdf"),
        RetrievedChunk(text="first b", score=0.8, source_name="b.pdf"),
        RetrievedChunk(text="second a", score=0.7, source_name="a.pdf"),
    ]

    context = retriever.format_context(results)

    assert context == "\n\n".join([
        "REFERENCE INFORMATION FROM DOCUMENTS:",
        "=" * 50,
        "From: a.pdf",
        "-" * 40,
        "first a",
        "second a",
        "From: b.pdf",
        "-" * 40,
        "first b",
        "=" * 50,
    ])
    assert retriever.format_context([]) == ""
