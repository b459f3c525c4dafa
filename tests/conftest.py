"""Pytest configuration and fixtures"""

import math
import os

# Test settings must be in place before app modules read them
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["GOOGLE_API_KEY"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database.base import Base
from app.exceptions import VectorIndexUnavailable
from app.models import BotDocument, DocumentChunk  # noqa: F401
from app.rag.content_extractor import ContentExtractor
from app.rag.deduplicator import ChunkDeduplicator
from app.rag.document_processor import DocumentProcessor
from app.rag.embeddings_gemini import GeminiEmbeddingsService
from app.rag.retriever import Retriever
from app.rag.text_splitter import TextSplitter
from app.rag.types import VectorHit
from app.repositories.document_repository import DocumentRepository
from app.services.document_service import DocumentService

DIMENSION = 768


class FakeClock:
    """Manually advanced monotonic clock; ``sleep`` advances it"""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float):
        self.now += seconds


class FakeEmbedContent:
    """Stand-in for ``genai.embed_content``"""

    def __init__(self, dimension: int = DIMENSION):
        self.dimension = dimension
        self.calls = []
        self.error = None

    def __call__(self, model, content, task_type=None):
        self.calls.append(content)
        if self.error is not None:
            raise self.error
        # Deterministic, text-dependent unit-ish vector
        seed = sum(ord(ch) for ch in content) or 1
        return {"embedding": [((seed * (i + 1)) % 97) / 97.0 + 0.01 for i in range(self.dimension)]}


class FakeVectorStore:
    """In-memory vector index with cosine distance; filters are not applied"""

    def __init__(self, available: bool = True):
        self.available = available
        self.points = {}
        self.fail_upsert = False
        self.fail_query = False
        self.fail_delete = False
        self.preset_hits = None
        self.queries = []
        self.deleted = []

    def is_available(self) -> bool:
        return self.available

    def upsert(self, document_id, chunk_texts, vectors, source, bot_id=None) -> bool:
        if self.fail_upsert or not self.available:
            return False
        self._drop(document_id)
        for index, (text, vector) in enumerate(zip(chunk_texts, vectors)):
            self.points[f"{document_id}_chunk_{index}"] = {
                "document_id": str(document_id),
                "bot_id": bot_id,
                "chunk_index": index,
                "text": text,
                "vector": vector,
                "source": source,
            }
        return True

    def query(self, query_vector, limit, filter_conditions=None):
        self.queries.append((limit, filter_conditions))
        if self.fail_query:
            raise VectorIndexUnavailable("index down")
        if self.preset_hits is not None:
            return sorted(self.preset_hits, key=lambda hit: hit.distance)[:limit]

        hits = []
        for key, point in self.points.items():
            hits.append(VectorHit(
                id=key,
                document_id=point["document_id"],
                chunk_index=point["chunk_index"],
                text=point["text"],
                distance=1.0 - _cosine(query_vector, point["vector"]),
                source=point["source"],
                bot_id=point["bot_id"],
            ))
        hits.sort(key=lambda hit: hit.distance)
        return hits[:limit]

    def delete_by_document_id(self, document_id) -> bool:
        self.deleted.append(str(document_id))
        if self.fail_delete:
            return False
        self._drop(document_id)
        return True

    def _drop(self, document_id):
        self.points = {
            key: point for key, point in self.points.items()
            if point["document_id"] != str(document_id)
        }

    def count(self) -> int:
        return len(self.points)


def _cosine(a, b) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class StubExtractor(ContentExtractor):
    """Extractor whose URL fetch returns canned text"""

    def __init__(self, url_text: str = ""):
        super().__init__()
        self.url_text = url_text

    def extract_from_url(self, url):
        from app.rag.types import ExtractedText
        return ExtractedText(text=self.url_text)


@pytest.fixture()
def session_factory():
    """In-memory SQLite shared across sessions"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def repository(session_factory):
    return DocumentRepository(session_factory)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def embed_content():
    return FakeEmbedContent()


@pytest.fixture()
def embeddings(embed_content, clock):
    return GeminiEmbeddingsService(
        api_key="",
        embed_content=embed_content,
        dimension=DIMENSION,
        min_interval=1.0,
        quota_reset_seconds=60,
        clock=clock,
        sleep=clock.sleep
    )


@pytest.fixture()
def vector_store():
    return FakeVectorStore()


@pytest.fixture()
def processor(embeddings, repository, vector_store):
    return DocumentProcessor(
        embeddings=embeddings,
        repository=repository,
        vector_store=vector_store,
        extractor=StubExtractor(),
        splitter=TextSplitter(chunk_size=1000, chunk_overlap=100),
        deduplicator=ChunkDeduplicator(min_chars=50, signature_chars=100),
        encoding_name=None
    )


@pytest.fixture()
def retriever(embeddings, repository, vector_store):
    return Retriever(embeddings, repository, vector_store, top_k=8, fallback_score=0.5)


@pytest.fixture()
def document_service(processor, retriever, repository, vector_store, embeddings):
    return DocumentService(processor, retriever, repository, vector_store, embeddings)


class AllowAllLimiter:
    def __init__(self, allow: bool = True):
        self.allow = allow

    def allow_request(self, user_id):
        return self.allow

    def get_retry_after(self, user_id):
        return 42


@pytest.fixture()
def limiter():
    return AllowAllLimiter()


@pytest.fixture()
def client(session_factory, document_service, limiter):
    """Test client with the pipeline wired to in-memory fakes"""
    from app.database.session import get_db
    from app.main import app
    from app.security.rate_limiter import get_rate_limiter
    from app.services.document_service import get_document_service

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_document_service] = lambda: document_service
    app.dependency_overrides[get_rate_limiter] = lambda: limiter

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
