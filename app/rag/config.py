"""RAG system configuration"""

from app.config import settings
from dataclasses import dataclass


@dataclass
class RAGConfig:
    """Configuration for the ingestion and retrieval pipeline"""

    # Gemini Settings
    google_api_key: str = settings.GOOGLE_API_KEY
    gemini_embedding_model: str = settings.GEMINI_EMBEDDING_MODEL
    # text-embedding-004 produces 768-dimensional vectors
    vector_size: int = settings.EMBEDDING_DIMENSION
    embedding_min_interval: float = settings.EMBEDDING_MIN_INTERVAL_MS / 1000.0
    quota_reset_seconds: int = settings.EMBEDDING_QUOTA_RESET_SECONDS
    cache_key_chars: int = settings.EMBEDDING_CACHE_KEY_CHARS

    # Qdrant Settings
    qdrant_url: str = settings.QDRANT_URL
    qdrant_api_key: str = settings.QDRANT_API_KEY
    qdrant_collection: str = settings.QDRANT_COLLECTION

    # Splitting / dedup
    chunk_size: int = settings.RAG_CHUNK_SIZE
    chunk_overlap: int = settings.RAG_CHUNK_OVERLAP
    split_max_iterations: int = settings.RAG_SPLIT_MAX_ITERATIONS
    min_chunk_chars: int = settings.RAG_MIN_CHUNK_CHARS
    signature_chars: int = settings.RAG_SIGNATURE_CHARS

    # Ingestion / retrieval
    embed_batch_size: int = settings.RAG_EMBED_BATCH_SIZE
    top_k: int = settings.RAG_TOP_K
    fallback_score: float = settings.RAG_FALLBACK_SCORE

    # URL extraction
    url_timeout: float = settings.URL_FETCH_TIMEOUT
    url_max_redirects: int = settings.URL_MAX_REDIRECTS


# Global RAG config instance
rag_config = RAGConfig()
