"""Application configuration"""

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from functools import lru_cache
from pathlib import Path

# Project root (parent of app directory)
BACKEND_DIR = Path(__file__).parent.parent
ENV_FILE = BACKEND_DIR / ".env"


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Voice Bot Knowledge Service"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Metadata store
    DATABASE_URL: str = "sqlite:///./knowledge.db"

    # Redis (ingestion rate limiting)
    REDIS_URL: str = "redis://localhost:6379/0"

    # Qdrant
    QDRANT_URL: str = "http://localhost:6333"
    QDRANT_API_KEY: str = ""
    QDRANT_COLLECTION: str = "document_embeddings"

    # Gemini embeddings
    GOOGLE_API_KEY: str = ""
    GEMINI_EMBEDDING_MODEL: str = "models/text-embedding-004"
    EMBEDDING_DIMENSION: int = 768
    EMBEDDING_MIN_INTERVAL_MS: int = 1000
    EMBEDDING_QUOTA_RESET_SECONDS: int = 60
    EMBEDDING_CACHE_KEY_CHARS: int = 100

    # RAG Settings
    RAG_CHUNK_SIZE: int = 1000
    RAG_CHUNK_OVERLAP: int = 100
    RAG_SPLIT_MAX_ITERATIONS: int = 1000
    RAG_MIN_CHUNK_CHARS: int = 50
    RAG_SIGNATURE_CHARS: int = 100
    RAG_EMBED_BATCH_SIZE: int = 10
    RAG_TOP_K: int = 8
    RAG_FALLBACK_SCORE: float = 0.5

    # Content extraction
    URL_FETCH_TIMEOUT: float = 15.0
    URL_MAX_REDIRECTS: int = 5
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # Rate Limiting
    RATE_LIMIT_INGESTIONS_PER_MINUTE: int = 5

    # Logging
    LOG_LEVEL: str = "INFO"

    model_config = ConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding='utf-8',
        case_sensitive=True,
        extra="ignore"  # Ignore extra fields in .env
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
