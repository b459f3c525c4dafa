"""Factory for the process-wide pipeline components"""

import logging

from app.database.session import SessionLocal
from app.rag.config import rag_config
from app.rag.document_processor import DocumentProcessor
from app.rag.embeddings_gemini import GeminiEmbeddingsService
from app.rag.retriever import Retriever
from app.rag.vector_store import VectorStore
from app.repositories.document_repository import DocumentRepository

logger = logging.getLogger(__name__)


class KnowledgeServiceFactory:
    """
    Build each component once and share it

    The embedding service owns the cache and quota state, so one instance
    is handed to both the ingestion pipeline and the retriever.
    """

    _embeddings_service = None
    _vector_store = None
    _repository = None
    _document_processor = None
    _retriever = None

    @classmethod
    def get_embeddings_service(cls) -> GeminiEmbeddingsService:
        if cls._embeddings_service is None:
            logger.info(f"Loading Gemini embeddings service ({rag_config.gemini_embedding_model})...")
            cls._embeddings_service = GeminiEmbeddingsService()
        return cls._embeddings_service

    @classmethod
    def get_vector_store(cls) -> VectorStore:
        if cls._vector_store is None:
            cls._vector_store = VectorStore()
        return cls._vector_store

    @classmethod
    def get_repository(cls) -> DocumentRepository:
        if cls._repository is None:
            cls._repository = DocumentRepository(SessionLocal)
        return cls._repository

    @classmethod
    def get_document_processor(cls) -> DocumentProcessor:
        if cls._document_processor is None:
            cls._document_processor = DocumentProcessor(
                embeddings=cls.get_embeddings_service(),
                repository=cls.get_repository(),
                vector_store=cls.get_vector_store()
            )
        return cls._document_processor

    @classmethod
    def get_retriever(cls) -> Retriever:
        if cls._retriever is None:
            cls._retriever = Retriever(
                embeddings=cls.get_embeddings_service(),
                repository=cls.get_repository(),
                vector_store=cls.get_vector_store()
            )
        return cls._retriever

    @classmethod
    def reset(cls):
        """Drop cached components"""
        cls._embeddings_service = None
        cls._vector_store = None
        cls._repository = None
        cls._document_processor = None
        cls._retriever = None
