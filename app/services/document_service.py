"""Document management service"""

from typing import List, Optional, Union
import logging

from app.exceptions import MetadataStoreError
from app.rag.document_processor import DocumentProcessor, ProgressCallback
from app.rag.embeddings_gemini import GeminiEmbeddingsService
from app.rag.factory import KnowledgeServiceFactory
from app.rag.retriever import Retriever
from app.rag.types import DocumentRecord, IngestionResult, RetrievedChunk, SourceKind
from app.rag.vector_store import VectorStore
from app.repositories.document_repository import DocumentRepository

logger = logging.getLogger(__name__)


class DocumentService:
    """Entry points used by the API: ingest, search, list, delete, quota status"""

    def __init__(
        self,
        processor: DocumentProcessor,
        retriever: Retriever,
        repository: DocumentRepository,
        vector_store: VectorStore,
        embeddings: GeminiEmbeddingsService
    ):
        self.processor = processor
        self.retriever = retriever
        self.repository = repository
        self.vector_store = vector_store
        self.embeddings = embeddings

    def ingest(
        self,
        bot_id: str,
        user_id: str,
        display_name: str,
        raw_content: Union[bytes, str],
        source_kind: Union[SourceKind, str],
        progress_callback: Optional[ProgressCallback] = None
    ) -> IngestionResult:
        """Ingest a PDF or URL; raises IngestionError/ExtractionError on failure"""
        return self.processor.ingest(
            bot_id, user_id, display_name, raw_content, source_kind, progress_callback
        )

    def retrieve(self, bot_id: str, query: str, top_k: Optional[int] = None) -> List[RetrievedChunk]:
        """Ranked chunks for a query; never raises"""
        return self.retriever.retrieve(bot_id, query, top_k)

    def list_documents(self, bot_id: str) -> List[DocumentRecord]:
        """
        Get all documents for a bot

        Returns an empty list if the metadata store cannot be read.
        """
        try:
            return self.repository.list_documents(bot_id)
        except MetadataStoreError as e:
            logger.error(f"Get documents error: {e}")
            return []

    def delete_document(self, document_id: int, user_id: str) -> bool:
        """
        Delete a document owned by ``user_id`` and its vector index entries

        Args:
            document_id: Document ID
            user_id: Requesting user; must own the document

        Returns:
            True if the document was deleted
        """
        try:
            deleted = self.repository.delete_document(document_id, user_id)
        except MetadataStoreError as e:
            logger.error(f"Delete document error: {e}")
            return False

        if deleted > 0:
            self.vector_store.delete_by_document_id(document_id)

        return deleted > 0

    def is_quota_exceeded(self) -> bool:
        return self.embeddings.is_quota_exceeded()

    def get_quota_reset_seconds(self) -> int:
        return self.embeddings.get_quota_reset_seconds()


def get_document_service() -> DocumentService:
    """Shared document service built from the factory components"""
    return DocumentService(
        processor=KnowledgeServiceFactory.get_document_processor(),
        retriever=KnowledgeServiceFactory.get_retriever(),
        repository=KnowledgeServiceFactory.get_repository(),
        vector_store=KnowledgeServiceFactory.get_vector_store(),
        embeddings=KnowledgeServiceFactory.get_embeddings_service()
    )
