"""Bot-scoped semantic search with metadata store fallback"""

from typing import Dict, List, Optional
import logging

from app.exceptions import KnowledgeBaseException
from app.rag.config import rag_config
from app.rag.embeddings_gemini import GeminiEmbeddingsService
from app.rag.types import DocumentRecord, RetrievedChunk
from app.rag.vector_store import VectorStore
from app.repositories.document_repository import DocumentRepository

logger = logging.getLogger(__name__)


class Retriever:
    """
    Retrieve the chunks most relevant to a query for one bot

    The vector index is searched first, over-fetching ``top_k * 2`` hits
    and keeping only those that belong to the bot's processed documents.
    If the index is unreachable or nothing survives the filter, chunks are
    taken in stored order from the metadata store with a fixed neutral
    score. Retrieval never raises.
    """

    def __init__(
        self,
        embeddings: GeminiEmbeddingsService,
        repository: DocumentRepository,
        vector_store: VectorStore,
        top_k: Optional[int] = None,
        fallback_score: Optional[float] = None
    ):
        self.embeddings = embeddings
        self.repository = repository
        self.vector_store = vector_store
        self.top_k = top_k or rag_config.top_k
        self.fallback_score = rag_config.fallback_score if fallback_score is None else fallback_score

    def retrieve(self, bot_id: str, query: str, top_k: Optional[int] = None) -> List[RetrievedChunk]:
        """
        Retrieve relevant chunks for a query

        Args:
            bot_id: Bot whose documents are searched
            query: User query text
            top_k: Number of chunks to return (default: from config)

        Returns:
            Chunks ordered by descending score
        """
        top_k = top_k or self.top_k

        try:
            logger.info(f"Generating embedding for query: {query[:50]}...")
            query_vector = self.embeddings.generate_embedding(query)

            documents = self.repository.find_documents(bot_id, processed=True)
            if not documents:
                logger.info(f"No processed documents found for bot {bot_id}")
                return []

            logger.info(f"Searching through {len(documents)} document(s)")

            results = self._search_vector_index(bot_id, documents, query_vector, top_k)
            if results:
                return results

            return self._fallback(documents, top_k)

        except KnowledgeBaseException as e:
            logger.error(f"Error retrieving documents for bot {bot_id}: {e}")
            return []
        except Exception as e:
            logger.error(f"Unexpected retrieval error for bot {bot_id}: {e}", exc_info=True)
            return []

    def _search_vector_index(
        self,
        bot_id: str,
        documents: List[DocumentRecord],
        query_vector: List[float],
        top_k: int
    ) -> List[RetrievedChunk]:
        if not self.vector_store.is_available():
            logger.info("Vector index not available, using metadata store")
            return []

        names: Dict[str, str] = {str(doc.id): doc.filename for doc in documents}

        try:
            hits = self.vector_store.query(
                query_vector,
                top_k * 2,
                filter_conditions={'document_id': list(names), 'bot_id': bot_id}
            )
        except KnowledgeBaseException as e:
            logger.warning(f"Vector search failed, using metadata store: {e}")
            return []

        results = [
            RetrievedChunk(
                text=hit.text,
                score=1.0 - hit.distance,
                source_name=names[hit.document_id]
            )
            for hit in hits
            if hit.document_id in names and hit.bot_id == bot_id
        ]
        results.sort(key=lambda result: result.score, reverse=True)
        results = results[:top_k]

        if results:
            logger.info(
                f"Returning {len(results)} most relevant chunks "
                f"(scores: {', '.join(f'{r.score:.3f}' for r in results)})"
            )
        else:
            logger.info("Vector index returned no chunks for this bot, using metadata store")
        return results

    def _fallback(self, documents: List[DocumentRecord], top_k: int) -> List[RetrievedChunk]:
        """First ``top_k`` stored chunks across the bot's documents, neutrally scored"""
        results = []
        for doc in documents:
            for chunk in doc.chunks:
                results.append(RetrievedChunk(
                    text=chunk.content,
                    score=self.fallback_score,
                    source_name=doc.filename
                ))
            if len(results) >= top_k:
                break
        results = results[:top_k]

        logger.info(f"Returning {len(results)} chunks (fallback mode - no similarity ranking)")
        return results

    def format_context(self, results: List[RetrievedChunk]) -> str:
        """
        Format retrieved chunks into a prompt context block

        Chunks are grouped by source document in order of first appearance.

        Args:
            results: Output of ``retrieve``

        Returns:
            Context string, empty when there are no results
        """
        if not results:
            return ""

        grouped: Dict[str, List[str]] = {}
        for result in results:
            grouped.setdefault(result.source_name, []).append(result.text)

        parts = ["REFERENCE INFORMATION FROM DOCUMENTS:", "=" * 50]
        for source_name, texts in grouped.items():
            parts.append(f"From: {source_name}")
            parts.append("-" * 40)
            parts.extend(texts)
        parts.append("=" * 50)

        return "\n\n".join(parts)
