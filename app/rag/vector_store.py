"""Qdrant vector index client"""

from typing import Any, Dict, List, Optional
import uuid
import logging

from qdrant_client import QdrantClient
from qdrant_client.models import (
    Distance,
    VectorParams,
    PointStruct,
    Filter,
    FieldCondition,
    FilterSelector,
    MatchAny,
    MatchValue
)

from app.exceptions import VectorIndexUnavailable
from app.rag.config import rag_config
from app.rag.types import VectorHit

logger = logging.getLogger(__name__)


def chunk_key(document_id, chunk_index: int) -> str:
    """Synthetic per-chunk key ``{documentId}_chunk_{chunkIndex}``"""
    return f"{document_id}_chunk_{chunk_index}"


def point_id(document_id, chunk_index: int) -> str:
    """Qdrant point id (UUID) derived from the chunk key"""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, chunk_key(document_id, chunk_index)))


class VectorStore:
    """
    Optional similarity index over chunk embeddings, backed by Qdrant

    The index may be unreachable at any time. Writes and deletes are best
    effort and only log failures; ``query`` raises VectorIndexUnavailable so
    the caller can fall back to the metadata store. Scores are reported as
    cosine distance (``1 - similarity``).
    """

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        collection_name: Optional[str] = None,
        vector_size: Optional[int] = None,
        client: Optional[QdrantClient] = None
    ):
        self.url = url or rag_config.qdrant_url
        self.api_key = rag_config.qdrant_api_key if api_key is None else api_key
        self.collection_name = collection_name or rag_config.qdrant_collection
        self.vector_size = vector_size or rag_config.vector_size
        self.client = client
        self._initialized = False

    def _init_client(self) -> QdrantClient:
        """Initialize Qdrant client"""
        if self.api_key:
            client = QdrantClient(url=self.url, api_key=self.api_key)
        else:
            client = QdrantClient(url=self.url)

        logger.info(f"Connecting to Qdrant at {self.url}")
        return client

    def _ensure_initialized(self):
        """Connect and create the collection on first use"""
        if self._initialized:
            return
        try:
            if self.client is None:
                self.client = self._init_client()
            self._ensure_collection()
            self._initialized = True
        except Exception as e:
            logger.error(f"Failed to initialize Qdrant: {e}")
            raise VectorIndexUnavailable(f"Qdrant vector store is not available: {e}") from e

    def _ensure_collection(self):
        """Ensure collection exists, create if not"""
        collections = self.client.get_collections().collections
        collection_names = [col.name for col in collections]

        if self.collection_name not in collection_names:
            logger.info(f"Creating collection: {self.collection_name}")
            self.client.create_collection(
                collection_name=self.collection_name,
                vectors_config=VectorParams(
                    size=self.vector_size,
                    distance=Distance.COSINE
                )
            )
        else:
            logger.debug(f"Collection exists: {self.collection_name}")

    def is_available(self) -> bool:
        """Check if Qdrant is reachable"""
        try:
            self._ensure_initialized()
            self.client.get_collections()
            return True
        except Exception as e:
            self._initialized = False
            logger.warning(f"Qdrant not available: {e}")
            return False

    def upsert(
        self,
        document_id,
        chunk_texts: List[str],
        vectors: List[List[float]],
        source: str,
        bot_id: Optional[str] = None
    ) -> bool:
        """
        Store chunk embeddings for a document

        Points already stored under ``document_id`` are removed first, so
        the document's entries are exactly the chunks given here.

        Args:
            document_id: Owning document id
            chunk_texts: Chunk texts, index-aligned with ``vectors``
            vectors: Embedding vectors
            source: Source kind of the document
            bot_id: Owning bot, stored in the payload for scoped queries

        Returns:
            True if the points were written; failures are logged, never raised
        """
        if len(chunk_texts) != len(vectors):
            logger.error(
                f"Chunk/vector count mismatch for document {document_id}: "
                f"{len(chunk_texts)} != {len(vectors)}"
            )
            return False

        try:
            self._ensure_initialized()

            self.client.delete(
                collection_name=self.collection_name,
                points_selector=FilterSelector(
                    filter=self._build_filter({'document_id': str(document_id)})
                )
            )
            if not chunk_texts:
                return True

            points = [
                PointStruct(
                    id=point_id(document_id, index),
                    vector=vector,
                    payload={
                        'chunk_id': chunk_key(document_id, index),
                        'document_id': str(document_id),
                        'bot_id': bot_id,
                        'chunk_index': index,
                        'text': text,
                        'source': source
                    }
                )
                for index, (text, vector) in enumerate(zip(chunk_texts, vectors))
            ]

            self.client.upsert(
                collection_name=self.collection_name,
                points=points
            )

            logger.info(f"Added {len(points)} embeddings to {self.collection_name} for document {document_id}")
            return True

        except Exception as e:
            logger.error(f"Failed to add embeddings for document {document_id}: {e}")
            return False

    def query(
        self,
        query_vector: List[float],
        limit: int,
        filter_conditions: Optional[Dict[str, Any]] = None
    ) -> List[VectorHit]:
        """
        Nearest neighbours of ``query_vector``

        Args:
            query_vector: Query embedding
            limit: Maximum number of hits
            filter_conditions: Payload filters; list values match any element

        Returns:
            Hits ordered by ascending distance

        Raises:
            VectorIndexUnavailable: if the index cannot be queried
        """
        self._ensure_initialized()

        try:
            response = self.client.query_points(
                collection_name=self.collection_name,
                query=query_vector,
                limit=limit,
                query_filter=self._build_filter(filter_conditions),
                with_payload=True
            )
        except Exception as e:
            logger.error(f"Error searching Qdrant: {e}")
            raise VectorIndexUnavailable(f"Vector search failed: {e}") from e

        hits = []
        for point in response.points:
            payload = point.payload or {}
            hits.append(VectorHit(
                id=payload.get('chunk_id') or str(point.id),
                document_id=str(payload.get('document_id', '')),
                chunk_index=int(payload.get('chunk_index', 0)),
                text=payload.get('text', ''),
                distance=1.0 - point.score,
                source=payload.get('source'),
                bot_id=payload.get('bot_id')
            ))

        logger.info(f"Found {len(hits)} similar chunks")
        return hits

    def delete_by_document_id(self, document_id) -> bool:
        """Remove every point of a document; failures are logged, never raised"""
        try:
            self._ensure_initialized()

            self.client.delete(
                collection_name=self.collection_name,
                points_selector=FilterSelector(
                    filter=self._build_filter({'document_id': str(document_id)})
                )
            )

            logger.info(f"Deleted embeddings for document {document_id}")
            return True

        except Exception as e:
            logger.error(f"Failed to delete embeddings for document {document_id}: {e}")
            return False

    def count(self) -> int:
        """Number of stored points (0 when unavailable)"""
        try:
            self._ensure_initialized()
            return self.client.count(collection_name=self.collection_name, exact=True).count
        except Exception as e:
            logger.error(f"Failed to count Qdrant points: {e}")
            return 0

    @staticmethod
    def _build_filter(filter_conditions: Optional[Dict[str, Any]]) -> Optional[Filter]:
        if not filter_conditions:
            return None

        conditions = []
        for key, value in filter_conditions.items():
            if isinstance(value, (list, tuple, set)):
                match = MatchAny(any=list(value))
            else:
                match = MatchValue(value=value)
            conditions.append(FieldCondition(key=key, match=match))

        return Filter(must=conditions)
