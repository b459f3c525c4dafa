"""Document ingestion: extract, split, dedupe, embed, persist"""

from bisect import bisect_right
from typing import Callable, List, Optional, Union
import gc
import logging

import tiktoken

from app.exceptions import ExtractionError, IngestionError, MetadataStoreError
from app.rag.config import rag_config
from app.rag.content_extractor import ContentExtractor
from app.rag.deduplicator import ChunkDeduplicator
from app.rag.embeddings_gemini import GeminiEmbeddingsService
from app.rag.text_splitter import TextSplitter, TextWindow, normalize_text
from app.rag.types import (
    ChunkRecord,
    DocumentRecord,
    ExtractedText,
    IngestionResult,
    SourceKind
)
from app.rag.vector_store import VectorStore
from app.repositories.document_repository import DocumentRepository

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class DocumentProcessor:
    """
    Ingest one document into the metadata store and the vector index

    Steps run strictly in order. The metadata store write happens only
    after every chunk has an embedding, so a failed run never leaves a
    partial document. The vector index write comes last and is best
    effort: if it fails the document is still retrievable through the
    metadata store fallback.
    """

    def __init__(
        self,
        embeddings: GeminiEmbeddingsService,
        repository: DocumentRepository,
        vector_store: VectorStore,
        extractor: Optional[ContentExtractor] = None,
        splitter: Optional[TextSplitter] = None,
        deduplicator: Optional[ChunkDeduplicator] = None,
        batch_size: Optional[int] = None,
        encoding_name: Optional[str] = "cl100k_base"
    ):
        self.embeddings = embeddings
        self.repository = repository
        self.vector_store = vector_store
        self.extractor = extractor or ContentExtractor()
        self.splitter = splitter or TextSplitter()
        self.deduplicator = deduplicator or ChunkDeduplicator()
        self.batch_size = max(1, batch_size or rag_config.embed_batch_size)

        # Token counter
        self.encoding = None
        if encoding_name:
            try:
                self.encoding = tiktoken.get_encoding(encoding_name)
            except Exception as e:
                logger.warning(f"Token encoding {encoding_name} unavailable, estimating: {e}")

    def count_tokens(self, text: str) -> int:
        """Count tokens in text"""
        if self.encoding:
            return len(self.encoding.encode(text))
        else:
            # Rough estimate
            return len(text) // 4

    def ingest(
        self,
        bot_id: str,
        user_id: str,
        display_name: str,
        raw_content: Union[bytes, str],
        source_kind: Union[SourceKind, str],
        progress_callback: Optional[ProgressCallback] = None
    ) -> IngestionResult:
        """
        Extract and ingest a PDF (raw bytes) or a web page (its URL)

        Args:
            bot_id: Owning bot
            user_id: Owning user
            display_name: File name or source URL
            raw_content: PDF bytes, or the URL for ``url`` sources
            source_kind: ``pdf`` or ``url``
            progress_callback: Called with (processed, total) after each embedding batch

        Returns:
            IngestionResult for the new document

        Raises:
            ExtractionError: if no usable text could be extracted
            IngestionError: if the document could not be saved
        """
        try:
            kind = SourceKind(source_kind)
        except ValueError as e:
            raise IngestionError(f"Unsupported source kind: {source_kind}") from e

        if kind == SourceKind.PDF:
            if not isinstance(raw_content, (bytes, bytearray)):
                raise IngestionError("PDF content must be bytes")
            logger.info(f"Parsing {display_name}...")
            extracted = self.extractor.extract_from_pdf(bytes(raw_content))
            file_size = len(raw_content)
        else:
            if not isinstance(raw_content, str) or not raw_content.strip():
                raise IngestionError("URL is required")
            extracted = self.extractor.extract_from_url(raw_content.strip())
            file_size = len(extracted.text)

        return self._ingest_extracted(
            bot_id, user_id, display_name, extracted, kind, file_size, progress_callback
        )

    def ingest_text(
        self,
        bot_id: str,
        user_id: str,
        display_name: str,
        text: str,
        source_kind: Union[SourceKind, str] = SourceKind.URL,
        progress_callback: Optional[ProgressCallback] = None
    ) -> IngestionResult:
        """Ingest text that has already been extracted"""
        if not text or not text.strip():
            raise ExtractionError("No text content provided", ExtractionError.EMPTY_CONTENT)

        kind = SourceKind(source_kind)
        return self._ingest_extracted(
            bot_id, user_id, display_name, ExtractedText(text=text), kind, len(text), progress_callback
        )

    def _ingest_extracted(
        self,
        bot_id: str,
        user_id: str,
        display_name: str,
        extracted: ExtractedText,
        kind: SourceKind,
        file_size: int,
        progress_callback: Optional[ProgressCallback]
    ) -> IngestionResult:
        text = normalize_text(extracted.text)
        logger.info(f"Processing document: {display_name} ({len(text)} chars)")

        try:
            split = self.splitter.split_with_offsets(text)
        except ValueError as e:
            raise IngestionError(f"Text splitting failed: {e}") from e

        dedup = self.deduplicator.filter(split.chunks)
        windows: List[TextWindow] = [split.windows[i] for i in dedup.kept_indices]
        if not windows:
            raise ExtractionError(
                "No indexable text content found in document",
                ExtractionError.INSUFFICIENT_CONTENT
            )

        chunks = [window.text for window in windows]
        logger.info(f"Created {len(chunks)} unique chunks")

        quota_exceeded = self.embeddings.is_quota_exceeded()
        if quota_exceeded:
            logger.warning("API quota exceeded - using mock embeddings (search quality reduced)")

        vectors = self._embed_chunks(chunks, progress_callback)

        record = DocumentRecord(
            bot_id=bot_id,
            user_id=user_id,
            filename=display_name,
            source=kind.value,
            file_size=file_size,
            chunks=[
                ChunkRecord(
                    content=window.text,
                    chunk_index=index,
                    page_number=self._page_for_offset(extracted.page_offsets, window.start),
                    token_count=self.count_tokens(window.text)
                )
                for index, window in enumerate(windows)
            ],
            processed=True,
            total_chunks=len(windows)
        )

        logger.info("Saving document metadata...")
        try:
            document_id = self.repository.create_document(record)
        except MetadataStoreError as e:
            raise IngestionError(f"Failed to save document {display_name}: {e}") from e

        logger.info("Storing embeddings in vector index...")
        try:
            stored = self.vector_store.upsert(document_id, chunks, vectors, kind.value, bot_id=bot_id)
        except Exception as e:
            logger.error(f"Vector index write failed for document {document_id}: {e}")
            stored = False
        if not stored:
            logger.warning(
                f"Document {document_id} saved without vector index entries; "
                "retrieval will use the metadata store"
            )

        degraded = quota_exceeded or self.embeddings.is_quota_exceeded()
        logger.info(f"Document processed: {document_id}")

        return IngestionResult(
            document_id=document_id,
            total_chunks=len(chunks),
            discarded_chunks=dedup.discarded,
            truncated=split.truncated,
            degraded=degraded,
            quota_reset_seconds=self.embeddings.get_quota_reset_seconds() if degraded else 0
        )

    def _embed_chunks(
        self,
        chunks: List[str],
        progress_callback: Optional[ProgressCallback]
    ) -> List[List[float]]:
        """Embed chunks sequentially, reporting progress per batch"""
        logger.info(f"Generating embeddings for {len(chunks)} chunks")
        vectors = []
        total = len(chunks)

        for batch_start in range(0, total, self.batch_size):
            batch = chunks[batch_start:batch_start + self.batch_size]
            for chunk in batch:
                vectors.append(self.embeddings.generate_embedding(chunk))

            processed = batch_start + len(batch)
            logger.info(f"  Processed {processed}/{total} chunks")
            if progress_callback:
                progress_callback(processed, total)

            # Free memory every 50 chunks on large documents
            if batch_start and batch_start % 50 == 0:
                gc.collect()

        return vectors

    @staticmethod
    def _page_for_offset(page_offsets: List[tuple], offset: int) -> Optional[int]:
        """1-based page containing ``offset``, or None without page info"""
        if not page_offsets:
            return None
        starts = [start for start, _ in page_offsets]
        position = bisect_right(starts, offset) - 1
        return page_offsets[max(position, 0)][1]
