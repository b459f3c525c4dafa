"""Metadata store for bot documents and their chunks"""

from typing import Callable, List, Optional
from datetime import datetime
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, noload

from app.exceptions import MetadataStoreError
from app.models.document import BotDocument
from app.models.document_chunk import DocumentChunk
from app.rag.types import ChunkRecord, DocumentRecord

logger = logging.getLogger(__name__)


class DocumentRepository:
    """CRUD over ``bot_documents``; every call opens its own session"""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def create_document(self, record: DocumentRecord) -> int:
        """
        Insert a document together with all of its chunks

        The document and chunks are committed in a single transaction, so a
        failure leaves no partial record behind.

        Args:
            record: Document to persist (``id`` is ignored)

        Returns:
            The new document id

        Raises:
            MetadataStoreError: if the insert fails
        """
        db = self.session_factory()
        try:
            doc = BotDocument(
                bot_id=record.bot_id,
                user_id=record.user_id,
                filename=record.filename,
                source=record.source,
                file_size=record.file_size,
                uploaded_at=record.uploaded_at or datetime.utcnow(),
                total_chunks=len(record.chunks),
                processed=record.processed,
                chunks=[
                    DocumentChunk(
                        chunk_index=chunk.chunk_index,
                        content=chunk.content,
                        page_number=chunk.page_number,
                        token_count=chunk.token_count
                    )
                    for chunk in record.chunks
                ]
            )
            db.add(doc)
            db.commit()
            db.refresh(doc)

            logger.info(f"Created document {doc.id} for bot {doc.bot_id} with {doc.total_chunks} chunks")
            return doc.id

        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to create document {record.filename}: {e}", exc_info=True)
            raise MetadataStoreError(f"Failed to save document: {e}") from e
        finally:
            db.close()

    def find_documents(self, bot_id: str, processed: Optional[bool] = True) -> List[DocumentRecord]:
        """
        Load a bot's documents with their chunks in stored order

        Args:
            bot_id: Owning bot
            processed: Filter on the processed flag (None for all)

        Returns:
            Documents ordered by upload time
        """
        db = self.session_factory()
        try:
            query = db.query(BotDocument).filter(BotDocument.bot_id == bot_id)
            if processed is not None:
                query = query.filter(BotDocument.processed == processed)

            documents = query.order_by(BotDocument.uploaded_at, BotDocument.id).all()
            return [self._to_record(doc, with_chunks=True) for doc in documents]

        except SQLAlchemyError as e:
            logger.error(f"Failed to load documents for bot {bot_id}: {e}")
            raise MetadataStoreError(f"Failed to load documents: {e}") from e
        finally:
            db.close()

    def list_documents(self, bot_id: str) -> List[DocumentRecord]:
        """Document summaries for a bot, without chunk content"""
        db = self.session_factory()
        try:
            documents = (
                db.query(BotDocument)
                .options(noload(BotDocument.chunks))
                .filter(BotDocument.bot_id == bot_id)
                .order_by(BotDocument.uploaded_at.desc(), BotDocument.id.desc())
                .all()
            )
            return [self._to_record(doc, with_chunks=False) for doc in documents]

        except SQLAlchemyError as e:
            logger.error(f"Failed to list documents for bot {bot_id}: {e}")
            raise MetadataStoreError(f"Failed to list documents: {e}") from e
        finally:
            db.close()

    def delete_document(self, document_id: int, owner_user_id: str) -> int:
        """
        Delete a document owned by ``owner_user_id``

        Returns:
            Number of documents deleted (0 when missing or owned by someone else)
        """
        db = self.session_factory()
        try:
            doc = db.query(BotDocument).filter(
                BotDocument.id == document_id,
                BotDocument.user_id == owner_user_id
            ).first()

            if not doc:
                return 0

            db.delete(doc)
            db.commit()

            logger.info(f"Deleted document {document_id}")
            return 1

        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to delete document {document_id}: {e}")
            raise MetadataStoreError(f"Failed to delete document: {e}") from e
        finally:
            db.close()

    @staticmethod
    def _to_record(doc: BotDocument, with_chunks: bool) -> DocumentRecord:
        chunks = []
        if with_chunks:
            chunks = [
                ChunkRecord(
                    content=chunk.content,
                    chunk_index=chunk.chunk_index,
                    page_number=chunk.page_number,
                    token_count=chunk.token_count
                )
                for chunk in sorted(doc.chunks, key=lambda c: c.chunk_index)
            ]

        return DocumentRecord(
            id=doc.id,
            bot_id=doc.bot_id,
            user_id=doc.user_id,
            filename=doc.filename,
            source=doc.source,
            file_size=doc.file_size,
            chunks=chunks,
            processed=doc.processed,
            total_chunks=doc.total_chunks,
            uploaded_at=doc.uploaded_at
        )
