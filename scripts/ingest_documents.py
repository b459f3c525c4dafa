"""
Bulk document ingestion script

Load PDFs and web pages into a bot's knowledge base
Usage: python scripts/ingest_documents.py --bot-id BOT --user-id USER file.pdf https://example.com/page
"""

import argparse
import sys
from pathlib import Path
from typing import List

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.exceptions import KnowledgeBaseException
from app.rag.types import SourceKind
from app.utils.logger import setup_logging
import logging

logger = logging.getLogger(__name__)


def ingest_sources(service, bot_id: str, user_id: str, sources: List[str]) -> List[dict]:
    """
    Ingest each source, continuing past failures

    Args:
        service: DocumentService
        bot_id: Bot that owns the documents
        user_id: Owning user
        sources: PDF paths or http(s) URLs

    Returns:
        One result dict per source
    """
    results = []
    for i, source in enumerate(sources, 1):
        logger.info(f"[{i}/{len(sources)}] Processing: {source}")

        try:
            if source.startswith(("http://", "https://")):
                result = service.ingest(bot_id, user_id, source, source, SourceKind.URL)
            else:
                path = Path(source)
                result = service.ingest(bot_id, user_id, path.name, path.read_bytes(), SourceKind.PDF)

            logger.info(f"  Created {result.total_chunks} chunks (document {result.document_id})")
            if result.degraded:
                logger.warning("  Embedding quota exceeded, stored with mock embeddings")
            results.append({'source': source, 'document_id': result.document_id,
                            'chunks_created': result.total_chunks})

        except (KnowledgeBaseException, OSError) as e:
            logger.error(f"  Failed to process {source}: {e}")
            results.append({'source': source, 'error': str(e)})

    return results


def main(argv=None) -> int:
    """Main function to ingest documents"""
    parser = argparse.ArgumentParser(description="Ingest PDFs and URLs for a bot")
    parser.add_argument("--bot-id", required=True)
    parser.add_argument("--user-id", required=True)
    parser.add_argument("sources", nargs="+", help="PDF file paths or http(s) URLs")
    args = parser.parse_args(argv)

    setup_logging()

    from app.database.base import Base
    from app.database.session import engine
    from app.models import BotDocument, DocumentChunk  # noqa: F401
    from app.services.document_service import get_document_service

    Base.metadata.create_all(bind=engine)
    service = get_document_service()

    logger.info("=" * 60)
    logger.info(f"Ingesting {len(args.sources)} source(s) for bot {args.bot_id}")
    if not service.vector_store.is_available():
        logger.warning("Vector index not reachable, documents will only be searchable via fallback")
    logger.info("=" * 60)

    results = ingest_sources(service, args.bot_id, args.user_id, args.sources)

    successful = [r for r in results if 'error' not in r]
    failed = [r for r in results if 'error' in r]

    logger.info("=" * 60)
    logger.info(f"Successfully processed: {len(successful)}/{len(results)} sources")
    logger.info(f"Total chunks created: {sum(r['chunks_created'] for r in successful)}")
    logger.info(f"Vector index points: {service.vector_store.count()}")
    for fail in failed:
        logger.warning(f"  - {fail['source']}: {fail['error']}")
    logger.info("=" * 60)

    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
