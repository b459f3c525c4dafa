"""Data types shared by the ingestion and retrieval pipeline"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class SourceKind(str, Enum):
    """Kind of source a document was ingested from"""
    PDF = "pdf"
    URL = "url"


@dataclass
class ExtractedText:
    """Text pulled out of a source, with page start offsets for PDFs"""
    text: str
    # (offset into text, 1-based page number), ascending by offset
    page_offsets: List[tuple] = field(default_factory=list)


@dataclass
class ChunkRecord:
    """One chunk of a document as stored in the metadata store"""
    content: str
    chunk_index: int
    page_number: Optional[int] = None
    token_count: Optional[int] = None


@dataclass
class DocumentRecord:
    """A document record; ``id`` is assigned by the metadata store"""
    bot_id: str
    user_id: str
    filename: str
    source: str
    file_size: int
    chunks: List[ChunkRecord] = field(default_factory=list)
    processed: bool = False
    total_chunks: int = 0
    uploaded_at: Optional[datetime] = None
    id: Optional[int] = None


@dataclass
class VectorHit:
    """Nearest-neighbour hit from the vector index (cosine distance)"""
    id: str
    document_id: str
    chunk_index: int
    text: str
    distance: float
    source: Optional[str] = None
    bot_id: Optional[str] = None


@dataclass
class RetrievedChunk:
    """Ranked retrieval result"""
    text: str
    score: float
    source_name: str


@dataclass
class IngestionResult:
    """Outcome of a successful ingestion run"""
    document_id: int
    total_chunks: int
    discarded_chunks: int = 0
    truncated: bool = False
    degraded: bool = False
    quota_reset_seconds: int = 0
