"""Document schemas"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class DocumentListItem(BaseModel):
    """Document summary (no chunk content)"""
    id: int
    bot_id: str
    filename: str
    source: str
    file_size: int
    uploaded_at: Optional[datetime] = None
    total_chunks: int
    processed: bool

    class Config:
        from_attributes = True


class DocumentListResponse(BaseModel):
    """Documents of a bot"""
    documents: List[DocumentListItem]


class UrlIngestRequest(BaseModel):
    """Ingest a web page"""
    url: str = Field(..., min_length=1)


class DocumentUploadResponse(BaseModel):
    """Ingestion response"""
    message: str
    document_id: int
    total_chunks: int
    discarded_chunks: int = 0
    truncated: bool = False
    warning: Optional[str] = None


class DocumentDeleteResponse(BaseModel):
    """Delete response"""
    message: str
    document_id: int


class SearchRequest(BaseModel):
    """Search a bot's documents"""
    query: str = Field(..., min_length=1)
    top_k: Optional[int] = Field(None, ge=1, le=50)


class SearchResultItem(BaseModel):
    """One ranked chunk"""
    text: str
    score: float
    source_name: str

    class Config:
        from_attributes = True


class SearchResponse(BaseModel):
    """Search results and the formatted prompt context"""
    results: List[SearchResultItem]
    context: str


class QuotaStatusResponse(BaseModel):
    """Embedding quota status"""
    quota_exceeded: bool
    reset_seconds: int
