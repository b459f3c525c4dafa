"""Document ingestion and search API endpoints"""

from fastapi import APIRouter, UploadFile, File, HTTPException, Depends, Header
from fastapi.concurrency import run_in_threadpool
from pathlib import Path
import logging

from app.config import settings
from app.exceptions import KnowledgeBaseException, RateLimitException
from app.rag.types import IngestionResult, SourceKind
from app.schemas.document import (
    DocumentDeleteResponse,
    DocumentListItem,
    DocumentListResponse,
    DocumentUploadResponse,
    QuotaStatusResponse,
    SearchRequest,
    SearchResponse,
    SearchResultItem,
    UrlIngestRequest
)
from app.security.rate_limiter import IngestionRateLimiter, get_rate_limiter
from app.services.document_service import DocumentService, get_document_service

logger = logging.getLogger(__name__)

router = APIRouter()


def get_user_id(x_user_id: str = Header(..., alias="X-User-Id")) -> str:
    """Opaque owner identifier supplied by the upstream auth layer"""
    if not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing user identifier")
    return x_user_id.strip()


def _check_rate_limit(limiter: IngestionRateLimiter, user_id: str):
    if not limiter.allow_request(user_id):
        retry_after = limiter.get_retry_after(user_id)
        raise RateLimitException(
            f"Too many uploads - try again in {retry_after} seconds",
            retry_after=retry_after
        )


def _upload_response(message: str, result: IngestionResult) -> DocumentUploadResponse:
    warning = None
    if result.degraded:
        warning = (
            "API quota exceeded - using reduced quality search. "
            f"Full quality resumes in {result.quota_reset_seconds} seconds."
        )
    return DocumentUploadResponse(
        message=message,
        document_id=result.document_id,
        total_chunks=result.total_chunks,
        discarded_chunks=result.discarded_chunks,
        truncated=result.truncated,
        warning=warning
    )


@router.post("/bots/{bot_id}/documents", response_model=DocumentUploadResponse, status_code=201)
async def upload_document(
    bot_id: str,
    file: UploadFile = File(...),
    user_id: str = Depends(get_user_id),
    service: DocumentService = Depends(get_document_service),
    limiter: IngestionRateLimiter = Depends(get_rate_limiter)
):
    """
    Upload a PDF and ingest it for a bot

    Supports: PDF
    Max size: MAX_UPLOAD_BYTES
    """
    file_ext = Path(file.filename or "").suffix.lower()
    if file_ext != ".pdf":
        raise HTTPException(status_code=400, detail="Only PDF files are supported")

    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=400,
            detail=f"File size exceeds {settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB limit"
        )

    _check_rate_limit(limiter, user_id)

    try:
        result = await run_in_threadpool(
            service.ingest, bot_id, user_id, file.filename, data, SourceKind.PDF
        )
    except KnowledgeBaseException:
        raise
    except Exception as e:
        logger.error(f"Error uploading document: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Upload failed: {str(e)}")

    return _upload_response("Document uploaded and processed successfully", result)


@router.post("/bots/{bot_id}/documents/url", response_model=DocumentUploadResponse, status_code=201)
async def ingest_url(
    bot_id: str,
    request: UrlIngestRequest,
    user_id: str = Depends(get_user_id),
    service: DocumentService = Depends(get_document_service),
    limiter: IngestionRateLimiter = Depends(get_rate_limiter)
):
    """Fetch a web page and ingest its text for a bot"""
    url = request.url.strip()
    if not url.startswith(("http://", "https://")):
        raise HTTPException(status_code=400, detail="URL must start with http:// or https://")

    _check_rate_limit(limiter, user_id)

    try:
        result = await run_in_threadpool(
            service.ingest, bot_id, user_id, url, url, SourceKind.URL
        )
    except KnowledgeBaseException:
        raise
    except Exception as e:
        logger.error(f"Error ingesting URL: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"URL ingestion failed: {str(e)}")

    return _upload_response("URL processed successfully", result)


@router.get("/bots/{bot_id}/documents", response_model=DocumentListResponse)
async def list_documents(
    bot_id: str,
    user_id: str = Depends(get_user_id),
    service: DocumentService = Depends(get_document_service)
):
    """List a bot's documents without chunk content"""
    documents = await run_in_threadpool(service.list_documents, bot_id)
    return DocumentListResponse(
        documents=[DocumentListItem.model_validate(doc) for doc in documents]
    )


@router.delete("/documents/{document_id}", response_model=DocumentDeleteResponse)
async def delete_document(
    document_id: int,
    user_id: str = Depends(get_user_id),
    service: DocumentService = Depends(get_document_service)
):
    """Delete a document and its vector index entries"""
    success = await run_in_threadpool(service.delete_document, document_id, user_id)

    if not success:
        raise HTTPException(status_code=404, detail="Document not found")

    return DocumentDeleteResponse(
        message="Document deleted successfully",
        document_id=document_id
    )


@router.post("/bots/{bot_id}/search", response_model=SearchResponse)
async def search_documents(
    bot_id: str,
    request: SearchRequest,
    user_id: str = Depends(get_user_id),
    service: DocumentService = Depends(get_document_service)
):
    """Retrieve the chunks most relevant to a query"""
    results = await run_in_threadpool(service.retrieve, bot_id, request.query, request.top_k)
    return SearchResponse(
        results=[SearchResultItem.model_validate(result) for result in results],
        context=service.retriever.format_context(results)
    )


@router.get("/embeddings/quota", response_model=QuotaStatusResponse)
async def quota_status(service: DocumentService = Depends(get_document_service)):
    """Embedding quota status"""
    return QuotaStatusResponse(
        quota_exceeded=service.is_quota_exceeded(),
        reset_seconds=service.get_quota_reset_seconds()
    )
