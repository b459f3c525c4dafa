"""Health check endpoint"""

from fastapi import APIRouter, Depends, Response, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import text
from sqlalchemy.orm import Session
from app.database.session import get_db
from app.schemas.response import HealthResponse
from app.services.document_service import DocumentService, get_document_service
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health", response_model=HealthResponse)
async def health_check(
    response: Response,
    db: Session = Depends(get_db),
    service: DocumentService = Depends(get_document_service)
):
    """
    Health check endpoint
    Checks connectivity to:
    - Metadata database (required)
    - Qdrant vector index (optional, search degrades without it)
    - Embedding quota
    """
    health_status = {
        "status": "healthy",
        "dependencies": {}
    }

    # Check database
    try:
        db.execute(text("SELECT 1"))
        health_status["dependencies"]["database"] = "connected"
    except Exception as e:
        health_status["dependencies"]["database"] = f"error: {str(e)}"
        health_status["status"] = "unhealthy"
        logger.error(f"Database health check failed: {str(e)}")

    # Check Qdrant (optional - don't fail if not available)
    if await run_in_threadpool(service.vector_store.is_available):
        health_status["dependencies"]["vector_index"] = "connected"
    else:
        health_status["dependencies"]["vector_index"] = "not available (metadata store fallback)"

    # Embedding upstream
    if not service.embeddings.upstream_configured:
        health_status["dependencies"]["embeddings"] = "not configured (mock embeddings)"
    elif service.is_quota_exceeded():
        health_status["dependencies"]["embeddings"] = (
            f"quota exceeded (resets in {service.get_quota_reset_seconds()}s)"
        )
    else:
        health_status["dependencies"]["embeddings"] = "available"

    # Set HTTP status code
    if health_status["status"] == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(**health_status)
