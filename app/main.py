"""FastAPI application entry point"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from app.api.endpoints import documents, health
from app.database.session import engine
from app.database.base import Base
from app.config import settings
from app.utils.logger import setup_logging
from app.exceptions import (
    ExtractionError,
    IngestionError,
    KnowledgeBaseException,
    RateLimitException
)
from app.schemas.response import ErrorResponse
from app.models import BotDocument, DocumentChunk  # noqa: F401  (register tables)

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager
    - Startup: Initialize database tables
    - Shutdown: Release HTTP clients
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    from app.rag.config import rag_config
    logger.info("=" * 60)
    logger.info(f"Embedding model: {rag_config.gemini_embedding_model} ({rag_config.vector_size}d)")
    logger.info("Google API key: set" if rag_config.google_api_key else "Google API key: NOT SET (mock embeddings)")
    logger.info(f"Vector index: {rag_config.qdrant_url}/{rag_config.qdrant_collection}")
    logger.info("=" * 60)

    # Create database tables
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created/verified")
    except Exception as e:
        logger.error(f"Database initialization error: {str(e)}")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}")
    from app.rag.factory import KnowledgeServiceFactory
    if KnowledgeServiceFactory._document_processor is not None:
        KnowledgeServiceFactory._document_processor.extractor.close()


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="Document ingestion and retrieval for voice bots",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(documents.router, prefix="/api", tags=["documents"])


def _error(status_code: int, exc: Exception, **extra) -> JSONResponse:
    body = ErrorResponse(error=exc.__class__.__name__, detail=str(exc), **extra)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


# Exception handlers
@app.exception_handler(ExtractionError)
async def extraction_exception_handler(request: Request, exc: ExtractionError):
    """Source could not be read; the message is meant for the user"""
    logger.warning(f"Extraction failed ({exc.reason}): {str(exc)}")
    return _error(400, exc, reason=exc.reason)


@app.exception_handler(IngestionError)
async def ingestion_exception_handler(request: Request, exc: IngestionError):
    """Ingestion failed before anything was stored"""
    logger.error(f"Ingestion failed: {str(exc)}")
    return _error(500, exc)


@app.exception_handler(RateLimitException)
async def rate_limit_exception_handler(request: Request, exc: RateLimitException):
    return _error(429, exc, retry_after=exc.retry_after)


@app.exception_handler(KnowledgeBaseException)
async def knowledge_base_exception_handler(request: Request, exc: KnowledgeBaseException):
    """Handle other service exceptions"""
    logger.error(f"Service exception: {str(exc)}")
    return _error(500, exc)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all other exceptions"""
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "InternalServerError",
            "detail": "An unexpected error occurred"
        }
    )


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": f"{settings.APP_NAME} API",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
        "docs": "/docs" if settings.DEBUG else "disabled"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
