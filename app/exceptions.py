"""Custom exception classes"""


class KnowledgeBaseException(Exception):
    """Base exception for the knowledge service"""
    pass


class IngestionError(KnowledgeBaseException):
    """Document ingestion failed; nothing was persisted"""
    pass


class ExtractionError(IngestionError):
    """Text could not be extracted from a PDF or URL

    ``reason`` is a short machine-readable cause so callers can tell a DNS
    failure from a timeout or a bot-blocking site.
    """

    PDF_UNPARSABLE = "pdf_unparsable"
    EMPTY_CONTENT = "empty_content"
    DNS_FAILURE = "dns_failure"
    TIMEOUT = "timeout"
    BLOCKED = "blocked"
    HTTP_ERROR = "http_error"
    INSUFFICIENT_CONTENT = "insufficient_content"
    FETCH_FAILED = "fetch_failed"

    def __init__(self, message: str, reason: str = FETCH_FAILED):
        super().__init__(message)
        self.reason = reason


class MetadataStoreError(KnowledgeBaseException):
    """Metadata store (database) operation errors"""
    pass


class EmbeddingQuotaExceeded(KnowledgeBaseException):
    """Embedding upstream refused the request due to rate limits"""

    def __init__(self, message: str, retry_after: float = None):
        super().__init__(message)
        self.retry_after = retry_after


class VectorIndexUnavailable(KnowledgeBaseException):
    """Vector index cannot be reached"""
    pass


class RateLimitException(KnowledgeBaseException):
    """Rate limit exceeded"""

    def __init__(self, message: str, retry_after: int = None):
        super().__init__(message)
        self.retry_after = retry_after
