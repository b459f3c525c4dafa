"""Google Gemini embeddings service"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
import math
import random
import re
import threading
import time
import logging

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from app.exceptions import EmbeddingQuotaExceeded
from app.rag.config import rag_config

logger = logging.getLogger(__name__)

_RETRY_DELAY_PATTERNS = (
    re.compile(r"retry_delay\s*\{\s*seconds:\s*(\d+)"),
    re.compile(r"retry in\s+([\d.]+)\s*s", re.IGNORECASE),
)


@dataclass
class QuotaState:
    """Upstream quota status; ``reset_at`` is on the service clock"""
    exceeded: bool = False
    reset_at: float = 0.0


class GeminiEmbeddingsService:
    """
    Generate embeddings with Gemini, never failing

    Every call returns a vector of ``dimension`` floats. When the upstream
    is not configured, over quota, or errors out, a random mock vector is
    returned instead so ingestion and retrieval keep running at reduced
    quality.

    Results are memoized per process on the first ``cache_key_chars``
    characters of the text. Upstream calls are spaced at least
    ``min_interval`` seconds apart across all threads. A rate-limit error
    switches the service to mock vectors until the provider's retry delay
    (or ``quota_reset_seconds``) has passed.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        dimension: Optional[int] = None,
        min_interval: Optional[float] = None,
        quota_reset_seconds: Optional[float] = None,
        cache_key_chars: Optional[int] = None,
        embed_content: Optional[Callable] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ):
        api_key = rag_config.google_api_key if api_key is None else api_key

        # Ensure embedding model has "models/" prefix
        model_name = model_name or rag_config.gemini_embedding_model
        if not model_name.startswith("models/"):
            model_name = f"models/{model_name}"
        self.model_name = model_name

        self.dimension = dimension or rag_config.vector_size
        self.min_interval = rag_config.embedding_min_interval if min_interval is None else min_interval
        self.quota_reset_seconds = rag_config.quota_reset_seconds if quota_reset_seconds is None else quota_reset_seconds
        self.cache_key_chars = cache_key_chars or rag_config.cache_key_chars

        self._clock = clock
        self._sleep = sleep

        if embed_content is not None:
            self._embed_content = embed_content
        elif api_key:
            genai.configure(api_key=api_key)
            self._embed_content = genai.embed_content
        else:
            self._embed_content = None

        self._cache: Dict[str, List[float]] = {}
        self._cache_lock = threading.Lock()
        self._rate_lock = threading.Lock()
        self._last_call: Optional[float] = None
        self._quota = QuotaState()
        self._quota_lock = threading.Lock()

        if self._embed_content is None:
            logger.warning("Gemini API key not set, embeddings will use mock vectors")
        else:
            logger.info(f"Initializing Gemini embeddings with model: {self.model_name}")

    @property
    def upstream_configured(self) -> bool:
        return self._embed_content is not None

    # Quota status

    def is_quota_exceeded(self) -> bool:
        """True while the upstream quota is exhausted and the reset time has not passed"""
        with self._quota_lock:
            return self._quota.exceeded and self._clock() < self._quota.reset_at

    def get_quota_reset_seconds(self) -> int:
        """Whole seconds until the quota resets (0 when not exceeded)"""
        with self._quota_lock:
            if not self._quota.exceeded:
                return 0
            return max(0, math.ceil(self._quota.reset_at - self._clock()))

    def _mark_quota_exceeded(self, retry_after: Optional[float]):
        delay = retry_after if retry_after is not None else self.quota_reset_seconds
        with self._quota_lock:
            self._quota.exceeded = True
            self._quota.reset_at = self._clock() + delay
        logger.error(f"Embedding quota exceeded - switching to mock embeddings (reset in {math.ceil(delay)}s)")

    def _clear_quota(self):
        with self._quota_lock:
            self._quota.exceeded = False

    # Cache

    def _get_cache_key(self, text: str) -> str:
        """Generate cache key for text"""
        return text[:self.cache_key_chars]

    def _get_from_cache(self, text: str) -> Optional[List[float]]:
        with self._cache_lock:
            return self._cache.get(self._get_cache_key(text))

    def _save_to_cache(self, text: str, embedding: List[float]):
        with self._cache_lock:
            self._cache[self._get_cache_key(text)] = embedding

    def cache_size(self) -> int:
        with self._cache_lock:
            return len(self._cache)

    # Embedding

    def mock_embedding(self) -> List[float]:
        """Random vector in [0, 1); never all zeros"""
        return [random.random() for _ in range(self.dimension)]

    def _wait_for_slot(self):
        """
        Block until ``min_interval`` has passed since the previous upstream attempt

        The slot is taken before the call is made, so spacing is measured from
        the last attempt whether or not it succeeded.
        """
        with self._rate_lock:
            if self._last_call is not None:
                wait = self._last_call + self.min_interval - self._clock()
                if wait > 0:
                    logger.debug(f"Rate limiting embeddings, sleeping {wait:.2f}s")
                    self._sleep(wait)
            self._last_call = self._clock()

    def _call_upstream(self, text: str) -> List[float]:
        """
        One rate-limited upstream call

        Raises:
            EmbeddingQuotaExceeded: on rate-limit errors, with the retry delay if given
            ValueError: if the vector has the wrong dimension
        """
        self._wait_for_slot()
        try:
            result = self._embed_content(
                model=self.model_name,
                content=text,
                task_type="retrieval_document"
            )
        except Exception as e:
            if self._is_quota_error(e):
                raise EmbeddingQuotaExceeded(str(e), self._parse_retry_delay(e)) from e
            raise

        embedding = [float(value) for value in result['embedding']]
        if len(embedding) != self.dimension:
            raise ValueError(
                f"Expected {self.dimension}-dimensional embedding, got {len(embedding)}"
            )
        return embedding

    def generate_embedding(self, text: str) -> List[float]:
        """
        Generate embedding for a single text using Gemini

        Args:
            text: Text to embed

        Returns:
            List of ``dimension`` floats; a mock vector if the upstream is unusable
        """
        # Check cache first
        cached = self._get_from_cache(text)
        if cached is not None:
            logger.debug("Cache hit for embedding")
            return cached

        if self.is_quota_exceeded():
            logger.warning(
                f"Quota exceeded, using mock embedding (reset in {self.get_quota_reset_seconds()}s)"
            )
            return self.mock_embedding()

        if self._embed_content is None:
            logger.debug("Gemini API not configured, using mock embedding")
            return self.mock_embedding()

        try:
            embedding = self._call_upstream(text)
        except EmbeddingQuotaExceeded as e:
            self._mark_quota_exceeded(e.retry_after)
            return self.mock_embedding()
        except Exception as e:
            logger.error(f"Error generating Gemini embedding, using mock embedding: {e}")
            return self.mock_embedding()

        self._save_to_cache(text, embedding)
        self._clear_quota()

        logger.debug(f"Generated Gemini embedding for text of length {len(text)}")
        return embedding

    def generate_embeddings_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for multiple texts one at a time

        Calls are sequential so the upstream rate limit applies to each text.
        """
        return [self.generate_embedding(text) for text in texts]

    @staticmethod
    def _is_quota_error(error: Exception) -> bool:
        """Rate-limit errors: HTTP 429 or a message mentioning quota"""
        if isinstance(error, google_exceptions.ResourceExhausted):
            return True
        for attr in ("code", "status", "status_code"):
            if getattr(error, attr, None) == 429:
                return True
        return "quota" in str(error).lower()

    @staticmethod
    def _parse_retry_delay(error: Exception) -> Optional[float]:
        """Retry delay in seconds from RetryInfo details or the error message"""
        try:
            details = list(getattr(error, "details", None) or [])
        except TypeError:
            details = []

        for detail in details:
            delay = getattr(detail, "retry_delay", None)
            if delay is not None and hasattr(delay, "seconds"):
                return float(delay.seconds) + getattr(delay, "nanos", 0) / 1e9

            if isinstance(detail, dict) and "RetryInfo" in str(detail.get("@type", "")):
                raw = str(detail.get("retryDelay", "")).rstrip("s")
                try:
                    return float(raw)
                except ValueError:
                    continue

        message = str(error)
        for pattern in _RETRY_DELAY_PATTERNS:
            match = pattern.search(message)
            if match:
                return float(match.group(1))
        return None
