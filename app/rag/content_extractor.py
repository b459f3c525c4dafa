"""Text extraction from PDFs and web pages"""

from typing import Optional
import io
import socket
import logging

import httpx
import PyPDF2
from bs4 import BeautifulSoup

from app.exceptions import ExtractionError
from app.rag.config import rag_config
from app.rag.text_splitter import normalize_text
from app.rag.types import ExtractedText

logger = logging.getLogger(__name__)

MIN_URL_TEXT_CHARS = 50
MIN_MAIN_CONTENT_CHARS = 100
BLOCKED_STATUS_CODES = {999}

# Boilerplate removed before looking for content
STRIP_SELECTORS = "script, style, nav, footer, header, aside, .ad, .advertisement"

# Main content regions, most specific first
MAIN_SELECTORS = [
    "main",
    "article",
    '[role="main"]',
    ".content",
    "#content",
    ".post",
    ".entry-content",
]

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

_DNS_ERROR_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated with hostname",
)


class ContentExtractor:
    """Extract plain text from uploaded PDFs and remote web pages"""

    def __init__(
        self,
        http_client: Optional[httpx.Client] = None,
        timeout: Optional[float] = None,
        max_redirects: Optional[int] = None
    ):
        self.timeout = timeout or rag_config.url_timeout
        self.max_redirects = max_redirects or rag_config.url_max_redirects
        self._client = http_client

    @property
    def client(self) -> httpx.Client:
        """HTTP client, created on first use"""
        if self._client is None:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                max_redirects=self.max_redirects,
                headers=DEFAULT_HEADERS
            )
        return self._client

    def extract_from_pdf(self, data: bytes) -> ExtractedText:
        """
        Parse a PDF and return its text

        Each page is normalized separately and pages are joined with a
        single space, so ``page_offsets`` stay valid after the splitter
        normalizes the text again.

        Raises:
            ExtractionError: if the PDF cannot be parsed or has no text
        """
        try:
            reader = PyPDF2.PdfReader(io.BytesIO(data))
            page_texts = [page.extract_text() or "" for page in reader.pages]
        except Exception as e:
            logger.error(f"PDF parsing error: {e}")
            raise ExtractionError("Failed to parse PDF", ExtractionError.PDF_UNPARSABLE) from e

        parts = []
        page_offsets = []
        offset = 0
        for page_number, raw in enumerate(page_texts, 1):
            page_text = normalize_text(raw)
            if not page_text:
                continue
            if parts:
                offset += 1  # joining space
            page_offsets.append((offset, page_number))
            parts.append(page_text)
            offset += len(page_text)

        text = " ".join(parts)
        if not text:
            raise ExtractionError("No text content found in PDF", ExtractionError.EMPTY_CONTENT)

        logger.info(f"Extracted {len(text)} characters from {len(page_texts)} PDF pages")
        return ExtractedText(text=text, page_offsets=page_offsets)

    def extract_from_url(self, url: str) -> ExtractedText:
        """
        Fetch a web page and extract its main text

        Raises:
            ExtractionError: with a reason describing DNS failures, timeouts,
                blocked sites, HTTP errors or too little text
        """
        logger.info(f"Fetching URL: {url}")

        try:
            response = self.client.get(url)
        except httpx.TimeoutException as e:
            logger.error(f"URL extraction timeout for {url}: {e}")
            raise ExtractionError(
                "Request timed out - the website took too long to respond",
                ExtractionError.TIMEOUT
            ) from e
        except httpx.ConnectError as e:
            logger.error(f"URL extraction connect error for {url}: {e}")
            if self._is_dns_error(e):
                raise ExtractionError(
                    "URL not found - please check the URL is correct",
                    ExtractionError.DNS_FAILURE
                ) from e
            raise ExtractionError(
                f"Failed to extract text from URL: {e}",
                ExtractionError.FETCH_FAILED
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"URL extraction error for {url}: {e}")
            raise ExtractionError(
                f"Failed to extract text from URL: {e}",
                ExtractionError.FETCH_FAILED
            ) from e

        if response.status_code in BLOCKED_STATUS_CODES:
            raise ExtractionError(
                "This website blocks automated access (LinkedIn, etc.). "
                "Please copy text manually or use a different URL",
                ExtractionError.BLOCKED
            )
        if response.status_code >= 400:
            raise ExtractionError(
                f"Failed to fetch URL: HTTP {response.status_code}: {response.reason_phrase}",
                ExtractionError.HTTP_ERROR
            )

        text = self.extract_text_from_html(response.text)
        if len(text) < MIN_URL_TEXT_CHARS:
            raise ExtractionError(
                "Insufficient text content extracted from URL (less than 50 characters)",
                ExtractionError.INSUFFICIENT_CONTENT
            )

        logger.info(f"Extracted {len(text)} characters from URL")
        return ExtractedText(text=text)

    def extract_text_from_html(self, html: str) -> str:
        """Strip boilerplate and return normalized main-content text"""
        soup = BeautifulSoup(html, "html.parser")

        for element in soup.select(STRIP_SELECTORS):
            element.decompose()

        for selector in MAIN_SELECTORS:
            text = normalize_text(
                " ".join(element.get_text(" ") for element in soup.select(selector))
            )
            if len(text) >= MIN_MAIN_CONTENT_CHARS:
                logger.debug(f"Using main content from selector {selector!r}")
                return text

        body = soup.body or soup
        return normalize_text(body.get_text(" "))

    @staticmethod
    def _is_dns_error(error: Exception) -> bool:
        current = error
        seen = set()
        while current is not None and id(current) not in seen:
            if isinstance(current, socket.gaierror):
                return True
            seen.add(id(current))
            current = current.__cause__ or current.__context__

        message = str(error).lower()
        return any(marker in message for marker in _DNS_ERROR_MARKERS)

    def close(self):
        if self._client is not None:
            self._client.close()
