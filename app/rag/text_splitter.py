"""Fixed-size sliding-window text splitter"""

from dataclasses import dataclass, field
from typing import List, Optional
import re
import logging

from app.rag.config import rag_config

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")


def normalize_text(text: str) -> str:
    """Collapse whitespace runs to one space and cap blank lines at two"""
    text = _WHITESPACE_RE.sub(" ", text)
    text = _EXCESS_NEWLINES_RE.sub("\n\n", text)
    return text.strip()


@dataclass
class TextWindow:
    """A trimmed window of the normalized text and where it starts"""
    text: str
    start: int


@dataclass
class SplitResult:
    """Windows produced by a split; ``truncated`` is set when the iteration cap was hit"""
    windows: List[TextWindow] = field(default_factory=list)
    truncated: bool = False

    @property
    def chunks(self) -> List[str]:
        return [window.text for window in self.windows]


class TextSplitter:
    """Split text into overlapping windows of ``chunk_size`` characters"""

    def __init__(
        self,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
        max_iterations: Optional[int] = None
    ):
        self.chunk_size = chunk_size if chunk_size is not None else rag_config.chunk_size
        self.chunk_overlap = chunk_overlap if chunk_overlap is not None else rag_config.chunk_overlap
        self.max_iterations = max_iterations if max_iterations is not None else rag_config.split_max_iterations

    def split_text(
        self,
        text: str,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None
    ) -> List[str]:
        """
        Split text into chunks with overlap

        Args:
            text: Text to split (normalized first)
            chunk_size: Window length in characters
            chunk_overlap: Characters shared by consecutive windows

        Returns:
            List of trimmed, non-empty chunks
        """
        return self.split_with_offsets(normalize_text(text), chunk_size, chunk_overlap).chunks

    def split_with_offsets(
        self,
        text: str,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None
    ) -> SplitResult:
        """
        Slide a window over already-normalized text

        The window advances by ``chunk_size - chunk_overlap``. When the
        overlap would stop the window from advancing it is ignored. After
        ``max_iterations`` windows the split stops and the result is marked
        truncated.
        """
        chunk_size = chunk_size if chunk_size is not None else self.chunk_size
        chunk_overlap = chunk_overlap if chunk_overlap is not None else self.chunk_overlap

        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if chunk_overlap < 0:
            raise ValueError("chunk_overlap must not be negative")

        step = chunk_size - chunk_overlap
        if step <= 0:
            logger.warning(
                f"Overlap {chunk_overlap} >= chunk size {chunk_size}, splitting without overlap"
            )
            step = chunk_size

        result = SplitResult()
        start = 0
        iterations = 0

        while start < len(text):
            if iterations >= self.max_iterations:
                result.truncated = True
                logger.warning(
                    f"Hit max iterations ({self.max_iterations}), stopping chunking at "
                    f"offset {start}/{len(text)}"
                )
                break
            iterations += 1

            end = min(start + chunk_size, len(text))
            window = text[start:end]
            stripped = window.strip()
            if stripped:
                leading = len(window) - len(window.lstrip())
                result.windows.append(TextWindow(text=stripped, start=start + leading))

            if end >= len(text):
                break
            start += step

        logger.info(
            f"Split {len(text)} characters into {len(result.windows)} raw chunks "
            f"(size: {chunk_size}, overlap: {chunk_overlap})"
        )
        return result
