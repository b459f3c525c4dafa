"""Near-duplicate chunk filter"""

from dataclasses import dataclass, field
from typing import List, Optional
import re
import logging

from app.rag.config import rag_config

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class DedupResult:
    """Indices of the chunks that survived, plus discard counts"""
    kept_indices: List[int] = field(default_factory=list)
    short_discarded: int = 0
    duplicates_discarded: int = 0

    @property
    def discarded(self) -> int:
        return self.short_discarded + self.duplicates_discarded


class ChunkDeduplicator:
    """
    Drop low-signal and near-duplicate chunks

    Chunks shorter than ``min_chars`` after trimming are dropped. The rest
    are compared on a signature made of their first ``signature_chars``
    characters, lowercased with all whitespace removed; only the first chunk
    per signature is kept. This is a heuristic: two chunks that share an
    opening but differ later on are treated as duplicates.
    """

    def __init__(self, min_chars: Optional[int] = None, signature_chars: Optional[int] = None):
        self.min_chars = min_chars if min_chars is not None else rag_config.min_chunk_chars
        self.signature_chars = signature_chars if signature_chars is not None else rag_config.signature_chars

    def signature(self, chunk: str) -> str:
        """Comparison key for a trimmed chunk"""
        return _WHITESPACE_RE.sub("", chunk[:self.signature_chars].lower())

    def filter(self, chunks: List[str]) -> DedupResult:
        """Decide which chunks to keep, preserving first-occurrence order"""
        result = DedupResult()
        seen = set()

        for index, chunk in enumerate(chunks):
            trimmed = chunk.strip()

            if len(trimmed) < self.min_chars:
                result.short_discarded += 1
                continue

            signature = self.signature(trimmed)
            if signature in seen:
                result.duplicates_discarded += 1
                logger.debug(f"Skipped duplicate chunk starting with: {trimmed[:50]!r}")
                continue

            seen.add(signature)
            result.kept_indices.append(index)

        logger.info(
            f"Kept {len(result.kept_indices)} unique chunks "
            f"(removed {result.duplicates_discarded} duplicates, {result.short_discarded} too short)"
        )
        return result

    def dedupe(self, chunks: List[str]) -> List[str]:
        """
        Remove short and near-duplicate chunks

        Args:
            chunks: Candidate chunks in document order

        Returns:
            Trimmed unique chunks in order of first occurrence
        """
        result = self.filter(chunks)
        return [chunks[i].strip() for i in result.kept_indices]
