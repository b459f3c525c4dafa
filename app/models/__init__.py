"""Database models package"""

from app.models.document import BotDocument
from app.models.document_chunk import DocumentChunk

__all__ = [
    "BotDocument",
    "DocumentChunk"
]
