"""Bot document model"""

from sqlalchemy import Column, Integer, String, DateTime, Boolean, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from app.database.base import Base


class BotDocument(Base):
    """One ingested source (PDF or web page) owned by a bot"""

    __tablename__ = "bot_documents"

    id = Column(Integer, primary_key=True, index=True)
    bot_id = Column(String(64), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    filename = Column(String(2048), nullable=False)  # file name or source URL
    source = Column(String(10), nullable=False)  # pdf, url
    file_size = Column(Integer, nullable=False, default=0)  # Size in bytes
    uploaded_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    total_chunks = Column(Integer, default=0, nullable=False)
    processed = Column(Boolean, default=False, nullable=False)

    # Relationships
    chunks = relationship(
        "DocumentChunk",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentChunk.chunk_index",
        lazy="selectin"
    )

    __table_args__ = (
        Index('idx_bot_processed', 'bot_id', 'processed'),
        # ids are never reused
        {'sqlite_autoincrement': True},
    )

    def __repr__(self):
        return f"<BotDocument(id={self.id}, bot_id={self.bot_id}, filename={self.filename})>"
