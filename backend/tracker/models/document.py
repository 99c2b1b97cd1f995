from __future__ import annotations

from sqlalchemy import Column, DateTime, Index, String, func
from sqlalchemy.types import JSON

from tracker.database import Base


class Document(Base):
    __tablename__ = "documents"
    __table_args__ = (Index("idx_documents_collection", "collection"),)

    id = Column(String(36), primary_key=True)
    collection = Column(String(120), nullable=False)
    fields = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
