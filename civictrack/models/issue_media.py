# File: civictrack/models/issue_media.py
# Project: civictrack

from __future__ import annotations
from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import Integer, String, DateTime, Enum, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from civictrack.db.base import Base
from civictrack.models.issue import utcnow

class MediaType(PyEnum):
    BEFORE = "BEFORE"
    AFTER = "AFTER"

class IssueMedia(Base):
    __tablename__ = "issue_media"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    issue_id: Mapped[int] = mapped_column(ForeignKey("issues.id", ondelete="CASCADE"), index=True)
    type: Mapped[MediaType] = mapped_column(Enum(MediaType), nullable=False, default=MediaType.BEFORE)
    url: Mapped[str] = mapped_column(String(500))
    mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    issue = relationship("Issue", back_populates="media")
