# File: civictrack/models/issue_history.py
# Project: civictrack

from __future__ import annotations
from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import String, DateTime, Enum, ForeignKey, JSON, event
from sqlalchemy.orm import Mapped, mapped_column, relationship
from civictrack.db.base import Base
from civictrack.models.issue import utcnow

class ChangeType(PyEnum):
    CREATE = "CREATE"
    STATUS_CHANGE = "STATUS_CHANGE"
    ASSIGNMENT = "ASSIGNMENT"
    AFTER_MEDIA_UPLOAD = "AFTER_MEDIA_UPLOAD"
    SOFT_DELETE = "SOFT_DELETE"

class IssueHistory(Base):
    __tablename__ = "issue_history"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    issue_id: Mapped[int] = mapped_column(ForeignKey("issues.id", ondelete="CASCADE"), index=True, nullable=False)
    change_type: Mapped[ChangeType] = mapped_column(Enum(ChangeType), nullable=False)
    old_value: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    new_value: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    comment: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    changed_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    issue = relationship("Issue", back_populates="history")


@event.listens_for(IssueHistory, "before_update")
def _history_is_append_only(mapper, connection, target):
    raise ValueError("issue_history rows are append-only")


@event.listens_for(IssueHistory, "before_delete")
def _history_is_never_deleted(mapper, connection, target):
    raise ValueError("issue_history rows cannot be deleted")
