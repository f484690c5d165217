# File: civictrack/models/category.py
# Project: civictrack

from sqlalchemy import String, Boolean, Integer, Enum
from sqlalchemy.orm import Mapped, mapped_column
from civictrack.db.base import Base
from civictrack.models.user import Department

class IssueCategory(Base):
    __tablename__ = "issue_categories"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), unique=True, index=True)
    slug: Mapped[str] = mapped_column(String(140), unique=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    sla_hours: Mapped[int] = mapped_column(Integer, default=48, server_default="48")
    department: Mapped[Department | None] = mapped_column(Enum(Department), nullable=True)
