# File: civictrack/models/system_config.py
# Project: civictrack

from datetime import datetime
from sqlalchemy import String, Integer, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column
from civictrack.db.base import Base

class SystemConfig(Base):
    __tablename__ = "system_config"

    # one row per counter, e.g. "ticket_counter_2026"
    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
