# File: civictrack/models/app_settings.py
# Project: civictrack

from sqlalchemy import Boolean
from sqlalchemy.orm import Mapped, mapped_column
from civictrack.db.base import Base

class AppSettings(Base):
    __tablename__ = "app_settings"

    # single-row table pattern; enforce one row in code
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    auto_email_on_assignment: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    push_notifications_enabled: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
