# File: civictrack/models/user.py
# Project: civictrack

from __future__ import annotations
from enum import Enum as PyEnum
from sqlalchemy import String, Boolean, DateTime, Enum, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column
from civictrack.db.base import Base
from datetime import datetime

class UserRole(PyEnum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ZONE_OFFICER = "ZONE_OFFICER"
    WARD_ENGINEER = "WARD_ENGINEER"
    FIELD_WORKER = "FIELD_WORKER"

class Department(PyEnum):
    ROAD = "ROAD"
    STORM_WATER_DRAINAGE = "STORM_WATER_DRAINAGE"
    SEWAGE_DISPOSAL = "SEWAGE_DISPOSAL"
    WATER_WORKS = "WATER_WORKS"
    STREET_LIGHT = "STREET_LIGHT"
    BRIDGE_CELL = "BRIDGE_CELL"
    SOLID_WASTE_MANAGEMENT = "SOLID_WASTE_MANAGEMENT"
    HEALTH = "HEALTH"
    TOWN_PLANNING = "TOWN_PLANNING"
    PARKS_GARDENS = "PARKS_GARDENS"
    ENCROACHMENT = "ENCROACHMENT"
    FIRE = "FIRE"
    ELECTRICAL = "ELECTRICAL"

class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    full_name: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    phone_number: Mapped[str | None] = mapped_column(String(30), nullable=True)
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), nullable=False, default=UserRole.FIELD_WORKER)
    department: Mapped[Department | None] = mapped_column(Enum(Department), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")

    # a WARD_ENGINEER / FIELD_WORKER is scoped to one ward, a ZONE_OFFICER to one zone
    ward_id: Mapped[int | None] = mapped_column(ForeignKey("wards.id", ondelete="SET NULL"), index=True, nullable=True)
    zone_id: Mapped[int | None] = mapped_column(ForeignKey("zones.id", ondelete="SET NULL"), index=True, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)
