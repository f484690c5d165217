# File: civictrack/models/geo.py
# Project: civictrack

from __future__ import annotations
from sqlalchemy import String, Float, JSON, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from civictrack.db.base import Base

class Zone(Base):
    __tablename__ = "zones"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    code: Mapped[str] = mapped_column(String(20), unique=True, index=True)

    wards: Mapped[list["Ward"]] = relationship(back_populates="zone")


class Ward(Base):
    __tablename__ = "wards"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    ward_number: Mapped[int] = mapped_column(nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    zone_id: Mapped[int] = mapped_column(ForeignKey("zones.id", ondelete="RESTRICT"), index=True)

    # GeoJSON Polygon / MultiPolygon, coordinates in [lng, lat] order
    boundary: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # bounding box of the boundary, kept in sync by set_boundary()
    min_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    min_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_lng: Mapped[float | None] = mapped_column(Float, nullable=True)

    zone: Mapped[Zone] = relationship(back_populates="wards")

    __table_args__ = (UniqueConstraint("zone_id", "ward_number", name="uq_ward_number"),)

    def set_boundary(self, geojson: dict) -> None:
        rings = []
        if geojson["type"] == "Polygon":
            rings = geojson["coordinates"]
        elif geojson["type"] == "MultiPolygon":
            rings = [ring for polygon in geojson["coordinates"] for ring in polygon]
        else:
            raise ValueError(f"unsupported boundary type: {geojson['type']}")
        lngs = [pt[0] for ring in rings for pt in ring]
        lats = [pt[1] for ring in rings for pt in ring]
        self.boundary = geojson
        self.min_lng, self.max_lng = min(lngs), max(lngs)
        self.min_lat, self.max_lat = min(lats), max(lats)

Index("ix_wards_bbox", Ward.min_lat, Ward.max_lat, Ward.min_lng, Ward.max_lng)
