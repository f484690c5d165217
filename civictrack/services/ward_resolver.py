# File: civictrack/services/ward_resolver.py
# Project: civictrack

import logging
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from civictrack.core.cache import CacheKey, Namespace, RedisCache
from civictrack.core.config import settings
from civictrack.core.errors import OutsideJurisdiction
from civictrack.models.geo import Ward

logger = logging.getLogger(__name__)

# 4 decimals ~ 11m: absorbs GPS jitter without blurring ward edges
COORD_PRECISION = 4


def _point_in_ring(lng: float, lat: float, ring: Sequence[Sequence[float]]) -> bool:
    inside = False
    n = len(ring)
    j = n - 1
    for i in range(n):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]
        if (yi > lat) != (yj > lat):
            x_cross = (xj - xi) * (lat - yi) / (yj - yi) + xi
            if lng < x_cross:
                inside = not inside
        j = i
    return inside


def _point_in_polygon(lng: float, lat: float, rings) -> bool:
    # first ring is the shell, the rest are holes
    if not rings or not _point_in_ring(lng, lat, rings[0]):
        return False
    return not any(_point_in_ring(lng, lat, hole) for hole in rings[1:])


def boundary_contains(boundary: dict, lat: float, lng: float) -> bool:
    if not boundary:
        return False
    kind = boundary.get("type")
    if kind == "Polygon":
        return _point_in_polygon(lng, lat, boundary["coordinates"])
    if kind == "MultiPolygon":
        return any(_point_in_polygon(lng, lat, poly) for poly in boundary["coordinates"])
    logger.warning("Ignoring ward boundary of unsupported type %s", kind)
    return False


class WardResolver:
    def __init__(self, db: Session, cache: RedisCache):
        self.db = db
        self.cache = cache

    @staticmethod
    def cache_key(lat: float, lng: float) -> CacheKey:
        return CacheKey(
            Namespace.GEO_DATA,
            sub_key=f"ward:{round(lat, COORD_PRECISION):.4f}:{round(lng, COORD_PRECISION):.4f}",
        )

    def resolve(self, lat: float, lng: float) -> Optional[int]:
        key = self.cache_key(lat, lng)
        cached = self.cache.get(key)
        if cached is not None:
            return cached["ward_id"]

        candidates = (
            self.db.query(Ward)
            .filter(
                Ward.boundary.isnot(None),
                Ward.min_lat <= lat,
                Ward.max_lat >= lat,
                Ward.min_lng <= lng,
                Ward.max_lng >= lng,
            )
            .order_by(Ward.id.asc())
            .all()
        )
        ward_id = next((w.id for w in candidates if boundary_contains(w.boundary, lat, lng)), None)

        if ward_id is not None:
            self.cache.set(key, {"ward_id": ward_id}, settings.ward_cache_ttl_seconds)
        return ward_id

    def resolve_or_raise(self, lat: float, lng: float) -> int:
        ward_id = self.resolve(lat, lng)
        if ward_id is None:
            raise OutsideJurisdiction(
                "Location is outside every ward boundary",
                latitude=lat,
                longitude=lng,
            )
        return ward_id
