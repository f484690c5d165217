# File: civictrack/services/assignee.py
# Project: civictrack

from typing import Optional

from sqlalchemy.orm import Session

from civictrack.core.cache import CacheKey, Namespace, RedisCache
from civictrack.core.config import settings
from civictrack.models.user import Department, User, UserRole


class AssigneeSelector:
    """Pick the engineer a new issue lands on.

    Earliest-created active WARD_ENGINEER of the ward whose department matches
    the category; failing that, the earliest-created one of any department.
    Decisions are cached per (ward, department) for a few minutes.
    """

    def __init__(self, db: Session, cache: RedisCache):
        self.db = db
        self.cache = cache

    @staticmethod
    def cache_key(ward_id: int, department: Optional[Department]) -> CacheKey:
        return CacheKey(Namespace.ASSIGNEE, ward_id, department.value if department else "any")

    def _earliest_engineer(self, ward_id: int, department: Optional[Department]) -> Optional[int]:
        q = self.db.query(User.id).filter(
            User.is_active.is_(True),
            User.role == UserRole.WARD_ENGINEER,
            User.ward_id == ward_id,
        )
        if department is not None:
            q = q.filter(User.department == department)
        row = q.order_by(User.created_at.asc(), User.id.asc()).first()
        return row[0] if row else None

    def _still_eligible(self, user_id: Optional[int], ward_id: int) -> bool:
        if user_id is None:
            return True
        user = self.db.get(User, user_id)
        return (
            user is not None
            and user.is_active
            and user.role == UserRole.WARD_ENGINEER
            and user.ward_id == ward_id
        )

    def select(self, ward_id: int, department: Optional[Department] = None) -> Optional[int]:
        key = self.cache_key(ward_id, department)
        cached = self.cache.get(key)
        if cached is not None and self._still_eligible(cached["assignee_id"], ward_id):
            return cached["assignee_id"]

        assignee_id = None
        if department is not None:
            assignee_id = self._earliest_engineer(ward_id, department)
        if assignee_id is None:
            assignee_id = self._earliest_engineer(ward_id, None)

        # "nobody available" is cached too, wrapped so it is not read back as a miss
        self.cache.set(key, {"assignee_id": assignee_id}, settings.assignee_cache_ttl_seconds)
        return assignee_id
