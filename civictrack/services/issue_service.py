# File: civictrack/services/issue_service.py
# Project: civictrack

"""Issue lifecycle orchestration.

Every mutating method runs as one unit of work on the request session: all
row changes (status, timestamps, history, comments, media) commit together or
roll back together. Only after the commit do the side channels run, cache
invalidation first, then notifications and storage cleanup, and none of them
can fail the request.
"""

import hashlib
import json
import logging
import math
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from civictrack.core.cache import CacheKey, Namespace, RedisCache, get_cache
from civictrack.core.config import settings
from civictrack.core.errors import (
    InvalidAssignee,
    NotFound,
    PermissionDenied,
    PreconditionFailed,
    ValidationFailed,
)
from civictrack.db.session import SessionLocal
from civictrack.models.category import IssueCategory
from civictrack.models.comment import IssueComment
from civictrack.models.geo import Ward
from civictrack.models.issue import Issue, IssueStatus, utcnow
from civictrack.models.issue_history import ChangeType, IssueHistory
from civictrack.models.issue_media import IssueMedia, MediaType
from civictrack.models.user import User, UserRole
from civictrack.schemas.issue import (
    AfterMediaItem,
    DashboardOut,
    IssueCreate,
    IssueDetailOut,
    IssueFilters,
    IssueOut,
    IssueStatsOut,
    PaginatedIssuesOut,
    ReassignWorkOut,
    SlaStatusOut,
)
from civictrack.services import sla
from civictrack.services.assignee import AssigneeSelector
from civictrack.services.cache_invalidation import CacheInvalidator, InvalidationScope
from civictrack.services.notifications import (
    send_assignment_notifications_safe,
    send_status_change_notifications_safe,
)
from civictrack.services.storage import delete_objects_safe
from civictrack.services.tickets import next_ticket_number
from civictrack.services.ward_resolver import WardResolver
from civictrack.services.workflow import (
    Capability,
    Surface,
    can_upload_after_media,
    check_transition,
    require_capability,
    transition,
)

logger = logging.getLogger(__name__)

# roles that can hold an issue
ASSIGNABLE_ROLES = {UserRole.WARD_ENGINEER, UserRole.FIELD_WORKER}
ACTIVE_STATUSES = {IssueStatus.ASSIGNED, IssueStatus.IN_PROGRESS, IssueStatus.REOPENED}
# statuses that count as work a user is holding
WORK_STATUSES = (IssueStatus.ASSIGNED, IssueStatus.IN_PROGRESS)
DONE_STATUSES = {IssueStatus.RESOLVED, IssueStatus.VERIFIED}
MAX_PAGE_SIZE = 100


def _digest(payload: dict) -> str:
    raw = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()[:16]


class IssueService:
    def __init__(
        self,
        db: Session,
        cache: Optional[RedisCache] = None,
        background_tasks: Optional[BackgroundTasks] = None,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self.db = db
        self.cache = cache if cache is not None else get_cache()
        self.tasks = background_tasks
        self.session_factory = session_factory
        self.wards = WardResolver(db, self.cache)
        self.assignees = AssigneeSelector(db, self.cache)
        self.invalidator = CacheInvalidator(self.cache)

    # ------------------------------------------------------------------
    # plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _unit_of_work(self):
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def _load_issue(self, issue_id: int, for_update: bool = False) -> Issue:
        q = self.db.query(Issue).filter(Issue.id == issue_id, Issue.deleted_at.is_(None))
        if for_update:
            # row lock on PostgreSQL; SQLite serializes writers anyway
            q = q.with_for_update(of=Issue)
        issue = q.first()
        if issue is None:
            raise NotFound("Issue not found", issue_id=issue_id)
        return issue

    def _invalidate(self, event: str, issue: Issue, *user_ids: Optional[int]) -> None:
        zone_id = issue.ward.zone_id if issue.ward is not None else None
        scope = InvalidationScope(issue_id=issue.id, ward_id=issue.ward_id, zone_id=zone_id)
        scope.add_users(issue.reporter_id, issue.assignee_id, *user_ids)
        self.invalidator.invalidate(event, scope)

    def _dispatch(self, fn, *args, **kwargs) -> None:
        """Run a best-effort side task after commit (in the background when we have a queue)."""
        if self.tasks is not None:
            self.tasks.add_task(fn, *args, **kwargs)
            return
        try:
            fn(*args, **kwargs)
        except Exception:
            logger.error("Side task %s failed", getattr(fn, "__name__", fn), exc_info=True)

    def _notify_assignment(self, issue: Issue, assigner_id: Optional[int]) -> None:
        if issue.assignee_id is None:
            return
        self._dispatch(
            send_assignment_notifications_safe,
            issue.id, issue.assignee_id, assigner_id,
            session_factory=self.session_factory,
        )

    def _notify_status(self, issue: Issue) -> None:
        self._dispatch(
            send_status_change_notifications_safe,
            issue.id, issue.status.value,
            session_factory=self.session_factory,
        )

    # ------------------------------------------------------------------
    # creation
    # ------------------------------------------------------------------

    def create_issue(self, data: IssueCreate, reporter: User, now: Optional[datetime] = None) -> Issue:
        with self._unit_of_work():
            category = self.db.get(IssueCategory, data.category_id)
            if category is None or not category.is_active:
                raise ValidationFailed("Invalid categoryId", code="INVALID_CATEGORY", category_id=data.category_id)

            ward_id = self.wards.resolve_or_raise(data.lat, data.lng)
            assignee_id = self.assignees.select(ward_id, category.department)

            now = now or utcnow()
            ticket_number = next_ticket_number(self.db, now.year)
            status = IssueStatus.ASSIGNED if assignee_id else IssueStatus.OPEN

            issue = Issue(
                ticket_number=ticket_number,
                category_id=category.id,
                priority=data.priority,
                status=status,
                description=data.description,
                lat=data.lat,
                lng=data.lng,
                address=data.address.strip() if data.address else None,
                ward_id=ward_id,
                reporter_id=reporter.id,
                assignee_id=assignee_id,
                created_at=now,
                updated_at=now,
                assigned_at=now if assignee_id else None,
                sla_target_at=sla.sla_target(now, category.sla_hours) if category.sla_hours else None,
            )
            issue.media = [
                IssueMedia(type=m.type, url=m.url, mime_type=m.mime_type, file_size=m.file_size, created_at=now)
                for m in data.media
            ]
            issue.history.append(IssueHistory(
                change_type=ChangeType.CREATE,
                old_value=None,
                new_value={
                    "status": status.value,
                    "ticket_number": ticket_number,
                    "ward_id": ward_id,
                    "assignee_id": assignee_id,
                },
                changed_by=reporter.id,
                created_at=now,
            ))
            self.db.add(issue)

        self.db.refresh(issue)
        logger.info("Created %s in ward %s (%s)", issue.ticket_number, ward_id, status.value)
        self._invalidate("issue.created", issue)
        self._notify_assignment(issue, None)
        return issue

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def _list_cache_key(self, filters: IssueFilters, page: int, page_size: int) -> CacheKey:
        digest = _digest({**filters.model_dump(mode="json"), "page": page, "page_size": page_size})
        if filters.ward_id is not None:
            return CacheKey(Namespace.WARD_DATA, filters.ward_id, f"issues:{digest}")
        if filters.zone_id is not None:
            return CacheKey(Namespace.ZONE_DATA, filters.zone_id, f"issues:{digest}")
        return CacheKey(Namespace.ISSUE_LIST, sub_key=digest)

    def list_issues(self, filters: Optional[IssueFilters] = None, page: int = 1, page_size: int = 20) -> PaginatedIssuesOut:
        filters = filters or IssueFilters()
        if page < 1 or not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationFailed("Invalid pagination", page=page, page_size=page_size)

        key = self._list_cache_key(filters, page, page_size)
        cached = self.cache.get(key)
        if cached is not None:
            return PaginatedIssuesOut.model_validate(cached)

        q = self.db.query(Issue).filter(Issue.deleted_at.is_(None))
        if filters.status:
            q = q.filter(Issue.status == filters.status)
        if filters.priority:
            q = q.filter(Issue.priority == filters.priority)
        if filters.ward_id is not None:
            q = q.filter(Issue.ward_id == filters.ward_id)
        if filters.zone_id is not None:
            q = q.filter(Issue.ward_id.in_(self.db.query(Ward.id).filter(Ward.zone_id == filters.zone_id)))
        if filters.category_id is not None:
            q = q.filter(Issue.category_id == filters.category_id)
        if filters.reporter_id is not None:
            q = q.filter(Issue.reporter_id == filters.reporter_id)
        if filters.assignee_id is not None:
            q = q.filter(Issue.assignee_id == filters.assignee_id)
        if filters.department:
            q = q.filter(Issue.category_id.in_(
                self.db.query(IssueCategory.id).filter(IssueCategory.department == filters.department)
            ))
        if filters.q:
            term = filters.q.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            q = q.filter(Issue.ticket_number.ilike(f"%{term}%", escape="\\"))

        total = q.count()
        rows = (
            q.order_by(Issue.updated_at.desc(), Issue.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        out = PaginatedIssuesOut(
            items=[IssueOut.model_validate(r) for r in rows],
            page=page,
            page_size=page_size,
            total=total,
            total_pages=math.ceil(total / page_size) if total else 0,
        )
        self.cache.set(key, out.model_dump(mode="json"), settings.issue_list_cache_ttl_seconds)
        return out

    def get_issue_by_id(self, issue_id: int, now: Optional[datetime] = None) -> IssueDetailOut:
        key = CacheKey(Namespace.ISSUE_DETAIL, issue_id)
        cached = self.cache.get(key)
        if cached is not None:
            out = IssueDetailOut.model_validate(cached)
        else:
            out = IssueDetailOut.model_validate(self._load_issue(issue_id))
            self.cache.set(key, out.model_dump(mode="json", exclude={"sla_status"}),
                           settings.issue_detail_cache_ttl_seconds)

        if out.sla_target_at is not None and out.status not in DONE_STATUSES:
            out.sla_status = SlaStatusOut(**sla.time_to_sla(out.sla_target_at, now=now))
        return out

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def update_status(self, issue_id: int, status: IssueStatus, actor: User,
                      comment: Optional[str] = None) -> Issue:
        require_capability(actor, Capability.CAN_TRANSITION)
        with self._unit_of_work():
            issue = self._load_issue(issue_id, for_update=True)
            result = transition(issue, status, actor.id, Surface.UPDATE, comment)

        self.db.refresh(issue)
        logger.info("%s %s -> %s by user %s", issue.ticket_number, result.from_status.value, status.value, actor.id)
        self._invalidate("issue.status_changed", issue)
        self._notify_status(issue)
        return issue

    def add_after_media(self, issue_id: int, media: Iterable[AfterMediaItem], actor: User,
                        mark_resolved: bool = True) -> Issue:
        media = list(media)
        if not media:
            raise ValidationFailed("At least one image is required")
        with self._unit_of_work():
            issue = self._load_issue(issue_id, for_update=True)
            if not can_upload_after_media(actor, issue):
                raise PermissionDenied("Not allowed to update this issue", issue_id=issue_id)
            if mark_resolved:
                check_transition(issue.status, IssueStatus.RESOLVED, Surface.AFTER_MEDIA)

            now = utcnow()
            for m in media:
                issue.media.append(IssueMedia(
                    type=MediaType.AFTER, url=m.url, mime_type=m.mime_type,
                    file_size=m.file_size, created_at=now,
                ))
            issue.history.append(IssueHistory(
                change_type=ChangeType.AFTER_MEDIA_UPLOAD,
                old_value=None,
                new_value={"count": len(media), "mark_resolved": mark_resolved},
                changed_by=actor.id,
                created_at=now,
            ))
            if mark_resolved:
                transition(issue, IssueStatus.RESOLVED, actor.id, Surface.AFTER_MEDIA, now=now)
            else:
                issue.updated_at = now

        self.db.refresh(issue)
        self._invalidate("issue.after_media", issue, actor.id)
        if mark_resolved:
            self._notify_status(issue)
        return issue

    def reassign(self, issue_id: int, assignee_id: int, actor: User, reason: Optional[str] = None) -> Issue:
        require_capability(actor, Capability.CAN_REASSIGN)
        with self._unit_of_work():
            issue = self._load_issue(issue_id, for_update=True)
            target = self.db.get(User, assignee_id)
            if target is None or not target.is_active:
                raise InvalidAssignee("Assignee must be an active user", assignee_id=assignee_id)
            if target.role not in ASSIGNABLE_ROLES:
                raise InvalidAssignee("Assignee cannot hold issues", assignee_id=assignee_id, role=target.role.value)
            if target.ward_id != issue.ward_id:
                raise InvalidAssignee(
                    "Assignee must belong to the issue's ward",
                    assignee_id=assignee_id, issue_ward_id=issue.ward_id, assignee_ward_id=target.ward_id,
                )
            if target.id == issue.assignee_id:
                raise InvalidAssignee("Issue is already assigned to this user", assignee_id=assignee_id)

            if issue.status != IssueStatus.ASSIGNED:
                check_transition(issue.status, IssueStatus.ASSIGNED, Surface.UPDATE)

            now = utcnow()
            old_assignee_id = issue.assignee_id
            issue.assignee_id = target.id
            issue.assigned_at = now
            issue.history.append(IssueHistory(
                change_type=ChangeType.ASSIGNMENT,
                old_value={"assignee_id": old_assignee_id},
                new_value={"assignee_id": target.id, "assignee_name": target.full_name},
                comment=reason,
                changed_by=actor.id,
                created_at=now,
            ))
            if issue.status != IssueStatus.ASSIGNED:
                transition(issue, IssueStatus.ASSIGNED, actor.id, Surface.UPDATE, now=now)
            else:
                issue.updated_at = now
            if reason:
                issue.comments.append(IssueComment(user_id=actor.id, body=reason, created_at=now))

        self.db.refresh(issue)
        logger.info("%s reassigned %s -> %s by user %s", issue.ticket_number, old_assignee_id, target.id, actor.id)
        self._invalidate("issue.reassigned", issue, old_assignee_id)
        self._notify_assignment(issue, actor.id)
        return issue

    def verify_resolution(self, issue_id: int, approved: bool, actor: User,
                          comment: Optional[str] = None) -> Issue:
        require_capability(actor, Capability.CAN_VERIFY)
        target = IssueStatus.VERIFIED if approved else IssueStatus.REOPENED
        with self._unit_of_work():
            issue = self._load_issue(issue_id, for_update=True)
            check_transition(issue.status, target, Surface.VERIFY)
            if approved:
                after_count = sum(1 for m in issue.media if m.type == MediaType.AFTER)
                if after_count == 0:
                    raise PreconditionFailed(
                        "Cannot verify a resolution without after images",
                        issue_id=issue_id, after_media=0,
                    )
            transition(issue, target, actor.id, Surface.VERIFY, comment)

        self.db.refresh(issue)
        logger.info("%s %s by user %s", issue.ticket_number, "verified" if approved else "rejected", actor.id)
        self._invalidate("issue.verified" if approved else "issue.verification_rejected", issue)
        self._notify_status(issue)
        return issue

    def reopen_issue(self, issue_id: int, actor: User, comment: Optional[str] = None) -> Issue:
        require_capability(actor, Capability.CAN_REOPEN)
        with self._unit_of_work():
            issue = self._load_issue(issue_id, for_update=True)
            result = transition(issue, IssueStatus.ASSIGNED, actor.id, Surface.REOPEN, comment)

        self.db.refresh(issue)
        logger.info("%s reopened by user %s, %d after image(s) dropped",
                    issue.ticket_number, actor.id, len(result.removed_media_urls))
        self._invalidate("issue.reopened", issue)
        if result.removed_media_urls:
            self._dispatch(delete_objects_safe, list(result.removed_media_urls))
        self._notify_status(issue)
        return issue

    def add_comment(self, issue_id: int, actor: User, body: str) -> IssueComment:
        body = (body or "").strip()
        if not body:
            raise ValidationFailed("Comment cannot be empty")
        with self._unit_of_work():
            issue = self._load_issue(issue_id)
            comment = IssueComment(user_id=actor.id, body=body, created_at=utcnow())
            issue.comments.append(comment)

        self.db.refresh(comment)
        self._invalidate("issue.commented", issue)
        return comment

    def soft_delete_issue(self, issue_id: int, actor: User) -> None:
        if actor.role != UserRole.SUPER_ADMIN:
            raise PermissionDenied("Only a super admin can delete issues", role=actor.role.value)
        with self._unit_of_work():
            issue = self._load_issue(issue_id, for_update=True)
            now = utcnow()
            issue.deleted_at = now
            issue.history.append(IssueHistory(
                change_type=ChangeType.SOFT_DELETE,
                old_value={"status": issue.status.value},
                new_value={"deleted": True},
                changed_by=actor.id,
                created_at=now,
            ))

        logger.info("%s soft-deleted by user %s", issue.ticket_number, actor.id)
        self._invalidate("issue.deleted", issue)

    # ------------------------------------------------------------------
    # staff work
    # ------------------------------------------------------------------

    def _active_work(self, user_id: int):
        return self.db.query(Issue).filter(
            Issue.assignee_id == user_id,
            Issue.status.in_(WORK_STATUSES),
            Issue.deleted_at.is_(None),
        )

    def reassign_user_work(self, from_user_id: int, to_user_id: int, actor: User) -> ReassignWorkOut:
        """Hand every ASSIGNED / IN_PROGRESS issue of one user to a peer in one transaction."""
        if actor.role != UserRole.SUPER_ADMIN:
            raise PermissionDenied("Only a super admin can move a user's work", role=actor.role.value)
        if from_user_id == to_user_id:
            raise InvalidAssignee("Source and target user are the same", user_id=from_user_id)

        with self._unit_of_work():
            source = self.db.get(User, from_user_id)
            if source is None:
                raise NotFound("Source user not found", user_id=from_user_id)
            target = self.db.get(User, to_user_id)
            if target is None:
                raise NotFound("Target user not found", user_id=to_user_id)
            if not target.is_active:
                raise InvalidAssignee("Cannot reassign to an inactive user", assignee_id=to_user_id)
            if source.role != target.role:
                raise InvalidAssignee(
                    "Work can only move between users of the same role",
                    from_role=source.role.value, to_role=target.role.value,
                )
            if source.role in ASSIGNABLE_ROLES and source.ward_id != target.ward_id:
                raise InvalidAssignee(
                    "Both users must belong to the same ward",
                    from_ward_id=source.ward_id, to_ward_id=target.ward_id,
                )
            if source.role == UserRole.ZONE_OFFICER and source.zone_id != target.zone_id:
                raise InvalidAssignee(
                    "Both users must belong to the same zone",
                    from_zone_id=source.zone_id, to_zone_id=target.zone_id,
                )

            issues = self._active_work(source.id).order_by(Issue.id.asc()).with_for_update(of=Issue).all()
            if not issues:
                raise PreconditionFailed("No active issues to reassign", user_id=source.id)

            now = utcnow()
            for issue in issues:
                issue.assignee_id = target.id
                issue.updated_at = now
                issue.history.append(IssueHistory(
                    change_type=ChangeType.ASSIGNMENT,
                    old_value={"assignee_id": source.id, "assignee_name": source.full_name},
                    new_value={"assignee_id": target.id, "assignee_name": target.full_name},
                    comment="Work reassignment",
                    changed_by=actor.id,
                    created_at=now,
                ))

        out = ReassignWorkOut(
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            reassigned_count=len(issues),
            tickets=[i.ticket_number for i in issues],
        )
        logger.info("Moved %d issue(s) from user %s to user %s by user %s",
                    out.reassigned_count, from_user_id, to_user_id, actor.id)
        for issue in issues:
            self._invalidate("issue.reassigned", issue, from_user_id)
            self._notify_assignment(issue, actor.id)
        return out

    def deactivate_user(self, user_id: int, actor: User) -> User:
        if actor.role != UserRole.SUPER_ADMIN:
            raise PermissionDenied("Only a super admin can deactivate users", role=actor.role.value)
        with self._unit_of_work():
            user = self.db.get(User, user_id)
            if user is None:
                raise NotFound("User not found", user_id=user_id)
            if user.role == UserRole.SUPER_ADMIN:
                raise PermissionDenied("Cannot deactivate a super admin account", user_id=user_id)
            if not user.is_active:
                raise ValidationFailed("User is already deactivated", code="ALREADY_INACTIVE", user_id=user_id)
            active = self._active_work(user.id).count()
            if active:
                raise PreconditionFailed(
                    f"User still holds {active} active issue(s); reassign them first",
                    user_id=user_id, active_issues=active, use="reassign_user_work",
                )
            user.is_active = False

        self.db.refresh(user)
        logger.info("User %s deactivated by user %s", user_id, actor.id)
        if user.ward_id is not None:
            self.invalidator.forget_assignees(user.ward_id)
        self.invalidator.invalidate("user.deactivated", InvalidationScope().add_users(user.id))
        return user

    # ------------------------------------------------------------------
    # aggregates
    # ------------------------------------------------------------------

    def get_stats(self, ward_id: Optional[int] = None, zone_id: Optional[int] = None,
                  assignee_id: Optional[int] = None, now: Optional[datetime] = None) -> IssueStatsOut:
        key = CacheKey(
            Namespace.ADMIN_STATS,
            sub_key=f"ward={ward_id or '-'}:zone={zone_id or '-'}:assignee={assignee_id or '-'}",
        )
        use_cache = now is None
        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                return IssueStatsOut.model_validate(cached)

        q = self.db.query(Issue.status, Issue.sla_target_at, Issue.resolved_at).filter(Issue.deleted_at.is_(None))
        if ward_id is not None:
            q = q.filter(Issue.ward_id == ward_id)
        if zone_id is not None:
            q = q.filter(Issue.ward_id.in_(self.db.query(Ward.id).filter(Ward.zone_id == zone_id)))
        if assignee_id is not None:
            q = q.filter(Issue.assignee_id == assignee_id)

        now = now or utcnow()
        by_status = {s.value: 0 for s in IssueStatus}
        breached = resolved = within = 0
        for status, target_at, resolved_at in q.all():
            by_status[status.value] += 1
            if resolved_at is not None:
                resolved += 1
                # no deadline means it cannot have been missed
                if target_at is None or not sla.is_breached(target_at, resolved_at):
                    within += 1
            elif target_at is not None and sla.is_breached(target_at, now=now):
                breached += 1

        out = IssueStatsOut(
            total=sum(by_status.values()),
            by_status=by_status,
            sla_breached=breached,
            resolved=resolved,
            resolved_within_sla=within,
            sla_compliance=sla.compliance(resolved, within),
        )
        if use_cache:
            self.cache.set(key, out.model_dump(mode="json"), settings.stats_cache_ttl_seconds)
        return out

    def get_user_dashboard(self, user: User, now: Optional[datetime] = None) -> DashboardOut:
        key = CacheKey(Namespace.USER_DASHBOARD, user.id)
        use_cache = now is None
        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                return DashboardOut.model_validate(cached)

        now = now or utcnow()
        live = self.db.query(Issue).filter(Issue.deleted_at.is_(None))
        reported = live.filter(Issue.reporter_id == user.id).count()
        assigned: List[Issue] = live.filter(Issue.assignee_id == user.id).all()
        active = [i for i in assigned if i.status in ACTIVE_STATUSES]
        out = DashboardOut(
            user_id=user.id,
            reported=reported,
            assigned_open=len(active),
            assigned_overdue=sum(1 for i in active if i.sla_target_at and sla.is_breached(i.sla_target_at, now=now)),
            resolved=sum(1 for i in assigned if i.status in DONE_STATUSES),
        )
        if use_cache:
            self.cache.set(key, out.model_dump(mode="json"), settings.dashboard_cache_ttl_seconds)
        return out
