# File: civictrack/services/workflow.py
# Project: civictrack

"""Issue status workflow.

One transition table shared by every entry point. Each edge names the
surface allowed to take it: the generic status update, the verify endpoint,
the explicit reopen, or the after-media upload that marks work resolved.
The generic update never reaches VERIFIED, and verify/reopen sit behind
their own capabilities.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from civictrack.core.errors import InvalidTransition, PermissionDenied, PreconditionFailed
from civictrack.models.comment import IssueComment
from civictrack.models.issue import Issue, IssueStatus, utcnow
from civictrack.models.issue_history import ChangeType, IssueHistory
from civictrack.models.issue_media import MediaType
from civictrack.models.user import User, UserRole


class Surface(Enum):
    UPDATE = "update"
    VERIFY = "verify"
    REOPEN = "reopen"
    AFTER_MEDIA = "after_media"


S = IssueStatus
_UPDATE = frozenset({Surface.UPDATE})
_RESOLVE = frozenset({Surface.UPDATE, Surface.AFTER_MEDIA})

TRANSITIONS: Dict[IssueStatus, Dict[IssueStatus, FrozenSet[Surface]]] = {
    S.OPEN: {S.ASSIGNED: _UPDATE, S.REJECTED: _UPDATE},
    S.ASSIGNED: {
        S.IN_PROGRESS: _UPDATE,
        S.OPEN: _UPDATE,
        S.RESOLVED: frozenset({Surface.AFTER_MEDIA}),
    },
    S.IN_PROGRESS: {S.RESOLVED: _RESOLVE, S.ASSIGNED: _UPDATE},
    S.RESOLVED: {
        S.VERIFIED: frozenset({Surface.VERIFY}),
        S.REOPENED: frozenset({Surface.VERIFY}),
    },
    S.VERIFIED: {S.ASSIGNED: frozenset({Surface.REOPEN})},
    S.REOPENED: {S.ASSIGNED: _UPDATE, S.IN_PROGRESS: _UPDATE},
    S.REJECTED: {S.OPEN: _UPDATE},
}


def allowed_targets(current: IssueStatus, surface: Surface = Surface.UPDATE) -> FrozenSet[IssueStatus]:
    edges = TRANSITIONS.get(current, {})
    return frozenset(target for target, surfaces in edges.items() if surface in surfaces)


def check_transition(current: IssueStatus, target: IssueStatus, surface: Surface = Surface.UPDATE) -> None:
    allowed = allowed_targets(current, surface)
    if target not in allowed:
        raise InvalidTransition(current, target, allowed)


class Capability(Enum):
    CAN_TRANSITION = "can_transition"
    CAN_VERIFY = "can_verify"
    CAN_REASSIGN = "can_reassign"
    CAN_REOPEN = "can_reopen"
    CAN_UPLOAD_AFTER_MEDIA = "can_upload_after_media"


R = UserRole
CAPABILITIES: Dict[Capability, FrozenSet[UserRole]] = {
    Capability.CAN_TRANSITION: frozenset({R.WARD_ENGINEER, R.ZONE_OFFICER, R.SUPER_ADMIN}),
    Capability.CAN_VERIFY: frozenset({R.ZONE_OFFICER, R.SUPER_ADMIN}),
    Capability.CAN_REASSIGN: frozenset({R.WARD_ENGINEER, R.ZONE_OFFICER, R.SUPER_ADMIN}),
    Capability.CAN_REOPEN: frozenset({R.ZONE_OFFICER, R.SUPER_ADMIN}),
    # FIELD_WORKER additionally has to be the assignee, see can_upload_after_media()
    Capability.CAN_UPLOAD_AFTER_MEDIA: frozenset({R.FIELD_WORKER, R.WARD_ENGINEER, R.ZONE_OFFICER, R.SUPER_ADMIN}),
}


def has_capability(role: UserRole, capability: Capability) -> bool:
    return role in CAPABILITIES[capability]


def require_capability(user: User, capability: Capability) -> None:
    if not has_capability(user.role, capability):
        raise PermissionDenied(
            f"{user.role.value} may not perform this action",
            capability=capability.value,
            role=user.role.value,
        )


def can_upload_after_media(user: User, issue: Issue) -> bool:
    if not has_capability(user.role, Capability.CAN_UPLOAD_AFTER_MEDIA):
        return False
    if user.role == R.FIELD_WORKER:
        return issue.assignee_id == user.id
    return True


@dataclass
class TransitionResult:
    history: IssueHistory
    from_status: IssueStatus
    to_status: IssueStatus
    comment: Optional[IssueComment] = None
    # URLs of AFTER media dropped by a reopen; storage cleanup runs after commit
    removed_media_urls: List[str] = field(default_factory=list)


def transition(
    issue: Issue,
    target: IssueStatus,
    actor_id: Optional[int],
    surface: Surface = Surface.UPDATE,
    comment: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """Move ``issue`` to ``target`` and apply the side effects of entering it.

    Mutates the ORM object and appends exactly one STATUS_CHANGE history row
    (plus a comment row when ``comment`` is given). Nothing is flushed; the
    caller owns the transaction.
    """
    current = issue.status
    check_transition(current, target, surface)
    if target == S.ASSIGNED and issue.assignee_id is None:
        raise PreconditionFailed(
            "Issue has no assignee; use reassign to hand it to someone",
            issue_id=issue.id,
            current_status=current.value,
            use="reassign",
        )
    now = now or utcnow()

    removed_urls: List[str] = []
    if target == S.IN_PROGRESS and current != S.IN_PROGRESS:
        issue.assigned_at = now
    elif target == S.ASSIGNED and issue.assignee_id is not None and issue.assigned_at is None:
        issue.assigned_at = now
    elif target == S.RESOLVED:
        issue.resolved_at = now
    elif target == S.VERIFIED:
        issue.verified_at = now
    elif target == S.REOPENED:
        issue.resolved_at = None
        issue.verified_at = None

    if surface == Surface.REOPEN:
        # the approved resolution no longer stands: drop it and its evidence
        issue.resolved_at = None
        issue.verified_at = None
        for media in [m for m in issue.media if m.type == MediaType.AFTER]:
            removed_urls.append(media.url)
            issue.media.remove(media)

    issue.status = target
    issue.updated_at = now

    new_value = {"status": target.value}
    if removed_urls:
        new_value["removed_after_media"] = len(removed_urls)
    history = IssueHistory(
        change_type=ChangeType.STATUS_CHANGE,
        old_value={"status": current.value},
        new_value=new_value,
        comment=comment,
        changed_by=actor_id,
        created_at=now,
    )
    issue.history.append(history)

    comment_row = None
    if comment:
        comment_row = IssueComment(user_id=actor_id, body=comment, created_at=now)
        issue.comments.append(comment_row)

    return TransitionResult(
        history=history,
        from_status=current,
        to_status=target,
        comment=comment_row,
        removed_media_urls=removed_urls,
    )
