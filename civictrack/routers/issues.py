# File: civictrack/routers/issues.py
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, Response
from sqlalchemy.orm import Session
from typing import Optional

from civictrack.core.ratelimit import limiter
from civictrack.core.security import get_current_user, require_role
from civictrack.db.session import get_db
from civictrack.models.issue import IssueStatus, Priority
from civictrack.models.user import Department, User
from civictrack.schemas.issue import (
    AfterMediaIn,
    CommentIn,
    CommentOut,
    IssueCreate,
    IssueDetailOut,
    IssueFilters,
    IssueOut,
    PaginatedIssuesOut,
    ReassignIn,
    ReopenIn,
    StatusUpdate,
    VerifyIn,
)
from civictrack.services.issue_service import IssueService

router = APIRouter(prefix="/issues", tags=["issues"])

ANY_STAFF = ("FIELD_WORKER", "WARD_ENGINEER", "ZONE_OFFICER", "SUPER_ADMIN")


def get_issue_service(background_tasks: BackgroundTasks, db: Session = Depends(get_db)) -> IssueService:
    return IssueService(db, background_tasks=background_tasks)


@router.post("", response_model=IssueOut, status_code=201)
@limiter.limit("10/minute")
def create_issue(
    request: Request,
    body: IssueCreate,
    svc: IssueService = Depends(get_issue_service),
    reporter: User = Depends(require_role("FIELD_WORKER")),
):
    return svc.create_issue(body, reporter)


@router.get("", response_model=PaginatedIssuesOut)
def list_issues(
    status: Optional[IssueStatus] = Query(default=None),
    priority: Optional[Priority] = Query(default=None),
    ward_id: Optional[int] = Query(default=None),
    zone_id: Optional[int] = Query(default=None),
    category_id: Optional[int] = Query(default=None),
    reporter_id: Optional[int] = Query(default=None),
    assignee_id: Optional[int] = Query(default=None),
    department: Optional[Department] = Query(default=None),
    q: Optional[str] = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    svc: IssueService = Depends(get_issue_service),
    _=Depends(require_role(*ANY_STAFF)),
):
    filters = IssueFilters(
        status=status, priority=priority, ward_id=ward_id, zone_id=zone_id,
        category_id=category_id, reporter_id=reporter_id, assignee_id=assignee_id,
        department=department, q=q,
    )
    return svc.list_issues(filters, page, page_size)


@router.get("/{issue_id}", response_model=IssueDetailOut)
def get_issue(issue_id: int, svc: IssueService = Depends(get_issue_service),
              _=Depends(require_role(*ANY_STAFF))):
    return svc.get_issue_by_id(issue_id)


@router.patch("/{issue_id}/status", response_model=IssueOut)
def update_status(issue_id: int, body: StatusUpdate, svc: IssueService = Depends(get_issue_service),
                  user: User = Depends(get_current_user)):
    return svc.update_status(issue_id, body.status, user, body.comment)


@router.post("/{issue_id}/after-media", response_model=IssueOut)
def add_after_media(issue_id: int, body: AfterMediaIn, svc: IssueService = Depends(get_issue_service),
                    user: User = Depends(get_current_user)):
    return svc.add_after_media(issue_id, body.media, user, body.mark_resolved)


@router.post("/{issue_id}/reassign", response_model=IssueOut)
def reassign(issue_id: int, body: ReassignIn, svc: IssueService = Depends(get_issue_service),
             user: User = Depends(get_current_user)):
    return svc.reassign(issue_id, body.assignee_id, user, body.reason)


@router.post("/{issue_id}/verify", response_model=IssueOut)
def verify_resolution(issue_id: int, body: VerifyIn, svc: IssueService = Depends(get_issue_service),
                      user: User = Depends(get_current_user)):
    return svc.verify_resolution(issue_id, body.approved, user, body.comment)


@router.post("/{issue_id}/reopen", response_model=IssueOut)
def reopen_issue(issue_id: int, body: ReopenIn = ReopenIn(), svc: IssueService = Depends(get_issue_service),
                 user: User = Depends(get_current_user)):
    return svc.reopen_issue(issue_id, user, body.comment)


@router.post("/{issue_id}/comments", response_model=CommentOut, status_code=201)
def add_comment(issue_id: int, body: CommentIn, svc: IssueService = Depends(get_issue_service),
                user: User = Depends(get_current_user)):
    return svc.add_comment(issue_id, user, body.comment)


@router.delete("/{issue_id}", status_code=204)
def delete_issue(issue_id: int, svc: IssueService = Depends(get_issue_service),
                 user: User = Depends(get_current_user)):
    svc.soft_delete_issue(issue_id, user)
    return Response(status_code=204)
