# civictrack/routers/issues_stats.py
from fastapi import APIRouter, Depends, Query
from typing import Optional

from civictrack.core.security import get_current_user, require_role
from civictrack.models.user import User
from civictrack.routers.issues import get_issue_service
from civictrack.schemas.issue import DashboardOut, IssueStatsOut
from civictrack.services.issue_service import IssueService

router = APIRouter(prefix="/issues/stats", tags=["issues:stats"])

@router.get("/summary", response_model=IssueStatsOut)
def summary(
    ward_id: Optional[int] = Query(None),
    zone_id: Optional[int] = Query(None),
    assignee_id: Optional[int] = Query(None),
    svc: IssueService = Depends(get_issue_service),
    _=Depends(require_role("WARD_ENGINEER", "ZONE_OFFICER", "SUPER_ADMIN")),
):
    return svc.get_stats(ward_id=ward_id, zone_id=zone_id, assignee_id=assignee_id)

@router.get("/dashboard", response_model=DashboardOut)
def my_dashboard(svc: IssueService = Depends(get_issue_service), user: User = Depends(get_current_user)):
    return svc.get_user_dashboard(user)
