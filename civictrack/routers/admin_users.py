# civictrack/routers/admin_users.py
from fastapi import APIRouter, Depends

from civictrack.core.security import require_role
from civictrack.models.user import User
from civictrack.routers.issues import get_issue_service
from civictrack.schemas.issue import ReassignWorkIn, ReassignWorkOut, UserOut
from civictrack.services.issue_service import IssueService

router = APIRouter(prefix="/admin/users", tags=["admin-users"])

@router.post("/{user_id}/reassign-work", response_model=ReassignWorkOut)
def reassign_work(
    user_id: int,
    payload: ReassignWorkIn,
    svc: IssueService = Depends(get_issue_service),
    user: User = Depends(require_role("SUPER_ADMIN")),
):
    return svc.reassign_user_work(user_id, payload.to_user_id, user)

@router.post("/{user_id}/deactivate", response_model=UserOut)
def deactivate(
    user_id: int,
    svc: IssueService = Depends(get_issue_service),
    user: User = Depends(require_role("SUPER_ADMIN")),
):
    return svc.deactivate_user(user_id, user)
