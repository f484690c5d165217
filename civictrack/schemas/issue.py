from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from civictrack.models.issue import IssueStatus, Priority
from civictrack.models.issue_media import MediaType
from civictrack.models.issue_history import ChangeType
from civictrack.models.user import Department, UserRole

URL_PATTERN = r"^https?://.+"


class MediaIn(BaseModel):
    type: MediaType = MediaType.BEFORE
    url: str = Field(pattern=URL_PATTERN, max_length=500)
    mime_type: Optional[str] = Field(default=None, max_length=100)
    file_size: Optional[int] = Field(default=None, gt=0)


class AfterMediaItem(BaseModel):
    url: str = Field(pattern=URL_PATTERN, max_length=500)
    mime_type: Optional[str] = Field(default=None, max_length=100)
    file_size: Optional[int] = Field(default=None, gt=0)


class IssueCreate(BaseModel):
    category_id: int
    description: Optional[str] = Field(default=None, min_length=1, max_length=5000)
    priority: Priority = Priority.MEDIUM
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    address: Optional[str] = Field(default=None, max_length=500)
    media: List[MediaIn] = Field(default_factory=list, max_length=20)


class AfterMediaIn(BaseModel):
    media: List[AfterMediaItem] = Field(min_length=1, max_length=10)
    mark_resolved: bool = True


class StatusUpdate(BaseModel):
    status: IssueStatus
    comment: Optional[str] = Field(default=None, min_length=1, max_length=1000)


class ReassignIn(BaseModel):
    assignee_id: int
    reason: Optional[str] = Field(default=None, min_length=1, max_length=500)


class VerifyIn(BaseModel):
    approved: bool
    comment: Optional[str] = Field(default=None, min_length=1, max_length=1000)


class ReopenIn(BaseModel):
    comment: Optional[str] = Field(default=None, min_length=1, max_length=1000)


class CommentIn(BaseModel):
    comment: str = Field(min_length=1, max_length=1000)


class IssueFilters(BaseModel):
    status: Optional[IssueStatus] = None
    priority: Optional[Priority] = None
    ward_id: Optional[int] = None
    zone_id: Optional[int] = None
    category_id: Optional[int] = None
    reporter_id: Optional[int] = None
    assignee_id: Optional[int] = None
    department: Optional[Department] = None
    q: Optional[str] = Field(default=None, max_length=100)


class UserLite(BaseModel):
    """Lightweight user info for reporter / assignee on issues."""
    id: int
    full_name: str
    role: UserRole
    department: Optional[Department] = None

    class Config:
        from_attributes = True


class CategoryLite(BaseModel):
    id: int
    name: str
    slug: str
    department: Optional[Department] = None
    sla_hours: int

    class Config:
        from_attributes = True


class WardLite(BaseModel):
    id: int
    ward_number: int
    name: str
    zone_id: int

    class Config:
        from_attributes = True


class MediaOut(BaseModel):
    id: int
    type: MediaType
    url: str
    mime_type: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class HistoryOut(BaseModel):
    id: int
    change_type: ChangeType
    old_value: Optional[dict] = None
    new_value: Optional[dict] = None
    comment: Optional[str] = None
    changed_by: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CommentOut(BaseModel):
    id: int
    user_id: Optional[int] = None
    body: str
    created_at: datetime

    class Config:
        from_attributes = True


class IssueOut(BaseModel):
    id: int
    ticket_number: str
    status: IssueStatus
    priority: Priority
    description: Optional[str] = None

    lat: float
    lng: float
    address: Optional[str] = None
    ward_id: int

    category_id: int
    reporter_id: int
    assignee_id: Optional[int] = None

    created_at: datetime
    assigned_at: Optional[datetime] = None
    sla_target_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    category: Optional[CategoryLite] = None
    ward: Optional[WardLite] = None
    reporter: Optional[UserLite] = None
    assignee: Optional[UserLite] = None
    media: List[MediaOut] = []

    class Config:
        from_attributes = True


class SlaStatusOut(BaseModel):
    is_breached: bool
    hours_remaining: int
    minutes_remaining: int


class IssueDetailOut(IssueOut):
    history: List[HistoryOut] = []
    comments: List[CommentOut] = []
    # filled per request, never cached
    sla_status: Optional[SlaStatusOut] = None


class PaginatedIssuesOut(BaseModel):
    items: list[IssueOut]
    page: int
    page_size: int
    total: int
    total_pages: int


class IssueStatsOut(BaseModel):
    total: int
    by_status: dict[str, int]
    sla_breached: int
    resolved: int
    resolved_within_sla: int
    sla_compliance: float


class DashboardOut(BaseModel):
    user_id: int
    reported: int
    assigned_open: int
    assigned_overdue: int
    resolved: int


class ReassignWorkIn(BaseModel):
    to_user_id: int


class ReassignWorkOut(BaseModel):
    from_user_id: int
    to_user_id: int
    reassigned_count: int
    tickets: List[str] = Field(default_factory=list)


class UserOut(UserLite):
    email: str
    is_active: bool
    ward_id: Optional[int] = None
    zone_id: Optional[int] = None
