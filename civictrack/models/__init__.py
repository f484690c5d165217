# Import every model so relationship() string targets resolve and
# Base.metadata sees all tables.
from civictrack.models.geo import Zone, Ward
from civictrack.models.user import User, UserRole, Department
from civictrack.models.category import IssueCategory
from civictrack.models.issue import Issue, IssueStatus, Priority
from civictrack.models.issue_media import IssueMedia, MediaType
from civictrack.models.issue_history import IssueHistory, ChangeType
from civictrack.models.comment import IssueComment
from civictrack.models.system_config import SystemConfig
from civictrack.models.app_settings import AppSettings
from civictrack.models.push import PushSubscription

__all__ = [
    "Zone", "Ward", "User", "UserRole", "Department", "IssueCategory",
    "Issue", "IssueStatus", "Priority", "IssueMedia", "MediaType",
    "IssueHistory", "ChangeType", "IssueComment", "SystemConfig",
    "AppSettings", "PushSubscription",
]
