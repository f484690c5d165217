# civictrack/services/notifications.py
#
# Fire-and-forget notices dispatched after an issue transaction commits.
# Each entry point opens its own session (the request session is gone by the
# time a background task runs) and never raises.

import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from civictrack.db.session import SessionLocal
from civictrack.models.app_settings import AppSettings
from civictrack.models.issue import Issue
from civictrack.models.push import PushSubscription
from civictrack.models.user import User
from civictrack.services.notify_email import send_assignment_notification, send_status_update
from civictrack.services.notify_push import send_push

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


def _get_app_settings(db: Session) -> Optional[AppSettings]:
    return db.query(AppSettings).order_by(AppSettings.id.asc()).first()


def _push_to_user(db: Session, user_id: int, payload: dict) -> None:
    subs = db.query(PushSubscription).filter(PushSubscription.user_id == user_id).all()
    for s in subs:
        send_push(s.as_subscription_info(), payload)


def send_assignment_notifications_safe(issue_id: int, assignee_id: int, assigner_id: Optional[int],
                                       session_factory: SessionFactory = SessionLocal) -> None:
    db = session_factory()
    try:
        app_settings = _get_app_settings(db)
        auto_email = app_settings.auto_email_on_assignment if app_settings else True
        push_enabled = app_settings.push_notifications_enabled if app_settings else False

        issue = db.get(Issue, issue_id)
        assignee = db.get(User, assignee_id)
        if not issue or not assignee:
            return
        assigner = db.get(User, assigner_id) if assigner_id else None
        assigner_name = (assigner.full_name or assigner.email) if assigner else "Auto-assignment"

        if auto_email and assignee.email:
            try:
                send_assignment_notification(
                    assignee.email,
                    issue.id,
                    issue.ticket_number,
                    issue.category.name if issue.category else "-",
                    issue.sla_target_at,
                    assigner_name,
                )
            except Exception:
                logger.error("Assignment email for %s failed", issue.ticket_number, exc_info=True)

        if push_enabled:
            _push_to_user(db, assignee.id, {
                "title": "Issue Assigned",
                "body": f"{issue.ticket_number} assigned to you by {assigner_name}",
            })
    except Exception:
        logger.error("Error in background assignment notifications for issue %s", issue_id, exc_info=True)
    finally:
        db.close()


def send_status_change_notifications_safe(issue_id: int, new_status: str,
                                          session_factory: SessionFactory = SessionLocal) -> None:
    db = session_factory()
    try:
        app_settings = _get_app_settings(db)
        auto_email = app_settings.auto_email_on_assignment if app_settings else True
        push_enabled = app_settings.push_notifications_enabled if app_settings else False

        issue = db.get(Issue, issue_id)
        if not issue:
            return
        recipients = [u for u in (issue.reporter, issue.assignee) if u is not None and u.is_active]
        for user in {u.id: u for u in recipients}.values():
            if auto_email and user.email:
                try:
                    send_status_update(user.email, issue.id, issue.ticket_number, new_status)
                except Exception:
                    logger.error("Status email for %s failed", issue.ticket_number, exc_info=True)
            if push_enabled:
                _push_to_user(db, user.id, {
                    "title": "Issue update",
                    "body": f"{issue.ticket_number} is now {new_status.replace('_', ' ').lower()}",
                })
    except Exception:
        logger.error("Error in background status change notifications for issue %s", issue_id, exc_info=True)
    finally:
        db.close()
