from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from opsdesk.models import Notification
from opsdesk.services.identifier_service import opaque_id


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def add_notification(
    db: Session,
    *,
    type: str,
    title: str,
    message: str,
    data: dict | None = None,
) -> Notification:
    notification = Notification(
        id=opaque_id('NOTIF'),
        type=type,
        title=title,
        message=message,
        data=data,
        is_read=False,
        created_at=_now(),
    )
    db.add(notification)
    db.flush()
    return notification


def list_notifications(db: Session, *, unread_only: bool = False) -> list[Notification]:
    query = select(Notification).order_by(Notification.created_at.desc(), Notification.id.asc())
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    return db.execute(query).scalars().all()


def mark_notification_read(db: Session, notification_id: str) -> Notification | None:
    notification = db.get(Notification, notification_id)
    if notification:
        notification.is_read = True
        db.flush()
    return notification


def delete_notification(db: Session, notification_id: str) -> None:
    notification = db.get(Notification, notification_id)
    if notification:
        db.delete(notification)
        db.flush()


def get_unread_notification_count(db: Session) -> int:
    return db.execute(
        select(func.count()).select_from(Notification).where(Notification.is_read.is_(False))
    ).scalar_one()
