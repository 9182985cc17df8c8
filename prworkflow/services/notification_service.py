from __future__ import annotations

import logging

from sqlalchemy import insert, select
from sqlalchemy.orm import Session

from prworkflow.db import LIKE_ESCAPE, contains_pattern
from prworkflow.errors import NotFoundError, ValidationError
from prworkflow.models import Notification, NotificationStatus, User, UserRole, new_id, utcnow

logger = logging.getLogger(__name__)


def notify_users(db: Session, *, user_ids: list[str], message: str) -> int:
    unique_ids = list(dict.fromkeys(user_ids))
    if not unique_ids:
        return 0
    now = utcnow()
    db.execute(
        insert(Notification),
        [
            {
                'id': new_id(),
                'user_id': user_id,
                'message': message,
                'status': NotificationStatus.UNREAD,
                'created_at': now,
            }
            for user_id in unique_ids
        ],
    )
    return len(unique_ids)


def notify_user(db: Session, *, user_id: str, message: str) -> int:
    return notify_users(db, user_ids=[user_id], message=message)


def notify_role(db: Session, *, role: UserRole, message: str) -> int:
    user_ids = db.execute(
        select(User.id).where(User.role == role, User.active.is_(True)).order_by(User.username.asc())
    ).scalars().all()
    return notify_users(db, user_ids=list(user_ids), message=message)


def list_for_user(db: Session, *, user_id: str, status: NotificationStatus | None = None) -> list[Notification]:
    query = select(Notification).where(Notification.user_id == user_id)
    if status is not None:
        query = query.where(Notification.status == status)
    return db.execute(query.order_by(Notification.created_at.desc())).scalars().all()


def search_for_user(db: Session, *, user_id: str, term: str) -> list[Notification]:
    clean = term.strip()
    if not clean:
        raise ValidationError('Search term is required')
    return db.execute(
        select(Notification)
        .where(
            Notification.user_id == user_id,
            Notification.message.ilike(contains_pattern(clean), escape=LIKE_ESCAPE),
        )
        .order_by(Notification.created_at.desc())
    ).scalars().all()


def mark_read(db: Session, *, notification_id: str, user_id: str) -> Notification:
    notification = db.execute(
        select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
    ).scalar_one_or_none()
    if not notification:
        raise NotFoundError('Notification not found')
    notification.status = NotificationStatus.READ
    db.flush()
    return notification


def dispatch_role_notification(db: Session, *, role: UserRole, message: str) -> None:
    """Best-effort fan-out run after the workflow transaction has committed.

    A failure here is logged and rolled back on its own; it never undoes the
    already committed workflow change.
    """
    try:
        delivered = notify_role(db, role=role, message=message)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception('Notification dispatch to role %s failed', role.value)
        return
    logger.info('Notified %d %s user(s)', delivered, role.value)
