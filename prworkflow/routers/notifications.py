from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from prworkflow.auth import Principal, require_capability
from prworkflow.db import get_db
from prworkflow.errors import ValidationError
from prworkflow.models import Notification, NotificationStatus
from prworkflow.services.notification_service import list_for_user, mark_read, search_for_user

router = APIRouter(prefix='/notifications', tags=['notifications'])
view_access = require_capability('view_notifications')


def _row(notification: Notification) -> dict:
    return {
        'id': notification.id,
        'message': notification.message,
        'status': notification.status.value,
        'created_at': notification.created_at,
    }


@router.get('')
def my_notifications(
    status: str = Query(default=''),
    principal: Principal = Depends(view_access),
    db: Session = Depends(get_db),
):
    wanted = None
    if status.strip():
        try:
            wanted = NotificationStatus(status.strip().capitalize())
        except ValueError as exc:
            raise ValidationError(f'Unknown notification status: {status}') from exc
    return {'data': [_row(item) for item in list_for_user(db, user_id=principal.id, status=wanted)]}


@router.get('/search')
def search_my_notifications(
    q: str = Query(default=''),
    principal: Principal = Depends(view_access),
    db: Session = Depends(get_db),
):
    return {'data': [_row(item) for item in search_for_user(db, user_id=principal.id, term=q)]}


@router.put('/{notification_id}/read')
def read_notification(
    notification_id: str,
    principal: Principal = Depends(require_capability('update_notification')),
    db: Session = Depends(get_db),
):
    notification = mark_read(db, notification_id=notification_id, user_id=principal.id)
    db.commit()
    return {'message': 'Notification marked as read', 'data': _row(notification)}
