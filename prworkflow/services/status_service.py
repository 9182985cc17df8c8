from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from prworkflow.errors import ConflictError, InvalidTransitionError, NotFoundError, StorageError
from prworkflow.models import DeliveryNote, PurchaseRequest, PurchaseRequestStatus, UserRole, utcnow
from prworkflow.services.notification_service import dispatch_role_notification
from prworkflow.services.purchase_request_service import parse_status, read_by_id

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[PurchaseRequestStatus, frozenset[PurchaseRequestStatus]] = {
    PurchaseRequestStatus.PENDING: frozenset({PurchaseRequestStatus.APPROVED, PurchaseRequestStatus.RETURNED}),
    PurchaseRequestStatus.APPROVED: frozenset({PurchaseRequestStatus.PROCESSED, PurchaseRequestStatus.RETURNED}),
    PurchaseRequestStatus.RETURNED: frozenset({PurchaseRequestStatus.PENDING}),
    PurchaseRequestStatus.PROCESSED: frozenset(),
}


@dataclass(frozen=True)
class Actor:
    id: str
    name: str


@dataclass(frozen=True)
class StatusNotification:
    role: UserRole
    message: str


def is_transition_allowed(current: PurchaseRequestStatus, new: PurchaseRequestStatus) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


def format_note_line(actor_name: str, status: PurchaseRequestStatus, note: str) -> str:
    return f'{actor_name} {status.value} Purchase Request: {note}'


def append_note(existing: str | None, line: str) -> str:
    if not existing:
        return line
    return f'{existing}\n{line}'


def notification_for(pr_id: str, status: PurchaseRequestStatus, actor_name: str) -> StatusNotification:
    if status == PurchaseRequestStatus.PENDING:
        return StatusNotification(
            role=UserRole.SUPERVISOR,
            message=f'Purchase Request (#{pr_id}) was resubmitted by {actor_name} and is pending approval.',
        )
    if status == PurchaseRequestStatus.PROCESSED:
        return StatusNotification(
            role=UserRole.SUPERVISOR,
            message=f'Purchase Request (#{pr_id}) was Processed by {actor_name}.',
        )
    # Approved and Returned both go back to the warehouse.
    return StatusNotification(
        role=UserRole.WAREHOUSE_MAN,
        message=f'Purchase Request (#{pr_id}) was {status.value} by {actor_name}.',
    )


def apply_status_change(
    db: Session,
    *,
    pr_id: str,
    new_status: str | PurchaseRequestStatus | None,
    actor: Actor,
    note: str | None = None,
    strict: bool = False,
) -> dict:
    status = parse_status(new_status)

    request = db.execute(select(PurchaseRequest).where(PurchaseRequest.id == pr_id)).scalar_one_or_none()
    if not request:
        raise NotFoundError('Purchase request not found')

    previous = request.status
    if strict and not is_transition_allowed(previous, status):
        raise InvalidTransitionError(f'Cannot move purchase request from {previous.value} to {status.value}')

    try:
        request.status = status
        request.approved_by = actor.id
        request.updated_at = utcnow()

        delivery_note = db.execute(select(DeliveryNote).where(DeliveryNote.pr_id == pr_id)).scalar_one()
        delivery_note.status = status
        delivery_note.verified_by = actor.id
        clean_note = (note or '').strip()
        if clean_note:
            delivery_note.note = append_note(delivery_note.note, format_note_line(actor.name, status, clean_note))
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        raise ConflictError('Purchase request was changed concurrently; retry the status change') from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Status change of purchase request %s failed', pr_id)
        raise StorageError('Status could not be changed') from exc

    logger.info('Purchase request %s moved %s -> %s by %s', pr_id, previous.value, status.value, actor.name)
    notification = notification_for(pr_id, status, actor.name)
    dispatch_role_notification(db, role=notification.role, message=notification.message)
    return read_by_id(db, pr_id)
