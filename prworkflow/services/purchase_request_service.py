from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased
from sqlalchemy.orm.exc import StaleDataError

from prworkflow.db import LIKE_ESCAPE, contains_pattern
from prworkflow.errors import ConflictError, NotFoundError, StorageError, ValidationError
from prworkflow.models import (
    Client,
    DeliveryNote,
    LineItem,
    Product,
    PurchaseRequest,
    PurchaseRequestStatus,
    SapSyncLog,
    User,
    UserRole,
    new_id,
    utcnow,
)
from prworkflow.services.notification_service import dispatch_role_notification

logger = logging.getLogger(__name__)

Creator = aliased(User, name='creator')
Approver = aliased(User, name='approver')


@dataclass(frozen=True)
class LineItemInput:
    product_id: str
    quantity: int
    unit_price: Decimal


@dataclass
class CreatedRequest:
    request: PurchaseRequest
    delivery_note: DeliveryNote
    items: list[LineItem]


def parse_status(value: str | PurchaseRequestStatus | None) -> PurchaseRequestStatus:
    if isinstance(value, PurchaseRequestStatus):
        return value
    raw = (value or '').strip()
    if not raw:
        raise ValidationError('Status is required')
    for status in PurchaseRequestStatus:
        if status.value.lower() == raw.lower():
            return status
    raise ValidationError(f'Unknown status: {raw}')


def _validate_items(items: list[LineItemInput]) -> list[LineItemInput]:
    if not items:
        raise ValidationError('At least one line item is required')
    cleaned: list[LineItemInput] = []
    for idx, item in enumerate(items, start=1):
        product_id = (item.product_id or '').strip()
        if not product_id:
            raise ValidationError(f'Line {idx}: product is required')
        if item.quantity is None or int(item.quantity) <= 0:
            raise ValidationError(f'Line {idx}: quantity must be greater than zero')
        try:
            unit_price = Decimal(str(item.unit_price))
        except InvalidOperation as exc:
            raise ValidationError(f'Line {idx}: invalid unit price') from exc
        if unit_price < 0:
            raise ValidationError(f'Line {idx}: unit price cannot be negative')
        cleaned.append(LineItemInput(product_id=product_id, quantity=int(item.quantity), unit_price=unit_price))
    return cleaned


def _insert_items(db: Session, *, pr_id: str, items: list[LineItemInput]) -> list[LineItem]:
    rows = [
        LineItem(
            id=new_id(),
            pr_id=pr_id,
            product_id=item.product_id,
            quantity=item.quantity,
            unit_price=item.unit_price,
            position=position,
        )
        for position, item in enumerate(items)
    ]
    db.add_all(rows)
    db.flush()
    return rows


def create_request(
    db: Session,
    *,
    requester_id: str,
    items: list[LineItemInput],
    note: str | None,
    initial_status: PurchaseRequestStatus = PurchaseRequestStatus.PENDING,
    client_id: str | None = None,
) -> CreatedRequest:
    cleaned_items = _validate_items(items)
    status = parse_status(initial_status)

    try:
        now = utcnow()
        request = PurchaseRequest(
            id=new_id(),
            created_by=requester_id,
            client_id=client_id,
            status=status,
            sap_sync_status=False,
            created_at=now,
            updated_at=now,
        )
        db.add(request)
        db.flush()

        delivery_note = DeliveryNote(
            id=new_id(),
            pr_id=request.id,
            note=note.strip() if note and note.strip() else None,
            status=status,
        )
        db.add(delivery_note)
        db.flush()

        line_items = _insert_items(db, pr_id=request.id, items=cleaned_items)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Creating purchase request for %s failed', requester_id)
        raise StorageError('Purchase request could not be created') from exc

    logger.info('Purchase request %s created by %s with %d items', request.id, requester_id, len(line_items))
    if status == PurchaseRequestStatus.PENDING:
        dispatch_role_notification(
            db,
            role=UserRole.SUPERVISOR,
            message=f'New Purchase Request (#{request.id}) was submitted and is pending approval.',
        )
    return CreatedRequest(request=request, delivery_note=delivery_note, items=line_items)


def _base_query():
    return (
        select(
            PurchaseRequest,
            Creator.full_name.label('created_by_name'),
            Approver.full_name.label('approved_by_name'),
            Client.name.label('client_name'),
            DeliveryNote,
        )
        .join(Creator, Creator.id == PurchaseRequest.created_by)
        .outerjoin(Approver, Approver.id == PurchaseRequest.approved_by)
        .outerjoin(Client, Client.id == PurchaseRequest.client_id)
        .outerjoin(DeliveryNote, DeliveryNote.pr_id == PurchaseRequest.id)
    )


def _items_by_request(db: Session, pr_ids: list[str]) -> dict[str, list[dict]]:
    items_by_request: dict[str, list[dict]] = {pr_id: [] for pr_id in pr_ids}
    if not pr_ids:
        return items_by_request
    rows = db.execute(
        select(LineItem, Product.name.label('product_name'))
        .join(Product, Product.id == LineItem.product_id)
        .where(LineItem.pr_id.in_(pr_ids))
        .order_by(LineItem.pr_id.asc(), LineItem.position.asc())
    ).all()
    for item, product_name in rows:
        items_by_request[item.pr_id].append(
            {
                'id': item.id,
                'product_id': item.product_id,
                'product_name': product_name,
                'quantity': item.quantity,
                'unit_price': item.unit_price,
            }
        )
    return items_by_request


def _serialize(rows, items_by_request: dict[str, list[dict]]) -> list[dict]:
    result = []
    for request, created_by_name, approved_by_name, client_name, delivery_note in rows:
        result.append(
            {
                'id': request.id,
                'status': request.status.value,
                'sap_sync_status': request.sap_sync_status,
                'created_by': {'id': request.created_by, 'name': created_by_name},
                'approved_by': (
                    {'id': request.approved_by, 'name': approved_by_name} if request.approved_by else None
                ),
                'client': {'id': request.client_id, 'name': client_name} if request.client_id else None,
                'delivery_note': (
                    {
                        'id': delivery_note.id,
                        'note': delivery_note.note,
                        'status': delivery_note.status.value,
                        'verified_by': delivery_note.verified_by,
                    }
                    if delivery_note
                    else None
                ),
                'items': items_by_request.get(request.id, []),
                'created_at': request.created_at,
                'updated_at': request.updated_at,
            }
        )
    return result


def _run_read(db: Session, query) -> list[dict]:
    rows = db.execute(query).all()
    items_by_request = _items_by_request(db, [row[0].id for row in rows])
    return _serialize(rows, items_by_request)


def read_by_id(db: Session, pr_id: str) -> dict | None:
    found = _run_read(db, _base_query().where(PurchaseRequest.id == pr_id))
    return found[0] if found else None


def read_all(db: Session) -> list[dict]:
    return _run_read(db, _base_query().order_by(PurchaseRequest.created_at.desc()))


def filter_by_status(db: Session, status: str | PurchaseRequestStatus) -> list[dict]:
    resolved = parse_status(status)
    return _run_read(
        db,
        _base_query().where(PurchaseRequest.status == resolved).order_by(PurchaseRequest.created_at.desc()),
    )


def search_by_id_or_client_name(db: Session, term: str) -> list[dict]:
    clean = (term or '').strip()
    if not clean:
        raise ValidationError('Search term is required')
    pattern = contains_pattern(clean)
    return _run_read(
        db,
        _base_query()
        .where(
            or_(
                PurchaseRequest.id.ilike(pattern, escape=LIKE_ESCAPE),
                Client.name.ilike(pattern, escape=LIKE_ESCAPE),
            )
        )
        .order_by(PurchaseRequest.created_at.desc()),
    )


def count_by_status(db: Session) -> dict[str, int]:
    counts = {status.value: 0 for status in PurchaseRequestStatus}
    rows = db.execute(
        select(PurchaseRequest.status, func.count(PurchaseRequest.id)).group_by(PurchaseRequest.status)
    ).all()
    for status, total in rows:
        counts[status.value] = int(total)
    counts['total'] = sum(counts.values())
    return counts


def _get_request(db: Session, pr_id: str) -> PurchaseRequest:
    request = db.execute(select(PurchaseRequest).where(PurchaseRequest.id == pr_id)).scalar_one_or_none()
    if not request:
        raise NotFoundError('Purchase request not found')
    return request


def update_request(
    db: Session,
    *,
    pr_id: str,
    note: str | None = None,
    items: list[LineItemInput] | None = None,
    client_id: str | None = None,
) -> dict:
    cleaned_items = _validate_items(items) if items is not None else None
    request = _get_request(db, pr_id)

    try:
        if note is not None:
            delivery_note = db.execute(select(DeliveryNote).where(DeliveryNote.pr_id == pr_id)).scalar_one()
            delivery_note.note = note.strip() or None
        if client_id is not None:
            request.client_id = client_id or None
        if cleaned_items is not None:
            db.execute(delete(LineItem).where(LineItem.pr_id == pr_id))
            _insert_items(db, pr_id=pr_id, items=cleaned_items)
        request.updated_at = utcnow()
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning('Purchase request %s changed while being updated', pr_id)
        raise ConflictError('Purchase request was changed concurrently; reload and retry the update') from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Updating purchase request %s failed', pr_id)
        raise StorageError('Purchase request could not be updated') from exc

    logger.info('Purchase request %s updated', pr_id)
    return read_by_id(db, pr_id)


def delete_request(db: Session, *, pr_id: str) -> dict:
    snapshot = read_by_id(db, pr_id)
    if snapshot is None:
        raise NotFoundError('Purchase request not found')

    try:
        db.execute(delete(LineItem).where(LineItem.pr_id == pr_id))
        db.execute(delete(DeliveryNote).where(DeliveryNote.pr_id == pr_id))
        db.execute(update(SapSyncLog).where(SapSyncLog.pr_id == pr_id).values(pr_id=None))
        db.execute(delete(PurchaseRequest).where(PurchaseRequest.id == pr_id))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Deleting purchase request %s failed', pr_id)
        raise StorageError('Purchase request could not be deleted') from exc

    logger.info('Purchase request %s deleted', pr_id)
    return snapshot
