from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from prworkflow.auth import Principal, require_capability
from prworkflow.config import settings
from prworkflow.db import get_db
from prworkflow.dependencies import get_client_ip
from prworkflow.errors import NotFoundError
from prworkflow.schemas import CreatePurchaseRequest, StatusChangeRequest, UpdatePurchaseRequest
from prworkflow.services.audit_service import log_audit
from prworkflow.services.purchase_request_service import (
    count_by_status,
    create_request,
    delete_request,
    filter_by_status,
    read_all,
    read_by_id,
    search_by_id_or_client_name,
    update_request,
)
from prworkflow.services.status_service import Actor, apply_status_change

router = APIRouter(prefix='/purchase-requests', tags=['purchase-requests'])
view_access = require_capability('view_purchase_requests')


def _record(request: Request, db: Session, principal: Principal, action: str, pr_id: str, metadata: dict) -> None:
    log_audit(db, actor_user_id=principal.id, action=action, pr_id=pr_id, ip=get_client_ip(request), metadata=metadata)
    db.commit()


@router.post('', status_code=status.HTTP_201_CREATED)
def create_purchase_request(
    payload: CreatePurchaseRequest,
    request: Request,
    principal: Principal = Depends(require_capability('create_purchase_requests')),
    db: Session = Depends(get_db),
):
    created = create_request(
        db,
        requester_id=principal.id,
        items=[item.to_input() for item in payload.items],
        note=payload.note,
        client_id=payload.client_id,
    )
    _record(request, db, principal, 'PURCHASE_REQUEST_CREATED', created.request.id, {'items': len(created.items)})
    return {
        'message': 'Purchase Request Created successfully',
        'data': {
            'request': {
                'id': created.request.id,
                'status': created.request.status.value,
                'created_by': created.request.created_by,
                'client_id': created.request.client_id,
                'sap_sync_status': created.request.sap_sync_status,
                'created_at': created.request.created_at,
            },
            'delivery_note': {
                'id': created.delivery_note.id,
                'pr_id': created.delivery_note.pr_id,
                'note': created.delivery_note.note,
                'status': created.delivery_note.status.value,
            },
            'items': [
                {
                    'id': item.id,
                    'product_id': item.product_id,
                    'quantity': item.quantity,
                    'unit_price': item.unit_price,
                }
                for item in created.items
            ],
        },
    }


@router.get('')
def list_purchase_requests(_: Principal = Depends(view_access), db: Session = Depends(get_db)):
    return {'data': read_all(db)}


@router.get('/search')
def search_purchase_requests(
    q: str = Query(default=''),
    _: Principal = Depends(view_access),
    db: Session = Depends(get_db),
):
    return {'data': search_by_id_or_client_name(db, q)}


@router.get('/filter')
def filter_purchase_requests(
    status_filter: str = Query(default='', alias='status'),
    _: Principal = Depends(view_access),
    db: Session = Depends(get_db),
):
    return {'data': filter_by_status(db, status_filter)}


@router.get('/count')
def count_purchase_requests(_: Principal = Depends(view_access), db: Session = Depends(get_db)):
    return {'data': count_by_status(db)}


@router.get('/{pr_id}')
def get_purchase_request(pr_id: str, _: Principal = Depends(view_access), db: Session = Depends(get_db)):
    found = read_by_id(db, pr_id)
    if found is None:
        raise NotFoundError('No matching purchase request')
    return {'data': found}


@router.put('/{pr_id}')
def update_purchase_request(
    pr_id: str,
    payload: UpdatePurchaseRequest,
    request: Request,
    principal: Principal = Depends(require_capability('update_purchase_requests')),
    db: Session = Depends(get_db),
):
    updated = update_request(
        db,
        pr_id=pr_id,
        note=payload.note,
        items=[item.to_input() for item in payload.items] if payload.items is not None else None,
        client_id=payload.client_id,
    )
    _record(
        request,
        db,
        principal,
        'PURCHASE_REQUEST_UPDATED',
        pr_id,
        {'note_changed': payload.note is not None, 'items_replaced': payload.items is not None},
    )
    return {'message': 'Purchase Request Updated successfully', 'data': updated}


@router.put('/{pr_id}/status')
def change_purchase_request_status(
    pr_id: str,
    payload: StatusChangeRequest,
    request: Request,
    principal: Principal = Depends(require_capability('update_purchase_requests')),
    db: Session = Depends(get_db),
):
    updated = apply_status_change(
        db,
        pr_id=pr_id,
        new_status=payload.status,
        actor=Actor(id=principal.id, name=principal.full_name),
        note=payload.note,
        strict=settings.strict_status_transitions,
    )
    _record(request, db, principal, 'PURCHASE_REQUEST_STATUS_CHANGED', pr_id, {'status': updated['status']})
    return {'message': 'Purchase Request Status Updated successfully', 'data': updated}


@router.delete('/{pr_id}')
def delete_purchase_request(
    pr_id: str,
    request: Request,
    principal: Principal = Depends(require_capability('delete_purchase_requests')),
    db: Session = Depends(get_db),
):
    deleted = delete_request(db, pr_id=pr_id)
    _record(
        request,
        db,
        principal,
        'PURCHASE_REQUEST_DELETED',
        pr_id,
        {'status': deleted['status'], 'items': len(deleted['items']), 'note': (deleted['delivery_note'] or {}).get('note')},
    )
    return {'message': 'Purchase Request Deleted successfully', 'data': deleted}
