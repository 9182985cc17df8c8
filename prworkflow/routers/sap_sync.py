from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session, sessionmaker

from prworkflow.auth import Principal, require_capability
from prworkflow.db import get_db, get_session_factory
from prworkflow.dependencies import get_client_ip
from prworkflow.errors import NotFoundError
from prworkflow.schemas import SyncRequest
from prworkflow.services.audit_service import log_audit
from prworkflow.services.provider_factory import get_sync_client
from prworkflow.services.sync_client import SyncClient
from prworkflow.services.sync_service import (
    SyncOutcome,
    export_logs,
    get_log,
    list_logs,
    logs_to_csv,
    resync,
    search_logs,
    sync_all,
    sync_one,
)

router = APIRouter(tags=['sap-sync'])
sync_access = require_capability('create_sap_sync_logs')
view_access = require_capability('view_sap_sync_logs')


def _outcome_response(outcome: SyncOutcome) -> JSONResponse:
    log = outcome.log
    body = {
        'message': 'SAP sync succeeded' if outcome.success else 'SAP sync failed',
        'transaction_id': outcome.transaction_id,
        'data': {
            'id': log.id,
            'pr_id': log.pr_id,
            'transaction_id': log.transaction_id,
            'status': log.status.value,
            'detail': log.detail,
            'created_at': log.created_at.isoformat(),
        },
    }
    return JSONResponse(body, status_code=200 if outcome.success else 502)


def _record(request: Request, db: Session, principal: Principal, action: str, outcome: SyncOutcome) -> None:
    log_audit(
        db,
        actor_user_id=principal.id,
        action=action,
        pr_id=outcome.log.pr_id,
        ip=get_client_ip(request),
        metadata={'transaction_id': outcome.transaction_id, 'status': outcome.log.status.value},
    )
    db.commit()


@router.post('/sap-sync')
def sync_purchase_request(
    payload: SyncRequest,
    request: Request,
    principal: Principal = Depends(sync_access),
    db: Session = Depends(get_db),
    client: SyncClient = Depends(get_sync_client),
):
    outcome = sync_one(db, pr_id=payload.pr_id, client=client)
    _record(request, db, principal, 'SAP_SYNC', outcome)
    return _outcome_response(outcome)


@router.post('/sap-resync/{log_id}')
def resync_purchase_request(
    log_id: str,
    request: Request,
    principal: Principal = Depends(sync_access),
    db: Session = Depends(get_db),
    client: SyncClient = Depends(get_sync_client),
):
    outcome = resync(db, log_id=log_id, client=client)
    _record(request, db, principal, 'SAP_RESYNC', outcome)
    return _outcome_response(outcome)


@router.post('/sap-sync-all')
def sync_all_purchase_requests(
    request: Request,
    principal: Principal = Depends(sync_access),
    db: Session = Depends(get_db),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
    client: SyncClient = Depends(get_sync_client),
):
    summary = sync_all(session_factory, client=client)
    log_audit(
        db,
        actor_user_id=principal.id,
        action='SAP_SYNC_ALL',
        pr_id=None,
        ip=get_client_ip(request),
        metadata={'total': summary.total, 'succeeded': summary.succeeded, 'failed': summary.failed},
    )
    db.commit()
    return {
        'message': 'SAP bulk sync finished',
        'data': {
            'total': summary.total,
            'succeeded': summary.succeeded,
            'failed': summary.failed,
            'results': summary.results,
        },
    }


@router.get('/sap-sync-logs')
def view_sync_logs(
    q: str = Query(default=''),
    _: Principal = Depends(view_access),
    db: Session = Depends(get_db),
):
    if q.strip():
        return {'data': search_logs(db, term=q)}
    return {'data': list_logs(db)}


@router.get('/sap-sync-logs/export')
def export_sync_logs(
    start_date: str = Query(default=''),
    end_date: str = Query(default=''),
    status: str = Query(default=''),
    pr_id: str = Query(default=''),
    _: Principal = Depends(view_access),
    db: Session = Depends(get_db),
):
    try:
        start = date.fromisoformat(start_date) if start_date.strip() else None
        end = date.fromisoformat(end_date) if end_date.strip() else None
    except ValueError as exc:
        raise HTTPException(status_code=400, detail='Invalid date filter') from exc

    rows = export_logs(db, start_date=start, end_date=end, status=status.strip() or None, pr_id=pr_id.strip() or None)
    return StreamingResponse(
        iter([logs_to_csv(rows)]),
        media_type='text/csv',
        headers={'Content-Disposition': 'attachment; filename=sap-sync-logs.csv'},
    )


@router.get('/sap-sync-logs/{log_id}')
def view_sync_log(log_id: str, _: Principal = Depends(view_access), db: Session = Depends(get_db)):
    found = get_log(db, log_id=log_id)
    if found is None:
        raise NotFoundError('No matching sync log')
    return {'data': found}
