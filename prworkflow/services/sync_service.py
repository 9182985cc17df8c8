from __future__ import annotations

import csv
import logging
import secrets
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from io import StringIO

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from prworkflow.db import LIKE_ESCAPE, contains_pattern
from prworkflow.errors import NotFoundError, StorageError, ValidationError, WorkflowError
from prworkflow.models import PurchaseRequest, SapSyncLog, SapSyncStatus, new_id, utcnow
from prworkflow.services.sync_client import SyncClient, SyncResult

logger = logging.getLogger(__name__)


@dataclass
class SyncOutcome:
    transaction_id: str
    log: SapSyncLog
    success: bool
    detail: str


@dataclass
class SyncAllSummary:
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    results: list[dict] = field(default_factory=list)


def generate_transaction_id() -> str:
    return f"SAP-{utcnow():%Y%m%d%H%M%S}-{secrets.token_hex(4).upper()}"


def parse_sync_status(value: str | SapSyncStatus) -> SapSyncStatus:
    if isinstance(value, SapSyncStatus):
        return value
    raw = value.strip().lower()
    for status in SapSyncStatus:
        if status.value.lower() == raw:
            return status
    raise ValidationError(f'Unknown sync status: {value}')


def _call_client(client: SyncClient, pr_id: str) -> SyncResult:
    try:
        return client.attempt_sync(pr_id)
    except Exception as exc:
        logger.warning('Sync client raised for purchase request %s: %s', pr_id, exc)
        return SyncResult(success=False, detail=str(exc) or exc.__class__.__name__)


def _attempt(db: Session, *, pr_id: str, client: SyncClient) -> SyncOutcome:
    request = db.execute(select(PurchaseRequest).where(PurchaseRequest.id == pr_id)).scalar_one_or_none()
    if not request:
        raise NotFoundError('Purchase request not found')

    try:
        log = SapSyncLog(
            id=new_id(),
            pr_id=pr_id,
            transaction_id=generate_transaction_id(),
            status=SapSyncStatus.PENDING,
            created_at=utcnow(),
        )
        db.add(log)
        db.flush()

        result = _call_client(client, pr_id)
        if result.success:
            request.sap_sync_status = True
            request.updated_at = utcnow()
            log.status = SapSyncStatus.SUCCESS
        else:
            log.status = SapSyncStatus.FAILED
        log.detail = result.detail
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Recording sync attempt for purchase request %s failed', pr_id)
        raise StorageError('Sync attempt could not be recorded') from exc

    logger.info('Sync attempt %s for purchase request %s: %s', log.transaction_id, pr_id, log.status.value)
    return SyncOutcome(transaction_id=log.transaction_id, log=log, success=result.success, detail=result.detail)


def sync_one(db: Session, *, pr_id: str | None, client: SyncClient) -> SyncOutcome:
    clean = (pr_id or '').strip()
    if not clean:
        raise ValidationError('Purchase request id is required')
    return _attempt(db, pr_id=clean, client=client)


def resync(db: Session, *, log_id: str, client: SyncClient) -> SyncOutcome:
    previous = db.execute(select(SapSyncLog).where(SapSyncLog.id == log_id)).scalar_one_or_none()
    if not previous:
        raise NotFoundError('Sync log not found')
    if not previous.pr_id:
        raise NotFoundError('Sync log is not linked to a purchase request')
    return _attempt(db, pr_id=previous.pr_id, client=client)


def sync_all(session_factory: sessionmaker[Session], *, client: SyncClient) -> SyncAllSummary:
    with session_factory() as db:
        pr_ids = db.execute(
            select(PurchaseRequest.id)
            .where(PurchaseRequest.sap_sync_status.is_(False))
            .order_by(PurchaseRequest.created_at.asc())
        ).scalars().all()

    summary = SyncAllSummary(total=len(pr_ids))
    for pr_id in pr_ids:
        with session_factory() as db:
            try:
                outcome = _attempt(db, pr_id=pr_id, client=client)
            except WorkflowError as exc:
                summary.failed += 1
                summary.results.append(
                    {'pr_id': pr_id, 'transaction_id': None, 'status': SapSyncStatus.FAILED.value, 'detail': exc.message}
                )
                continue
        if outcome.success:
            summary.succeeded += 1
        else:
            summary.failed += 1
        summary.results.append(
            {
                'pr_id': pr_id,
                'transaction_id': outcome.transaction_id,
                'status': outcome.log.status.value,
                'detail': outcome.detail,
            }
        )

    logger.info('Bulk sync finished: %d attempted, %d succeeded, %d failed', summary.total, summary.succeeded, summary.failed)
    return summary


def _log_row(log: SapSyncLog) -> dict:
    return {
        'id': log.id,
        'pr_id': log.pr_id,
        'transaction_id': log.transaction_id,
        'status': log.status.value,
        'detail': log.detail,
        'created_at': log.created_at,
    }


def export_logs(
    db: Session,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    status: str | SapSyncStatus | None = None,
    pr_id: str | None = None,
) -> list[dict]:
    conditions = []
    if start_date:
        conditions.append(SapSyncLog.created_at >= datetime.combine(start_date, time.min, tzinfo=timezone.utc))
    if end_date:
        conditions.append(
            SapSyncLog.created_at < datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
        )
    if status:
        conditions.append(SapSyncLog.status == parse_sync_status(status))
    if pr_id:
        conditions.append(SapSyncLog.pr_id == pr_id)

    query = select(SapSyncLog).order_by(SapSyncLog.created_at.desc())
    if conditions:
        query = query.where(and_(*conditions))
    return [_log_row(log) for log in db.execute(query).scalars().all()]


def logs_to_csv(rows: list[dict]) -> str:
    sio = StringIO()
    writer = csv.writer(sio)
    writer.writerow(['Log ID', 'Purchase Request', 'Transaction ID', 'Status', 'Detail', 'Created At'])
    for row in rows:
        created_at = row['created_at']
        writer.writerow(
            [
                row['id'],
                row['pr_id'] or '',
                row['transaction_id'],
                row['status'],
                row['detail'] or '',
                created_at.isoformat() if created_at else '',
            ]
        )
    return sio.getvalue()


def list_logs(db: Session) -> list[dict]:
    return export_logs(db)


def search_logs(db: Session, *, term: str) -> list[dict]:
    clean = term.strip()
    if not clean:
        raise ValidationError('Search term is required')
    pattern = contains_pattern(clean)
    logs = db.execute(
        select(SapSyncLog)
        .where(
            or_(
                SapSyncLog.id.ilike(pattern, escape=LIKE_ESCAPE),
                SapSyncLog.transaction_id.ilike(pattern, escape=LIKE_ESCAPE),
            )
        )
        .order_by(SapSyncLog.created_at.desc())
    ).scalars().all()
    return [_log_row(log) for log in logs]


def get_log(db: Session, *, log_id: str) -> dict | None:
    log = db.execute(select(SapSyncLog).where(SapSyncLog.id == log_id)).scalar_one_or_none()
    return _log_row(log) if log else None
