from __future__ import annotations

from sqlalchemy.orm import Session

from prworkflow.models import AuditLog


def log_audit(
    db: Session,
    *,
    actor_user_id: str | None,
    action: str,
    pr_id: str | None,
    ip: str | None,
    metadata: dict | None = None,
) -> None:
    db.add(
        AuditLog(
            actor_user_id=actor_user_id,
            action=action,
            pr_id=pr_id,
            ip=ip,
            meta=metadata or {},
        )
    )
