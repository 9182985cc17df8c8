from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from prworkflow.models import RolePermission, UserRole

DEFAULT_ROLE_CAPABILITIES: dict[str, frozenset[str]] = {
    UserRole.ADMIN.value: frozenset(
        {
            'create_purchase_requests',
            'view_purchase_requests',
            'update_purchase_requests',
            'delete_purchase_requests',
            'create_sap_sync_logs',
            'view_sap_sync_logs',
            'view_notifications',
            'update_notification',
        }
    ),
    UserRole.SUPERVISOR.value: frozenset(
        {
            'view_purchase_requests',
            'update_purchase_requests',
            'create_sap_sync_logs',
            'view_sap_sync_logs',
            'view_notifications',
            'update_notification',
        }
    ),
    UserRole.WAREHOUSE_MAN.value: frozenset(
        {
            'create_purchase_requests',
            'view_purchase_requests',
            'update_purchase_requests',
            'view_notifications',
            'update_notification',
        }
    ),
}


def load_role_capabilities(db: Session, role: UserRole | str) -> frozenset[str]:
    role_name = role.value if isinstance(role, UserRole) else str(role)
    permissions = db.execute(
        select(RolePermission.permissions).where(RolePermission.role_name == role_name)
    ).scalar_one_or_none()
    if not permissions:
        return frozenset()
    return frozenset(str(item) for item in permissions)


def role_has_capability(capabilities: frozenset[str], capability: str) -> bool:
    return capability in capabilities


def upsert_role_capabilities(db: Session, *, role: UserRole, capabilities: frozenset[str]) -> RolePermission:
    row = db.execute(select(RolePermission).where(RolePermission.role_name == role.value)).scalar_one_or_none()
    if not row:
        row = RolePermission(role_name=role.value, permissions=sorted(capabilities))
        db.add(row)
    else:
        row.permissions = sorted(capabilities)
    db.flush()
    return row
