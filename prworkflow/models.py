from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _enum_values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class UserRole(str, Enum):
    ADMIN = 'Admin'
    SUPERVISOR = 'Supervisor'
    WAREHOUSE_MAN = 'WarehouseMan'


class PurchaseRequestStatus(str, Enum):
    PENDING = 'Pending'
    APPROVED = 'Approved'
    PROCESSED = 'Processed'
    RETURNED = 'Returned'


class SapSyncStatus(str, Enum):
    PENDING = 'Pending'
    SUCCESS = 'Success'
    FAILED = 'Failed'


class NotificationStatus(str, Enum):
    UNREAD = 'Unread'
    READ = 'Read'


class User(Base):
    __tablename__ = 'users'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    username: Mapped[str] = mapped_column(String(150), nullable=False, unique=True)
    full_name: Mapped[str] = mapped_column(Text, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, name='user_role', values_callable=_enum_values), nullable=False
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='1')
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )


class RolePermission(Base):
    __tablename__ = 'roles_permissions'

    role_name: Mapped[str] = mapped_column(String(64), primary_key=True)
    permissions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)


class WebSession(Base):
    __tablename__ = 'web_sessions'
    __table_args__ = (
        UniqueConstraint('session_token', name='web_sessions_session_token_key'),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    session_token: Mapped[str] = mapped_column(String(128), nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    ip: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class Client(Base):
    __tablename__ = 'clients'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)


class Product(Base):
    __tablename__ = 'products'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    unit: Mapped[str | None] = mapped_column(String(32))


class PurchaseRequest(Base):
    __tablename__ = 'purchase_requests'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    created_by: Mapped[str] = mapped_column(String(36), ForeignKey('users.id'), nullable=False)
    client_id: Mapped[str | None] = mapped_column(String(36), ForeignKey('clients.id'))
    status: Mapped[PurchaseRequestStatus] = mapped_column(
        SQLEnum(PurchaseRequestStatus, name='purchase_request_status', values_callable=_enum_values),
        nullable=False,
        default=PurchaseRequestStatus.PENDING,
    )
    approved_by: Mapped[str | None] = mapped_column(String(36), ForeignKey('users.id'))
    sap_sync_status: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='0')
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )


class DeliveryNote(Base):
    __tablename__ = 'delivery_notes'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    pr_id: Mapped[str] = mapped_column(String(36), ForeignKey('purchase_requests.id'), nullable=False, unique=True)
    note: Mapped[str | None] = mapped_column(Text)
    status: Mapped[PurchaseRequestStatus] = mapped_column(
        SQLEnum(PurchaseRequestStatus, name='purchase_request_status', values_callable=_enum_values),
        nullable=False,
        default=PurchaseRequestStatus.PENDING,
    )
    verified_by: Mapped[str | None] = mapped_column(String(36), ForeignKey('users.id'))
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    __mapper_args__ = {'version_id_col': version}


class LineItem(Base):
    __tablename__ = 'pr_items'
    __table_args__ = (
        CheckConstraint('quantity > 0', name='pr_items_positive_quantity_ck'),
        CheckConstraint('unit_price >= 0', name='pr_items_non_negative_price_ck'),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    pr_id: Mapped[str] = mapped_column(String(36), ForeignKey('purchase_requests.id'), nullable=False)
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey('products.id'), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class SapSyncLog(Base):
    __tablename__ = 'sap_sync_logs'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    pr_id: Mapped[str | None] = mapped_column(String(36), ForeignKey('purchase_requests.id', ondelete='SET NULL'))
    transaction_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    status: Mapped[SapSyncStatus] = mapped_column(
        SQLEnum(SapSyncStatus, name='sap_sync_status', values_callable=_enum_values),
        nullable=False,
        default=SapSyncStatus.PENDING,
    )
    detail: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )


class Notification(Base):
    __tablename__ = 'notifications'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[NotificationStatus] = mapped_column(
        SQLEnum(NotificationStatus, name='notification_status', values_callable=_enum_values),
        nullable=False,
        default=NotificationStatus.UNREAD,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )


class AuditLog(Base):
    __tablename__ = 'audit_log'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    actor_user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey('users.id', ondelete='SET NULL'))
    action: Mapped[str] = mapped_column(Text, nullable=False)
    pr_id: Mapped[str | None] = mapped_column(String(36))
    ip: Mapped[str | None] = mapped_column(String(64))
    meta: Mapped[dict] = mapped_column('metadata', JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
