from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from prworkflow.auth import Principal
from prworkflow.config import settings
from prworkflow.models import User, UserRole, WebSession


AUTH_EXEMPT_PATHS = {'/login', '/health', '/docs', '/openapi.json'}


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _session_expiry() -> datetime:
    return _now() + timedelta(minutes=settings.session_ttl_minutes)


def create_web_session(db: Session, user_id: str, ip: str | None, user_agent: str | None) -> str:
    token = secrets.token_urlsafe(48)
    db.add(
        WebSession(
            session_token=token,
            user_id=user_id,
            ip=ip,
            user_agent=user_agent,
            expires_at=_session_expiry(),
        )
    )
    db.flush()
    return token


def revoke_web_session(db: Session, token: str) -> None:
    session = db.execute(select(WebSession).where(WebSession.session_token == token)).scalar_one_or_none()
    if not session or session.revoked_at is not None:
        return
    session.revoked_at = _now()


def load_principal_from_token(db: Session, token: str | None) -> Principal | None:
    if not token:
        return None

    row = db.execute(
        select(WebSession, User).join(User, User.id == WebSession.user_id).where(WebSession.session_token == token)
    ).one_or_none()
    if not row:
        return None

    web_session, user = row
    now = _now()
    if web_session.revoked_at is not None or _as_aware(web_session.expires_at) <= now:
        return None

    web_session.last_seen_at = now
    web_session.expires_at = _session_expiry()
    return Principal(
        id=user.id,
        username=user.username,
        full_name=user.full_name,
        role=UserRole(user.role),
        active=user.active,
    )


def extract_token(request: Request) -> str | None:
    header = request.headers.get('authorization', '')
    scheme, _, credentials = header.partition(' ')
    if scheme.lower() == 'bearer' and credentials.strip():
        return credentials.strip()
    return request.cookies.get(settings.session_cookie_name)


def install_auth_session_middleware(app: FastAPI) -> None:
    @app.middleware('http')
    async def auth_session_middleware(request: Request, call_next):
        token = extract_token(request)
        with request.app.state.session_factory() as db:
            request.state.principal = load_principal_from_token(db, token)
            db.commit()

        if request.url.path not in AUTH_EXEMPT_PATHS and request.state.principal is None:
            return JSONResponse({'error': 'unauthenticated', 'message': 'Login required'}, status_code=401)

        return await call_next(request)
