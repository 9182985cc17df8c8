from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from prworkflow.config import settings
from prworkflow.db import get_db
from prworkflow.dependencies import get_client_ip
from prworkflow.schemas import LoginRequest
from prworkflow.security.passwords import authenticate, find_login_user
from prworkflow.security.sessions import create_web_session, extract_token, revoke_web_session
from prworkflow.services.audit_service import log_audit

router = APIRouter(tags=['auth'])


@router.post('/login')
def login(payload: LoginRequest, request: Request, db: Session = Depends(get_db)):
    username = payload.username.strip()
    ip = get_client_ip(request)

    user = authenticate(db, username=username, raw_password=payload.password)
    if user is None:
        known = find_login_user(db, username)
        log_audit(
            db,
            actor_user_id=known.id if known else None,
            action='AUTH_LOGIN_FAILED',
            pr_id=None,
            ip=ip,
            metadata={'username': username},
        )
        db.commit()
        return JSONResponse({'error': 'unauthenticated', 'message': 'Invalid username or password'}, status_code=401)

    token = create_web_session(db, user.id, ip=ip, user_agent=request.headers.get('user-agent'))
    log_audit(db, actor_user_id=user.id, action='AUTH_LOGIN', pr_id=None, ip=ip, metadata={'username': username})
    db.commit()

    response = JSONResponse({'token': token, 'user': {'id': user.id, 'name': user.full_name, 'role': user.role.value}})
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite=settings.session_cookie_samesite,
        max_age=settings.session_ttl_minutes * 60,
    )
    return response


@router.post('/logout')
def logout(request: Request, db: Session = Depends(get_db)):
    principal = getattr(request.state, 'principal', None)
    token = extract_token(request)
    if token:
        revoke_web_session(db, token)

    log_audit(
        db,
        actor_user_id=principal.id if principal else None,
        action='AUTH_LOGOUT',
        pr_id=None,
        ip=get_client_ip(request),
        metadata={},
    )
    db.commit()

    response = JSONResponse({'message': 'Logged out'})
    response.delete_cookie(settings.session_cookie_name)
    return response
