from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from prworkflow.db import get_db
from prworkflow.errors import PermissionDeniedError
from prworkflow.models import UserRole
from prworkflow.services.permission_service import load_role_capabilities, role_has_capability


@dataclass
class Principal:
    id: str
    username: str
    full_name: str
    role: UserRole
    active: bool


def get_current_principal(request: Request) -> Principal:
    principal = getattr(request.state, "principal", None)
    if not principal:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    if not principal.active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
    return principal


def get_capabilities(
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
) -> frozenset[str]:
    # One lookup per request, shared by every capability check on it.
    capabilities = getattr(request.state, "capabilities", None)
    if capabilities is None:
        capabilities = load_role_capabilities(db, principal.role)
        request.state.capabilities = capabilities
    return capabilities


def require_capability(capability: str):
    def _dep(
        principal: Principal = Depends(get_current_principal),
        capabilities: frozenset[str] = Depends(get_capabilities),
    ) -> Principal:
        if not role_has_capability(capabilities, capability):
            raise PermissionDeniedError(f"Role {principal.role.value} lacks {capability}")
        return principal

    return _dep
