"""Shared dependencies: DB session, current identity, tenant, route permissions."""
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from smshub.database import get_db
from smshub.hubs import TenantContext, tenant_for_hub_id
from smshub.models.identity import Identity
from smshub.services.auth import decode_token_with_error, SIGN_IN_PURPOSE
from smshub.services.errors import Forbidden, Unauthenticated
from smshub.services.roles import can_access_route, ROUTE_PERMISSIONS

security = HTTPBearer(auto_error=False)


def get_current_identity(
    db: Session = Depends(get_db),
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Identity:
    if not credentials:
        raise Unauthenticated("Not authenticated")
    token_str = (credentials.credentials or "").strip()
    payload, _ = decode_token_with_error(token_str)
    if not payload:
        raise Unauthenticated("Invalid or expired token")
    if payload.get("purpose") == SIGN_IN_PURPOSE:
        raise Unauthenticated("Sign-in links cannot be used as access tokens.")
    identity_id = payload.get("sub")
    if not identity_id:
        raise Unauthenticated("Invalid token")
    identity = db.query(Identity).filter(Identity.id == str(identity_id)).first()
    if not identity or not identity.is_active:
        raise Unauthenticated("Account not found")
    return identity


def get_current_tenant(identity: Identity = Depends(get_current_identity)) -> TenantContext:
    return tenant_for_hub_id(identity.hub_id)


def require_route_access(
    request: Request,
    identity: Identity = Depends(get_current_identity),
) -> Identity:
    """Allow-list check for the request path against the caller's role."""
    if not can_access_route(identity.role, request.url.path, ROUTE_PERMISSIONS):
        raise Forbidden("You do not have access to this page.")
    return identity
