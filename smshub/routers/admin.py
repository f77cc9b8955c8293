"""Admin views over verification sessions and the dispatch-failure counter."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from smshub.database import get_db
from smshub.dependencies import require_route_access
from smshub.models.identity import Identity
from smshub.models.verification_session import VerificationSession
from smshub.schemas.admin import DispatchFailureCount, VerificationSessionList, VerificationSessionSummary
from smshub.services import roles
from smshub.services.audit_log import count_logs, CATEGORY_DISPATCH_FAILURE

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/verification-sessions", response_model=VerificationSessionList)
def list_verification_sessions(
    status: str | None = None,
    limit: int = Query(50, ge=1, le=500),
    identity: Identity = Depends(require_route_access),
    db: Session = Depends(get_db),
):
    """Most recent sessions first. ADMINs see their own hub; SUPERADMINs see every hub."""
    query = db.query(VerificationSession)
    if not roles.is_super_admin(identity.role):
        query = query.filter(VerificationSession.hub_id == identity.hub_id)
    if status:
        query = query.filter(VerificationSession.status == status)
    rows = query.order_by(VerificationSession.created_at.desc()).limit(limit).all()
    return VerificationSessionList(sessions=[VerificationSessionSummary.model_validate(r) for r in rows])


@router.get("/dispatch-failures", response_model=DispatchFailureCount)
def dispatch_failures(
    hub_id: int | None = None,
    identity: Identity = Depends(require_route_access),
    db: Session = Depends(get_db),
):
    return DispatchFailureCount(hub_id=hub_id, count=count_logs(db, CATEGORY_DISPATCH_FAILURE, hub_id=hub_id))
