"""Admin API router — users, audit trail, orphaned records."""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from backend.core.exceptions import ResourceConflictError, ResourceNotFoundError
from backend.core.security import Principal, require_admin
from backend.db.session import get_db
from backend.schemas.schemas import AuditLogOut, UserOut
from backend.services.audit_service import audit_service
from backend.services.auth_service import auth_service
from backend.services.model_registry import model_registry
from backend.services.record_store import RecordStore

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users")
async def admin_list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    """List all users (admin only)."""
    result = auth_service.list_users(db, page, page_size)
    return {
        "success": True,
        "data": [
            UserOut(
                id=u.id, email=u.email, name=u.name, role=u.role_name,
                is_active=u.is_active, created_at=u.created_at,
            ).model_dump(mode="json")
            for u in result["users"]
        ],
        "pagination": {"page": result["page"], "limit": page_size, "total": result["total"]},
    }


@router.get("/audit")
async def get_audit_logs(
    action: Optional[str] = Query(None),
    resource_type: Optional[str] = Query(None),
    actor_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    """Query audit logs (admin only)."""
    result = audit_service.search(db, actor_id, action, resource_type, page, page_size)
    return {
        "success": True,
        "data": [AuditLogOut.model_validate(log).model_dump(mode="json") for log in result["logs"]],
        "pagination": {"page": page, "limit": page_size, "total": result["total"]},
    }


@router.get("/orphans")
def list_orphans(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    """Record counts for model names that are no longer published (admin only)."""
    counts = RecordStore(db).orphaned_counts(model_registry.names())
    return {"success": True, "data": counts}


@router.delete("/orphans/{model_name}")
def purge_orphans(
    model_name: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    """Delete the records of a removed model (admin only)."""
    if model_registry.get(model_name) is not None:
        raise ResourceConflictError(f"Model {model_name} is still published")
    store = RecordStore(db)
    if model_name not in store.orphaned_counts(model_registry.names()):
        raise ResourceNotFoundError(f"No orphaned records for {model_name}")
    deleted = store.purge(model_name)
    return {"success": True, "message": f"Purged {deleted} records", "data": {"deleted": deleted}}
