"""Model definitions API router — publish, list, update, delete."""

from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.orm import Session

from backend.core.exceptions import ResourceNotFoundError
from backend.core.security import Principal, get_current_principal, require_admin
from backend.db.session import get_db
from backend.services.audit_service import audit_service
from backend.services.model_registry import model_registry

router = APIRouter(prefix="/models", tags=["models"])


@router.get("")
def list_models(principal: Principal = Depends(get_current_principal)):
    """All published models."""
    return {"success": True, "data": [d.to_dict() for d in model_registry.list()]}


@router.get("/{name}")
def get_model(name: str, principal: Principal = Depends(get_current_principal)):
    """A single model by exact name."""
    definition = model_registry.get(name)
    if definition is None:
        raise ResourceNotFoundError("Model not found")
    return {"success": True, "data": definition.to_dict()}


@router.post("", status_code=201)
def publish_model(
    request: Request,
    payload: Any = Body(None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    """Publish a model and bind its CRUD endpoints (admin only)."""
    definition = model_registry.publish(payload)
    audit_service.record(
        db, request, principal,
        action="model.published",
        resource_type="model",
        resource_id=definition.name,
        new_value=definition.to_dict(),
    )
    return {
        "success": True,
        "message": "Model published successfully",
        "data": definition.to_dict(),
    }


@router.put("/{name}")
def update_model(
    name: str,
    request: Request,
    payload: Any = Body(None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    """Replace a model's definition and rebind its endpoints (admin only)."""
    previous = model_registry.get(name)
    definition = model_registry.update(name, payload)
    audit_service.record(
        db, request, principal,
        action="model.updated",
        resource_type="model",
        resource_id=definition.name,
        old_value=previous.to_dict() if previous else None,
        new_value=definition.to_dict(),
    )
    return {
        "success": True,
        "message": "Model updated successfully",
        "data": definition.to_dict(),
    }


@router.delete("/{name}")
def delete_model(
    name: str,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    """Delete a model and tear down its endpoints; its records are kept (admin only)."""
    removed = model_registry.remove(name)
    audit_service.record(
        db, request, principal,
        action="model.deleted",
        resource_type="model",
        resource_id=removed.name,
        old_value=removed.to_dict(),
    )
    return {"success": True, "message": "Model deleted successfully"}
