"""Dynamic records API router.

One catch-all route set serves every published model: the first path segment
is looked up in the registry's endpoint binder, so models appear and vanish
without touching the application's route list. Included last in
``backend.main`` so the static routers win.
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.orm import Session

from backend.core.config import settings
from backend.core.exceptions import ResourceNotFoundError
from backend.core.security import Principal, get_current_principal
from backend.db.session import get_db
from backend.services.audit_service import audit_service
from backend.services.dynamic_endpoints import ModelEndpoints
from backend.services.model_registry import model_registry
from backend.services.record_store import RecordStore, record_data, serialize_record

# Keeps (page - 1) * limit inside a 64-bit OFFSET.
MAX_PAGE = 1_000_000

router = APIRouter(tags=["records"])


def get_record_store(db: Session = Depends(get_db)) -> RecordStore:
    return RecordStore(db)


def _endpoints(model_path: str) -> ModelEndpoints:
    endpoints = model_registry.binder.resolve(model_path)
    if endpoints is None:
        raise ResourceNotFoundError(f"No model is published at /api/{model_path.lower()}")
    return endpoints


@router.post("/{model_path}", status_code=201)
def create_record(
    model_path: str,
    request: Request,
    body: Any = Body(None),
    store: RecordStore = Depends(get_record_store),
    principal: Principal = Depends(get_current_principal),
):
    endpoints = _endpoints(model_path)
    record = endpoints.create(store, principal, body)
    audit_service.record(
        store.db, request, principal,
        action="record.created",
        resource_type="record",
        resource_id=record.id,
        new_value={"model": endpoints.model_name, "data": record_data(record)},
    )
    return {"success": True, "data": serialize_record(record)}


@router.get("/{model_path}")
def list_records(
    model_path: str,
    page: int = Query(1, ge=1, le=MAX_PAGE),
    limit: Optional[int] = Query(None, ge=1),
    store: RecordStore = Depends(get_record_store),
    principal: Principal = Depends(get_current_principal),
):
    endpoints = _endpoints(model_path)
    limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
    records, pagination = endpoints.list(store, principal, page, limit)
    return {
        "success": True,
        "data": [serialize_record(r) for r in records],
        "pagination": pagination,
    }


@router.get("/{model_path}/{record_id}")
def get_record(
    model_path: str,
    record_id: str,
    store: RecordStore = Depends(get_record_store),
    principal: Principal = Depends(get_current_principal),
):
    record = _endpoints(model_path).get(store, principal, record_id)
    return {"success": True, "data": serialize_record(record)}


@router.put("/{model_path}/{record_id}")
def update_record(
    model_path: str,
    record_id: str,
    request: Request,
    body: Any = Body(None),
    store: RecordStore = Depends(get_record_store),
    principal: Principal = Depends(get_current_principal),
):
    endpoints = _endpoints(model_path)
    record = endpoints.update(store, principal, record_id, body)
    audit_service.record(
        store.db, request, principal,
        action="record.updated",
        resource_type="record",
        resource_id=record.id,
        new_value={"model": endpoints.model_name, "patch": body},
    )
    return {"success": True, "data": serialize_record(record)}


@router.delete("/{model_path}/{record_id}")
def delete_record(
    model_path: str,
    record_id: str,
    request: Request,
    store: RecordStore = Depends(get_record_store),
    principal: Principal = Depends(get_current_principal),
):
    endpoints = _endpoints(model_path)
    snapshot = endpoints.delete(store, principal, record_id)
    audit_service.record(
        store.db, request, principal,
        action="record.deleted",
        resource_type="record",
        resource_id=record_id,
        old_value={"model": endpoints.model_name, "data": snapshot["data"]},
    )
    return {"success": True, "message": "Record deleted successfully"}
