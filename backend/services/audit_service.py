"""Audit service — who published, changed or removed which model or record."""

import json
import logging
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core.security import Principal
from backend.models.audit_log import AuditLog

logger = logging.getLogger("dynamic_platform.audit")


def _to_json(value: Any) -> Optional[str]:
    return json.dumps(value, default=str) if value else None


class AuditService:
    """Append-only trail of model, record and login events."""

    @staticmethod
    def record(
        db: Session,
        request: Request,
        principal: Principal,
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        old_value: Optional[Any] = None,
        new_value: Optional[Any] = None,
    ) -> Optional[AuditLog]:
        """Store one event by ``principal``, e.g. ``model.published`` on a ``model``.

        Runs after the audited change is committed; a failed insert is
        logged and the request still succeeds.
        """
        entry = AuditLog(
            actor_id=principal.id,
            actor_email=principal.email,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id else None,
            old_value_json=_to_json(old_value),
            new_value_json=_to_json(new_value),
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent", "")[:500],
        )
        try:
            db.add(entry)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Audit entry %s on %s %s not written", action, resource_type, resource_id)
            return None
        return entry

    @staticmethod
    def search(
        db: Session,
        actor_id: Optional[str] = None,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Dict[str, Any]:
        """Newest entries first; ``action`` matches as a substring (``model.`` finds all model events)."""
        query = db.query(AuditLog)
        if actor_id:
            query = query.filter(AuditLog.actor_id == actor_id)
        if action:
            query = query.filter(AuditLog.action.ilike(f"%{action}%"))
        if resource_type:
            query = query.filter(AuditLog.resource_type == resource_type)

        return {
            "total": query.count(),
            "logs": (
                query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
                .all()
            ),
        }


audit_service = AuditService()
