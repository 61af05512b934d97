"""Record store: generic persistence for dynamic model records."""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core.exceptions import ResourceNotFoundError, StorageError
from backend.models.dynamic_record import DynamicRecord

logger = logging.getLogger("dynamic_platform.records")


def record_data(record: DynamicRecord) -> Dict[str, Any]:
    """Decoded ``data`` mapping of a stored record."""
    return json.loads(record.data_json or "{}")


def serialize_record(record: DynamicRecord) -> Dict[str, Any]:
    """Client-facing shape of a record."""
    return {
        "id": record.id,
        "modelName": record.model_name,
        "data": record_data(record),
        "ownerId": record.owner_id,
        "createdAt": record.created_at.isoformat() if record.created_at else None,
        "updatedAt": record.updated_at.isoformat() if record.updated_at else None,
    }


class RecordStore:
    """SQLAlchemy-backed store for ``DynamicRecord`` rows, bound to one session.

    Every write commits immediately; a failed write is rolled back and raised
    as ``StorageError``.
    """

    def __init__(self, db: Session):
        self.db = db

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Record %s failed: %s", action, e)
            raise StorageError(f"Failed to {action} record")

    def create(
        self, model_name: str, data: Dict[str, Any], owner_id: Optional[str] = None,
    ) -> DynamicRecord:
        record = DynamicRecord(
            model_name=model_name,
            data_json=json.dumps(data, default=str),
            owner_id=owner_id,
        )
        self.db.add(record)
        self._commit("create")
        self.db.refresh(record)
        return record

    def find_many(
        self,
        filter: Dict[str, Any],
        skip: int = 0,
        take: int = 10,
        order: str = "desc",
    ) -> Tuple[List[DynamicRecord], int]:
        """Records matching ``filter`` (``model_name`` and optional ``owner_id``)."""
        query = self.db.query(DynamicRecord).filter(
            DynamicRecord.model_name == filter["model_name"]
        )
        if filter.get("owner_id") is not None:
            query = query.filter(DynamicRecord.owner_id == filter["owner_id"])

        total = query.count()
        ordering = DynamicRecord.created_at.asc() if order == "asc" else DynamicRecord.created_at.desc()
        records = query.order_by(ordering).offset(skip).limit(take).all()
        return records, total

    def find_one(self, record_id: str, model_name: str) -> Optional[DynamicRecord]:
        return (
            self.db.query(DynamicRecord)
            .filter(DynamicRecord.id == record_id, DynamicRecord.model_name == model_name)
            .first()
        )

    def find_by_value(
        self, model_name: str, field: str, value: Any, exclude_id: Optional[str] = None,
    ) -> Optional[DynamicRecord]:
        """First record of the model whose ``data[field]`` equals ``value``.

        ``data`` is an opaque blob at this layer, so this scans the model's rows.
        """
        query = self.db.query(DynamicRecord).filter(DynamicRecord.model_name == model_name)
        if exclude_id:
            query = query.filter(DynamicRecord.id != exclude_id)
        for record in query.yield_per(500):
            if record_data(record).get(field) == value:
                return record
        return None

    def update(self, record_id: str, data: Dict[str, Any]) -> DynamicRecord:
        """Replace a record's data map."""
        record = self.db.get(DynamicRecord, record_id)
        if record is None:
            raise ResourceNotFoundError("Record not found")
        record.data_json = json.dumps(data, default=str)
        self._commit("update")
        self.db.refresh(record)
        return record

    def delete(self, record_id: str) -> None:
        record = self.db.get(DynamicRecord, record_id)
        if record is None:
            raise ResourceNotFoundError("Record not found")
        self.db.delete(record)
        self._commit("delete")

    # ---- orphan handling (records whose model was removed) ----

    def orphaned_counts(self, known_names: Iterable[str]) -> Dict[str, int]:
        """Record counts per model name that has no published definition."""
        known = set(known_names)
        rows = (
            self.db.query(DynamicRecord.model_name, func.count(DynamicRecord.id))
            .group_by(DynamicRecord.model_name)
            .all()
        )
        return {name: count for name, count in rows if name not in known}

    def purge(self, model_name: str) -> int:
        """Delete every record of ``model_name``; returns how many went."""
        deleted = (
            self.db.query(DynamicRecord)
            .filter(DynamicRecord.model_name == model_name)
            .delete(synchronize_session=False)
        )
        self._commit("purge")
        logger.info("Purged %d records of %s", deleted, model_name)
        return deleted
