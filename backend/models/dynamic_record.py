"""Schema-less record belonging to a runtime-declared model."""

import uuid

from sqlalchemy import Column, String, Text, DateTime, Index
from backend.db.base import Base, utcnow


class DynamicRecord(Base):
    """One row of any published model.

    ``model_name`` is a soft reference to the definition's name; removing a
    definition leaves its rows in place.
    """
    __tablename__ = "dynamic_records"
    __table_args__ = (
        Index("ix_dynamic_records_model_owner", "model_name", "owner_id"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    model_name = Column(String(100), nullable=False, index=True)
    data_json = Column(Text, nullable=False, default="{}")
    owner_id = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
