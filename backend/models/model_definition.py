"""Stored model declarations (used when MODEL_STORE=database)."""

from sqlalchemy import Column, String, Text, DateTime
from backend.db.base import Base, utcnow


class ModelDefinitionRow(Base):
    """A published model declaration serialized as JSON.

    ``key`` is the lowercased model name, the same segment its endpoints use.
    """
    __tablename__ = "model_definitions"

    key = Column(String(100), primary_key=True)
    definition_json = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
