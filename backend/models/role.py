"""Role model for RBAC."""

from sqlalchemy import Column, Integer, String, DateTime
from backend.db.base import Base, utcnow


class Role(Base):
    """A named role; per-model permissions for it live in each model's rbac map."""
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, nullable=False, index=True)
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
