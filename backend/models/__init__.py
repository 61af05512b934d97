"""Models package — import all models so the metadata knows every table."""

from backend.models.role import Role
from backend.models.user import User
from backend.models.audit_log import AuditLog
from backend.models.dynamic_record import DynamicRecord
from backend.models.model_definition import ModelDefinitionRow

__all__ = [
    "Role", "User", "AuditLog", "DynamicRecord", "ModelDefinitionRow",
]
