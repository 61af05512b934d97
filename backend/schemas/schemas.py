"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


# ---- Auth ----
class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)

class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1)
    role: Optional[str] = None


# ---- User ----
class UserOut(BaseModel):
    id: str
    email: str
    name: str
    role: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Model definitions ----
class FieldType(str, Enum):
    string = "string"
    number = "number"
    boolean = "boolean"
    date = "date"

class Permission(str, Enum):
    create = "create"
    read = "read"
    update = "update"
    delete = "delete"
    all = "all"

class ModelField(BaseModel):
    name: str
    type: FieldType
    required: bool = False
    default: Optional[Any] = None
    unique: bool = False
    relation: Optional[str] = None

class ModelDefinition(BaseModel):
    """A published model: typed fields, optional owner field, per-role permissions.

    Serialized with the camelCase keys clients send (``tableName``,
    ``ownerField``, ``createdAt``, ``updatedAt``).
    """

    name: str
    table_name: str = Field(..., alias="tableName")
    fields: List[ModelField]
    owner_field: Optional[str] = Field(None, alias="ownerField")
    rbac: Dict[str, List[Permission]]
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")

    class Config:
        populate_by_name = True

    @property
    def path(self) -> str:
        """URL segment the model's endpoints are served under."""
        return self.name.lower()

    def field(self, name: str) -> Optional[ModelField]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def permissions_for(self, role: str) -> List[Permission]:
        return self.rbac.get(role, [])

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


# ---- Dynamic records ----
class RecordOut(BaseModel):
    id: str
    model_name: str = Field(..., alias="modelName")
    data: Dict[str, Any]
    owner_id: Optional[str] = Field(None, alias="ownerId")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    class Config:
        populate_by_name = True

class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


# ---- Audit ----
class AuditLogOut(BaseModel):
    id: int
    actor_id: Optional[str] = None
    actor_email: Optional[str] = None
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    old_value_json: Optional[str] = None
    new_value_json: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
