"""Auth API router — register, login, me."""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from backend.db.session import get_db
from backend.schemas.schemas import LoginRequest, RegisterRequest, UserOut
from backend.services.auth_service import auth_service
from backend.services.audit_service import audit_service
from backend.core.security import Principal, get_current_principal, get_optional_principal

router = APIRouter(prefix="/auth", tags=["auth"])


def _user_out(user) -> dict:
    return UserOut(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role_name,
        is_active=user.is_active,
        created_at=user.created_at,
    ).model_dump(mode="json")


@router.post("/register", status_code=201)
async def register(
    body: RegisterRequest,
    db: Session = Depends(get_db),
    caller: Optional[Principal] = Depends(get_optional_principal),
):
    """Register a new user; only an admin caller may pick a role other than VIEWER."""
    user = auth_service.create_user(
        db, body.email, body.password, body.name, body.role, assigned_by=caller,
    )
    return {
        "success": True,
        "message": "User registered successfully",
        "data": _user_out(user),
    }


@router.post("/login")
async def login(body: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """Authenticate and return a JWT access token."""
    result = auth_service.authenticate(db, body.email, body.password)
    user = result["user"]
    audit_service.record(
        db, request,
        Principal(id=user["id"], role=user["role"], email=user["email"]),
        action="user.login",
        resource_type="user",
        resource_id=user["id"],
    )
    return {"success": True, "data": result}


@router.get("/me")
async def get_me(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Get current user profile."""
    user = auth_service.get_user(db, principal.id)
    return {"success": True, "data": _user_out(user)}
