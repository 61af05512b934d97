"""Auth service — registration, JWT login, user lookup."""

from datetime import datetime, timezone
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from backend.core.config import settings
from backend.core.exceptions import (
    AuthenticationError, AuthorizationError, ResourceConflictError, ResourceNotFoundError,
    ValidationError,
)
from backend.core.security import (
    ADMIN_ROLE, Principal, create_access_token, hash_password, verify_password,
)
from backend.models.role import Role
from backend.models.user import User

DEFAULT_ROLE = "VIEWER"


class AuthService:
    """Handles authentication and user management."""

    @staticmethod
    def authenticate(db: Session, email: str, password: str) -> Dict[str, Any]:
        """Authenticate user and return an access token.

        Raises:
            AuthenticationError: If credentials are invalid.
        """
        user = db.query(User).filter(User.email == email).first()
        if not user or not verify_password(password, user.hashed_password):
            raise AuthenticationError("Invalid credentials")

        if not user.is_active:
            raise AuthenticationError("Account is deactivated")

        token = create_access_token({
            "sub": user.id,
            "email": user.email,
            "role": user.role_name,
        })

        user.last_login_at = datetime.now(timezone.utc).replace(tzinfo=None)
        db.commit()

        return {
            "token": token,
            "token_type": "bearer",
            "user": {
                "id": user.id,
                "email": user.email,
                "name": user.name,
                "role": user.role_name,
            },
        }

    @staticmethod
    def create_user(
        db: Session,
        email: str,
        password: str,
        name: str,
        role_name: Optional[str] = None,
        assigned_by: Optional[Principal] = None,
    ) -> User:
        """Create a new user; the role must already exist.

        Anyone may register as VIEWER. Any other role needs
        ``ALLOW_REGISTER_ROLE`` and an ADMIN ``assigned_by``; without the
        setting the requested role is ignored.
        """
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            raise ResourceConflictError("User already exists")

        if not role_name or not settings.ALLOW_REGISTER_ROLE:
            role_name = DEFAULT_ROLE
        role_name = role_name.upper()
        if role_name != DEFAULT_ROLE and (assigned_by is None or not assigned_by.is_admin):
            raise AuthorizationError(f"Only an {ADMIN_ROLE} can assign role '{role_name}'")

        role = db.query(Role).filter(Role.name == role_name).first()
        if not role:
            raise ValidationError(f"Role '{role_name}' does not exist")

        user = User(
            email=email,
            hashed_password=hash_password(password),
            name=name,
            role_id=role.id,
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def get_user(db: Session, user_id: str) -> User:
        """Get a user by id."""
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ResourceNotFoundError("User not found")
        return user

    @staticmethod
    def list_users(db: Session, page: int = 1, page_size: int = 20):
        """List all users with pagination."""
        total = db.query(User).count()
        users = (
            db.query(User)
            .order_by(User.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {"users": users, "total": total, "page": page}


auth_service = AuthService()
