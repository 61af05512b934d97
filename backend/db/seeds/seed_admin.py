"""Seed the admin user from env vars."""

from sqlalchemy.orm import Session
from backend.models.user import User
from backend.models.role import Role
from backend.core.security import hash_password
from backend.core.config import settings


def seed_admin(db: Session) -> None:
    """Create the admin user if not already present."""
    admin_role = db.query(Role).filter(Role.name == "ADMIN").first()
    if not admin_role:
        print("⚠️  ADMIN role not found. Run seed_roles first.")
        return

    existing = db.query(User).filter(User.email == settings.ADMIN_EMAIL).first()
    if existing:
        print(f"ℹ️  Admin '{settings.ADMIN_EMAIL}' already exists, skipping.")
        return

    admin = User(
        email=settings.ADMIN_EMAIL,
        hashed_password=hash_password(settings.ADMIN_PASSWORD),
        name="Admin",
        is_active=True,
        role_id=admin_role.id,
    )
    db.add(admin)
    db.commit()
    print(f"✅ Created admin: {settings.ADMIN_EMAIL}")
