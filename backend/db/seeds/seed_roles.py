"""Seed default roles into the database."""

from sqlalchemy.orm import Session
from backend.models.role import Role

DEFAULT_ROLES = [
    {"name": "ADMIN", "description": "Manages models; bypasses record ownership"},
    {"name": "MANAGER", "description": "Works with records according to each model's rbac"},
    {"name": "VIEWER", "description": "Usually read-only, according to each model's rbac"},
]


def seed_roles(db: Session, extra_roles: list = None) -> int:
    """Insert default (and any extra) roles that don't already exist."""
    roles_data = DEFAULT_ROLES + [{"name": name.upper()} for name in extra_roles or []]

    created = 0
    for role_data in roles_data:
        existing = db.query(Role).filter(Role.name == role_data["name"]).first()
        if not existing:
            db.add(Role(**role_data))
            created += 1

    db.commit()
    print(f"✅ Seeded {created} roles")
    return created
