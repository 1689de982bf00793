"""
Seed the preventive maintenance roles and, optionally, a demo tenant with an admin user.
The first permission of every role is always the area access (pm:access).

Usage:
    python scripts/seed_pm_permissions.py [--demo-tenant NAME --admin-username USER --admin-password PASS]
"""
import sys
import os
import argparse

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Load environment variables first
from dotenv import load_dotenv
load_dotenv()

from pmhub.auth.security import get_password_hash
from pmhub.config import settings
from pmhub.db import Base, SessionLocal, engine
from pmhub.models.models import Role, Tenant, User


PM_ROLES = {
    "pm_admin": {
        "description": "Manage PM templates and schedules, record completions",
        "permissions": {"pm:access": True, "pm:read": True, "pm:write": True, "pm:complete": True},
    },
    "pm_technician": {
        "description": "View PM schedules and record completions",
        "permissions": {"pm:access": True, "pm:read": True, "pm:complete": True},
    },
    "pm_viewer": {
        "description": "Read-only access to PM schedules and calendars",
        "permissions": {"pm:access": True, "pm:read": True},
    },
}


def seed_pm_roles(db) -> dict:
    """Create or update the PM roles; returns them by name"""
    roles = {}
    for name, role_def in PM_ROLES.items():
        role = db.query(Role).filter(Role.name == name).first()
        if role:
            role.description = role_def["description"]
            role.permissions = dict(role_def["permissions"])
            print(f"Updated role: {name}")
        else:
            role = Role(name=name, description=role_def["description"], permissions=dict(role_def["permissions"]))
            db.add(role)
            print(f"Created role: {name}")
        roles[name] = role
    db.flush()
    return roles


def seed_demo_tenant(db, roles: dict, tenant_name: str, timezone: str, username: str, password: str) -> None:
    tenant = db.query(Tenant).filter(Tenant.name == tenant_name).first()
    if not tenant:
        tenant = Tenant(name=tenant_name, timezone=timezone)
        db.add(tenant)
        db.flush()
        print(f"Created tenant: {tenant_name} ({timezone})")

    user = db.query(User).filter(User.username == username).first()
    if user:
        print(f"User '{username}' already exists, leaving credentials unchanged")
    else:
        user = User(
            tenant_id=tenant.id,
            username=username,
            email=f"{username}@{tenant_name.lower().replace(' ', '-')}.local",
            full_name="PM Administrator",
            password_hash=get_password_hash(password),
        )
        db.add(user)
        print(f"Created user: {username}")
    if roles["pm_admin"] not in user.roles:
        user.roles.append(roles["pm_admin"])


def seed_pm_permissions(demo_tenant=None, timezone="America/Vancouver", admin_username=None, admin_password=None):
    # Ensure local SQLite directory exists
    if settings.database_url.startswith("sqlite:///./"):
        os.makedirs("var", exist_ok=True)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        roles = seed_pm_roles(db)
        if demo_tenant:
            if not (admin_username and admin_password):
                raise SystemExit("--admin-username and --admin-password are required with --demo-tenant")
            seed_demo_tenant(db, roles, demo_tenant, timezone, admin_username, admin_password)
        db.commit()
        print(f"\nSuccessfully seeded PM permissions! Roles: {', '.join(sorted(roles))}")
    except Exception as e:
        db.rollback()
        print(f"Error seeding PM permissions: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed preventive maintenance roles")
    parser.add_argument("--demo-tenant", help="Create a demo tenant with this name")
    parser.add_argument("--timezone", default="America/Vancouver", help="Demo tenant time zone")
    parser.add_argument("--admin-username", help="Username for the demo tenant admin")
    parser.add_argument("--admin-password", help="Password for the demo tenant admin")
    args = parser.parse_args()
    seed_pm_permissions(args.demo_tenant, args.timezone, args.admin_username, args.admin_password)
