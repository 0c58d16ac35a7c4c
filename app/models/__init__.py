"""SQLAlchemy ORM models."""

from app.models.base import Base
from app.models.role import Permission, Role, RolePermission
from app.models.user import User

__all__ = ["Base", "Permission", "Role", "RolePermission", "User"]
