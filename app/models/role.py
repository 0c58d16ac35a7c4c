"""ORM models for roles, the permission catalog and role→permission grants."""

from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint

from app.models.base import Base


class Role(Base):
    """Named role. The set is fixed and only the seeder creates rows."""

    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(64), nullable=False, unique=True)
    description = Column(String(255), nullable=False, default="")


class Permission(Base):
    """A (module, action) pair; the pair is unique."""

    __tablename__ = "permissions"
    __table_args__ = (UniqueConstraint("module", "action", name="uq_permissions_module_action"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    module = Column(String(64), nullable=False)
    action = Column(String(32), nullable=False)


class RolePermission(Base):
    """Grant of a permission to a role. Present or absent, nothing in between."""

    __tablename__ = "role_permissions"

    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    permission_id = Column(
        Integer,
        ForeignKey("permissions.id", ondelete="CASCADE"),
        primary_key=True,
    )
