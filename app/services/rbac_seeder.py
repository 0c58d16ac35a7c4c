"""Idempotent seeding of roles, the permission catalog and default grants."""

import logging
from dataclasses import dataclass

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.rbac import ROLE_DESCRIPTIONS, default_roles_for, iter_catalog
from app.models import Permission, Role, RolePermission
from app.services.errors import SeedFailure

logger = logging.getLogger(__name__)

# Key for pg_advisory_xact_lock so concurrently starting workers seed one at a time.
SEED_ADVISORY_LOCK_KEY = 0x5EED_0001


@dataclass(frozen=True)
class SeedReport:
    roles_created: int = 0
    roles_updated: int = 0
    permissions_created: int = 0
    grants_created: int = 0


def _acquire_seed_lock(session: Session) -> None:
    if session.get_bind().dialect.name == "postgresql":
        session.execute(
            text("SELECT pg_advisory_xact_lock(:key)"),
            {"key": SEED_ADVISORY_LOCK_KEY},
        )


def _upsert_roles(session: Session) -> tuple[dict[str, Role], int, int]:
    existing = {
        role.name: role
        for role in session.query(Role).filter(Role.name.in_(list(ROLE_DESCRIPTIONS)))
    }
    created = updated = 0
    for name, description in ROLE_DESCRIPTIONS.items():
        role = existing.get(name)
        if role is None:
            role = Role(name=name, description=description)
            session.add(role)
            existing[name] = role
            created += 1
        elif role.description != description:
            role.description = description
            updated += 1
    session.flush()
    return existing, created, updated


def _insert_missing_permissions(session: Session) -> tuple[dict[tuple[str, str], Permission], int]:
    # Rows outside the in-code catalog are kept so existing grants never break.
    by_pair = {(p.module, p.action): p for p in session.query(Permission)}
    created = 0
    for pair in iter_catalog():
        if pair not in by_pair:
            permission = Permission(module=pair[0], action=pair[1])
            session.add(permission)
            by_pair[pair] = permission
            created += 1
    session.flush()
    return by_pair, created


def _insert_missing_grants(
    session: Session,
    roles: dict[str, Role],
    permissions: dict[tuple[str, str], Permission],
) -> int:
    # Only adds; manually revoked or added grants are left alone.
    existing = {
        (role_id, permission_id)
        for role_id, permission_id in session.query(
            RolePermission.role_id, RolePermission.permission_id
        )
    }
    created = 0
    for module, action in iter_catalog():
        permission = permissions[(module, action)]
        for role_name in default_roles_for(module, action):
            key = (roles[role_name].id, permission.id)
            if key in existing:
                continue
            session.add(RolePermission(role_id=key[0], permission_id=key[1]))
            existing.add(key)
            created += 1
    session.flush()
    return created


def seed_rbac(session: Session) -> SeedReport:
    """
    Materialize roles, permissions and default grants in one transaction.

    Safe to run repeatedly: roles are matched by name (description reset to the
    canonical text), permissions by (module, action), grants by (role, permission).
    Nothing is ever deleted or revoked. Any database error rolls the whole pass
    back and raises SeedFailure.
    """
    try:
        _acquire_seed_lock(session)
        roles, roles_created, roles_updated = _upsert_roles(session)
        permissions, permissions_created = _insert_missing_permissions(session)
        grants_created = _insert_missing_grants(session, roles, permissions)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("RBAC seed failed and was rolled back: %s", type(e).__name__)
        raise SeedFailure("RBAC seed failed", cause=e) from e

    report = SeedReport(
        roles_created=roles_created,
        roles_updated=roles_updated,
        permissions_created=permissions_created,
        grants_created=grants_created,
    )
    logger.info(
        "RBAC seed completed",
        extra={
            "roles_created": report.roles_created,
            "roles_updated": report.roles_updated,
            "permissions_created": report.permissions_created,
            "grants_created": report.grants_created,
        },
    )
    return report
