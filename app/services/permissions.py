"""Permission evaluation against a resolved Identity. Pure; no storage access."""

from app.core.rbac import ADMINISTRATOR, MANAGE
from app.schemas.auth import Identity


def allow(identity: Identity, module: str, action: str) -> bool:
    """
    Decide whether identity may perform action on module.

    Administrators are allowed everything without consulting grants. Everyone
    else needs (module, action) or the module-wide (module, "manage") grant.
    """
    if identity.role == ADMINISTRATOR:
        return True
    grants = identity.permissions
    return (module, action) in grants or (module, MANAGE) in grants
