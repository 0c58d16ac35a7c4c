"""
Seed roles, the permission catalog and default grants. Runs automatically at
API startup; can also be run by hand (e.g. right after migrations):

  python -m app.seed
"""

import logging
import sys

from app.core.database import SessionLocal
from app.services.errors import SeedFailure
from app.services.rbac_seeder import SeedReport, seed_rbac

logger = logging.getLogger(__name__)


def run_seed() -> SeedReport:
    """Open a session, run the seed pass and close it. Raises SeedFailure on error."""
    db = SessionLocal()
    try:
        return seed_rbac(db)
    finally:
        db.close()


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    try:
        report = run_seed()
    except SeedFailure as e:
        logger.error("Seed failed: %s (%s)", e.message, type(e.cause).__name__)
        return 1
    logger.info(
        "Seed completed: roles_created=%s roles_updated=%s permissions_created=%s grants_created=%s",
        report.roles_created,
        report.roles_updated,
        report.permissions_created,
        report.grants_created,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
