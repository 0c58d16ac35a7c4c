"""
Create a user with one of the seeded roles. Run from project root after the
seed has run (API startup or `python -m app.seed`):
  python -m app.scripts.create_user EMAIL PASSWORD FIRST_NAME LAST_NAME [role]
Example:
  python -m app.scripts.create_user hr@example.com your-secure-password Dana Lee "HR Specialist"
"""
import argparse
import sys

from pydantic import ValidationError

from app.core.database import SessionLocal
from app.core.rbac import HR_SPECIALIST, ROLE_DESCRIPTIONS
from app.schemas.users import UserCreateRequest
from app.services.accounts import create_user
from app.services.errors import AuthServiceError


def main() -> int:
    parser = argparse.ArgumentParser(description="Create an HR Desk user (no registration UI).")
    parser.add_argument("email", help="Email (case-insensitive, unique)")
    parser.add_argument("password", help="Password (8-128 chars)")
    parser.add_argument("first_name")
    parser.add_argument("last_name")
    parser.add_argument("role", nargs="?", default=HR_SPECIALIST, choices=list(ROLE_DESCRIPTIONS))
    args = parser.parse_args()

    try:
        body = UserCreateRequest(
            email=args.email,
            password=args.password,
            first_name=args.first_name,
            last_name=args.last_name,
            role_name=args.role,
        )
    except ValidationError as e:
        print(f"Invalid input: {e.errors()[0]['msg']}", file=sys.stderr)
        return 1

    db = SessionLocal()
    try:
        user = create_user(db, body)
        print(f"Created user '{user.email}' with role '{args.role}'.")
        return 0
    except AuthServiceError as e:
        print(e.message, file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
