"""Tests for the first-Administrator bootstrap in app.services.accounts."""

import unittest

from db_support import add_user, make_engine, make_session_factory

from app.core.rbac import ADMINISTRATOR, HR_SPECIALIST
from app.models import User
from app.schemas.auth import BootstrapRequest
from app.services.accounts import bootstrap_administrator
from app.services.errors import BootstrapCompleted, RoleNotFound


def _bootstrap_body() -> BootstrapRequest:
    return BootstrapRequest(
        first_name="Ada",
        last_name="Admin",
        email="Ada@Example.com",
        password="password123",
    )


class TestBootstrapAdministrator(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine()

    def tearDown(self) -> None:
        self.engine.dispose()

    def test_creates_administrator_on_empty_store(self) -> None:
        db = make_session_factory(self.engine)()
        try:
            user = bootstrap_administrator(db, _bootstrap_body())
            self.assertEqual(user.email, "ada@example.com")
            self.assertEqual(user.role.name, ADMINISTRATOR)
            self.assertTrue(user.is_active)
        finally:
            db.close()

    def test_refused_once_a_user_exists(self) -> None:
        db = make_session_factory(self.engine)()
        try:
            add_user(db, "hr@example.com", HR_SPECIALIST)
            with self.assertRaises(BootstrapCompleted) as ctx:
                bootstrap_administrator(db, _bootstrap_body())
            self.assertEqual(ctx.exception.status_code, 403)
            self.assertEqual(db.query(User).count(), 1)
        finally:
            db.close()

    def test_unseeded_store_reports_missing_role(self) -> None:
        db = make_session_factory(self.engine, seed=False)()
        try:
            with self.assertRaises(RoleNotFound) as ctx:
                bootstrap_administrator(db, _bootstrap_body())
            self.assertEqual(ctx.exception.status_code, 500)
            self.assertEqual(ctx.exception.message, "Administrator role missing")
            self.assertEqual(db.query(User).count(), 0)
        finally:
            db.close()


if __name__ == "__main__":
    unittest.main()
