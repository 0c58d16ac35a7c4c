"""Tests for the admin-safety guard and the user mutations that go through it."""

import os
import shutil
import tempfile
import threading
import unittest

from db_support import add_user, make_engine, make_session_factory
from sqlalchemy import create_engine, event
from sqlalchemy.dialects import postgresql

from app.core.rbac import ADMINISTRATOR, DIRECTOR, HR_SPECIALIST
from app.models import Base, Role, User
from app.schemas.users import UserUpdateRequest
from app.services.accounts import deactivate_user, update_user
from app.services.admin_guard import (
    LAST_ADMIN_MESSAGE,
    OWN_ROLE_MESSAGE,
    would_violate_invariant,
)
from app.services.errors import InvariantViolation, RoleNotFound


def _active_admin_count(db) -> int:
    return (
        db.query(User)
        .join(Role, Role.id == User.role_id)
        .filter(Role.name == ADMINISTRATOR, User.is_active.is_(True))
        .count()
    )


class TestWouldViolateInvariant(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine()
        self.Session = make_session_factory(self.engine)
        self.db = self.Session()

    def tearDown(self) -> None:
        self.db.close()
        self.engine.dispose()

    def test_sole_admin(self) -> None:
        admin = add_user(self.db, "admin@example.com", ADMINISTRATOR)
        self.assertTrue(would_violate_invariant(self.db, admin.id))

    def test_second_admin_present(self) -> None:
        admin = add_user(self.db, "admin@example.com", ADMINISTRATOR)
        add_user(self.db, "admin2@example.com", ADMINISTRATOR)
        self.assertFalse(would_violate_invariant(self.db, admin.id))

    def test_inactive_admins_do_not_count(self) -> None:
        admin = add_user(self.db, "admin@example.com", ADMINISTRATOR)
        add_user(self.db, "old-admin@example.com", ADMINISTRATOR, is_active=False)
        self.assertTrue(would_violate_invariant(self.db, admin.id))

    def test_non_admin_target_with_one_admin(self) -> None:
        add_user(self.db, "admin@example.com", ADMINISTRATOR)
        hr = add_user(self.db, "hr@example.com", HR_SPECIALIST)
        self.assertFalse(would_violate_invariant(self.db, hr.id))


class TestUserMutationsKeepAnAdministrator(unittest.TestCase):
    """Deactivation and role changes through the accounts service."""

    def setUp(self) -> None:
        self.engine = make_engine()
        self.Session = make_session_factory(self.engine)
        self.db = self.Session()
        self.admin = add_user(self.db, "admin@example.com", ADMINISTRATOR)

    def tearDown(self) -> None:
        self.db.close()
        self.engine.dispose()

    def test_sole_admin_cannot_deactivate_self(self) -> None:
        with self.assertRaises(InvariantViolation) as ctx:
            deactivate_user(self.db, self.admin.id, self.admin.id)
        self.assertEqual(ctx.exception.message, LAST_ADMIN_MESSAGE)
        self.assertEqual(ctx.exception.status_code, 403)
        self.db.refresh(self.admin)
        self.assertTrue(self.admin.is_active)

    def test_admin_can_deactivate_self_when_another_exists(self) -> None:
        add_user(self.db, "admin2@example.com", ADMINISTRATOR)
        deactivate_user(self.db, self.admin.id, self.admin.id)
        self.db.refresh(self.admin)
        self.assertFalse(self.admin.is_active)
        self.assertEqual(_active_admin_count(self.db), 1)

    def test_sole_admin_cannot_be_deactivated_via_update(self) -> None:
        director = add_user(self.db, "director@example.com", DIRECTOR)
        with self.assertRaises(InvariantViolation):
            update_user(self.db, director.id, self.admin.id, UserUpdateRequest(is_active=False))
        self.assertEqual(_active_admin_count(self.db), 1)

    def test_sole_admin_cannot_be_demoted(self) -> None:
        director = add_user(self.db, "director@example.com", DIRECTOR)
        with self.assertRaises(InvariantViolation) as ctx:
            update_user(
                self.db,
                director.id,
                self.admin.id,
                UserUpdateRequest(role_name=HR_SPECIALIST, first_name="Renamed"),
            )
        self.assertEqual(ctx.exception.message, LAST_ADMIN_MESSAGE)
        self.db.refresh(self.admin)
        self.assertEqual(self.admin.role.name, ADMINISTRATOR)
        self.assertEqual(self.admin.first_name, "Test")

    def test_admin_demoted_when_another_exists(self) -> None:
        other = add_user(self.db, "admin2@example.com", ADMINISTRATOR)
        updated = update_user(
            self.db, self.admin.id, other.id, UserUpdateRequest(role_name=DIRECTOR)
        )
        self.assertEqual(updated.role.name, DIRECTOR)
        self.assertEqual(_active_admin_count(self.db), 1)

    def test_own_role_change_blocked_even_with_other_admins(self) -> None:
        add_user(self.db, "admin2@example.com", ADMINISTRATOR)
        with self.assertRaises(InvariantViolation) as ctx:
            update_user(
                self.db, self.admin.id, self.admin.id, UserUpdateRequest(role_name=DIRECTOR)
            )
        self.assertEqual(ctx.exception.message, OWN_ROLE_MESSAGE)

    def test_own_role_change_blocked_for_non_admins(self) -> None:
        hr = add_user(self.db, "hr@example.com", HR_SPECIALIST)
        with self.assertRaises(InvariantViolation) as ctx:
            update_user(self.db, hr.id, hr.id, UserUpdateRequest(role_name=ADMINISTRATOR))
        self.assertEqual(ctx.exception.message, OWN_ROLE_MESSAGE)

    def test_own_profile_update_with_same_role_allowed(self) -> None:
        updated = update_user(
            self.db,
            self.admin.id,
            self.admin.id,
            UserUpdateRequest(first_name="Ada", role_name=ADMINISTRATOR),
        )
        self.assertEqual(updated.first_name, "Ada")
        self.assertEqual(updated.role.name, ADMINISTRATOR)

    def test_non_admin_deactivation_unaffected(self) -> None:
        hr = add_user(self.db, "hr@example.com", HR_SPECIALIST)
        deactivate_user(self.db, self.admin.id, hr.id)
        self.db.refresh(hr)
        self.assertFalse(hr.is_active)

    def test_unknown_role_reported_before_admin_check(self) -> None:
        director = add_user(self.db, "director@example.com", DIRECTOR)
        with self.assertRaises(RoleNotFound) as ctx:
            update_user(self.db, director.id, self.admin.id, UserUpdateRequest(role_name="Nope"))
        self.assertEqual(ctx.exception.status_code, 400)
        self.db.refresh(self.admin)
        self.assertEqual(self.admin.role.name, ADMINISTRATOR)


class TestAdministratorRoleLock(unittest.TestCase):
    """The active-Administrator count is taken under a FOR UPDATE lock on the role row."""

    def setUp(self) -> None:
        self.engine = make_engine()
        self.Session = make_session_factory(self.engine)
        self.db = self.Session()
        self.admin_id = add_user(self.db, "admin@example.com", ADMINISTRATOR).id
        self.other_id = add_user(self.db, "admin2@example.com", ADMINISTRATOR).id
        self.actor_id = add_user(self.db, "director@example.com", DIRECTOR).id

    def tearDown(self) -> None:
        self.db.close()
        self.engine.dispose()

    def _postgres_sql(self, fn) -> list[str]:
        """Run fn and return each ORM statement it executed, rendered for PostgreSQL."""
        statements: list[str] = []

        def capture(orm_execute_state) -> None:
            compiled = orm_execute_state.statement.compile(dialect=postgresql.dialect())
            statements.append(" ".join(str(compiled).split()))

        event.listen(self.db, "do_orm_execute", capture)
        try:
            fn()
        finally:
            event.remove(self.db, "do_orm_execute", capture)
        return statements

    @staticmethod
    def _index(statements: list[str], predicate) -> int:
        return next(i for i, sql in enumerate(statements) if predicate(sql))

    @staticmethod
    def _is_role_lock(sql: str) -> bool:
        return "FROM roles WHERE" in sql and sql.rstrip().endswith("FOR UPDATE")

    @staticmethod
    def _is_admin_count(sql: str) -> bool:
        return "count(users.id)" in sql

    def test_count_follows_role_lock(self) -> None:
        statements = self._postgres_sql(lambda: would_violate_invariant(self.db, self.admin_id))
        self.assertEqual(len(statements), 2)
        self.assertTrue(self._is_role_lock(statements[0]), statements[0])
        self.assertTrue(self._is_admin_count(statements[1]), statements[1])

    def test_deactivation_locks_role_before_counting(self) -> None:
        statements = self._postgres_sql(
            lambda: deactivate_user(self.db, self.actor_id, self.admin_id)
        )
        lock_at = self._index(statements, self._is_role_lock)
        count_at = self._index(statements, self._is_admin_count)
        self.assertLess(lock_at, count_at)

    def test_demotion_locks_role_before_counting(self) -> None:
        statements = self._postgres_sql(
            lambda: update_user(
                self.db, self.actor_id, self.other_id, UserUpdateRequest(role_name=DIRECTOR)
            )
        )
        lock_at = self._index(statements, self._is_role_lock)
        count_at = self._index(statements, self._is_admin_count)
        self.assertLess(lock_at, count_at)


def _run_concurrently(factory, actor_id: int, target_ids: list[int]) -> list[object]:
    """Deactivate each target from its own thread/session; collect outcome per target."""
    results: list[object] = [None] * len(target_ids)
    barrier = threading.Barrier(len(target_ids))

    def worker(index: int, target_id: int) -> None:
        db = factory()
        try:
            barrier.wait()
            deactivate_user(db, actor_id, target_id)
            results[index] = "ok"
        except InvariantViolation as e:
            results[index] = e
        finally:
            db.close()

    threads = [
        threading.Thread(target=worker, args=(i, target_id))
        for i, target_id in enumerate(target_ids)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return results


class TestConcurrentDeactivation(unittest.TestCase):
    """Two sessions deactivating the last two Administrators: exactly one wins."""

    def setUp(self) -> None:
        self.tmpdir = tempfile.mkdtemp()
        self.engine = make_engine(os.path.join(self.tmpdir, "guard.db"), serialized=True)
        self.Session = make_session_factory(self.engine)
        db = self.Session()
        try:
            self.admin_ids = [
                add_user(db, "a@example.com", ADMINISTRATOR).id,
                add_user(db, "b@example.com", ADMINISTRATOR).id,
            ]
            self.actor_id = add_user(db, "director@example.com", DIRECTOR).id
        finally:
            db.close()

    def tearDown(self) -> None:
        self.engine.dispose()
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_exactly_one_succeeds(self) -> None:
        results = _run_concurrently(self.Session, self.actor_id, self.admin_ids)
        self.assertEqual(results.count("ok"), 1)
        violations = [r for r in results if isinstance(r, InvariantViolation)]
        self.assertEqual(len(violations), 1)
        db = self.Session()
        try:
            self.assertEqual(_active_admin_count(db), 1)
        finally:
            db.close()


class TestConcurrentDeactivationPostgres(unittest.TestCase):
    """Same race against a real PostgreSQL (row locks). Set TEST_DATABASE_URL to run."""

    def setUp(self) -> None:
        url = os.environ.get("TEST_DATABASE_URL")
        if not url:
            self.skipTest("TEST_DATABASE_URL not set")
        try:
            self.engine = create_engine(url, isolation_level="READ COMMITTED")
            Base.metadata.drop_all(self.engine)
            Base.metadata.create_all(self.engine)
        except Exception as e:
            self.skipTest(f"Database not available: {e}")
        self.Session = make_session_factory(self.engine)
        db = self.Session()
        try:
            self.admin_ids = [
                add_user(db, "a@example.com", ADMINISTRATOR).id,
                add_user(db, "b@example.com", ADMINISTRATOR).id,
            ]
            self.actor_id = add_user(db, "director@example.com", DIRECTOR).id
        finally:
            db.close()

    def tearDown(self) -> None:
        if hasattr(self, "engine"):
            Base.metadata.drop_all(self.engine)
            self.engine.dispose()

    def test_exactly_one_succeeds(self) -> None:
        results = _run_concurrently(self.Session, self.actor_id, self.admin_ids)
        self.assertEqual(results.count("ok"), 1)
        db = self.Session()
        try:
            self.assertEqual(_active_admin_count(db), 1)
        finally:
            db.close()


if __name__ == "__main__":
    unittest.main()
