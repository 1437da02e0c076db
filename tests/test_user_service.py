from __future__ import annotations

import unittest

from opsdesk.models import UserStatus
from opsdesk.services.results import ErrorKind
from opsdesk.services.user_service import (
    add_department,
    add_role,
    add_user,
    delete_department,
    delete_user,
    find_user_by_email,
    list_departments,
    list_roles,
    list_users,
    update_department,
    update_user,
)
from opsdesk.store import DomainStore


class UserServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = DomainStore.from_fixture()
        self.addCleanup(self.store.dispose)
        self.db = self.store.session()
        self.addCleanup(self.db.close)

    def test_add_user_assigns_next_id(self) -> None:
        user = add_user(self.db, {'name': 'Neha Joshi', 'email': 'neha@premiumit.com', 'role': 'Staff'})

        self.assertEqual(user.id, 5)
        self.assertEqual(user.status, UserStatus.ACTIVE)
        self.assertFalse(user.is_registered)
        self.assertIsNone(user.last_login)
        self.assertEqual([u.id for u in list_users(self.db)], [1, 2, 3, 4, 5])

    def test_add_user_rejects_duplicate_email_and_blank_name(self) -> None:
        with self.assertRaises(ValueError):
            add_user(self.db, {'name': 'Copy', 'email': 'RAJESH.PATEL@premiumit.com'})
        with self.assertRaises(ValueError):
            add_user(self.db, {'name': '  '})

    def test_find_user_by_email_ignores_case(self) -> None:
        self.assertEqual(find_user_by_email(self.db, ' Priya.Shah@PremiumIT.com ').id, 3)
        self.assertIsNone(find_user_by_email(self.db, 'ghost@premiumit.com'))

    def test_update_user_coerces_status(self) -> None:
        user = update_user(self.db, 4, {'status': 'Inactive', 'department': 'Sales'})

        self.assertEqual(user.status, UserStatus.INACTIVE)
        self.assertEqual(user.department, 'Sales')
        self.assertIsNone(update_user(self.db, 99, {'name': 'x'}))

    def test_update_user_keeps_emails_unique(self) -> None:
        with self.assertRaises(ValueError):
            update_user(self.db, 4, {'email': 'Priya.Shah@premiumit.com'})

        user = update_user(self.db, 4, {'email': 'amit.desai@premiumit.com', 'mobile': '9876500099'})
        self.assertEqual(user.mobile, '9876500099')

    def test_update_user_ignores_registration_fields(self) -> None:
        user = update_user(self.db, 4, {'is_registered': True, 'last_login': '2025-01-01T00:00:00Z', 'name': 'Amit D'})

        self.assertFalse(user.is_registered)
        self.assertIsNone(user.last_login)
        self.assertEqual(user.name, 'Amit D')

    def test_delete_user_refused_while_transactions_reference_them(self) -> None:
        refused = delete_user(self.db, 2)
        deleted = delete_user(self.db, 4)
        missing = delete_user(self.db, 4)

        self.assertEqual(refused.error, ErrorKind.REFERENCED_ENTITY)
        self.assertTrue(deleted.success)
        self.assertEqual(missing.error, ErrorKind.NOT_FOUND)

    def test_add_role_generates_custom_id(self) -> None:
        role = add_role(self.db, {'name': 'Cashier', 'permissions': ['sales']})

        self.assertTrue(role.id.startswith('custom_'))
        self.assertFalse(role.is_system)
        self.assertIn('Cashier', [r.name for r in list_roles(self.db)])
        with self.assertRaises(ValueError):
            add_role(self.db, {'permissions': []})

    def test_department_lifecycle(self) -> None:
        department = add_department(self.db, {'name': 'Logistics'})
        self.assertEqual(department.id, 4)
        self.assertTrue(department.is_active)

        updated = update_department(self.db, 4, {'is_active': False})
        self.assertFalse(updated.is_active)
        self.assertIsNotNone(updated.updated_at)

        delete_department(self.db, 4)
        self.assertEqual([d.id for d in list_departments(self.db)], [1, 2, 3])
        self.assertIsNone(update_department(self.db, 4, {'name': 'Gone'}))


if __name__ == '__main__':
    unittest.main()
