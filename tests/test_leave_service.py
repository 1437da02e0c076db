from __future__ import annotations

import unittest
from datetime import date

from opsdesk.models import LeaveStatus
from opsdesk.services.leave_service import (
    add_holiday,
    add_holidays_bulk,
    add_leave_request,
    approve_leave,
    calculate_leave_days,
    get_leave_policy,
    get_user_leave_balance,
    list_holidays,
    reject_leave,
    update_leave_policy,
    update_user_leave_balance,
)
from opsdesk.services.results import ErrorKind
from opsdesk.store import DomainStore

SEED = {
    'users': [
        {'id': 2, 'name': 'Rajesh Patel', 'role': 'Engineer', 'leave_balance': {'casual': 12, 'sick': 8}},
    ],
    'leave_policy': {'approval_levels': ['Manager', 'Admin']},
}

LEAVE = {
    'user_id': 2,
    'leave_type': 'casual',
    'start_date': '2025-01-06',
    'end_date': '2025-01-08',
    'reason': 'Family function',
}


class LeaveServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = DomainStore(SEED)
        self.addCleanup(self.store.dispose)
        self.db = self.store.session()
        self.addCleanup(self.db.close)

    def test_working_week_counts_five_days(self) -> None:
        self.assertEqual(calculate_leave_days(self.db, '2025-01-06', '2025-01-10', True), 5)

    def test_weekends_and_holidays(self) -> None:
        self.assertEqual(calculate_leave_days(self.db, date(2025, 1, 6), date(2025, 1, 12)), 5)
        self.assertEqual(calculate_leave_days(self.db, date(2025, 1, 6), date(2025, 1, 12), False), 7)

        add_holiday(self.db, {'name': 'Uttarayan', 'date': '2025-01-08', 'type': 'Festival'})
        self.assertEqual(calculate_leave_days(self.db, '2025-01-06', '2025-01-10'), 4)

    def test_half_day_and_minimum(self) -> None:
        self.assertEqual(calculate_leave_days(self.db, '2025-01-06', '2025-01-07', True, 'second_half'), 1.5)
        self.assertEqual(calculate_leave_days(self.db, '2025-01-11', '2025-01-12'), 0.5)

    def test_add_leave_request_computes_days(self) -> None:
        leave = add_leave_request(self.db, LEAVE)
        self.assertEqual(leave.id, 1)
        self.assertEqual(leave.days, 3)
        self.assertEqual(leave.employee, 'Rajesh Patel')
        self.assertEqual(leave.status, LeaveStatus.PENDING)
        self.assertEqual(leave.approval_history, [])

    def test_policy_can_count_weekends(self) -> None:
        full_week = {**LEAVE, 'start_date': '2025-01-06', 'end_date': '2025-01-12'}
        self.assertEqual(add_leave_request(self.db, full_week).days, 5)

        update_leave_policy(self.db, {'exclude_weekends': False})

        self.assertEqual(add_leave_request(self.db, full_week).days, 7)

    def test_end_before_start_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            add_leave_request(self.db, {**LEAVE, 'end_date': '2025-01-01'})

    def test_admin_approval_deducts_balance_once(self) -> None:
        leave = add_leave_request(self.db, LEAVE)

        first = approve_leave(self.db, leave.id, 'Admin User', 'Admin', 'Enjoy')
        second = approve_leave(self.db, leave.id, 'Admin User', 'Admin')

        self.assertTrue(first.success)
        self.assertEqual(leave.status, LeaveStatus.APPROVED)
        self.assertTrue(leave.balance_deducted)
        self.assertEqual(second.error, ErrorKind.INVALID_STATE)
        self.assertEqual(get_user_leave_balance(self.db, 2)['casual'], 9)
        self.assertEqual(len(leave.approval_history), 1)

    def test_two_level_approval(self) -> None:
        leave = add_leave_request(self.db, LEAVE)

        first = approve_leave(self.db, leave.id, 'Meera Iyer', 'Manager')
        self.assertTrue(first.success)
        self.assertEqual(leave.status, LeaveStatus.PENDING)
        self.assertEqual(get_user_leave_balance(self.db, 2)['casual'], 12)

        approve_leave(self.db, leave.id, 'Admin User', 'HR')
        self.assertEqual(leave.status, LeaveStatus.APPROVED)
        self.assertEqual([entry['level'] for entry in leave.approval_history], [1, 2])
        self.assertEqual(get_user_leave_balance(self.db, 2)['casual'], 9)

    def test_balance_never_goes_negative(self) -> None:
        update_user_leave_balance(self.db, 2, 'casual', 1)
        leave = add_leave_request(self.db, LEAVE)
        approve_leave(self.db, leave.id, 'Admin User', 'Admin')
        self.assertEqual(get_user_leave_balance(self.db, 2)['casual'], 0)

    def test_reject_leaves_balance_untouched(self) -> None:
        leave = add_leave_request(self.db, LEAVE)

        result = reject_leave(self.db, leave.id, 'Admin User', 'Admin', 'Peak season')

        self.assertTrue(result.success)
        self.assertEqual(leave.status, LeaveStatus.REJECTED)
        self.assertEqual(leave.approval_history[-1]['comments'], 'Peak season')
        self.assertEqual(get_user_leave_balance(self.db, 2)['casual'], 12)
        self.assertEqual(approve_leave(self.db, leave.id, 'Admin User', 'Admin').error, ErrorKind.INVALID_STATE)
        self.assertEqual(reject_leave(self.db, 404, 'Admin User', 'Admin').error, ErrorKind.NOT_FOUND)

    def test_holidays_bulk_add(self) -> None:
        add_holidays_bulk(
            self.db,
            [
                {'name': 'Independence Day', 'date': '2025-08-15', 'type': 'National'},
                {'name': 'Republic Day', 'date': '2025-01-26', 'type': 'National'},
            ],
        )
        self.assertEqual([holiday.name for holiday in list_holidays(self.db)], ['Republic Day', 'Independence Day'])

    def test_balance_updates(self) -> None:
        update_user_leave_balance(self.db, 2, 'earned', 15)
        self.assertEqual(get_user_leave_balance(self.db, 2), {'casual': 12, 'sick': 8, 'earned': 15})
        with self.assertRaises(ValueError):
            update_user_leave_balance(self.db, 2, 'earned', -1)
        self.assertIsNone(update_user_leave_balance(self.db, 404, 'earned', 1))
        self.assertEqual(get_user_leave_balance(self.db, 404), {})

    def test_leave_policy(self) -> None:
        self.assertEqual(get_leave_policy(self.db), {'approval_levels': ['Manager', 'Admin']})
        update_leave_policy(self.db, {'approval_levels': ['Admin']})
        self.assertEqual(get_leave_policy(self.db), {'approval_levels': ['Admin']})


if __name__ == '__main__':
    unittest.main()
