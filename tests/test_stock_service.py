from __future__ import annotations

import unittest
from decimal import Decimal

from opsdesk.models import StockTransactionStatus
from opsdesk.services.results import ErrorKind
from opsdesk.services.stock_service import (
    get_available_stock,
    get_engineers,
    get_low_stock_items,
    get_stock_summary_by_category,
    get_stock_valuation,
    get_user_stock,
    get_user_stock_for_item,
    issue_stock,
    list_stock_transactions,
    mark_stock_used,
    return_stock,
)
from opsdesk.store import DomainStore

SEED = {
    'items': [
        {
            'id': 1,
            'name': 'Kingston 8GB DDR4',
            'sku': 'RAM-001',
            'category': 'Memory',
            'purchase_price': '1650.00',
            'selling_price': '1950.00',
            'stock_qty': 10,
            'issued_qty': 0,
            'reorder_level': 5,
        },
        {
            'id': 2,
            'name': 'WD Blue 512GB NVMe',
            'sku': 'SSD-001',
            'category': 'Storage',
            'purchase_price': '3100.00',
            'selling_price': '3650.00',
            'stock_qty': 20,
            'issued_qty': 0,
            'reorder_level': 5,
        },
    ],
    'users': [
        {'id': 1, 'name': 'Admin User', 'role': 'Admin', 'department': 'Accounts'},
        {'id': 7, 'name': 'Rajesh Patel', 'role': 'Engineer', 'department': 'Service'},
        {'id': 8, 'name': 'Priya Shah', 'role': 'Staff', 'department': 'Field Service'},
    ],
}


class StockServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = DomainStore(SEED)
        self.addCleanup(self.store.dispose)
        self.db = self.store.session()
        self.addCleanup(self.db.close)

    def test_issue_reduces_available_stock_and_flags_low_stock(self) -> None:
        result = issue_stock(self.db, item_id=1, user_id=7, quantity=6, issued_by=1)

        self.assertTrue(result.success)
        self.assertEqual(get_available_stock(self.db, 1), 4)
        self.assertIn(1, [item.id for item in get_low_stock_items(self.db)])
        transaction = result['transaction']
        self.assertEqual(transaction.status, StockTransactionStatus.ISSUED)
        self.assertEqual(transaction.issued_by_name, 'Admin User')
        self.assertTrue(transaction.id.startswith('STK-'))

    def test_issue_beyond_available_is_refused(self) -> None:
        issue_stock(self.db, item_id=1, user_id=7, quantity=6)

        result = issue_stock(self.db, item_id=1, user_id=7, quantity=5)

        self.assertFalse(result.success)
        self.assertEqual(result.error, ErrorKind.INSUFFICIENT_STOCK)
        self.assertEqual(result.message, 'Only 4 units available')
        self.assertEqual(get_available_stock(self.db, 1), 4)

    def test_issue_to_unknown_user_is_refused(self) -> None:
        result = issue_stock(self.db, item_id=1, user_id=99, quantity=1)
        self.assertEqual(result.error, ErrorKind.INVALID_REFERENCE)
        self.assertEqual(get_available_stock(self.db, 1), 10)

    def test_non_positive_quantity_raises(self) -> None:
        with self.assertRaises(ValueError):
            issue_stock(self.db, item_id=1, user_id=7, quantity=0)

    def test_return_is_limited_to_user_holding(self) -> None:
        issue_stock(self.db, item_id=1, user_id=7, quantity=6)

        refused = return_stock(self.db, item_id=1, user_id=7, quantity=7)
        self.assertEqual(refused.error, ErrorKind.EXCESS_RETURN)
        self.assertEqual(refused.message, 'User only has 6 units')

        accepted = return_stock(self.db, item_id=1, user_id=7, quantity=2, condition='Damaged')
        self.assertTrue(accepted.success)
        self.assertEqual(accepted['transaction'].condition, 'Damaged')
        self.assertEqual(get_user_stock_for_item(self.db, 7, 1), 4)
        self.assertEqual(get_available_stock(self.db, 1), 6)

    def test_other_users_holdings_do_not_count(self) -> None:
        issue_stock(self.db, item_id=1, user_id=7, quantity=3)
        result = return_stock(self.db, item_id=1, user_id=8, quantity=1)
        self.assertEqual(result.error, ErrorKind.EXCESS_RETURN)

    def test_mark_used_removes_units_from_holding_once(self) -> None:
        issued = issue_stock(self.db, item_id=2, user_id=7, quantity=2)
        transaction_id = issued['transaction'].id

        used = mark_stock_used(self.db, transaction_id, 'JOB-2025-001')
        self.assertTrue(used.success)
        self.assertEqual(used['transaction'].job_id, 'JOB-2025-001')
        self.assertEqual(get_user_stock_for_item(self.db, 7, 2), 0)
        self.assertEqual(get_available_stock(self.db, 2), 18)

        again = mark_stock_used(self.db, transaction_id, 'JOB-2025-001')
        self.assertEqual(again.error, ErrorKind.INVALID_STATE)
        self.assertEqual(get_user_stock_for_item(self.db, 7, 2), 0)

    def test_mark_used_cannot_exceed_holding(self) -> None:
        issued = issue_stock(self.db, item_id=2, user_id=7, quantity=2)
        return_stock(self.db, item_id=2, user_id=7, quantity=1)

        result = mark_stock_used(self.db, issued['transaction'].id, None)

        self.assertEqual(result.error, ErrorKind.EXCESS_USAGE)

    def test_remaining_units_can_be_used_after_partial_return(self) -> None:
        issued = issue_stock(self.db, item_id=2, user_id=7, quantity=3)
        return_stock(self.db, item_id=2, user_id=7, quantity=1)

        used = mark_stock_used(self.db, issued['transaction'].id, 'JOB-2025-002', quantity=2)

        self.assertTrue(used.success)
        self.assertNotEqual(used['transaction'].id, issued['transaction'].id)
        self.assertEqual(used['transaction'].quantity, 2)
        self.assertEqual(used['transaction'].job_id, 'JOB-2025-002')
        self.assertEqual(issued['transaction'].quantity, 1)
        self.assertEqual(get_user_stock_for_item(self.db, 7, 2), 0)
        self.assertEqual(get_user_stock(self.db, 7), [])

    def test_mark_used_quantity_beyond_batch_is_rejected(self) -> None:
        issued = issue_stock(self.db, item_id=2, user_id=7, quantity=2)

        with self.assertRaises(ValueError):
            mark_stock_used(self.db, issued['transaction'].id, None, quantity=5)
        with self.assertRaises(ValueError):
            mark_stock_used(self.db, issued['transaction'].id, None, quantity=0)

    def test_mark_used_unknown_transaction(self) -> None:
        self.assertEqual(mark_stock_used(self.db, 'STK-2025-999', None).error, ErrorKind.NOT_FOUND)

    def test_user_stock_tracks_serial_numbers(self) -> None:
        issue_stock(self.db, item_id=2, user_id=7, quantity=2, serial_numbers=['SN-1', 'SN-2'])
        return_stock(self.db, item_id=2, user_id=7, quantity=1, serial_numbers=['SN-1'])

        holdings = get_user_stock(self.db, 7)

        self.assertEqual(len(holdings), 1)
        self.assertEqual(holdings[0]['item_id'], 2)
        self.assertEqual(holdings[0]['quantity'], 1)
        self.assertEqual(holdings[0]['serial_numbers'], ['SN-2'])

    def test_transactions_are_listed_newest_first(self) -> None:
        first = issue_stock(self.db, item_id=1, user_id=7, quantity=1)['transaction']
        second = return_stock(self.db, item_id=1, user_id=7, quantity=1)['transaction']

        rows = list_stock_transactions(self.db, user_id=7)
        self.assertEqual([row.id for row in rows], [second.id, first.id])
        self.assertEqual([row.id for row in list_stock_transactions(self.db, kind='issue')], [first.id])

    def test_valuation_uses_available_units_at_purchase_price(self) -> None:
        issue_stock(self.db, item_id=1, user_id=7, quantity=4)

        valuation = get_stock_valuation(self.db, 'lifo')

        self.assertEqual(valuation['method'], 'LIFO')
        self.assertEqual(valuation['total_value'], Decimal('1650.00') * 6 + Decimal('3100.00') * 20)
        with self.assertRaises(ValueError):
            get_stock_valuation(self.db, 'AVERAGE')

    def test_summary_groups_by_category(self) -> None:
        summary = {row['category']: row for row in get_stock_summary_by_category(self.db)}
        self.assertEqual(summary['Memory']['total_stock'], 10)
        self.assertEqual(summary['Storage']['total_value'], Decimal('62000.00'))

    def test_engineers_include_service_departments(self) -> None:
        self.assertEqual([user.id for user in get_engineers(self.db)], [7, 8])


if __name__ == '__main__':
    unittest.main()
