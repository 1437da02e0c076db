from __future__ import annotations

import unittest
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

from opsdesk.models import EstimateStatus, OrderStatus, PaymentStatus
from opsdesk.services.estimate_service import (
    add_estimate,
    add_order,
    convert_to_order,
    list_estimates,
    list_orders,
    mark_order_paid,
    update_estimate,
)
from opsdesk.store import DomainStore

NOW = datetime(2025, 7, 1, 9, 30, tzinfo=timezone.utc)

ESTIMATE = {
    'customer': 'ABC Technologies',
    'mobile': '9825011111',
    'items': [{'item_id': 1, 'name': 'Intel Core i5-12400', 'qty': 2, 'rate': 13900, 'gst': 18}],
    'subtotal': 27800,
    'gst_amount': 5004,
    'total': 32804,
    'status': 'Draft',
}


@patch('opsdesk.services.identifier_service._now', return_value=NOW)
@patch('opsdesk.services.estimate_service._now', return_value=NOW)
class EstimateServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = DomainStore()
        self.addCleanup(self.store.dispose)
        self.db = self.store.session()
        self.addCleanup(self.db.close)

    def test_add_estimate_stamps_id_date_and_version(self, *_mocks) -> None:
        estimate = add_estimate(self.db, ESTIMATE)

        self.assertEqual(estimate.id, 'EST-2025-001')
        self.assertEqual(estimate.date, NOW.date())
        self.assertEqual(estimate.version, 1)
        self.assertEqual(estimate.total, Decimal('32804'))
        self.assertEqual(estimate.audit_trail[0]['action'], 'Created')
        self.assertEqual(estimate.audit_trail[0]['details'], 'Estimate created for ABC Technologies')

    def test_customer_is_required(self, *_mocks) -> None:
        with self.assertRaises(ValueError):
            add_estimate(self.db, {**ESTIMATE, 'customer': '  '})

    def test_update_bumps_version_and_records_action(self, *_mocks) -> None:
        estimate = add_estimate(self.db, ESTIMATE)

        updated = update_estimate(self.db, estimate.id, {'status': 'Sent'}, 'Sent to customer')

        self.assertEqual(updated.version, 2)
        self.assertEqual(updated.status, EstimateStatus.SENT)
        self.assertEqual(updated.audit_trail[-1]['action'], 'Sent to customer')
        self.assertIsNone(update_estimate(self.db, 'EST-2025-404', {'notes': 'x'}))

    def test_convert_to_order_copies_totals_and_marks_estimate(self, *_mocks) -> None:
        estimate = add_estimate(self.db, ESTIMATE)

        order = convert_to_order(self.db, estimate.id)

        self.assertEqual(order.id, 'ORD-2025-001')
        self.assertEqual(order.estimate_id, estimate.id)
        self.assertEqual(order.total, estimate.total)
        self.assertEqual(order.items, ESTIMATE['items'])
        self.assertEqual(order.status, OrderStatus.PENDING)
        self.assertEqual(order.payment_status, PaymentStatus.PENDING)
        self.assertEqual(estimate.status, EstimateStatus.CONVERTED)
        self.assertEqual(estimate.audit_trail[-1]['action'], 'Converted to Order')

    def test_converting_twice_returns_the_same_order(self, *_mocks) -> None:
        estimate = add_estimate(self.db, ESTIMATE)
        first = convert_to_order(self.db, estimate.id)

        second = convert_to_order(self.db, estimate.id)

        self.assertEqual(first.id, second.id)
        self.assertEqual(len(list_orders(self.db)), 1)

    def test_convert_unknown_estimate(self, *_mocks) -> None:
        self.assertIsNone(convert_to_order(self.db, 'EST-2025-404'))

    def test_list_estimates_by_status(self, *_mocks) -> None:
        add_estimate(self.db, ESTIMATE)
        add_estimate(self.db, {**ESTIMATE, 'status': 'Sent'})
        self.assertEqual(len(list_estimates(self.db, status='Sent')), 1)

    def test_mark_order_paid(self, *_mocks) -> None:
        order = add_order(self.db, {'customer': 'Walk-in', 'total': 1200})

        paid = mark_order_paid(self.db, order.id)

        self.assertEqual(paid.payment_status, PaymentStatus.PAID)
        self.assertEqual(paid.paid_amount, Decimal('1200'))
        self.assertIsNone(mark_order_paid(self.db, 'ORD-2025-404'))


if __name__ == '__main__':
    unittest.main()
