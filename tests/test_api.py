from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from fastapi.testclient import TestClient

from opsdesk.config import settings
from opsdesk.main import create_app
from opsdesk.store import DomainStore


class ApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = DomainStore.from_fixture()
        self.addCleanup(self.store.dispose)
        self.client = TestClient(create_app(self.store))

    def _register_and_login_owner(self) -> None:
        created = self.client.post(
            '/auth/register-admin',
            json={'name': 'Owner', 'email': 'owner@premiumit.com', 'password': 'owner-pass'},
        )
        self.assertEqual(created.status_code, 201)
        login = self.client.post('/auth/login', json={'email': 'owner@premiumit.com', 'password': 'owner-pass'})
        self.assertEqual(login.status_code, 200)

    def test_health(self) -> None:
        response = self.client.get('/health')

        self.assertEqual(response.json(), {'status': 'ok'})
        self.assertEqual(response.headers['X-Content-Type-Options'], 'nosniff')
        self.assertNotIn('Cache-Control', response.headers)
        self.assertEqual(self.client.get('/auth/status').headers['Cache-Control'], 'no-store')

    def test_items_and_low_stock(self) -> None:
        items = self.client.get('/inventory/items')
        low = self.client.get('/inventory/items/low-stock')

        self.assertEqual(items.status_code, 200)
        self.assertEqual(len(items.json()), 6)
        self.assertEqual(sorted(item['id'] for item in low.json()), [5, 6])

    def test_item_detail_reports_available_stock(self) -> None:
        body = self.client.get('/inventory/items/2').json()

        self.assertEqual(body['available'], body['stock_qty'] - body['issued_qty'])
        self.assertEqual(self.client.get('/inventory/items/999').status_code, 404)

    def test_dashboard_summary(self) -> None:
        body = self.client.get('/dashboard').json()

        self.assertEqual(body['total_items'], 6)
        self.assertEqual(body['low_stock_count'], 2)
        self.assertEqual(body['total_order_value'], 42008)

    def test_issue_more_than_available_is_rejected(self) -> None:
        response = self.client.post('/inventory/stock/issue', json={'item_id': 5, 'user_id': 2, 'quantity': 50})

        self.assertEqual(response.status_code, 400)
        self.assertIn('available', response.json()['detail'])

    def test_unknown_field_is_bad_request(self) -> None:
        response = self.client.post('/inventory/items', json={'name': 'Mouse', 'colour': 'black'})

        self.assertEqual(response.status_code, 400)
        self.assertIn('colour', response.json()['detail'])

    def test_missing_estimate_is_not_found(self) -> None:
        self.assertEqual(self.client.get('/sales/estimates/EST-2099-999').status_code, 404)
        self.assertEqual(self.client.get('/sales/estimates/EST-2025-001').status_code, 200)

    def test_bad_login_is_unauthorized(self) -> None:
        response = self.client.post('/auth/login', json={'email': 'nobody@premiumit.com', 'password': 'x'})

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['detail'], 'Invalid email or password.')

    def test_login_cookie_identifies_account(self) -> None:
        self.assertEqual(self.client.get('/auth/me').status_code, 401)

        self._register_and_login_owner()
        me = self.client.get('/auth/me')

        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json()['email'], 'owner@premiumit.com')
        self.assertNotIn('password_hash', me.json())

        self.client.post('/auth/logout')
        self.assertEqual(self.client.get('/auth/me').status_code, 401)

    def test_admin_request_approval_flow(self) -> None:
        self._register_and_login_owner()

        requested = self.client.post('/auth/admin-requests', json={'name': 'Rahul', 'email': 'rahul@premiumit.com'})
        self.assertEqual(requested.status_code, 201)
        blocked = self.client.post(
            '/auth/register-admin',
            json={'name': 'Rahul', 'email': 'rahul@premiumit.com', 'password': 'pw'},
        )
        self.assertEqual(blocked.status_code, 400)

        pending = self.client.get('/admin/admin-requests', params={'status': 'pending'}).json()
        self.assertEqual([r['email'] for r in pending], ['rahul@premiumit.com'])
        approved = self.client.post(f"/admin/admin-requests/{pending[0]['id']}/approve")
        self.assertEqual(approved.status_code, 200)

        registered = self.client.post(
            '/auth/register-admin',
            json={'name': 'Rahul', 'email': 'rahul@premiumit.com', 'password': 'pw'},
        )
        self.assertEqual(registered.status_code, 201)
        self.assertTrue(registered.json()['account']['is_admin'])

    def test_admin_routes_require_login(self) -> None:
        self.assertEqual(self.client.get('/admin/admin-requests').status_code, 401)
        self.assertEqual(self.client.post('/admin/reset').status_code, 401)

    def test_settings_round_trip(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        with patch.object(settings, 'settings_file', str(Path(tmp.name) / 'settings.json')):
            saved = self.client.put('/settings/tax', json={'gst_rate': 12, 'enable_gst': True})
            loaded = self.client.get('/settings/tax')
            unknown = self.client.get('/settings/payroll')

        self.assertEqual(saved.status_code, 200)
        self.assertEqual(loaded.json()['gst_rate'], 12)
        self.assertEqual(unknown.status_code, 400)


if __name__ == '__main__':
    unittest.main()
