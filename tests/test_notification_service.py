from __future__ import annotations

import unittest

from opsdesk.services.notification_service import (
    add_notification,
    delete_notification,
    get_unread_notification_count,
    list_notifications,
    mark_notification_read,
)
from opsdesk.store import DomainStore


class NotificationServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = DomainStore.from_fixture()
        self.addCleanup(self.store.dispose)
        self.db = self.store.session()
        self.addCleanup(self.db.close)

    def test_new_notification_is_listed_first_and_unread(self) -> None:
        notification = add_notification(
            self.db,
            type='amc_expiry',
            title='AMC Expiring',
            message='AMC-2025-001 expires in 30 days',
            data={'amc_id': 'AMC-2025-001'},
        )

        self.assertTrue(notification.id.startswith('NOTIF-'))
        self.assertEqual(list_notifications(self.db)[0].id, notification.id)
        self.assertEqual(get_unread_notification_count(self.db), 2)
        self.assertEqual(notification.to_record()['data'], {'amc_id': 'AMC-2025-001'})

    def test_unread_filter_and_mark_read(self) -> None:
        self.assertEqual([n.id for n in list_notifications(self.db, unread_only=True)], ['NOTIF-DEMO-1'])

        notification = mark_notification_read(self.db, 'NOTIF-DEMO-1')

        self.assertTrue(notification.is_read)
        self.assertEqual(get_unread_notification_count(self.db), 0)
        self.assertIsNone(mark_notification_read(self.db, 'NOTIF-MISSING'))

    def test_delete_notification(self) -> None:
        delete_notification(self.db, 'NOTIF-DEMO-2')
        delete_notification(self.db, 'NOTIF-DEMO-2')

        self.assertEqual([n.id for n in list_notifications(self.db)], ['NOTIF-DEMO-1'])


if __name__ == '__main__':
    unittest.main()
