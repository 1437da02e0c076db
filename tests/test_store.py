from __future__ import annotations

import unittest

from sqlalchemy import select
from sqlalchemy.pool import StaticPool

from opsdesk.db import build_engine
from opsdesk.models import Item, LeavePolicy, StockTransaction
from opsdesk.seed import DEFAULT_FIXTURE_PATH, load_fixture
from opsdesk.services.catalog_service import add_item, list_items
from opsdesk.store import DomainStore


class DomainStoreTests(unittest.TestCase):
    def test_fixture_store_loads_every_collection(self) -> None:
        store = DomainStore.from_fixture()
        self.addCleanup(store.dispose)
        fixture = load_fixture(DEFAULT_FIXTURE_PATH)

        with store.session() as db:
            self.assertEqual(len(list_items(db)), len(fixture['items']))
            transactions = db.execute(select(StockTransaction).order_by(StockTransaction.seq)).scalars().all()
            self.assertEqual([t.seq for t in transactions], [1, 2, 3])
            self.assertIsNotNone(db.get(LeavePolicy, 1))

    def test_reset_restores_seed(self) -> None:
        store = DomainStore({'items': [{'id': 1, 'name': 'Keyboard', 'stock_qty': 3}]})
        self.addCleanup(store.dispose)
        with store.session() as db:
            add_item(db, {'name': 'Mouse', 'stock_qty': 5})
            db.get(Item, 1).stock_qty = 99
            db.commit()

        store.reset()

        with store.session() as db:
            items = list_items(db)
            self.assertEqual([item.name for item in items], ['Keyboard'])
            self.assertEqual(items[0].stock_qty, 3)

    def test_stores_do_not_share_state(self) -> None:
        first = DomainStore()
        second = DomainStore()
        self.addCleanup(first.dispose)
        self.addCleanup(second.dispose)

        with first.session() as db:
            add_item(db, {'name': 'Monitor'})
            db.commit()

        with second.session() as db:
            self.assertEqual(list_items(db), [])

    def test_in_memory_engine_uses_one_shared_connection(self) -> None:
        engine = build_engine('sqlite+pysqlite:///:memory:')
        self.addCleanup(engine.dispose)

        self.assertIsInstance(engine.pool, StaticPool)
        with engine.connect() as first, engine.connect() as second:
            self.assertIs(first.connection.dbapi_connection, second.connection.dbapi_connection)

    def test_unknown_seed_field_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            DomainStore({'items': [{'id': 1, 'name': 'Cable', 'colour': 'black'}]})


if __name__ == '__main__':
    unittest.main()
