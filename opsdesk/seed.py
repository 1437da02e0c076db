from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Date
from sqlalchemy.orm import Session

from opsdesk.models import (
    Addon,
    AMCContract,
    Base,
    Combination,
    Complaint,
    Department,
    Estimate,
    Holiday,
    Item,
    LeavePolicy,
    LeaveRequest,
    Notification,
    Order,
    RMARecord,
    Role,
    StockTransaction,
    User,
    UTCDateTime,
)
from opsdesk.services.identifier_service import parse_display_id
from opsdesk.services.record_utils import coerce_fields

DEFAULT_FIXTURE_PATH = Path(__file__).resolve().parent / 'fixtures' / 'demo_seed.json'

# Insertion order matters only for readability of the seeded collections.
SEED_COLLECTIONS: tuple[tuple[str, type[Base]], ...] = (
    ('roles', Role),
    ('departments', Department),
    ('items', Item),
    ('users', User),
    ('addons', Addon),
    ('combinations', Combination),
    ('estimates', Estimate),
    ('orders', Order),
    ('amc_contracts', AMCContract),
    ('complaints', Complaint),
    ('rma_records', RMARecord),
    ('stock_transactions', StockTransaction),
    ('leave_requests', LeaveRequest),
    ('holidays', Holiday),
    ('notifications', Notification),
)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def load_fixture(path: str | Path | None = None) -> dict:
    fixture_path = Path(path) if path else DEFAULT_FIXTURE_PATH
    with fixture_path.open(encoding='utf-8') as handle:
        return json.load(handle)


def _fill_required_timestamps(model: type[Base], values: dict) -> None:
    now = _now()
    for key, column in model.__mapper__.columns.items():
        if key in values or column.nullable or column.default is not None:
            continue
        if isinstance(column.type, UTCDateTime):
            values[key] = now
        elif isinstance(column.type, Date):
            values[key] = now.date()


def build_record(model: type[Base], raw: Mapping) -> Base:
    values = coerce_fields(model, raw)
    _fill_required_timestamps(model, values)
    if model is StockTransaction and not values.get('seq'):
        parsed = parse_display_id(values['id'])
        values['seq'] = parsed[2] if parsed else 0
    return model(**values)


def seed(db: Session, data: Mapping) -> dict[str, int]:
    counts: dict[str, int] = {}
    for key, model in SEED_COLLECTIONS:
        rows = data.get(key) or []
        for raw in rows:
            db.add(build_record(model, raw))
        counts[key] = len(rows)
        db.flush()

    policy = data.get('leave_policy')
    if policy is not None:
        db.add(LeavePolicy(id=1, document=dict(policy)))
        counts['leave_policy'] = 1
    db.flush()
    return counts


if __name__ == '__main__':
    from opsdesk.store import DomainStore

    store = DomainStore.from_fixture()
    with store.session() as db:
        print({key: len(db.query(model).all()) for key, model in SEED_COLLECTIONS})
