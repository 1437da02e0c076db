from __future__ import annotations

import calendar
import logging
from collections.abc import Mapping
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from opsdesk.models import AMCContract, AMCStatus, Order, OrderStatus
from opsdesk.services.estimate_service import update_order
from opsdesk.services.identifier_service import generate_amc_id
from opsdesk.services.record_utils import apply_patch, coerce_fields

logger = logging.getLogger(__name__)

REMINDER_THRESHOLDS = (30, 7)
EXPIRING_WINDOW_DAYS = 30

_MANAGED = frozenset(
    {'id', 'qr_code_id', 'status', 'renewal_reminders', 'service_history', 'created_at', 'updated_at'}
)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _today() -> date:
    return _now().date()


def _fresh_reminders() -> list[dict]:
    return [{'days_before_expiry': days, 'sent': False} for days in REMINDER_THRESHOLDS]


def generate_qr_code_id(amc_id: str, device_serial: str) -> str:
    return f'{amc_id}-{device_serial}'


def calculate_end_date(start: date, period_months: int) -> date:
    """Last day covered by a contract starting on ``start``."""
    month_index = start.month - 1 + int(period_months)
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day) - timedelta(days=1)


def list_amcs(db: Session) -> list[AMCContract]:
    return db.execute(select(AMCContract).order_by(AMCContract.created_at.asc(), AMCContract.id.asc())).scalars().all()


def get_amc(db: Session, amc_id: str) -> AMCContract | None:
    return db.get(AMCContract, amc_id)


def add_amc(db: Session, data: Mapping) -> AMCContract:
    raw = dict(data)
    period_months = raw.pop('period_months', None)
    values = coerce_fields(AMCContract, raw, exclude=_MANAGED)
    if not values.get('device_serial'):
        raise ValueError('Device serial is required')
    if period_months and not values.get('end_date'):
        values['end_date'] = calculate_end_date(values.get('start_date') or _today(), int(period_months))
    values.setdefault('start_date', _today())
    if not values.get('end_date'):
        raise ValueError('End date is required')

    amc_id = generate_amc_id(db)
    amc = AMCContract(
        **values,
        id=amc_id,
        qr_code_id=generate_qr_code_id(amc_id, values['device_serial']),
        status=AMCStatus.ACTIVE,
        renewal_reminders=_fresh_reminders(),
        service_history=[],
        created_at=_now(),
    )
    db.add(amc)
    db.flush()
    logger.info('AMC %s created for %s', amc.id, amc.customer)
    return amc


def update_amc(db: Session, amc_id: str, patch: Mapping) -> AMCContract | None:
    amc = db.get(AMCContract, amc_id)
    if not amc:
        return None
    apply_patch(amc, patch, protected=frozenset({'id', 'qr_code_id', 'created_at'}))
    amc.updated_at = _now()
    db.flush()
    return amc


def delete_amc(db: Session, amc_id: str) -> None:
    amc = db.get(AMCContract, amc_id)
    if amc:
        db.delete(amc)
        db.flush()


def renew_amc(db: Session, amc_id: str, new_end_date: date | str, new_amount: Decimal | float | None = None) -> AMCContract | None:
    amc = db.get(AMCContract, amc_id)
    if not amc:
        return None
    patch = coerce_fields(AMCContract, {'end_date': new_end_date, 'amc_amount': new_amount})
    amc.start_date = amc.end_date
    amc.end_date = patch['end_date']
    if patch['amc_amount']:
        amc.amc_amount = patch['amc_amount']
    amc.status = AMCStatus.ACTIVE
    amc.renewal_reminders = _fresh_reminders()
    amc.updated_at = _now()
    db.flush()
    logger.info('AMC %s renewed until %s', amc.id, amc.end_date)
    return amc


def get_amc_by_qr(db: Session, qr_code_id: str) -> AMCContract | None:
    return db.execute(select(AMCContract).where(AMCContract.qr_code_id == qr_code_id)).scalars().first()


def get_amc_by_mobile(db: Session, mobile: str) -> AMCContract | None:
    return db.execute(select(AMCContract).where(AMCContract.mobile == mobile)).scalars().first()


def get_upcoming_renewals(db: Session, within_days: int = 30) -> list[AMCContract]:
    today = _today()
    horizon = today + timedelta(days=within_days)
    return db.execute(
        select(AMCContract)
        .where(
            AMCContract.status == AMCStatus.ACTIVE,
            AMCContract.end_date >= today,
            AMCContract.end_date <= horizon,
        )
        .order_by(AMCContract.end_date.asc())
    ).scalars().all()


def is_amc_active(amc: AMCContract | None) -> bool:
    if amc is None:
        return False
    return amc.end_date >= _today() and amc.status == AMCStatus.ACTIVE


def contract_status(amc: AMCContract) -> str:
    days_to_expiry = (amc.end_date - _today()).days
    if amc.status == AMCStatus.EXPIRED or days_to_expiry < 0:
        return 'Expired'
    if days_to_expiry <= EXPIRING_WINDOW_DAYS:
        return 'Expiring'
    return 'Active'


def add_service_entry(db: Session, amc_id: str, entry: Mapping) -> AMCContract | None:
    amc = db.get(AMCContract, amc_id)
    if not amc:
        return None
    amc.service_history = [*(amc.service_history or []), {**entry, 'date': _today().isoformat()}]
    amc.updated_at = _now()
    db.flush()
    return amc


def convert_order_to_amc(db: Session, order_id: str, amc_data: Mapping) -> AMCContract | None:
    order = db.get(Order, order_id)
    if not order:
        return None

    amc = add_amc(
        db,
        {
            **amc_data,
            'order_id': order.id,
            'customer': order.customer,
            'mobile': order.mobile,
            'email': order.email,
            'address': order.address,
        },
    )
    update_order(db, order.id, {'status': OrderStatus.AMC_CONVERTED, 'amc_id': amc.id})
    return amc
