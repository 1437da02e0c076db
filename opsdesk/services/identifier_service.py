from __future__ import annotations

import re
import secrets
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from opsdesk.models import AMCContract, Complaint, Estimate, IdSequence, Order, RMARecord, StockTransaction

ESTIMATE_PREFIX = 'EST'
ORDER_PREFIX = 'ORD'
AMC_PREFIX = 'AMC'
JOB_PREFIX = 'JOB'
RMA_PREFIX = 'RMA'
STOCK_PREFIX = 'STK'

PREFIX_MODELS = {
    ESTIMATE_PREFIX: Estimate,
    ORDER_PREFIX: Order,
    AMC_PREFIX: AMCContract,
    JOB_PREFIX: Complaint,
    RMA_PREFIX: RMARecord,
    STOCK_PREFIX: StockTransaction,
}

_DISPLAY_ID_RE = re.compile(r'^(?P<prefix>[A-Z]+)-(?P<year>\d{4})-(?P<number>\d+)$')


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def parse_display_id(value: str) -> tuple[str, int, int] | None:
    match = _DISPLAY_ID_RE.match(value or '')
    if not match:
        return None
    return match.group('prefix'), int(match.group('year')), int(match.group('number'))


def format_display_id(prefix: str, year: int, number: int) -> str:
    return f'{prefix}-{year}-{number:03d}'


def _highest_existing(db: Session, prefix: str, year: int) -> int:
    model = PREFIX_MODELS.get(prefix)
    if model is None:
        return 0
    ids = db.execute(select(model.id).where(model.id.like(f'{prefix}-{year}-%'))).scalars().all()
    numbers = [parsed[2] for parsed in (parse_display_id(value) for value in ids) if parsed]
    return max(numbers, default=0)


def _sequence(db: Session, prefix: str, year: int) -> IdSequence:
    seq = db.get(IdSequence, (prefix, year))
    if seq is None:
        # Continue after whatever the fixture or caller already used.
        seq = IdSequence(prefix=prefix, year=year, last_value=_highest_existing(db, prefix, year))
        db.add(seq)
        db.flush()
    return seq


def next_sequence_number(db: Session, prefix: str, *, year: int | None = None) -> tuple[int, int]:
    year = year or _now().year
    seq = _sequence(db, prefix, year)
    seq.last_value += 1
    db.flush()
    return year, seq.last_value


def next_display_id(db: Session, prefix: str, *, year: int | None = None) -> str:
    year, number = next_sequence_number(db, prefix, year=year)
    return format_display_id(prefix, year, number)


def observe_display_id(db: Session, value: str) -> None:
    """Raise the matching counter so a caller-supplied id is never handed out again."""
    parsed = parse_display_id(value)
    if not parsed:
        return
    prefix, year, number = parsed
    seq = _sequence(db, prefix, year)
    if number > seq.last_value:
        seq.last_value = number
        db.flush()


def generate_estimate_id(db: Session) -> str:
    return next_display_id(db, ESTIMATE_PREFIX)


def generate_order_id(db: Session) -> str:
    return next_display_id(db, ORDER_PREFIX)


def generate_amc_id(db: Session) -> str:
    return next_display_id(db, AMC_PREFIX)


def generate_job_id(db: Session) -> str:
    return next_display_id(db, JOB_PREFIX)


def generate_rma_id(db: Session) -> str:
    return next_display_id(db, RMA_PREFIX)


def generate_stock_transaction_id(db: Session) -> str:
    return next_display_id(db, STOCK_PREFIX)


def opaque_id(prefix: str) -> str:
    return f'{prefix}-{secrets.token_hex(6).upper()}'
