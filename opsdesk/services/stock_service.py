from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from opsdesk.config import settings
from opsdesk.models import Item, StockTransaction, StockTransactionStatus, StockTransactionType, User
from opsdesk.services.identifier_service import STOCK_PREFIX, format_display_id, next_sequence_number
from opsdesk.services.results import ErrorKind, OperationResult, fail, ok

logger = logging.getLogger(__name__)

VALUATION_METHODS = ('FIFO', 'LIFO')


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _validate_quantity(quantity: int) -> int:
    quantity = int(quantity)
    if quantity <= 0:
        raise ValueError('Quantity must be greater than zero')
    return quantity


def get_available_stock(db: Session, item_id: int) -> int:
    item = db.get(Item, item_id)
    if not item:
        return 0
    return item.stock_qty - (item.issued_qty or 0)


def _record_transaction(
    db: Session,
    *,
    kind: StockTransactionType,
    status: StockTransactionStatus,
    item: Item,
    user: User,
    quantity: int,
    issued_by: int | None,
    serial_numbers: Iterable[str] | None,
    batch_number: str | None,
    job_id: str | None,
    notes: str | None,
    condition: str,
) -> StockTransaction:
    year, number = next_sequence_number(db, STOCK_PREFIX)
    issuer = db.get(User, issued_by) if issued_by else None
    transaction = StockTransaction(
        id=format_display_id(STOCK_PREFIX, year, number),
        seq=number,
        type=kind,
        status=status,
        item_id=item.id,
        item_name=item.name,
        item_sku=item.sku or item.part_id,
        quantity=quantity,
        user_id=user.id,
        user_name=user.name,
        issued_by=issued_by or 1,
        issued_by_name=issuer.name if issuer else 'Admin',
        date=_now(),
        serial_numbers=list(serial_numbers) if serial_numbers else None,
        batch_number=batch_number or None,
        job_id=job_id or None,
        notes=notes or '',
        condition=condition,
    )
    db.add(transaction)
    return transaction


def issue_stock(
    db: Session,
    *,
    item_id: int,
    user_id: int,
    quantity: int,
    issued_by: int | None = None,
    serial_numbers: Iterable[str] | None = None,
    batch_number: str | None = None,
    job_id: str | None = None,
    notes: str | None = None,
) -> OperationResult:
    quantity = _validate_quantity(quantity)
    item = db.get(Item, item_id)
    user = db.get(User, user_id)
    if not item or not user:
        return fail(ErrorKind.INVALID_REFERENCE, 'Invalid item or user')

    available = get_available_stock(db, item_id)
    if quantity > available:
        logger.warning('Issue of %s x item %s refused, %s available', quantity, item_id, available)
        return fail(ErrorKind.INSUFFICIENT_STOCK, f'Only {available} units available')

    transaction = _record_transaction(
        db,
        kind=StockTransactionType.ISSUE,
        status=StockTransactionStatus.ISSUED,
        item=item,
        user=user,
        quantity=quantity,
        issued_by=issued_by,
        serial_numbers=serial_numbers,
        batch_number=batch_number,
        job_id=job_id,
        notes=notes,
        condition='Good',
    )
    item.issued_qty = (item.issued_qty or 0) + quantity
    db.flush()
    logger.info('Issued %s x item %s to user %s (%s)', quantity, item_id, user_id, transaction.id)
    return ok('Stock issued successfully', transaction=transaction)


def return_stock(
    db: Session,
    *,
    item_id: int,
    user_id: int,
    quantity: int,
    issued_by: int | None = None,
    serial_numbers: Iterable[str] | None = None,
    batch_number: str | None = None,
    condition: str = 'Good',
    notes: str | None = None,
) -> OperationResult:
    quantity = _validate_quantity(quantity)
    item = db.get(Item, item_id)
    user = db.get(User, user_id)
    if not item or not user:
        return fail(ErrorKind.INVALID_REFERENCE, 'Invalid item or user')

    held = get_user_stock_for_item(db, user_id, item_id)
    if quantity > held:
        logger.warning('Return of %s x item %s refused, user %s holds %s', quantity, item_id, user_id, held)
        return fail(ErrorKind.EXCESS_RETURN, f'User only has {held} units')

    transaction = _record_transaction(
        db,
        kind=StockTransactionType.RETURN,
        status=StockTransactionStatus.RETURNED,
        item=item,
        user=user,
        quantity=quantity,
        issued_by=issued_by,
        serial_numbers=serial_numbers,
        batch_number=batch_number,
        job_id=None,
        notes=notes,
        condition=condition or 'Good',
    )
    item.issued_qty = max(0, (item.issued_qty or 0) - quantity)
    db.flush()
    logger.info('Returned %s x item %s from user %s (%s)', quantity, item_id, user_id, transaction.id)
    return ok('Stock returned successfully', transaction=transaction)


def mark_stock_used(
    db: Session,
    transaction_id: str,
    job_id: str | None,
    quantity: int | None = None,
) -> OperationResult:
    """Record that units of an issued batch were consumed on a job.

    The units stay counted as issued on the item, they just leave the
    engineer's holding. Consuming part of a batch splits it: the issue
    keeps the remainder and a new used issue row carries ``quantity``.
    """
    transaction = db.get(StockTransaction, transaction_id)
    if not transaction:
        return fail(ErrorKind.NOT_FOUND, 'Stock transaction not found')
    if transaction.type != StockTransactionType.ISSUE or transaction.status != StockTransactionStatus.ISSUED:
        return fail(ErrorKind.INVALID_STATE, 'Only issued stock can be marked as used')

    quantity = transaction.quantity if quantity is None else _validate_quantity(quantity)
    if quantity > transaction.quantity:
        raise ValueError(f'Transaction {transaction.id} only covers {transaction.quantity} units')

    held = get_user_stock_for_item(db, transaction.user_id, transaction.item_id)
    if quantity > held:
        return fail(ErrorKind.EXCESS_USAGE, f'User only has {held} units')

    if quantity == transaction.quantity:
        transaction.status = StockTransactionStatus.USED
        transaction.job_id = job_id
        db.flush()
        return ok('Stock marked as used', transaction=transaction)

    transaction.quantity -= quantity
    used = _record_transaction(
        db,
        kind=StockTransactionType.ISSUE,
        status=StockTransactionStatus.USED,
        item=db.get(Item, transaction.item_id),
        user=db.get(User, transaction.user_id),
        quantity=quantity,
        issued_by=transaction.issued_by,
        serial_numbers=None,
        batch_number=transaction.batch_number,
        job_id=job_id,
        notes=f'Used from {transaction.id}',
        condition=transaction.condition,
    )
    db.flush()
    logger.info('%s of %s units from %s used as %s', quantity, quantity + transaction.quantity, transaction.id, used.id)
    return ok('Stock marked as used', transaction=used)


def _ledger(db: Session, *, user_id: int | None = None, item_id: int | None = None, newest_first: bool = True):
    query = select(StockTransaction)
    if user_id is not None:
        query = query.where(StockTransaction.user_id == user_id)
    if item_id is not None:
        query = query.where(StockTransaction.item_id == item_id)
    if newest_first:
        query = query.order_by(StockTransaction.date.desc(), StockTransaction.seq.desc())
    else:
        query = query.order_by(StockTransaction.date.asc(), StockTransaction.seq.asc())
    return db.execute(query).scalars().all()


def list_stock_transactions(
    db: Session,
    *,
    user_id: int | None = None,
    item_id: int | None = None,
    kind: StockTransactionType | str | None = None,
) -> list[StockTransaction]:
    rows = _ledger(db, user_id=user_id, item_id=item_id)
    if kind is not None:
        kind = StockTransactionType(kind)
        rows = [row for row in rows if row.type == kind]
    return rows


def get_user_stock_for_item(db: Session, user_id: int, item_id: int) -> int:
    issued = returned = used = 0
    for row in _ledger(db, user_id=user_id, item_id=item_id):
        if row.type == StockTransactionType.ISSUE:
            issued += row.quantity
        elif row.type == StockTransactionType.RETURN:
            returned += row.quantity
        if row.status == StockTransactionStatus.USED:
            used += row.quantity
    return max(issued - returned - used, 0)


def get_user_stock(db: Session, user_id: int) -> list[dict]:
    holdings: dict[int, dict] = {}
    # Oldest first so serial numbers are added before they are returned.
    for row in _ledger(db, user_id=user_id, newest_first=False):
        entry = holdings.setdefault(
            row.item_id,
            {
                'item_id': row.item_id,
                'item_name': row.item_name,
                'item_sku': row.item_sku,
                'quantity': 0,
                'serial_numbers': [],
            },
        )
        serials = row.serial_numbers or []
        if row.type == StockTransactionType.ISSUE:
            entry['quantity'] += row.quantity
            entry['serial_numbers'].extend(serials)
        if row.type == StockTransactionType.RETURN or row.status == StockTransactionStatus.USED:
            entry['quantity'] -= row.quantity
            entry['serial_numbers'] = [sn for sn in entry['serial_numbers'] if sn not in serials]

    return [entry for entry in holdings.values() if entry['quantity'] > 0]


def get_low_stock_items(db: Session) -> list[Item]:
    items = db.execute(select(Item).order_by(Item.id.asc())).scalars().all()
    return [
        item
        for item in items
        if item.stock_qty - (item.issued_qty or 0) <= (item.reorder_level or settings.default_reorder_level)
    ]


def get_stock_valuation(db: Session, method: str = 'FIFO') -> dict:
    """Value the available stock at purchase price.

    No purchase batches are tracked, so FIFO and LIFO produce the same
    figures; the method is carried through as a label.
    """
    method = method.upper()
    if method not in VALUATION_METHODS:
        raise ValueError(f'Unsupported valuation method: {method}')

    total = Decimal('0')
    lines = []
    for item in db.execute(select(Item).order_by(Item.id.asc())).scalars():
        available = item.stock_qty - (item.issued_qty or 0)
        if available <= 0:
            continue
        unit_value = item.purchase_price or Decimal('0')
        value = unit_value * available
        total += value
        lines.append(
            {
                'item_id': item.id,
                'item_name': item.name,
                'category': item.category,
                'available_qty': available,
                'unit_value': unit_value,
                'total_value': value,
                'method': method,
            }
        )

    return {
        'method': method,
        'total_value': total,
        'items': lines,
        'calculated_at': _now(),
    }


def get_stock_summary_by_category(db: Session) -> list[dict]:
    categories: dict[str, dict] = {}
    for item in db.execute(select(Item).order_by(Item.id.asc())).scalars():
        name = item.category or 'Uncategorized'
        summary = categories.setdefault(
            name,
            {
                'category': name,
                'total_items': 0,
                'total_stock': 0,
                'total_issued': 0,
                'total_value': Decimal('0'),
            },
        )
        summary['total_items'] += 1
        summary['total_stock'] += item.stock_qty or 0
        summary['total_issued'] += item.issued_qty or 0
        summary['total_value'] += (item.purchase_price or Decimal('0')) * (item.stock_qty or 0)
    return list(categories.values())


def get_engineers(db: Session) -> list[User]:
    users = db.execute(select(User).order_by(User.id.asc())).scalars().all()
    return [
        user
        for user in users
        if user.role == 'Engineer'
        or 'service' in (user.department or '').lower()
        or 'field' in (user.department or '').lower()
    ]
