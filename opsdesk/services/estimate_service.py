from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from opsdesk.models import Estimate, EstimateStatus, Order, OrderStatus, PaymentStatus
from opsdesk.services.audit_service import trail_entry
from opsdesk.services.identifier_service import generate_estimate_id, generate_order_id, observe_display_id
from opsdesk.services.record_utils import apply_patch, coerce_fields

logger = logging.getLogger(__name__)

_ESTIMATE_MANAGED = frozenset({'id', 'version', 'audit_trail', 'created_at', 'updated_at'})
_ORDER_MANAGED = frozenset({'id', 'created_at', 'updated_at'})


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def list_estimates(db: Session, *, status: EstimateStatus | str | None = None) -> list[Estimate]:
    query = select(Estimate).order_by(Estimate.created_at.asc(), Estimate.id.asc())
    if status is not None:
        query = query.where(Estimate.status == EstimateStatus(status))
    return db.execute(query).scalars().all()


def get_estimate(db: Session, estimate_id: str) -> Estimate | None:
    return db.get(Estimate, estimate_id)


def add_estimate(db: Session, data: Mapping) -> Estimate:
    values = coerce_fields(Estimate, data, exclude=_ESTIMATE_MANAGED - {'id'})
    if not (values.get('customer') or '').strip():
        raise ValueError('Customer is required')
    estimate_id = values.pop('id', None)
    if estimate_id:
        observe_display_id(db, estimate_id)
    else:
        estimate_id = generate_estimate_id(db)

    now = _now()
    values['date'] = now.date()
    estimate = Estimate(
        **values,
        id=estimate_id,
        version=1,
        created_at=now,
        audit_trail=[trail_entry('Created', details=f'Estimate created for {values.get("customer")}')],
    )
    db.add(estimate)
    db.flush()
    logger.info('Estimate %s created for %s', estimate.id, estimate.customer)
    return estimate


def update_estimate(db: Session, estimate_id: str, patch: Mapping, action: str = 'Updated') -> Estimate | None:
    estimate = db.get(Estimate, estimate_id)
    if not estimate:
        return None
    apply_patch(estimate, patch, protected=_ESTIMATE_MANAGED)
    estimate.version = (estimate.version or 1) + 1
    estimate.updated_at = _now()
    estimate.audit_trail = [
        *(estimate.audit_trail or []),
        trail_entry(action, details=f'Estimate {action.lower()}'),
    ]
    db.flush()
    return estimate


def delete_estimate(db: Session, estimate_id: str) -> None:
    estimate = db.get(Estimate, estimate_id)
    if estimate:
        db.delete(estimate)
        db.flush()


def convert_to_order(db: Session, estimate_id: str) -> Order | None:
    estimate = db.get(Estimate, estimate_id)
    if not estimate:
        return None

    if estimate.status == EstimateStatus.CONVERTED:
        existing = db.execute(select(Order).where(Order.estimate_id == estimate.id)).scalars().first()
        if existing:
            return existing

    now = _now()
    order = Order(
        id=generate_order_id(db),
        customer=estimate.customer,
        mobile=estimate.mobile,
        email=estimate.email,
        address=estimate.address,
        date=now.date(),
        items=list(estimate.items or []),
        subtotal=estimate.subtotal,
        gst_amount=estimate.gst_amount,
        total=estimate.total,
        payment_status=PaymentStatus.PENDING,
        status=OrderStatus.PENDING,
        estimate_id=estimate.id,
        created_at=now,
    )
    db.add(order)
    update_estimate(db, estimate.id, {'status': EstimateStatus.CONVERTED}, 'Converted to Order')
    logger.info('Estimate %s converted to order %s', estimate.id, order.id)
    return order


def list_orders(db: Session, *, status: OrderStatus | str | None = None) -> list[Order]:
    query = select(Order).order_by(Order.created_at.asc(), Order.id.asc())
    if status is not None:
        query = query.where(Order.status == OrderStatus(status))
    return db.execute(query).scalars().all()


def get_order(db: Session, order_id: str) -> Order | None:
    return db.get(Order, order_id)


def add_order(db: Session, data: Mapping) -> Order:
    values = coerce_fields(Order, data, exclude=_ORDER_MANAGED)
    now = _now()
    values.setdefault('date', now.date())
    order = Order(**values, id=generate_order_id(db), created_at=now)
    db.add(order)
    db.flush()
    return order


def update_order(db: Session, order_id: str, patch: Mapping) -> Order | None:
    order = db.get(Order, order_id)
    if not order:
        return None
    apply_patch(order, patch, protected=_ORDER_MANAGED)
    order.updated_at = _now()
    db.flush()
    return order


def mark_order_paid(db: Session, order_id: str) -> Order | None:
    order = db.get(Order, order_id)
    if not order:
        return None
    return update_order(db, order_id, {'payment_status': PaymentStatus.PAID, 'paid_amount': order.total})


def delete_order(db: Session, order_id: str) -> None:
    order = db.get(Order, order_id)
    if order:
        db.delete(order)
        db.flush()
