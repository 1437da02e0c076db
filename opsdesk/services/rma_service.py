from __future__ import annotations

import logging
import secrets
from collections.abc import Mapping
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from opsdesk.config import settings
from opsdesk.models import RMARecord, RMAStatus
from opsdesk.services.identifier_service import generate_rma_id, observe_display_id
from opsdesk.services.record_utils import apply_patch, coerce_fields
from opsdesk.services.results import ErrorKind, OperationResult, fail, ok

logger = logging.getLogger(__name__)

RMA_STATUS_FLOW: dict[RMAStatus, RMAStatus | None] = {
    RMAStatus.INBOX: RMAStatus.IN_COMPANY,
    RMAStatus.IN_COMPANY: RMAStatus.OUTBOX,
    RMAStatus.OUTBOX: RMAStatus.DELIVERED,
    RMAStatus.DELIVERED: None,
}

_STATUS_DATE_FIELDS = {
    RMAStatus.IN_COMPANY: 'in_company_date',
    RMAStatus.OUTBOX: 'outbox_date',
    RMAStatus.DELIVERED: 'delivered_date',
}

_STATUS_ACTIONS = {
    RMAStatus.IN_COMPANY: 'Sent to company/service center',
    RMAStatus.OUTBOX: 'Replacement received from company',
    RMAStatus.DELIVERED: 'Delivered to customer with OTP verification',
}

_MANAGED = frozenset(
    {
        'id',
        'status',
        'inbox_date',
        'in_company_date',
        'outbox_date',
        'delivered_date',
        'otp',
        'otp_generated_at',
        'otp_verified_at',
        'history',
        'created_date',
        'updated_at',
    }
)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _today() -> date:
    return _now().date()


def _history_entry(action: str, status: RMAStatus) -> dict:
    return {'date': _now().isoformat(), 'action': action, 'status': status.value}


def _append_history(rma: RMARecord, action: str) -> None:
    rma.history = [*(rma.history or []), _history_entry(action, rma.status)]


def list_rmas(db: Session, *, status: RMAStatus | str | None = None) -> list[RMARecord]:
    query = select(RMARecord).order_by(RMARecord.created_date.desc(), RMARecord.id.desc())
    if status is not None:
        query = query.where(RMARecord.status == RMAStatus(status))
    return db.execute(query).scalars().all()


def get_rma(db: Session, rma_id: str) -> RMARecord | None:
    return db.get(RMARecord, rma_id)


def add_rma(db: Session, data: Mapping) -> RMARecord:
    values = coerce_fields(RMARecord, data, exclude=_MANAGED - {'id'})
    if not (values.get('customer') or '').strip():
        raise ValueError('Customer is required')
    rma_id = values.pop('id', None)
    if rma_id:
        observe_display_id(db, rma_id)
    else:
        rma_id = generate_rma_id(db)

    today = _today()
    rma = RMARecord(
        **values,
        id=rma_id,
        status=RMAStatus.INBOX,
        inbox_date=today,
        in_company_date=None,
        outbox_date=None,
        delivered_date=None,
        otp='',
        otp_generated_at=None,
        history=[_history_entry('RMA Created - Part received from customer', RMAStatus.INBOX)],
        created_date=today,
        updated_at=_now(),
    )
    db.add(rma)
    db.flush()
    logger.info('RMA %s received from %s', rma.id, rma.customer)
    return rma


def update_rma(db: Session, rma_id: str, patch: Mapping) -> RMARecord | None:
    rma = db.get(RMARecord, rma_id)
    if not rma:
        return None
    apply_patch(rma, patch, protected=_MANAGED)
    rma.updated_at = _now()
    _append_history(rma, 'RMA details updated')
    db.flush()
    return rma


def delete_rma(db: Session, rma_id: str) -> None:
    rma = db.get(RMARecord, rma_id)
    if rma:
        db.delete(rma)
        db.flush()


def get_next_rma_status(current: RMAStatus | str | None) -> RMAStatus | None:
    try:
        return RMA_STATUS_FLOW[RMAStatus(current)]
    except ValueError:
        return None


def update_rma_status(db: Session, rma_id: str, new_status: RMAStatus | str) -> OperationResult:
    """Advance an RMA one step along Inbox -> In-Company -> Outbox -> Delivered.

    Re-applying the current status changes nothing. Delivery needs an OTP
    that was verified with ``verify_rma_otp``.
    """
    status = RMAStatus(new_status)
    rma = db.get(RMARecord, rma_id)
    if not rma:
        return fail(ErrorKind.NOT_FOUND, 'RMA not found')

    if status == rma.status:
        return ok(f'RMA already {status.value}', rma=rma)
    if get_next_rma_status(rma.status) != status:
        return fail(ErrorKind.INVALID_TRANSITION, f'Cannot move RMA from {rma.status.value} to {status.value}')
    if status == RMAStatus.DELIVERED and rma.otp_verified_at is None:
        return fail(ErrorKind.OTP_NOT_VERIFIED, 'Verify the delivery OTP first')

    rma.status = status
    rma.updated_at = _now()
    date_field = _STATUS_DATE_FIELDS[status]
    if getattr(rma, date_field) is None:
        setattr(rma, date_field, _today())
        _append_history(rma, _STATUS_ACTIONS[status])
    if status == RMAStatus.DELIVERED:
        rma.otp = ''
    db.flush()
    logger.info('RMA %s moved to %s', rma.id, status.value)
    return ok(f'RMA moved to {status.value}', rma=rma)


def generate_rma_otp(db: Session, rma_id: str) -> str | None:
    rma = db.get(RMARecord, rma_id)
    if not rma:
        return None
    otp = str(1000 + secrets.randbelow(9000))
    rma.otp = otp
    rma.otp_generated_at = _now()
    rma.otp_verified_at = None
    _append_history(rma, 'OTP generated for delivery')
    db.flush()
    return otp


def verify_rma_otp(db: Session, rma_id: str, entered_otp: str) -> OperationResult:
    rma = db.get(RMARecord, rma_id)
    if not rma:
        return fail(ErrorKind.NOT_FOUND, 'RMA not found')
    if not rma.otp:
        return fail(ErrorKind.NO_OTP, 'OTP not generated')
    if rma.otp != str(entered_otp).strip():
        return fail(ErrorKind.MISMATCH, 'Invalid OTP')
    if _now() - rma.otp_generated_at > timedelta(hours=settings.rma_otp_ttl_hours):
        return fail(ErrorKind.EXPIRED, 'OTP expired')

    rma.otp_verified_at = _now()
    db.flush()
    return ok('OTP verified successfully')


def deliver_rma(db: Session, rma_id: str, entered_otp: str) -> OperationResult:
    rma = db.get(RMARecord, rma_id)
    if not rma:
        return fail(ErrorKind.NOT_FOUND, 'RMA not found')
    if get_next_rma_status(rma.status) != RMAStatus.DELIVERED:
        return fail(ErrorKind.INVALID_TRANSITION, f'Cannot deliver an RMA in {rma.status.value}')

    verified = verify_rma_otp(db, rma_id, entered_otp)
    if not verified:
        logger.warning('Delivery of RMA %s refused: %s', rma_id, verified.message)
        return verified
    return update_rma_status(db, rma_id, RMAStatus.DELIVERED)
