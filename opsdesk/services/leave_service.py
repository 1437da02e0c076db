from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from opsdesk.models import Holiday, LeavePolicy, LeaveRequest, LeaveStatus, User
from opsdesk.services.record_utils import apply_patch, coerce_fields, next_int_id
from opsdesk.services.results import ErrorKind, OperationResult, fail, ok

logger = logging.getLogger(__name__)

FINAL_APPROVER_ROLE = 'Admin'

_MANAGED = frozenset({'id', 'status', 'approval_history', 'balance_deducted', 'created_at', 'updated_at'})


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _as_date(value: date | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def list_holidays(db: Session) -> list[Holiday]:
    return db.execute(select(Holiday).order_by(Holiday.date.asc(), Holiday.id.asc())).scalars().all()


def calculate_leave_days(
    db: Session,
    start_date: date | str,
    end_date: date | str,
    exclude_weekends: bool = True,
    half_day: str | None = None,
) -> float:
    start = _as_date(start_date)
    end = _as_date(end_date)
    holiday_dates = set(db.execute(select(Holiday.date)).scalars().all())

    days = 0.0
    current = start
    while current <= end:
        is_weekend = exclude_weekends and current.weekday() >= 5
        if not is_weekend and current not in holiday_dates:
            days += 1
        current += timedelta(days=1)

    if half_day and days > 0:
        days -= 0.5
    return max(0.5, days)


def list_leave_requests(
    db: Session,
    *,
    user_id: int | None = None,
    status: LeaveStatus | str | None = None,
) -> list[LeaveRequest]:
    query = select(LeaveRequest).order_by(LeaveRequest.id.asc())
    if user_id is not None:
        query = query.where(LeaveRequest.user_id == user_id)
    if status is not None:
        query = query.where(LeaveRequest.status == LeaveStatus(status))
    return db.execute(query).scalars().all()


def get_leave_request(db: Session, leave_id: int) -> LeaveRequest | None:
    return db.get(LeaveRequest, leave_id)


def add_leave_request(db: Session, data: Mapping) -> LeaveRequest:
    values = coerce_fields(LeaveRequest, data, exclude=_MANAGED)
    for required in ('user_id', 'leave_type', 'start_date', 'end_date'):
        if values.get(required) in (None, ''):
            raise ValueError(f'{required} is required')
    if values['end_date'] < values['start_date']:
        raise ValueError('End date cannot be before start date')
    if values.get('days') is None:
        values['days'] = calculate_leave_days(
            db,
            values['start_date'],
            values['end_date'],
            get_leave_policy(db).get('exclude_weekends', True),
            values.get('half_day'),
        )
    if not values.get('employee'):
        user = db.get(User, values['user_id'])
        values['employee'] = user.name if user else None

    leave = LeaveRequest(
        **values,
        id=next_int_id(db.execute(select(LeaveRequest.id)).scalars().all()),
        status=LeaveStatus.PENDING,
        approval_history=[],
        balance_deducted=False,
        created_at=_now(),
    )
    db.add(leave)
    db.flush()
    logger.info('Leave request %s filed by user %s for %s day(s)', leave.id, leave.user_id, leave.days)
    return leave


def update_leave_request(db: Session, leave_id: int, patch: Mapping) -> LeaveRequest | None:
    leave = db.get(LeaveRequest, leave_id)
    if not leave:
        return None
    apply_patch(leave, patch, protected=_MANAGED)
    leave.updated_at = _now()
    db.flush()
    return leave


def delete_leave_request(db: Session, leave_id: int) -> None:
    leave = db.get(LeaveRequest, leave_id)
    if leave:
        db.delete(leave)
        db.flush()


def _history_entry(leave: LeaveRequest, *, action: str, approver_name: str, approver_role: str, comments: str) -> dict:
    return {
        'level': len(leave.approval_history or []) + 1,
        'approver_role': approver_role,
        'approver_name': approver_name,
        'action': action,
        'date': _now().isoformat(),
        'comments': comments,
    }


def _deduct_balance(db: Session, leave: LeaveRequest) -> None:
    user = db.get(User, leave.user_id)
    if not user or leave.leave_type not in (user.leave_balance or {}):
        return
    balance = dict(user.leave_balance)
    balance[leave.leave_type] = max(0, balance[leave.leave_type] - leave.days)
    user.leave_balance = balance


def approve_leave(
    db: Session,
    leave_id: int,
    approver_name: str,
    approver_role: str,
    comments: str = '',
) -> OperationResult:
    """Record one approval on a pending request.

    An Admin approval, or any second approval, is final. The leave days
    come off the user's balance once, when the request becomes Approved.
    """
    leave = db.get(LeaveRequest, leave_id)
    if not leave:
        return fail(ErrorKind.NOT_FOUND, 'Leave request not found')
    if leave.status != LeaveStatus.PENDING:
        return fail(ErrorKind.INVALID_STATE, f'Leave request already {leave.status.value.lower()}')

    history = list(leave.approval_history or [])
    is_final = approver_role == FINAL_APPROVER_ROLE or len(history) >= 1
    history.append(
        _history_entry(
            leave,
            action='Approved',
            approver_name=approver_name,
            approver_role=approver_role,
            comments=comments or 'Approved',
        )
    )
    leave.approval_history = history
    leave.updated_at = _now()

    if is_final:
        leave.status = LeaveStatus.APPROVED
        if not leave.balance_deducted:
            _deduct_balance(db, leave)
            leave.balance_deducted = True
    db.flush()
    logger.info('Leave %s approved by %s (%s), final=%s', leave_id, approver_name, approver_role, is_final)
    message = 'Leave approved' if is_final else 'Approval recorded, awaiting final approval'
    return ok(message, leave=leave)


def reject_leave(
    db: Session,
    leave_id: int,
    approver_name: str,
    approver_role: str,
    reason: str = '',
) -> OperationResult:
    leave = db.get(LeaveRequest, leave_id)
    if not leave:
        return fail(ErrorKind.NOT_FOUND, 'Leave request not found')
    if leave.status != LeaveStatus.PENDING:
        return fail(ErrorKind.INVALID_STATE, f'Leave request already {leave.status.value.lower()}')

    leave.approval_history = [
        *(leave.approval_history or []),
        _history_entry(
            leave,
            action='Rejected',
            approver_name=approver_name,
            approver_role=approver_role,
            comments=reason or 'Rejected',
        ),
    ]
    leave.status = LeaveStatus.REJECTED
    leave.updated_at = _now()
    db.flush()
    logger.info('Leave %s rejected by %s (%s)', leave_id, approver_name, approver_role)
    return ok('Leave rejected', leave=leave)


def add_holiday(db: Session, data: Mapping) -> Holiday:
    values = coerce_fields(Holiday, data, exclude=frozenset({'id'}))
    holiday = Holiday(**values, id=next_int_id(db.execute(select(Holiday.id)).scalars().all()))
    db.add(holiday)
    db.flush()
    return holiday


def add_holidays_bulk(db: Session, holidays: Iterable[Mapping]) -> list[Holiday]:
    return [add_holiday(db, data) for data in holidays]


def update_holiday(db: Session, holiday_id: int, patch: Mapping) -> Holiday | None:
    holiday = db.get(Holiday, holiday_id)
    if not holiday:
        return None
    apply_patch(holiday, patch)
    db.flush()
    return holiday


def delete_holiday(db: Session, holiday_id: int) -> None:
    holiday = db.get(Holiday, holiday_id)
    if holiday:
        db.delete(holiday)
        db.flush()


def update_user_leave_balance(db: Session, user_id: int, leave_type: str, new_balance: float) -> User | None:
    user = db.get(User, user_id)
    if not user:
        return None
    if new_balance < 0:
        raise ValueError('Leave balance cannot be negative')
    user.leave_balance = {**(user.leave_balance or {}), leave_type: new_balance}
    db.flush()
    return user


def get_user_leave_balance(db: Session, user_id: int) -> dict:
    user = db.get(User, user_id)
    return dict(user.leave_balance or {}) if user else {}


def get_leave_policy(db: Session) -> dict:
    policy = db.get(LeavePolicy, 1)
    return dict(policy.document) if policy else {}


def update_leave_policy(db: Session, document: Mapping) -> dict:
    policy = db.get(LeavePolicy, 1)
    if policy is None:
        policy = LeavePolicy(id=1, document={})
        db.add(policy)
    policy.document = dict(document)
    db.flush()
    return dict(policy.document)
