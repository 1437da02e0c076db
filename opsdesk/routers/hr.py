from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from opsdesk.db import get_db
from opsdesk.dependencies import found_or_404, result_or_http
from opsdesk.schemas import LeaveApprovalIn, LeaveBalanceIn, LeaveRejectionIn
from opsdesk.services import leave_service

router = APIRouter(prefix='/hr', tags=['hr'])


@router.get('/leaves')
def list_leaves(user_id: int | None = None, status: str | None = None, db: Session = Depends(get_db)):
    return [leave.to_record() for leave in leave_service.list_leave_requests(db, user_id=user_id, status=status)]


@router.post('/leaves', status_code=201)
def create_leave(payload: dict[str, Any], db: Session = Depends(get_db)):
    leave = leave_service.add_leave_request(db, payload)
    db.commit()
    return leave.to_record()


@router.get('/leaves/days')
def leave_days(
    start: date,
    end: date,
    exclude_weekends: bool = True,
    half_day: str | None = None,
    db: Session = Depends(get_db),
):
    return {'days': leave_service.calculate_leave_days(db, start, end, exclude_weekends, half_day)}


@router.get('/leaves/{leave_id}')
def get_leave(leave_id: int, db: Session = Depends(get_db)):
    return found_or_404(leave_service.get_leave_request(db, leave_id), 'Leave request').to_record()


@router.patch('/leaves/{leave_id}')
def update_leave(leave_id: int, payload: dict[str, Any], db: Session = Depends(get_db)):
    leave = found_or_404(leave_service.update_leave_request(db, leave_id, payload), 'Leave request')
    db.commit()
    return leave.to_record()


@router.delete('/leaves/{leave_id}', status_code=204)
def delete_leave(leave_id: int, db: Session = Depends(get_db)):
    leave_service.delete_leave_request(db, leave_id)
    db.commit()


@router.post('/leaves/{leave_id}/approve')
def approve_leave(leave_id: int, payload: LeaveApprovalIn, db: Session = Depends(get_db)):
    response = result_or_http(
        leave_service.approve_leave(db, leave_id, payload.approver_name, payload.approver_role, payload.comments)
    )
    db.commit()
    return response


@router.post('/leaves/{leave_id}/reject')
def reject_leave(leave_id: int, payload: LeaveRejectionIn, db: Session = Depends(get_db)):
    response = result_or_http(
        leave_service.reject_leave(db, leave_id, payload.approver_name, payload.approver_role, payload.reason)
    )
    db.commit()
    return response


@router.get('/holidays')
def list_holidays(db: Session = Depends(get_db)):
    return [holiday.to_record() for holiday in leave_service.list_holidays(db)]


@router.post('/holidays', status_code=201)
def create_holiday(payload: dict[str, Any], db: Session = Depends(get_db)):
    holiday = leave_service.add_holiday(db, payload)
    db.commit()
    return holiday.to_record()


@router.post('/holidays/bulk', status_code=201)
def create_holidays(payload: list[dict[str, Any]], db: Session = Depends(get_db)):
    holidays = leave_service.add_holidays_bulk(db, payload)
    db.commit()
    return [holiday.to_record() for holiday in holidays]


@router.patch('/holidays/{holiday_id}')
def update_holiday(holiday_id: int, payload: dict[str, Any], db: Session = Depends(get_db)):
    holiday = found_or_404(leave_service.update_holiday(db, holiday_id, payload), 'Holiday')
    db.commit()
    return holiday.to_record()


@router.delete('/holidays/{holiday_id}', status_code=204)
def delete_holiday(holiday_id: int, db: Session = Depends(get_db)):
    leave_service.delete_holiday(db, holiday_id)
    db.commit()


@router.get('/balances/{user_id}')
def leave_balance(user_id: int, db: Session = Depends(get_db)):
    return leave_service.get_user_leave_balance(db, user_id)


@router.put('/balances/{user_id}')
def set_leave_balance(user_id: int, payload: LeaveBalanceIn, db: Session = Depends(get_db)):
    user = found_or_404(
        leave_service.update_user_leave_balance(db, user_id, payload.leave_type, payload.balance), 'User'
    )
    db.commit()
    return dict(user.leave_balance)


@router.get('/policy')
def leave_policy(db: Session = Depends(get_db)):
    return leave_service.get_leave_policy(db)


@router.put('/policy')
def update_leave_policy(payload: dict[str, Any], db: Session = Depends(get_db)):
    document = leave_service.update_leave_policy(db, payload)
    db.commit()
    return document
