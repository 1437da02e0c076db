from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from opsdesk.db import get_db
from opsdesk.dependencies import found_or_404
from opsdesk.models import AMCContract
from opsdesk.schemas import RenewAMCIn
from opsdesk.services import amc_service

router = APIRouter(prefix='/amc', tags=['amc'])


def _amc_record(amc: AMCContract) -> dict:
    return {
        **amc.to_record(),
        'is_active': amc_service.is_amc_active(amc),
        'contract_status': amc_service.contract_status(amc),
    }


@router.get('')
def list_amcs(db: Session = Depends(get_db)):
    return [_amc_record(amc) for amc in amc_service.list_amcs(db)]


@router.post('', status_code=201)
def create_amc(payload: dict[str, Any], db: Session = Depends(get_db)):
    amc = amc_service.add_amc(db, payload)
    db.commit()
    return _amc_record(amc)


@router.get('/renewals')
def upcoming_renewals(within_days: int = 30, db: Session = Depends(get_db)):
    return [_amc_record(amc) for amc in amc_service.get_upcoming_renewals(db, within_days)]


@router.get('/end-date')
def end_date(start: date, months: int):
    return {'start_date': start.isoformat(), 'end_date': amc_service.calculate_end_date(start, months).isoformat()}


@router.get('/by-qr/{qr_code_id}')
def amc_by_qr(qr_code_id: str, db: Session = Depends(get_db)):
    return _amc_record(found_or_404(amc_service.get_amc_by_qr(db, qr_code_id), 'AMC'))


@router.get('/by-mobile/{mobile}')
def amc_by_mobile(mobile: str, db: Session = Depends(get_db)):
    return _amc_record(found_or_404(amc_service.get_amc_by_mobile(db, mobile), 'AMC'))


@router.post('/from-order/{order_id}', status_code=201)
def convert_order(order_id: str, payload: dict[str, Any], db: Session = Depends(get_db)):
    amc = found_or_404(amc_service.convert_order_to_amc(db, order_id, payload), 'Order')
    db.commit()
    return _amc_record(amc)


@router.get('/{amc_id}')
def get_amc(amc_id: str, db: Session = Depends(get_db)):
    return _amc_record(found_or_404(amc_service.get_amc(db, amc_id), 'AMC'))


@router.patch('/{amc_id}')
def update_amc(amc_id: str, payload: dict[str, Any], db: Session = Depends(get_db)):
    amc = found_or_404(amc_service.update_amc(db, amc_id, payload), 'AMC')
    db.commit()
    return _amc_record(amc)


@router.delete('/{amc_id}', status_code=204)
def delete_amc(amc_id: str, db: Session = Depends(get_db)):
    amc_service.delete_amc(db, amc_id)
    db.commit()


@router.post('/{amc_id}/renew')
def renew_amc(amc_id: str, payload: RenewAMCIn, db: Session = Depends(get_db)):
    amc = found_or_404(amc_service.renew_amc(db, amc_id, payload.new_end_date, payload.new_amount), 'AMC')
    db.commit()
    return _amc_record(amc)


@router.post('/{amc_id}/service-entries')
def add_service_entry(amc_id: str, payload: dict[str, Any], db: Session = Depends(get_db)):
    amc = found_or_404(amc_service.add_service_entry(db, amc_id, payload), 'AMC')
    db.commit()
    return _amc_record(amc)
