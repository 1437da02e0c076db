from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from opsdesk.db import get_db
from opsdesk.dependencies import found_or_404, result_or_http
from opsdesk.schemas import OTPIn, StatusIn
from opsdesk.services import complaint_service, rma_service

router = APIRouter(prefix='/service', tags=['service'])


@router.get('/complaints')
def list_complaints(status: str | None = None, db: Session = Depends(get_db)):
    return [complaint.to_record() for complaint in complaint_service.list_complaints(db, status=status)]


@router.post('/complaints', status_code=201)
def create_complaint(payload: dict[str, Any], db: Session = Depends(get_db)):
    complaint = complaint_service.add_complaint(db, payload)
    db.commit()
    return complaint.to_record()


@router.get('/complaints/{job_id}')
def get_complaint(job_id: str, db: Session = Depends(get_db)):
    complaint = found_or_404(complaint_service.get_complaint(db, job_id), 'Job')
    next_status = complaint_service.get_next_complaint_status(complaint.status)
    return {**complaint.to_record(), 'next_status': next_status.value if next_status else None}


@router.patch('/complaints/{job_id}')
def update_complaint(job_id: str, payload: dict[str, Any], db: Session = Depends(get_db)):
    complaint = found_or_404(complaint_service.update_complaint(db, job_id, payload), 'Job')
    db.commit()
    return complaint.to_record()


@router.post('/complaints/{job_id}/status')
def update_complaint_status(job_id: str, payload: StatusIn, db: Session = Depends(get_db)):
    complaint = found_or_404(complaint_service.update_complaint_status(db, job_id, payload.status), 'Job')
    db.commit()
    return complaint.to_record()


@router.delete('/complaints/{job_id}', status_code=204)
def delete_complaint(job_id: str, db: Session = Depends(get_db)):
    complaint_service.delete_complaint(db, job_id)
    db.commit()


@router.get('/rma')
def list_rmas(status: str | None = None, db: Session = Depends(get_db)):
    return [rma.to_record() for rma in rma_service.list_rmas(db, status=status)]


@router.post('/rma', status_code=201)
def create_rma(payload: dict[str, Any], db: Session = Depends(get_db)):
    rma = rma_service.add_rma(db, payload)
    db.commit()
    return rma.to_record()


@router.get('/rma/{rma_id}')
def get_rma(rma_id: str, db: Session = Depends(get_db)):
    rma = found_or_404(rma_service.get_rma(db, rma_id), 'RMA')
    next_status = rma_service.get_next_rma_status(rma.status)
    return {**rma.to_record(), 'next_status': next_status.value if next_status else None}


@router.patch('/rma/{rma_id}')
def update_rma(rma_id: str, payload: dict[str, Any], db: Session = Depends(get_db)):
    rma = found_or_404(rma_service.update_rma(db, rma_id, payload), 'RMA')
    db.commit()
    return rma.to_record()


@router.delete('/rma/{rma_id}', status_code=204)
def delete_rma(rma_id: str, db: Session = Depends(get_db)):
    rma_service.delete_rma(db, rma_id)
    db.commit()


@router.post('/rma/{rma_id}/status')
def update_rma_status(rma_id: str, payload: StatusIn, db: Session = Depends(get_db)):
    response = result_or_http(rma_service.update_rma_status(db, rma_id, payload.status))
    db.commit()
    return response


@router.post('/rma/{rma_id}/otp')
def generate_rma_otp(rma_id: str, db: Session = Depends(get_db)):
    otp = found_or_404(rma_service.generate_rma_otp(db, rma_id), 'RMA')
    db.commit()
    return {'rma_id': rma_id, 'otp': otp}


@router.post('/rma/{rma_id}/verify-otp')
def verify_rma_otp(rma_id: str, payload: OTPIn, db: Session = Depends(get_db)):
    response = result_or_http(rma_service.verify_rma_otp(db, rma_id, payload.otp))
    db.commit()
    return response


@router.post('/rma/{rma_id}/deliver')
def deliver_rma(rma_id: str, payload: OTPIn, db: Session = Depends(get_db)):
    result = rma_service.deliver_rma(db, rma_id, payload.otp)
    db.commit()
    return result_or_http(result)
