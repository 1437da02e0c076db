from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from opsdesk.db import get_db
from opsdesk.dependencies import found_or_404
from opsdesk.services import estimate_service

router = APIRouter(prefix='/sales', tags=['sales'])


@router.get('/estimates')
def list_estimates(status: str | None = None, db: Session = Depends(get_db)):
    return [estimate.to_record() for estimate in estimate_service.list_estimates(db, status=status)]


@router.post('/estimates', status_code=201)
def create_estimate(payload: dict[str, Any], db: Session = Depends(get_db)):
    estimate = estimate_service.add_estimate(db, payload)
    db.commit()
    return estimate.to_record()


@router.get('/estimates/{estimate_id}')
def get_estimate(estimate_id: str, db: Session = Depends(get_db)):
    return found_or_404(estimate_service.get_estimate(db, estimate_id), 'Estimate').to_record()


@router.patch('/estimates/{estimate_id}')
def update_estimate(estimate_id: str, payload: dict[str, Any], action: str = 'Updated', db: Session = Depends(get_db)):
    estimate = found_or_404(estimate_service.update_estimate(db, estimate_id, payload, action), 'Estimate')
    db.commit()
    return estimate.to_record()


@router.delete('/estimates/{estimate_id}', status_code=204)
def delete_estimate(estimate_id: str, db: Session = Depends(get_db)):
    estimate_service.delete_estimate(db, estimate_id)
    db.commit()


@router.post('/estimates/{estimate_id}/convert', status_code=201)
def convert_estimate(estimate_id: str, db: Session = Depends(get_db)):
    order = found_or_404(estimate_service.convert_to_order(db, estimate_id), 'Estimate')
    db.commit()
    return order.to_record()


@router.get('/orders')
def list_orders(status: str | None = None, db: Session = Depends(get_db)):
    return [order.to_record() for order in estimate_service.list_orders(db, status=status)]


@router.post('/orders', status_code=201)
def create_order(payload: dict[str, Any], db: Session = Depends(get_db)):
    order = estimate_service.add_order(db, payload)
    db.commit()
    return order.to_record()


@router.get('/orders/{order_id}')
def get_order(order_id: str, db: Session = Depends(get_db)):
    return found_or_404(estimate_service.get_order(db, order_id), 'Order').to_record()


@router.patch('/orders/{order_id}')
def update_order(order_id: str, payload: dict[str, Any], db: Session = Depends(get_db)):
    order = found_or_404(estimate_service.update_order(db, order_id, payload), 'Order')
    db.commit()
    return order.to_record()


@router.post('/orders/{order_id}/pay')
def mark_order_paid(order_id: str, db: Session = Depends(get_db)):
    order = found_or_404(estimate_service.mark_order_paid(db, order_id), 'Order')
    db.commit()
    return order.to_record()


@router.delete('/orders/{order_id}', status_code=204)
def delete_order(order_id: str, db: Session = Depends(get_db)):
    estimate_service.delete_order(db, order_id)
    db.commit()
