from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from opsdesk.db import get_db
from opsdesk.dependencies import found_or_404, result_or_http
from opsdesk.schemas import IssueStockIn, MarkUsedIn, ReturnStockIn, SaveModelIn
from opsdesk.services import catalog_service, stock_service

router = APIRouter(prefix='/inventory', tags=['inventory'])


@router.get('/items')
def list_items(active_only: bool = False, db: Session = Depends(get_db)):
    return [item.to_record() for item in catalog_service.list_items(db, active_only=active_only)]


@router.get('/items/low-stock')
def low_stock_items(db: Session = Depends(get_db)):
    return [item.to_record() for item in stock_service.get_low_stock_items(db)]


@router.post('/items', status_code=201)
def create_item(payload: dict[str, Any], db: Session = Depends(get_db)):
    item = catalog_service.add_item(db, payload)
    db.commit()
    return item.to_record()


@router.get('/items/{item_id}')
def get_item(item_id: int, db: Session = Depends(get_db)):
    item = found_or_404(catalog_service.get_item(db, item_id), 'Item')
    return {**item.to_record(), 'available': stock_service.get_available_stock(db, item_id)}


@router.patch('/items/{item_id}')
def update_item(item_id: int, payload: dict[str, Any], db: Session = Depends(get_db)):
    change_entries = payload.pop('audit_entries', ())
    item = found_or_404(catalog_service.update_item(db, item_id, payload, change_entries), 'Item')
    db.commit()
    return item.to_record()


@router.delete('/items/{item_id}')
def delete_item(item_id: int, db: Session = Depends(get_db)):
    response = result_or_http(catalog_service.delete_item(db, item_id))
    db.commit()
    return response


@router.post('/stock/issue')
def issue_stock(payload: IssueStockIn, db: Session = Depends(get_db)):
    response = result_or_http(stock_service.issue_stock(db, **payload.model_dump()))
    db.commit()
    return response


@router.post('/stock/return')
def return_stock(payload: ReturnStockIn, db: Session = Depends(get_db)):
    response = result_or_http(stock_service.return_stock(db, **payload.model_dump()))
    db.commit()
    return response


@router.post('/stock/transactions/{transaction_id}/use')
def mark_stock_used(transaction_id: str, payload: MarkUsedIn, db: Session = Depends(get_db)):
    response = result_or_http(stock_service.mark_stock_used(db, transaction_id, payload.job_id, payload.quantity))
    db.commit()
    return response


@router.get('/stock/transactions')
def list_stock_transactions(
    user_id: int | None = None,
    item_id: int | None = None,
    kind: str | None = None,
    db: Session = Depends(get_db),
):
    transactions = stock_service.list_stock_transactions(db, user_id=user_id, item_id=item_id, kind=kind)
    return [transaction.to_record() for transaction in transactions]


@router.get('/stock/users/{user_id}')
def user_stock(user_id: int, db: Session = Depends(get_db)):
    return stock_service.get_user_stock(db, user_id)


@router.get('/stock/valuation')
def stock_valuation(method: str = 'FIFO', db: Session = Depends(get_db)):
    return stock_service.get_stock_valuation(db, method)


@router.get('/stock/summary')
def stock_summary(db: Session = Depends(get_db)):
    return stock_service.get_stock_summary_by_category(db)


@router.get('/engineers')
def engineers(db: Session = Depends(get_db)):
    return [user.to_record() for user in stock_service.get_engineers(db)]


@router.get('/addons')
def list_addons(active_only: bool = False, db: Session = Depends(get_db)):
    return [addon.to_record() for addon in catalog_service.list_addons(db, active_only=active_only)]


@router.post('/addons', status_code=201)
def create_addon(payload: dict[str, Any], db: Session = Depends(get_db)):
    addon = catalog_service.add_addon(db, payload)
    db.commit()
    return addon.to_record()


@router.patch('/addons/{addon_id}')
def update_addon(addon_id: int, payload: dict[str, Any], db: Session = Depends(get_db)):
    addon = found_or_404(catalog_service.update_addon(db, addon_id, payload), 'Addon')
    db.commit()
    return addon.to_record()


@router.delete('/addons/{addon_id}', status_code=204)
def delete_addon(addon_id: int, db: Session = Depends(get_db)):
    catalog_service.delete_addon(db, addon_id)
    db.commit()


@router.get('/combinations')
def list_combinations(db: Session = Depends(get_db)):
    return [combination.to_record() for combination in catalog_service.list_combinations(db)]


@router.post('/combinations', status_code=201)
def create_combination(payload: dict[str, Any], db: Session = Depends(get_db)):
    combination = catalog_service.add_combination(db, payload)
    db.commit()
    return combination.to_record()


@router.patch('/combinations/{combination_id}')
def update_combination(combination_id: int, payload: dict[str, Any], db: Session = Depends(get_db)):
    combination = found_or_404(catalog_service.update_combination(db, combination_id, payload), 'Combination')
    db.commit()
    return combination.to_record()


@router.delete('/combinations/{combination_id}', status_code=204)
def delete_combination(combination_id: int, db: Session = Depends(get_db)):
    catalog_service.delete_combination(db, combination_id)
    db.commit()


@router.get('/compatible-parts')
def compatible_parts(selected: list[int] = Query(default=[]), db: Session = Depends(get_db)):
    return [item.to_record() for item in catalog_service.get_compatible_parts(db, selected)]


@router.get('/models')
def list_saved_models(db: Session = Depends(get_db)):
    return [model.to_record() for model in catalog_service.list_saved_models(db)]


@router.post('/models', status_code=201)
def save_model(payload: SaveModelIn, db: Session = Depends(get_db)):
    model = catalog_service.save_model(db, name=payload.name, parts=payload.parts)
    db.commit()
    return model.to_record()


@router.delete('/models/{model_id}', status_code=204)
def delete_model(model_id: str, db: Session = Depends(get_db)):
    catalog_service.delete_model(db, model_id)
    db.commit()
