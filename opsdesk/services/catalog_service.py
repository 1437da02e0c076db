from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from opsdesk.models import Addon, Combination, Estimate, Item, SavedModel, StockTransaction
from opsdesk.services.audit_service import trail_entry
from opsdesk.services.identifier_service import opaque_id
from opsdesk.services.record_utils import apply_patch, coerce_fields, next_int_id
from opsdesk.services.results import ErrorKind, OperationResult, fail, ok

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _check_prices(selling_price, purchase_price) -> None:
    if selling_price is not None and purchase_price is not None and selling_price < purchase_price:
        raise ValueError('Selling price cannot be lower than purchase price')


def list_items(db: Session, *, active_only: bool = False) -> list[Item]:
    query = select(Item).order_by(Item.id.asc())
    if active_only:
        query = query.where(Item.is_active.is_(True))
    return db.execute(query).scalars().all()


def get_item(db: Session, item_id: int) -> Item | None:
    return db.get(Item, item_id)


def add_item(db: Session, data: Mapping) -> Item:
    values = coerce_fields(Item, data, exclude=frozenset({'audit_trail'}))
    if not values.get('id'):
        values['id'] = next_int_id(db.execute(select(Item.id)).scalars().all())
    values.setdefault('issued_qty', 0)
    item = Item(**values, audit_trail=[trail_entry('Created')])
    _check_prices(item.selling_price, item.purchase_price)
    db.add(item)
    db.flush()
    logger.info('Item %s created (%s)', item.id, item.name)
    return item


def update_item(
    db: Session,
    item_id: int,
    patch: Mapping,
    change_entries: Iterable[Mapping] = (),
) -> Item | None:
    item = db.get(Item, item_id)
    if not item:
        return None
    values = coerce_fields(Item, patch, exclude=frozenset({'id', 'audit_trail'}))
    _check_prices(
        values.get('selling_price', item.selling_price),
        values.get('purchase_price', item.purchase_price),
    )
    for key, value in values.items():
        setattr(item, key, value)
    item.audit_trail = [*(item.audit_trail or []), *[dict(entry) for entry in change_entries]]
    db.flush()
    return item


def _item_references(db: Session, item_id: int) -> list[str]:
    references = []
    has_transactions = db.execute(
        select(StockTransaction.id).where(StockTransaction.item_id == item_id).limit(1)
    ).scalar_one_or_none()
    if has_transactions:
        references.append('stock transactions')
    combinations = db.execute(select(Combination.parts)).scalars().all()
    if any(item_id in (parts or []) for parts in combinations):
        references.append('combinations')
    estimate_lines = db.execute(select(Estimate.items)).scalars().all()
    if any(line.get('item_id') == item_id for lines in estimate_lines for line in (lines or [])):
        references.append('estimates')
    return references


def delete_item(db: Session, item_id: int) -> OperationResult:
    item = db.get(Item, item_id)
    if not item:
        return fail(ErrorKind.NOT_FOUND, 'Item not found')
    references = _item_references(db, item_id)
    if references:
        logger.warning('Refusing to delete item %s referenced by %s', item_id, ', '.join(references))
        return fail(
            ErrorKind.REFERENCED_ENTITY,
            f'Item is referenced by {", ".join(references)}; deactivate it instead',
        )
    db.delete(item)
    db.flush()
    return ok('Item deleted')


def list_addons(db: Session, *, active_only: bool = False) -> list[Addon]:
    query = select(Addon).order_by(Addon.id.asc())
    if active_only:
        query = query.where(Addon.is_active.is_(True))
    return db.execute(query).scalars().all()


def add_addon(db: Session, data: Mapping) -> Addon:
    values = coerce_fields(Addon, data)
    if not values.get('id'):
        values['id'] = next_int_id(db.execute(select(Addon.id)).scalars().all())
    addon = Addon(**values)
    db.add(addon)
    db.flush()
    return addon


def update_addon(db: Session, addon_id: int, patch: Mapping) -> Addon | None:
    addon = db.get(Addon, addon_id)
    if not addon:
        return None
    apply_patch(addon, patch)
    db.flush()
    return addon


def delete_addon(db: Session, addon_id: int) -> None:
    addon = db.get(Addon, addon_id)
    if addon:
        db.delete(addon)
        db.flush()


def list_combinations(db: Session) -> list[Combination]:
    return db.execute(select(Combination).order_by(Combination.id.asc())).scalars().all()


def _validate_parts(parts) -> list[int]:
    cleaned = list(dict.fromkeys(int(part) for part in parts or []))
    if len(cleaned) < 2:
        raise ValueError('A combination needs at least two parts')
    return cleaned


def add_combination(db: Session, data: Mapping) -> Combination:
    values = coerce_fields(Combination, data)
    values['parts'] = _validate_parts(values.get('parts'))
    if not values.get('id'):
        values['id'] = next_int_id(db.execute(select(Combination.id)).scalars().all())
    combination = Combination(**values)
    db.add(combination)
    db.flush()
    return combination


def update_combination(db: Session, combination_id: int, patch: Mapping) -> Combination | None:
    combination = db.get(Combination, combination_id)
    if not combination:
        return None
    values = coerce_fields(Combination, patch, exclude=frozenset({'id'}))
    values['parts'] = _validate_parts(values.get('parts', combination.parts))
    for key, value in values.items():
        setattr(combination, key, value)
    db.flush()
    return combination


def delete_combination(db: Session, combination_id: int) -> None:
    combination = db.get(Combination, combination_id)
    if combination:
        db.delete(combination)
        db.flush()


def get_compatible_parts(db: Session, selected_part_ids: Iterable[int] | None) -> list[Item]:
    """Items that share an active combination with any selected part.

    With nothing selected, or no matching combination, every item is
    compatible. Selected parts are always part of the result.
    """
    items = list_items(db)
    selected = set(selected_part_ids or [])
    if not selected:
        return items

    compatible: set[int] = set()
    for combination in list_combinations(db):
        if combination.is_active and selected.intersection(combination.parts or []):
            compatible.update(combination.parts)
    if not compatible:
        return items

    compatible.update(selected)
    return [item for item in items if item.id in compatible]


def save_model(db: Session, *, name: str, parts: Iterable) -> SavedModel:
    if not name.strip():
        raise ValueError('Model name is required')
    model = SavedModel(id=opaque_id('MODEL'), name=name.strip(), parts=list(parts), created_at=_now())
    db.add(model)
    db.flush()
    return model


def list_saved_models(db: Session) -> list[SavedModel]:
    return db.execute(select(SavedModel).order_by(SavedModel.created_at.asc())).scalars().all()


def delete_model(db: Session, model_id: str) -> None:
    model = db.get(SavedModel, model_id)
    if model:
        db.delete(model)
        db.flush()
