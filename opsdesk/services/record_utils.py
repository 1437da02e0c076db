from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation

from sqlalchemy import Date, Enum as SQLEnum, Float, Numeric
from sqlalchemy.orm import Mapper

from opsdesk.models import Base, UTCDateTime


def _columns(model: type[Base]) -> dict:
    mapper: Mapper = model.__mapper__
    return dict(mapper.columns.items())


def _coerce_value(column, value):
    if value is None:
        return None
    column_type = column.type
    if isinstance(column_type, SQLEnum) and column_type.enum_class is not None:
        return column_type.enum_class(value)
    if isinstance(column_type, UTCDateTime):
        if isinstance(value, datetime):
            return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    if isinstance(column_type, Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        return date.fromisoformat(str(value)[:10])
    if isinstance(column_type, Float):
        return float(value)
    if isinstance(column_type, Numeric):
        try:
            return Decimal(str(value))
        except InvalidOperation as exc:
            raise ValueError(f'Invalid amount for {column.key}: {value!r}') from exc
    return value


def coerce_fields(model: type[Base], data: Mapping, *, exclude: frozenset[str] = frozenset()) -> dict:
    """Map raw field values onto the column types of ``model``.

    Unknown field names raise ``ValueError``.
    """
    columns = _columns(model)
    coerced = {}
    for key, value in data.items():
        if key in exclude:
            continue
        column = columns.get(key)
        if column is None:
            raise ValueError(f'Unknown field for {model.__name__}: {key}')
        try:
            coerced[key] = _coerce_value(column, value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f'Invalid value for {model.__name__}.{key}: {value!r}') from exc
    return coerced


def apply_patch(obj: Base, patch: Mapping, *, protected: frozenset[str] = frozenset({'id'})) -> list[str]:
    values = coerce_fields(type(obj), patch, exclude=protected)
    for key, value in values.items():
        setattr(obj, key, value)
    return list(values)


def next_int_id(values) -> int:
    return max([int(v) for v in values] + [0]) + 1
