from __future__ import annotations

import logging
import secrets
from collections.abc import Mapping
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from opsdesk.models import Department, Role, StockTransaction, User, UserStatus
from opsdesk.services.record_utils import apply_patch, coerce_fields, next_int_id
from opsdesk.services.results import ErrorKind, OperationResult, fail, ok

logger = logging.getLogger(__name__)

# Set by registration and login, never by an admin edit.
_USER_PROTECTED = frozenset({'id', 'is_registered', 'last_login'})


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def list_users(db: Session) -> list[User]:
    return db.execute(select(User).order_by(User.id.asc())).scalars().all()


def get_user(db: Session, user_id: int) -> User | None:
    return db.get(User, user_id)


def find_user_by_email(db: Session, email: str) -> User | None:
    return db.execute(select(User).where(func.lower(User.email) == email.strip().lower())).scalars().first()


def add_user(db: Session, data: Mapping) -> User:
    values = coerce_fields(User, data, exclude=_USER_PROTECTED)
    if not (values.get('name') or '').strip():
        raise ValueError('Name is required')
    email = (values.get('email') or '').strip()
    if email and find_user_by_email(db, email):
        raise ValueError(f'A user with email {email} already exists')

    values.setdefault('status', UserStatus.ACTIVE)
    user = User(
        **values,
        id=next_int_id(db.execute(select(User.id)).scalars().all()),
        is_registered=False,
        last_login=None,
    )
    db.add(user)
    db.flush()
    logger.info('User %s (%s) added', user.id, user.name)
    return user


def update_user(db: Session, user_id: int, patch: Mapping) -> User | None:
    user = db.get(User, user_id)
    if not user:
        return None
    email = (patch.get('email') or '').strip()
    if email:
        existing = find_user_by_email(db, email)
        if existing is not None and existing.id != user.id:
            raise ValueError(f'A user with email {email} already exists')
    apply_patch(user, patch, protected=_USER_PROTECTED)
    db.flush()
    return user


def delete_user(db: Session, user_id: int) -> OperationResult:
    user = db.get(User, user_id)
    if not user:
        return fail(ErrorKind.NOT_FOUND, 'User not found')

    referenced = db.execute(
        select(func.count()).select_from(StockTransaction).where(StockTransaction.user_id == user_id)
    ).scalar_one()
    if referenced:
        logger.warning('Refused to delete user %s: %s stock transaction(s) reference them', user_id, referenced)
        return fail(ErrorKind.REFERENCED_ENTITY, f'{user.name} has {referenced} stock transaction(s) on record')

    db.delete(user)
    db.flush()
    return ok('User deleted')


def list_roles(db: Session) -> list[Role]:
    return db.execute(select(Role).order_by(Role.is_system.desc(), Role.name.asc())).scalars().all()


def add_role(db: Session, data: Mapping) -> Role:
    values = coerce_fields(Role, data)
    if not (values.get('name') or '').strip():
        raise ValueError('Role name is required')
    values.setdefault('id', f'custom_{secrets.token_hex(4)}')
    values.setdefault('is_system', False)
    role = Role(**values)
    db.add(role)
    db.flush()
    return role


def list_departments(db: Session) -> list[Department]:
    return db.execute(select(Department).order_by(Department.id.asc())).scalars().all()


def add_department(db: Session, data: Mapping) -> Department:
    values = coerce_fields(Department, data, exclude=frozenset({'id', 'created_at', 'updated_at'}))
    if not (values.get('name') or '').strip():
        raise ValueError('Department name is required')
    department = Department(
        **values,
        id=next_int_id(db.execute(select(Department.id)).scalars().all()),
        created_at=_now(),
    )
    db.add(department)
    db.flush()
    return department


def update_department(db: Session, department_id: int, patch: Mapping) -> Department | None:
    department = db.get(Department, department_id)
    if not department:
        return None
    apply_patch(department, patch, protected=frozenset({'id', 'created_at', 'updated_at'}))
    department.updated_at = _now()
    db.flush()
    return department


def delete_department(db: Session, department_id: int) -> None:
    department = db.get(Department, department_id)
    if department:
        db.delete(department)
        db.flush()
