from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from opsdesk.db import get_db
from opsdesk.dependencies import found_or_404, require_admin, result_or_http
from opsdesk.models import Account
from opsdesk.schemas import RejectRequestIn
from opsdesk.services import auth_service, notification_service, user_service

router = APIRouter(prefix='/admin', tags=['admin'])


@router.get('/users')
def list_users(db: Session = Depends(get_db)):
    return [user.to_record() for user in user_service.list_users(db)]


@router.post('/users', status_code=201)
def create_user(payload: dict[str, Any], db: Session = Depends(get_db)):
    user = user_service.add_user(db, payload)
    db.commit()
    return user.to_record()


@router.get('/users/{user_id}')
def get_user(user_id: int, db: Session = Depends(get_db)):
    return found_or_404(user_service.get_user(db, user_id), 'User').to_record()


@router.patch('/users/{user_id}')
def update_user(user_id: int, payload: dict[str, Any], db: Session = Depends(get_db)):
    user = found_or_404(user_service.update_user(db, user_id, payload), 'User')
    db.commit()
    return user.to_record()


@router.delete('/users/{user_id}')
def delete_user(user_id: int, db: Session = Depends(get_db)):
    response = result_or_http(user_service.delete_user(db, user_id))
    db.commit()
    return response


@router.get('/roles')
def list_roles(db: Session = Depends(get_db)):
    return [role.to_record() for role in user_service.list_roles(db)]


@router.post('/roles', status_code=201)
def create_role(payload: dict[str, Any], db: Session = Depends(get_db)):
    role = user_service.add_role(db, payload)
    db.commit()
    return role.to_record()


@router.get('/departments')
def list_departments(db: Session = Depends(get_db)):
    return [department.to_record() for department in user_service.list_departments(db)]


@router.post('/departments', status_code=201)
def create_department(payload: dict[str, Any], db: Session = Depends(get_db)):
    department = user_service.add_department(db, payload)
    db.commit()
    return department.to_record()


@router.patch('/departments/{department_id}')
def update_department(department_id: int, payload: dict[str, Any], db: Session = Depends(get_db)):
    department = found_or_404(user_service.update_department(db, department_id, payload), 'Department')
    db.commit()
    return department.to_record()


@router.delete('/departments/{department_id}', status_code=204)
def delete_department(department_id: int, db: Session = Depends(get_db)):
    user_service.delete_department(db, department_id)
    db.commit()


@router.get('/admin-requests')
def list_admin_requests(
    status: str | None = None,
    db: Session = Depends(get_db),
    _: Account = Depends(require_admin),
):
    return [request.to_record() for request in auth_service.list_admin_requests(db, status=status)]


@router.post('/admin-requests/{request_id}/approve')
def approve_admin_request(
    request_id: str,
    db: Session = Depends(get_db),
    account: Account = Depends(require_admin),
):
    response = result_or_http(auth_service.approve_admin_request(db, request_id, actor=account.name))
    db.commit()
    return response


@router.post('/admin-requests/{request_id}/reject')
def reject_admin_request(
    request_id: str,
    payload: RejectRequestIn,
    db: Session = Depends(get_db),
    account: Account = Depends(require_admin),
):
    response = result_or_http(auth_service.reject_admin_request(db, request_id, payload.reason, actor=account.name))
    db.commit()
    return response


@router.get('/notifications')
def list_notifications(unread_only: bool = False, db: Session = Depends(get_db)):
    return [n.to_record() for n in notification_service.list_notifications(db, unread_only=unread_only)]


@router.get('/notifications/unread-count')
def unread_notification_count(db: Session = Depends(get_db)):
    return {'unread': notification_service.get_unread_notification_count(db)}


@router.post('/notifications/{notification_id}/read')
def mark_notification_read(notification_id: str, db: Session = Depends(get_db)):
    notification = found_or_404(notification_service.mark_notification_read(db, notification_id), 'Notification')
    db.commit()
    return notification.to_record()


@router.delete('/notifications/{notification_id}', status_code=204)
def delete_notification(notification_id: str, db: Session = Depends(get_db)):
    notification_service.delete_notification(db, notification_id)
    db.commit()


@router.post('/reset')
def reset_store(request: Request, _: Account = Depends(require_admin)):
    request.app.state.store.reset()
    return {'success': True, 'message': 'Store reset to seed data.'}
