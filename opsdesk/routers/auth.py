from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from opsdesk.config import settings
from opsdesk.db import get_db
from opsdesk.dependencies import get_current_account, result_or_http
from opsdesk.models import Account
from opsdesk.schemas import AdminRequestIn, LoginIn, RegisterAdminIn, RegisterStaffIn
from opsdesk.security.sessions import session_token_from_request
from opsdesk.services import auth_service

router = APIRouter(prefix='/auth', tags=['auth'])


@router.get('/status')
def registration_status(db: Session = Depends(get_db)):
    return {'is_first_user': auth_service.is_first_user(db), 'has_admin': auth_service.has_admin(db)}


@router.get('/email-status')
def email_status(email: str, db: Session = Depends(get_db)):
    return {
        'email': email,
        'is_pre_created': auth_service.is_email_pre_created(db, email),
        'is_registered': auth_service.is_email_registered(db, email),
        'has_pending_admin_request': auth_service.has_pending_admin_request(db, email),
        'is_admin_request_approved': auth_service.is_admin_request_approved(db, email),
    }


@router.post('/register-admin', status_code=201)
def register_admin(payload: RegisterAdminIn, db: Session = Depends(get_db)):
    response = result_or_http(auth_service.register_admin(db, **payload.model_dump()))
    db.commit()
    return response


@router.post('/admin-requests', status_code=201)
def request_admin_registration(payload: AdminRequestIn, db: Session = Depends(get_db)):
    response = result_or_http(auth_service.request_admin_registration(db, **payload.model_dump()))
    db.commit()
    return response


@router.post('/register-staff', status_code=201)
def register_staff(payload: RegisterStaffIn, db: Session = Depends(get_db)):
    response = result_or_http(auth_service.register_staff(db, payload.email, payload.password))
    db.commit()
    return response


@router.post('/login')
def login(payload: LoginIn, response: Response, db: Session = Depends(get_db)):
    result = auth_service.login_user(db, payload.email, payload.password)
    # Failed attempts are recorded too.
    db.commit()
    body = result_or_http(result)
    response.set_cookie(
        key=settings.session_cookie_name,
        value=result['token'],
        httponly=True,
        samesite='lax',
        max_age=settings.session_ttl_minutes * 60,
    )
    return body


@router.post('/logout')
def logout(request: Request, response: Response, db: Session = Depends(get_db)):
    token = session_token_from_request(request)
    if token:
        auth_service.logout_user(db, token)
    db.commit()
    response.delete_cookie(settings.session_cookie_name)
    return {'success': True, 'message': 'Logged out.'}


@router.get('/me')
def me(account: Account = Depends(get_current_account)):
    return account.to_record()
