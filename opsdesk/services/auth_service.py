from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from opsdesk.models import Account, AdminRequest, AdminRequestStatus, User, UserStatus
from opsdesk.security.passwords import check_password, hash_password
from opsdesk.security.sessions import create_login_session, load_account_from_token, revoke_login_session
from opsdesk.services.audit_service import log_audit, log_auth_event
from opsdesk.services.identifier_service import opaque_id
from opsdesk.services.notification_service import add_notification
from opsdesk.services.results import ErrorKind, OperationResult, fail, ok

logger = logging.getLogger(__name__)

ADMIN_ROLE = 'Admin'
INVALID_CREDENTIALS_MESSAGE = 'Invalid email or password.'


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _normalize(email: str) -> str:
    return (email or '').strip().lower()


def _account_by_email(db: Session, email: str) -> Account | None:
    return db.execute(select(Account).where(func.lower(Account.email) == _normalize(email))).scalars().first()


def _requests_for(db: Session, email: str, status: AdminRequestStatus | None = None) -> list[AdminRequest]:
    query = select(AdminRequest).where(func.lower(AdminRequest.email) == _normalize(email))
    if status is not None:
        query = query.where(AdminRequest.status == status)
    return db.execute(query.order_by(AdminRequest.requested_at.asc())).scalars().all()


def is_first_user(db: Session) -> bool:
    return db.execute(select(func.count()).select_from(Account)).scalar_one() == 0


def has_admin(db: Session) -> bool:
    return db.execute(select(Account.id).where(Account.is_admin.is_(True)).limit(1)).first() is not None


def get_pre_created_user(db: Session, email: str) -> User | None:
    return db.execute(
        select(User).where(func.lower(User.email) == _normalize(email), User.is_registered.is_(False))
    ).scalars().first()


def is_email_pre_created(db: Session, email: str) -> bool:
    return get_pre_created_user(db, email) is not None


def is_email_registered(db: Session, email: str) -> bool:
    return _account_by_email(db, email) is not None


def has_pending_admin_request(db: Session, email: str) -> bool:
    return bool(_requests_for(db, email, AdminRequestStatus.PENDING))


def is_admin_request_approved(db: Session, email: str) -> bool:
    return bool(_requests_for(db, email, AdminRequestStatus.APPROVED))


def list_admin_requests(db: Session, *, status: AdminRequestStatus | str | None = None) -> list[AdminRequest]:
    query = select(AdminRequest).order_by(AdminRequest.requested_at.asc())
    if status is not None:
        query = query.where(AdminRequest.status == AdminRequestStatus(status))
    return db.execute(query).scalars().all()


def _create_admin_account(db: Session, *, name: str, email: str, password: str, mobile: str | None) -> Account:
    account = Account(
        id=opaque_id('USER-ADMIN'),
        user_id=None,
        name=name,
        email=email.strip(),
        mobile=mobile,
        password_hash=hash_password(password),
        role=ADMIN_ROLE,
        is_admin=True,
        registered_at=_now(),
    )
    db.add(account)
    db.flush()
    return account


def register_admin(
    db: Session,
    *,
    name: str,
    email: str,
    password: str,
    mobile: str | None = None,
) -> OperationResult:
    """Register an administrator account.

    The first account ever registered becomes an admin directly. Later
    admins need an approved admin request for their email, which is
    consumed by the registration.
    """
    if not _normalize(email) or not password:
        raise ValueError('Email and password are required')
    if is_email_registered(db, email):
        return fail(ErrorKind.ALREADY_REGISTERED, 'Email already registered.')

    if is_first_user(db):
        account = _create_admin_account(db, name=name, email=email, password=password, mobile=mobile)
        log_audit(db, actor=account.name, action='AUTH_REGISTER_ADMIN', metadata={'email': account.email, 'first_user': True})
        logger.info('First admin %s registered', account.email)
        return ok('Admin registered successfully!', account=account)

    if is_admin_request_approved(db, email):
        account = _create_admin_account(db, name=name, email=email, password=password, mobile=mobile)
        for request in _requests_for(db, email):
            db.delete(request)
        db.flush()
        log_audit(db, actor=account.name, action='AUTH_REGISTER_ADMIN', metadata={'email': account.email, 'first_user': False})
        logger.info('Approved admin %s registered', account.email)
        return ok('Admin registered successfully!', account=account)

    if not has_pending_admin_request(db, email):
        rejected = _requests_for(db, email, AdminRequestStatus.REJECTED)
        if rejected:
            reason = rejected[-1].rejection_reason
            message = 'Your admin registration request was rejected.'
            return fail(ErrorKind.REQUEST_REJECTED, f'{message} Reason: {reason}' if reason else message)

    return fail(ErrorKind.APPROVAL_REQUIRED, 'Admin registration requires approval from existing admin.')


def request_admin_registration(
    db: Session,
    *,
    name: str,
    email: str,
    mobile: str | None = None,
) -> OperationResult:
    if not _normalize(email):
        raise ValueError('Email is required')
    if is_email_registered(db, email):
        return fail(ErrorKind.ALREADY_REGISTERED, 'Email already registered.')
    if has_pending_admin_request(db, email):
        return fail(ErrorKind.PENDING_REQUEST, 'You already have a pending admin request. Please wait for approval.')

    request = AdminRequest(
        id=opaque_id('ADMIN-REQ'),
        name=name,
        email=email.strip(),
        mobile=mobile,
        status=AdminRequestStatus.PENDING,
        requested_at=_now(),
    )
    db.add(request)
    db.flush()
    add_notification(
        db,
        type='admin_request',
        title='New Admin Registration Request',
        message=f'{name} ({request.email}) wants to register as Admin',
        data=request.to_record(),
    )
    logger.info('Admin registration requested for %s', request.email)
    return ok(
        'Admin registration request submitted. Please wait for approval from existing admin.',
        request=request,
    )


def approve_admin_request(db: Session, request_id: str, *, actor: str | None = None) -> OperationResult:
    request = db.get(AdminRequest, request_id)
    if not request:
        return fail(ErrorKind.NOT_FOUND, 'Request not found.')
    if request.status != AdminRequestStatus.PENDING:
        return fail(ErrorKind.INVALID_STATE, f'Request already {request.status.value}.')

    request.status = AdminRequestStatus.APPROVED
    request.approved_at = _now()
    db.flush()
    add_notification(
        db,
        type='admin_approved',
        title='Admin Request Approved',
        message='Your admin registration request has been approved. You can now complete your registration.',
        data=request.to_record(),
    )
    log_audit(db, actor=actor, action='ADMIN_REQUEST_APPROVED', metadata={'request_id': request.id, 'email': request.email})
    logger.info('Admin request %s approved', request.id)
    return ok('Admin request approved.', request=request)


def reject_admin_request(
    db: Session,
    request_id: str,
    reason: str | None = None,
    *,
    actor: str | None = None,
) -> OperationResult:
    request = db.get(AdminRequest, request_id)
    if not request:
        return fail(ErrorKind.NOT_FOUND, 'Request not found.')
    if request.status != AdminRequestStatus.PENDING:
        return fail(ErrorKind.INVALID_STATE, f'Request already {request.status.value}.')

    request.status = AdminRequestStatus.REJECTED
    request.rejected_at = _now()
    request.rejection_reason = reason
    db.flush()
    log_audit(db, actor=actor, action='ADMIN_REQUEST_REJECTED', metadata={'request_id': request.id, 'reason': reason})
    logger.info('Admin request %s rejected', request.id)
    return ok('Admin request rejected.', request=request)


def register_staff(db: Session, email: str, password: str) -> OperationResult:
    if not _normalize(email) or not password:
        raise ValueError('Email and password are required')
    if is_email_registered(db, email):
        return fail(ErrorKind.ALREADY_REGISTERED, 'You have already registered. Please login.')
    user = get_pre_created_user(db, email)
    if not user:
        return fail(ErrorKind.EMAIL_NOT_FOUND, 'Email not found. Please ask admin to add you first.')

    account = Account(
        id=opaque_id('USER'),
        user_id=user.id,
        name=user.name,
        email=user.email,
        mobile=user.mobile,
        password_hash=hash_password(password),
        role=user.role or 'Staff',
        is_admin=False,
        registered_at=_now(),
    )
    user.is_registered = True
    db.add(account)
    db.flush()
    log_audit(db, actor=account.name, action='AUTH_REGISTER_STAFF', metadata={'email': account.email, 'user_id': user.id})
    logger.info('Staff user %s registered', account.email)
    return ok('Registration successful! You can now login.', account=account)


def login_user(db: Session, email: str, password: str) -> OperationResult:
    """Check credentials and open a login session.

    Unknown emails and wrong passwords fail with the same message. The
    session token is returned in the ``token`` payload key.
    """
    account = _account_by_email(db, email)
    if not account:
        log_auth_event(db, attempted_email=email, success=False, failure_reason='UNKNOWN_EMAIL')
        return fail(ErrorKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

    valid, upgraded_hash = check_password(password, account.password_hash)
    if not valid:
        log_auth_event(db, attempted_email=email, success=False, account_id=account.id, failure_reason='BAD_PASSWORD')
        return fail(ErrorKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)
    if upgraded_hash:
        account.password_hash = upgraded_hash

    user = db.get(User, account.user_id) if account.user_id is not None else None
    if user is not None and user.status != UserStatus.ACTIVE:
        log_auth_event(db, attempted_email=email, success=False, account_id=account.id, failure_reason='INACTIVE_USER')
        return fail(ErrorKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

    token = create_login_session(db, account.id)
    if user is not None:
        user.last_login = _now()
    log_auth_event(db, attempted_email=email, success=True, account_id=account.id)
    log_audit(db, actor=account.name, action='AUTH_LOGIN', metadata={'email': account.email})
    db.flush()
    return ok('Login successful!', account=account, token=token)


def logout_user(db: Session, token: str) -> None:
    account = load_account_from_token(db, token)
    revoke_login_session(db, token)
    log_audit(db, actor=account.name if account else None, action='AUTH_LOGOUT', metadata={})


def get_current_account(db: Session, token: str | None) -> Account | None:
    return load_account_from_token(db, token)
