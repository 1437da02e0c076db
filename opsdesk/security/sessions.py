from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from opsdesk.config import settings
from opsdesk.models import Account, LoginSession


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _session_expiry() -> datetime:
    return _now() + timedelta(minutes=settings.session_ttl_minutes)


def create_login_session(db: Session, account_id: str) -> str:
    token = secrets.token_urlsafe(48)
    db.add(
        LoginSession(
            token=token,
            account_id=account_id,
            created_at=_now(),
            expires_at=_session_expiry(),
        )
    )
    db.flush()
    return token


def revoke_login_session(db: Session, token: str) -> None:
    login_session = db.get(LoginSession, token)
    if not login_session or login_session.revoked_at is not None:
        return
    login_session.revoked_at = _now()
    db.flush()


def load_account_from_token(db: Session, token: str | None) -> Account | None:
    if not token:
        return None

    row = db.execute(
        select(LoginSession, Account)
        .join(Account, Account.id == LoginSession.account_id)
        .where(LoginSession.token == token)
    ).one_or_none()
    if not row:
        return None

    login_session, account = row
    now = _now()
    if login_session.revoked_at is not None or login_session.expires_at <= now:
        return None

    login_session.last_seen_at = now
    login_session.expires_at = _session_expiry()
    return account


def session_token_from_request(request: Request) -> str | None:
    authorization = request.headers.get('authorization', '')
    if authorization.lower().startswith('bearer '):
        return authorization[7:].strip() or None
    return request.cookies.get(settings.session_cookie_name)


def install_auth_session_middleware(app: FastAPI) -> None:
    @app.middleware('http')
    async def auth_session_middleware(request: Request, call_next):
        token = session_token_from_request(request)
        account = None
        if token:
            with request.app.state.store.session() as db:
                account = load_account_from_token(db, token)
                db.commit()
        request.state.account = account
        return await call_next(request)
