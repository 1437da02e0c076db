from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import Session

from opsdesk.config import settings
from opsdesk.models import AuditLog, AuthEvent


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def log_auth_event(
    db: Session,
    *,
    attempted_email: str,
    success: bool,
    account_id: str | None = None,
    failure_reason: str | None = None,
) -> None:
    db.add(
        AuthEvent(
            attempted_email=attempted_email,
            success=success,
            failure_reason=failure_reason,
            account_id=account_id,
            created_at=_now(),
        )
    )


def log_audit(
    db: Session,
    *,
    action: str,
    actor: str | None = None,
    metadata: dict | None = None,
) -> None:
    db.add(
        AuditLog(
            actor=actor or settings.audit_user_name,
            action=action,
            meta=metadata or {},
            created_at=_now(),
        )
    )


def trail_entry(
    action: str,
    *,
    user: str | None = None,
    field: str | None = None,
    old_value=None,
    new_value=None,
    details: str | None = None,
) -> dict:
    entry = {
        'date': _now().isoformat(),
        'user': user or settings.audit_user_name,
        'action': action,
    }
    if details is not None:
        entry['details'] = details
    else:
        entry.update({'field': field, 'old_value': old_value, 'new_value': new_value})
    return entry
