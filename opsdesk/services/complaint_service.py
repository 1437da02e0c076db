from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from opsdesk.models import Complaint, ComplaintStatus
from opsdesk.services.identifier_service import generate_job_id
from opsdesk.services.record_utils import apply_patch, coerce_fields

logger = logging.getLogger(__name__)

STATUS_FLOW: dict[ComplaintStatus, ComplaintStatus | None] = {
    ComplaintStatus.OPEN: ComplaintStatus.IN_PROGRESS,
    ComplaintStatus.IN_PROGRESS: ComplaintStatus.PENDING_PARTS,
    ComplaintStatus.PENDING_PARTS: ComplaintStatus.COMPLETED,
    ComplaintStatus.COMPLETED: ComplaintStatus.DELIVERED,
    ComplaintStatus.DELIVERED: None,
}

_MANAGED = frozenset({'id', 'created_date', 'completed_date', 'delivered_date', 'updated_at'})


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _today() -> date:
    return _now().date()


def list_complaints(db: Session, *, status: ComplaintStatus | str | None = None) -> list[Complaint]:
    query = select(Complaint).order_by(Complaint.created_date.asc(), Complaint.id.asc())
    if status is not None:
        query = query.where(Complaint.status == ComplaintStatus(status))
    return db.execute(query).scalars().all()


def get_complaint(db: Session, job_id: str) -> Complaint | None:
    return db.get(Complaint, job_id)


def add_complaint(db: Session, data: Mapping) -> Complaint:
    values = coerce_fields(Complaint, data, exclude=_MANAGED)
    if not (values.get('customer') or '').strip():
        raise ValueError('Customer is required')
    values.setdefault('status', ComplaintStatus.OPEN)
    notes = values.pop('notes', None)
    complaint = Complaint(
        **values,
        id=generate_job_id(db),
        created_date=_today(),
        completed_date=None,
        delivered_date=None,
        notes=list(notes) if isinstance(notes, list) else ([notes] if notes else []),
    )
    db.add(complaint)
    db.flush()
    logger.info('Job %s opened for %s', complaint.id, complaint.customer)
    return complaint


def update_complaint(db: Session, job_id: str, patch: Mapping) -> Complaint | None:
    complaint = db.get(Complaint, job_id)
    if not complaint:
        return None
    apply_patch(complaint, patch, protected=_MANAGED | {'status'})
    complaint.updated_at = _now()
    db.flush()
    return complaint


def delete_complaint(db: Session, job_id: str) -> None:
    complaint = db.get(Complaint, job_id)
    if complaint:
        db.delete(complaint)
        db.flush()


def get_next_complaint_status(current: ComplaintStatus | str) -> ComplaintStatus | None:
    try:
        return STATUS_FLOW[ComplaintStatus(current)]
    except ValueError:
        return None


def update_complaint_status(db: Session, job_id: str, new_status: ComplaintStatus | str) -> Complaint | None:
    """Move a job to ``new_status``.

    Any known status may be set. The completion and delivery dates are
    stamped the first time the job reaches that status and kept afterwards.
    """
    status = ComplaintStatus(new_status)
    complaint = db.get(Complaint, job_id)
    if not complaint:
        return None

    complaint.status = status
    complaint.updated_at = _now()
    if status == ComplaintStatus.COMPLETED and complaint.completed_date is None:
        complaint.completed_date = _today()
    if status == ComplaintStatus.DELIVERED and complaint.delivered_date is None:
        complaint.delivered_date = _today()
    db.flush()
    logger.info('Job %s moved to %s', job_id, status.value)
    return complaint
