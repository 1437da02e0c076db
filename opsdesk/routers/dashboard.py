from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from opsdesk.db import get_db
from opsdesk.services import dashboard_service

router = APIRouter(prefix='/dashboard', tags=['dashboard'])


@router.get('')
def dashboard_summary(db: Session = Depends(get_db)):
    return dashboard_service.get_dashboard_summary(db)
