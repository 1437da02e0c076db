from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from opsdesk.services import settings_service

router = APIRouter(prefix='/settings', tags=['settings'])


@router.get('')
def all_settings():
    return settings_service.load_settings()


@router.get('/{key}')
def get_setting(key: str):
    return settings_service.get_setting(key)


@router.put('/{key}')
def save_setting(key: str, payload: dict[str, Any]):
    return settings_service.save_setting(key, payload)


@router.delete('')
def reset_settings():
    return settings_service.reset_settings()
