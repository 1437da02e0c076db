from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any

from opsdesk.config import settings

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: dict[str, dict[str, Any]] = {
    'company': {
        'name': 'Premium IT Park',
        'tagline': 'Your IT Solutions Partner',
        'email': 'info@premiumit.com',
        'phone': '+91 9876543210',
        'alt_phone': '+91 9876543211',
        'address': 'Shop No. 5, IT Park Complex, Ring Road, Surat, Gujarat 395007',
        'gst_no': '24AAAAA0000A1Z5',
        'pan_no': 'AAAAA0000A',
        'website': 'www.premiumit.com',
    },
    'tax': {
        'gst_rate': 18,
        'cgst_rate': 9,
        'sgst_rate': 9,
        'igst_rate': 18,
        'enable_gst': True,
        'round_off_total': True,
        'show_tax_breakdown': True,
    },
    'notifications': {
        'low_stock_alert': True,
        'low_stock_threshold': 5,
        'order_notifications': True,
        'amc_expiry_alert': True,
        'amc_expiry_days': 30,
        'email_notifications': False,
        'sms_notifications': False,
    },
    'invoice': {
        'prefix': 'INV',
        'start_number': 1001,
        'terms_and_conditions': (
            '1. Payment due within 30 days.\n'
            '2. Warranty as per manufacturer terms.\n'
            '3. Goods once sold will not be taken back.'
        ),
        'show_logo': True,
        'show_bank_details': True,
        'bank_name': 'HDFC Bank',
        'account_no': 'XXXX1234',
        'ifsc_code': 'HDFC0001234',
        'upi_id': 'premiumit@upi',
    },
}

SETTING_KEYS = tuple(DEFAULT_SETTINGS)


def _path(path: str | Path | None) -> Path:
    return Path(path or settings.settings_file)


def _check_key(key: str) -> None:
    if key not in DEFAULT_SETTINGS:
        raise ValueError(f'Unknown settings key: {key}')


def _read(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        stored = json.loads(path.read_text(encoding='utf-8'))
    except json.JSONDecodeError:
        logger.warning('Settings file %s is not valid JSON, using defaults', path)
        return {}
    return stored if isinstance(stored, dict) else {}


def load_settings(path: str | Path | None = None) -> dict[str, dict[str, Any]]:
    """Every settings group, stored values taking precedence over defaults."""
    stored = _read(_path(path))
    return {key: copy.deepcopy(stored.get(key, default)) for key, default in DEFAULT_SETTINGS.items()}


def get_setting(key: str, path: str | Path | None = None) -> dict[str, Any]:
    _check_key(key)
    return load_settings(path)[key]


def save_setting(key: str, value: dict[str, Any], path: str | Path | None = None) -> dict[str, Any]:
    _check_key(key)
    if not isinstance(value, dict):
        raise ValueError(f'Settings for {key} must be an object')
    target = _path(path)
    stored = _read(target)
    stored[key] = value
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_name(f'{target.name}.tmp')
    tmp.write_text(json.dumps(stored, indent=2, sort_keys=True), encoding='utf-8')
    tmp.replace(target)
    logger.info('Saved %s settings to %s', key, target)
    return copy.deepcopy(value)


def reset_settings(path: str | Path | None = None) -> dict[str, dict[str, Any]]:
    target = _path(path)
    target.unlink(missing_ok=True)
    logger.info('Settings reset to defaults')
    return load_settings(target)
