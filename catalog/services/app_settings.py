from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional

from catalog.constants import (
    DEFAULT_COLUMN_VISIBILITY,
    SETTINGS_COLUMN_VISIBILITY,
    SETTINGS_SHEETS_AUTO_SYNC,
    SETTINGS_SHEETS_URL,
)
from catalog.db.sqlite import SettingsStore
from catalog.errors import ValidationError

logger = logging.getLogger(__name__)


def normalize_columns(columns: Mapping[str, Any]) -> Dict[str, bool]:
    """Defaults first, then every given key as bool. All hidden = back to defaults."""
    out = dict(DEFAULT_COLUMN_VISIBILITY)
    for key, value in columns.items():
        out[str(key)] = bool(value)
    if not any(out.values()):
        return dict(DEFAULT_COLUMN_VISIBILITY)
    return out


def load_columns(store: SettingsStore) -> Dict[str, bool]:
    raw = store.get(SETTINGS_COLUMN_VISIBILITY)
    if raw is None:
        return dict(DEFAULT_COLUMN_VISIBILITY)
    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.warning("Stored column visibility is not JSON, using defaults")
        return dict(DEFAULT_COLUMN_VISIBILITY)
    if not isinstance(parsed, dict):
        return dict(DEFAULT_COLUMN_VISIBILITY)
    return normalize_columns(parsed)


def save_columns(store: SettingsStore, columns: Any) -> Dict[str, bool]:
    if not isinstance(columns, dict):
        raise ValidationError('Invalid payload. Expected "columns" object.')
    normalized = normalize_columns(columns)
    store.set(SETTINGS_COLUMN_VISIBILITY, json.dumps(normalized))
    return normalized


def load_sheets_settings(store: SettingsStore) -> Dict[str, Any]:
    return {
        "url": store.get(SETTINGS_SHEETS_URL) or "",
        "autoSync": store.get(SETTINGS_SHEETS_AUTO_SYNC) == "true",
    }


def save_sheets_settings(
    store: SettingsStore,
    url: Optional[Any] = None,
    auto_sync: Optional[Any] = None,
) -> Dict[str, Any]:
    """Only the given values are written. Types are checked before anything is stored."""
    if url is not None and not isinstance(url, str):
        raise ValidationError('Invalid payload. Expected "url" as string.')
    if auto_sync is not None and not isinstance(auto_sync, bool):
        raise ValidationError('Invalid payload. Expected "autoSync" as boolean.')

    if url is not None:
        store.set(SETTINGS_SHEETS_URL, url.strip())
    if auto_sync is not None:
        store.set(SETTINGS_SHEETS_AUTO_SYNC, "true" if auto_sync else "false")
    return load_sheets_settings(store)
