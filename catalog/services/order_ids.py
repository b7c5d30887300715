from __future__ import annotations

from typing import Optional

from catalog.config import settings
from catalog.constants import SETTINGS_LAST_ORDER_ID
from catalog.db.sqlite import SettingsStore


def _parse(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def current_order_id(store: SettingsStore, start: Optional[int] = None) -> int:
    """Last issued order id (or the start value if nothing was issued yet)."""
    start = settings.order_id_start if start is None else start
    last = _parse(store.get(SETTINGS_LAST_ORDER_ID))
    return start if last is None else last


def next_order_id(store: SettingsStore, start: Optional[int] = None) -> int:
    """
    Выдаёт следующий номер заказа: 1000, 1001, 1002...

    Read-increment-write without a transaction. Two concurrent exports can get
    the same number; accepted, exports are rare and manual.
    """
    start = settings.order_id_start if start is None else start
    last = _parse(store.get(SETTINGS_LAST_ORDER_ID))
    next_id = start if last is None else last + 1
    store.set(SETTINGS_LAST_ORDER_ID, str(next_id))
    return next_id
