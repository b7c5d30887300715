from __future__ import annotations

from catalog.constants import DEFAULT_SPECIAL_ID_PREFIX, SPECIAL_ID_MIN_WIDTH
from catalog.db.sqlite import ClassStore


def next_special_id(store: ClassStore, prefix: str = DEFAULT_SPECIAL_ID_PREFIX) -> str:
    """
    Следующий код для префикса: CR07 -> CR08, CR099 -> CR100.
    Нечисловой суффикс считается как 0. Без транзакции: при гонке
    двух вызовов дубль поймает UNIQUE на вставке.
    """
    prefix = (prefix or DEFAULT_SPECIAL_ID_PREFIX).strip().upper()

    best = 0
    width = SPECIAL_ID_MIN_WIDTH
    for code in store.special_ids_with_prefix(prefix):
        suffix = code[len(prefix):]
        n = int(suffix) if suffix.isdecimal() else 0
        if n > best:
            best = n
            width = len(suffix)

    return f"{prefix}{best + 1:0{width}d}"
