from __future__ import annotations

from typing import Optional

from catalog.config import settings


def money(v: float) -> str:
    return f"{v:.{settings.decimals}f} {settings.currency}"


def money_or_dash(v: Optional[float]) -> str:
    return "-" if v is None else money(v)
