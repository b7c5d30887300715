from __future__ import annotations

import math
from typing import Any, Optional

from catalog.errors import ValidationError

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


def _is_blank(v: Any) -> bool:
    return v is None or (isinstance(v, str) and v.strip() == "")


def parse_number(v: Any, name: str = "value") -> Optional[float]:
    if _is_blank(v):
        return None
    if isinstance(v, bool):
        raise ValidationError(f"Invalid numeric value for {name}: {v!r}")
    try:
        n = float(v.strip() if isinstance(v, str) else v)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid numeric value for {name}: {v!r}") from None
    if not math.isfinite(n):
        raise ValidationError(f"Invalid numeric value for {name}: {v!r}")
    return n


def parse_integer(v: Any, name: str = "value") -> Optional[int]:
    if _is_blank(v):
        return None
    if isinstance(v, int) and not isinstance(v, bool):
        n = v
    else:
        # "12.7" -> 12, дробная часть отбрасывается
        n = int(parse_number(v, name))
    # sqlite INTEGER - знаковые 64 бита
    if not INT64_MIN <= n <= INT64_MAX:
        raise ValidationError(f"Numeric value out of range for {name}: {v!r}")
    return n

