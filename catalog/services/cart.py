from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Mapping

from catalog.config import settings


@dataclass
class CartLine:
    class_id: int
    quantity: int

    def to_dict(self) -> Dict[str, int]:
        return {"classId": self.class_id, "quantity": self.quantity}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "CartLine":
        return cls(class_id=int(d["classId"]), quantity=int(d["quantity"]))


@dataclass
class CartView:
    items: List[Dict[str, Any]]
    total_items: int
    known_total: float
    has_unknown_prices: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": self.items,
            "totalItems": self.total_items,
            "knownTotal": self.known_total,
            "hasUnknownPrices": self.has_unknown_prices,
        }


def lines_from_dicts(raw: Iterable[Mapping[str, Any]]) -> List[CartLine]:
    return [line for line in (CartLine.from_dict(d) for d in raw or []) if line.quantity > 0]


def lines_to_dicts(lines: Iterable[CartLine]) -> List[Dict[str, int]]:
    return [line.to_dict() for line in lines]


def add_line(lines: List[CartLine], class_id: int) -> List[CartLine]:
    out = [CartLine(**asdict(line)) for line in lines]
    for line in out:
        if line.class_id == class_id:
            line.quantity += 1
            return out
    out.append(CartLine(class_id, 1))
    return out


def set_line(lines: List[CartLine], class_id: int, quantity: int) -> List[CartLine]:
    # 0 и меньше = удалить строку, нулевые строки не храним
    if quantity <= 0:
        return remove_line(lines, class_id)
    out = [CartLine(**asdict(line)) for line in lines]
    for line in out:
        if line.class_id == class_id:
            line.quantity = quantity
            return out
    out.append(CartLine(class_id, quantity))
    return out


def remove_line(lines: List[CartLine], class_id: int) -> List[CartLine]:
    return [CartLine(**asdict(line)) for line in lines if line.class_id != class_id]


def summarize(lines: Iterable[CartLine], records: Mapping[int, Mapping[str, Any]]) -> CartView:
    """
    Join cart lines with catalog records (API shape, keyed by id).

    Lines whose product is gone are left out of the view but stay in the cart.
    ``known_total`` only counts priced lines; ``has_unknown_prices`` marks it
    as partial.
    """
    items: List[Dict[str, Any]] = []
    total_items = 0
    known_total = 0.0
    has_unknown = False

    for line in lines:
        record = records.get(line.class_id)
        if record is None:
            continue
        items.append({"record": dict(record), "quantity": line.quantity})
        total_items += line.quantity
        price = record.get("classPrice")
        if price is None:
            has_unknown = True
        else:
            known_total += float(price) * line.quantity

    return CartView(
        items=items,
        total_items=total_items,
        known_total=round(known_total, settings.decimals),
        has_unknown_prices=has_unknown,
    )
