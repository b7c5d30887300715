from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List, Mapping, Optional, Tuple

import requests

from catalog.client.cart_sync import CartSynchronizer
from catalog.config import settings
from catalog.errors import ValidationError
from catalog.services.order_form import build_order_form, entry_from_form, normalize_customer_info
from catalog.services.order_pdf import render_order_pdf

logger = logging.getLogger(__name__)


def _read_json(path: str, default: Any) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return default
    except (OSError, ValueError) as e:
        logger.warning("File %s unreadable, using default: %s", path, e)
        return default


def _write_json(path: str, data: Any) -> None:
    folder = os.path.dirname(path)
    if folder:
        os.makedirs(folder, exist_ok=True)
    tmp = f"{path}.tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
    os.replace(tmp, path)


class LocalOrderCounter:
    """Номера заказов без сервера. Уникальны только в пределах одного клиента."""

    def __init__(self, path: str, start: Optional[int] = None):
        self.path = path
        self.start = settings.order_id_start if start is None else start

    def next(self) -> int:
        data = _read_json(self.path, {})
        last = data.get("lastOrderId") if isinstance(data, dict) else None
        next_id = self.start if not isinstance(last, int) else last + 1
        _write_json(self.path, {"lastOrderId": next_id})
        return next_id


class OrderIdClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        fallback: Optional[LocalOrderCounter] = None,
        timeout: float = 10.0,
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.session = session or requests.Session()
        self.fallback = fallback
        self.timeout = timeout

    def next_order_id(self) -> int:
        try:
            resp = self.session.post(f"{self.base_url}/api/cart/order-id", timeout=self.timeout)
            resp.raise_for_status()
            return int(resp.json()["orderId"])
        except (requests.RequestException, KeyError, TypeError, ValueError) as e:
            if self.fallback is None:
                raise
            logger.warning("Order id service unavailable, using local counter: %s", e)
            return self.fallback.next()


class OrderHistory:
    """Последние заказы, новые сверху. Хранится не больше ``limit`` записей."""

    def __init__(self, path: str, limit: Optional[int] = None):
        self.path = path
        self.limit = limit or settings.order_history_limit

    def entries(self) -> List[Dict[str, Any]]:
        data = _read_json(self.path, [])
        return data if isinstance(data, list) else []

    def get(self, order_id: int) -> Optional[Dict[str, Any]]:
        for entry in self.entries():
            if entry.get("orderId") == order_id:
                return entry
        return None

    def add(self, entry: Mapping[str, Any]) -> List[Dict[str, Any]]:
        entries = [dict(entry)] + [e for e in self.entries() if e.get("orderId") != entry["orderId"]]
        entries = entries[: self.limit]
        _write_json(self.path, entries)
        return entries

    def delete(self, order_id: int) -> bool:
        entries = self.entries()
        kept = [e for e in entries if e.get("orderId") != order_id]
        if len(kept) == len(entries):
            return False
        _write_json(self.path, kept)
        return True

    def clear(self) -> None:
        _write_json(self.path, [])


def export_order(
    cart: CartSynchronizer,
    order_ids: OrderIdClient,
    customer_info: Mapping[str, Any],
    language: str = "en",
    history: Optional[OrderHistory] = None,
    out_dir: Optional[str] = None,
) -> Tuple[Dict[str, Any], str]:
    """
    Cart -> order form PDF. Returns (history entry, pdf path).

    Input is checked before an order id is taken, so a bad form does not burn
    a number.
    """
    normalize_customer_info(customer_info)
    view = cart.read()
    if not view.items:
        raise ValidationError("Cart is empty.")

    order_id = order_ids.next_order_id()
    form = build_order_form(view, customer_info, language, order_id)

    out_dir = out_dir or settings.export_dir
    os.makedirs(out_dir, exist_ok=True)
    path = render_order_pdf(form, os.path.join(out_dir, f"order-form-{order_id}.pdf"))

    entry = entry_from_form(form)
    if history is not None:
        history.add(entry)
    logger.info("Order %s exported: %s items", order_id, form["totalItems"])
    return entry, str(path)
