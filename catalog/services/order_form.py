from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union

from catalog.constants import LABELS, LANGUAGES
from catalog.errors import ValidationError
from catalog.services.cart import CartView

CUSTOMER_FIELDS = ("fullName", "company", "phone", "salesPerson", "notes")


def normalize_language(language: Optional[str]) -> str:
    language = (language or "en").strip().lower()
    return language if language in LANGUAGES else "en"


def label(key: str, language: str) -> str:
    return LABELS[key][LANGUAGES.index(normalize_language(language))]


def display_name(record: Mapping[str, Any], language: str) -> str:
    language = normalize_language(language)
    if language == "ar" and record.get("classNameArabic"):
        return record["classNameArabic"]
    if language == "en" and record.get("classNameEnglish"):
        return record["classNameEnglish"]
    return record.get("className") or ""


def total_label(has_unknown_prices: bool, language: str) -> str:
    # неполная сумма должна быть подписана как неполная
    return label("partial_total" if has_unknown_prices else "order_total", language)


def normalize_customer_info(info: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    info = info or {}
    out = {k: str(info.get(k) or "").strip() for k in CUSTOMER_FIELDS}
    if not out["fullName"]:
        raise ValidationError("Full name is required.")
    return out


def build_order_form(
    view: Union[CartView, Mapping[str, Any]],
    customer_info: Mapping[str, Any],
    language: str,
    order_id: int,
) -> Dict[str, Any]:
    """The exact payload the order-form renderer consumes."""
    if isinstance(view, CartView):
        view = view.to_dict()
    if not view.get("items"):
        raise ValidationError("Cart is empty.")
    return {
        "items": [{"record": dict(i["record"]), "quantity": int(i["quantity"])} for i in view["items"]],
        "customerInfo": normalize_customer_info(customer_info),
        "knownTotal": float(view.get("knownTotal") or 0),
        "totalItems": int(view.get("totalItems") or 0),
        "hasUnknownPrices": bool(view.get("hasUnknownPrices")),
        "language": normalize_language(language),
        "orderId": int(order_id),
    }


def entry_from_form(form: Mapping[str, Any], created_at: Optional[datetime] = None) -> Dict[str, Any]:
    items: List[Dict[str, Any]] = []
    for item in form["items"]:
        r = item["record"]
        items.append(
            {
                "classId": r.get("id"),
                "quantity": item["quantity"],
                "specialId": r.get("specialId"),
                "quality": r.get("quality"),
                "className": r.get("className"),
                "classNameArabic": r.get("classNameArabic"),
                "classNameEnglish": r.get("classNameEnglish"),
                "classPrice": r.get("classPrice"),
            }
        )
    return {
        "orderId": form["orderId"],
        "createdAt": (created_at or datetime.now()).isoformat(timespec="seconds"),
        "customerInfo": dict(form["customerInfo"]),
        "items": items,
        "knownTotal": form["knownTotal"],
        "totalItems": form["totalItems"],
        "hasUnknownPrices": form["hasUnknownPrices"],
        "language": form["language"],
    }
