from __future__ import annotations

from datetime import datetime
from typing import Any, BinaryIO, Iterable, Mapping, Optional, Union

from openpyxl import Workbook
from openpyxl.styles import Font

from catalog.constants import CATALOG_EXPORT_HEADER, ORDER_EXPORT_HEADER
from catalog.services.order_form import display_name, label

Target = Union[str, BinaryIO]


def _blank(v: Any) -> Any:
    return "" if v is None else v


def export_catalog_xlsx(records: Iterable[Mapping[str, Any]], target: Target) -> Target:
    """Catalog dump whose header the bulk importer reads back as is."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Classes"
    ws.append(list(CATALOG_EXPORT_HEADER))
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for r in records:
        ws.append(
            [
                r.get("specialId"),
                r.get("mainCategory"),
                r.get("quality"),
                r.get("className"),
                _blank(r.get("classNameArabic")),
                _blank(r.get("classNameEnglish")),
                _blank(r.get("classFeatures")),
                _blank(r.get("classPrice")),
                _blank(r.get("classWeight")),
                _blank(r.get("classQuantity")),
                _blank(r.get("classVideo")),
            ]
        )

    wb.save(target)
    return target


def export_order_xlsx(
    entry: Mapping[str, Any],
    target: Target,
    language: Optional[str] = None,
) -> Target:
    """
    One order from the history as a sheet:
    Order ID | Date | Code | Group | Product Name | Quantity | Unit Price | Subtotal.
    Subtotal is a formula (Quantity * Unit Price), the last row sums them.
    """
    lang = entry.get("language") or language or "en"
    created = entry.get("createdAt")
    try:
        date_text = datetime.fromisoformat(created).strftime("%d/%m/%Y") if created else ""
    except ValueError:
        date_text = str(created)

    wb = Workbook()
    ws = wb.active
    ws.title = "Order"
    ws.append(list(ORDER_EXPORT_HEADER))
    for cell in ws[1]:
        cell.font = Font(bold=True)

    first = 2
    for i, item in enumerate(entry.get("items") or []):
        row = first + i
        price = item.get("classPrice")
        ws.append(
            [
                entry["orderId"],
                date_text,
                item.get("specialId"),
                item.get("quality") or "",
                display_name(item, lang),
                item.get("quantity"),
                "" if price is None else price,
                f"=F{row}*G{row}" if price is not None else "",
            ]
        )

    last = ws.max_row
    total_row = last + 1
    ws.cell(row=total_row, column=7, value=label("total", lang)).font = Font(bold=True)
    ws.cell(
        row=total_row,
        column=8,
        value=f"=SUM(H{first}:H{last})" if last >= first else 0,
    ).font = Font(bold=True)

    for col, width in zip("ABCDEFGH", (10, 12, 12, 12, 40, 10, 14, 14)):
        ws.column_dimensions[col].width = width

    wb.save(target)
    return target
