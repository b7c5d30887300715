from __future__ import annotations

import os
from datetime import datetime
from typing import Any, BinaryIO, Mapping, Optional, Union

from reportlab.lib.pagesizes import A4
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from catalog.config import settings
from catalog.services.order_form import display_name, label, total_label
from catalog.utils.formatters import money, money_or_dash

_FONT = "Helvetica"
_FONT_BOLD = "Helvetica-Bold"


def _fonts() -> tuple[str, str]:
    # для арабских названий нужен TTF с арабскими глифами (PDF_FONT_PATH)
    if not settings.pdf_font_path:
        return _FONT, _FONT_BOLD
    if "OrderFont" not in pdfmetrics.getRegisteredFontNames():
        pdfmetrics.registerFont(TTFont("OrderFont", settings.pdf_font_path))
    return "OrderFont", "OrderFont"


def render_order_pdf(
    form: Mapping[str, Any],
    target: Union[str, BinaryIO, None] = None,
    now: Optional[datetime] = None,
) -> Union[str, BinaryIO]:
    """Рисует бланк заказа. ``target`` - путь или поток; по умолчанию EXPORT_DIR."""
    if target is None:
        os.makedirs(settings.export_dir, exist_ok=True)
        target = os.path.join(settings.export_dir, f"order-form-{form['orderId']}.pdf")

    lang = form["language"]
    info = form["customerInfo"]
    font, font_bold = _fonts()
    now = now or datetime.now()

    c = canvas.Canvas(target, pagesize=A4)
    w, h = A4

    y = h - 50
    c.setFont(font_bold, 14)
    c.drawString(40, y, f"{label('order_form', lang)} #{form['orderId']}")
    c.setFont(font, 10)
    c.drawRightString(550, y, now.strftime("%d/%m/%Y - %H:%M"))
    y -= 22

    c.setFont(font, 11)
    for key, field in (
        ("full_name", "fullName"),
        ("company", "company"),
        ("phone", "phone"),
        ("sales_person", "salesPerson"),
        ("notes", "notes"),
    ):
        if info.get(field):
            c.drawString(40, y, f"{label(key, lang)}: {info[field]}")
            y -= 16
    y -= 8

    def header(y: float) -> float:
        c.setFont(font_bold, 10)
        c.drawString(40, y, label("code", lang))
        c.drawString(110, y, label("product", lang))
        c.drawRightString(380, y, label("qty", lang))
        c.drawRightString(460, y, label("price", lang))
        c.drawRightString(550, y, label("subtotal", lang))
        y -= 10
        c.line(40, y, 550, y)
        return y - 16

    y = header(y)
    c.setFont(font, 10)
    for item in form["items"]:
        r = item["record"]
        q = item["quantity"]
        price = r.get("classPrice")
        c.drawString(40, y, str(r.get("specialId") or "")[:12])
        c.drawString(110, y, display_name(r, lang)[:42])
        c.drawRightString(380, y, str(q))
        c.drawRightString(460, y, money_or_dash(price))
        c.drawRightString(550, y, "-" if price is None else money(float(price) * q))
        y -= 14
        if y < 80:
            c.showPage()
            y = header(h - 50)
            c.setFont(font, 10)

    y -= 10
    c.line(40, y, 550, y)
    y -= 18
    c.setFont(font, 11)
    c.drawRightString(550, y, f"{label('total_items', lang)}: {form['totalItems']}")
    y -= 18
    c.setFont(font_bold, 12)
    c.drawRightString(
        550, y, f"{total_label(form['hasUnknownPrices'], lang)}: {money(float(form['knownTotal']))}"
    )

    c.save()
    return target
