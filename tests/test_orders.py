"""
Tests for the order form: payload, PDF, history and spreadsheet exports.
"""
import io
import os
import shutil
import tempfile
import unittest
from datetime import datetime

from openpyxl import load_workbook

from catalog.client.cart_sync import CartSynchronizer, MemoryCartStore, StaticCatalog
from catalog.client.orders import OrderHistory, export_order
from catalog.errors import ValidationError
from catalog.services.cart import CartLine, summarize
from catalog.services.exports import export_catalog_xlsx, export_order_xlsx
from catalog.services.order_form import build_order_form, display_name, entry_from_form, total_label
from catalog.services.order_pdf import render_order_pdf
from catalog.services.sheets import read_xlsx_rows
from catalog.services.bulk_import import resolve_aliases

RECORDS = {
    1: {"id": 1, "specialId": "CR01", "className": "Anillo", "classNameEnglish": "Ring",
        "classNameArabic": "خاتم", "quality": "A", "classPrice": 10.0},
    2: {"id": 2, "specialId": "CR02", "className": "Cadena", "quality": "B", "classPrice": None},
}
CUSTOMER = {"fullName": "Jane Buyer", "company": "Acme", "phone": "", "salesPerson": "Sam", "notes": None}


class FixedOrderIds:
    def __init__(self, start=1000):
        self.value = start - 1

    def next_order_id(self):
        self.value += 1
        return self.value


class TestOrderForm(unittest.TestCase):

    def setUp(self):
        self.view = summarize([CartLine(1, 2), CartLine(2, 1)], RECORDS)

    def test_exact_shape(self):
        form = build_order_form(self.view, CUSTOMER, "es", 1000)
        self.assertEqual(
            set(form),
            {"items", "customerInfo", "knownTotal", "totalItems", "hasUnknownPrices", "language", "orderId"},
        )
        self.assertEqual(form["knownTotal"], 20.0)
        self.assertEqual(form["totalItems"], 3)
        self.assertTrue(form["hasUnknownPrices"])
        self.assertEqual(form["customerInfo"]["notes"], "")

    def test_full_name_required(self):
        with self.assertRaises(ValidationError):
            build_order_form(self.view, {"company": "Acme"}, "en", 1000)

    def test_empty_cart_rejected(self):
        with self.assertRaises(ValidationError):
            build_order_form(summarize([], RECORDS), CUSTOMER, "en", 1000)

    def test_unknown_language_falls_back_to_english(self):
        self.assertEqual(build_order_form(self.view, CUSTOMER, "de", 1)["language"], "en")

    def test_display_name_per_language(self):
        self.assertEqual(display_name(RECORDS[1], "en"), "Ring")
        self.assertEqual(display_name(RECORDS[1], "ar"), "خاتم")
        self.assertEqual(display_name(RECORDS[1], "es"), "Anillo")
        self.assertEqual(display_name(RECORDS[2], "en"), "Cadena")

    def test_partial_total_label(self):
        self.assertEqual(total_label(False, "en"), "Order total")
        self.assertIn("Partial", total_label(True, "en"))


class TestOrderPdf(unittest.TestCase):

    def test_renders_to_stream(self):
        view = summarize([CartLine(1, 2), CartLine(2, 1)], RECORDS)
        buf = io.BytesIO()
        render_order_pdf(build_order_form(view, CUSTOMER, "en", 1000), buf, now=datetime(2026, 1, 2, 3, 4))
        self.assertTrue(buf.getvalue().startswith(b"%PDF"))

    def test_long_order_paginates(self):
        records = {i: {"id": i, "specialId": f"CR{i:03d}", "className": f"Item {i}", "classPrice": 1.0}
                   for i in range(1, 121)}
        view = summarize([CartLine(i, 1) for i in records], records)
        buf = io.BytesIO()
        render_order_pdf(build_order_form(view, CUSTOMER, "es", 1001), buf)
        data = buf.getvalue()
        self.assertGreaterEqual(data.count(b"/Type /Page") - data.count(b"/Type /Pages"), 2)


class TestHistoryAndExports(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def _entry(self, order_id):
        view = summarize([CartLine(1, 2), CartLine(2, 1)], RECORDS)
        return entry_from_form(build_order_form(view, CUSTOMER, "en", order_id), datetime(2026, 3, 1, 12, 0))

    def test_history_newest_first_and_capped(self):
        history = OrderHistory(os.path.join(self.tmp, "history.json"), limit=3)
        for order_id in range(1000, 1005):
            history.add(self._entry(order_id))
        self.assertEqual([e["orderId"] for e in history.entries()], [1004, 1003, 1002])

    def test_history_delete(self):
        history = OrderHistory(os.path.join(self.tmp, "history.json"))
        history.add(self._entry(1000))
        history.add(self._entry(1001))
        self.assertTrue(history.delete(1000))
        self.assertFalse(history.delete(1000))
        self.assertIsNone(history.get(1000))
        self.assertEqual(len(history.entries()), 1)

    def test_order_xlsx(self):
        path = os.path.join(self.tmp, "order.xlsx")
        export_order_xlsx(self._entry(1000), path)
        ws = load_workbook(path).active
        self.assertEqual(ws["A1"].value, "Order ID")
        self.assertEqual(ws["B2"].value, "01/03/2026")
        self.assertEqual(ws["E2"].value, "Ring")
        self.assertEqual(ws["H2"].value, "=F2*G2")
        self.assertIn(ws["H3"].value, ("", None))
        self.assertEqual(ws["G4"].value, "Total")
        self.assertEqual(ws["H4"].value, "=SUM(H2:H3)")

    def test_catalog_export_reads_back(self):
        buf = io.BytesIO()
        export_catalog_xlsx([dict(RECORDS[1], classWeight=1.5, classQuantity=3)], buf)
        buf.seek(0)
        rows = read_xlsx_rows(buf)
        self.assertEqual(len(rows), 1)
        payload = resolve_aliases(rows[0])
        self.assertEqual(payload["specialId"], "CR01")
        self.assertEqual(payload["classWeight"], 1.5)
        self.assertEqual(payload["classQuantity"], 3)

    def test_export_order_end_to_end(self):
        sync = CartSynchronizer(MemoryCartStore(), StaticCatalog(RECORDS.values()))
        history = OrderHistory(os.path.join(self.tmp, "history.json"))
        try:
            sync.add(1)
            sync.add(2)
            entry, path = export_order(sync, FixedOrderIds(), CUSTOMER, "en", history, out_dir=self.tmp)
        finally:
            sync.close()
        self.assertEqual(entry["orderId"], 1000)
        self.assertTrue(path.endswith("order-form-1000.pdf"))
        self.assertTrue(os.path.exists(path))
        self.assertEqual(history.entries()[0]["orderId"], 1000)

    def test_export_order_validates_before_taking_id(self):
        sync = CartSynchronizer(MemoryCartStore(), StaticCatalog(RECORDS.values()))
        ids = FixedOrderIds()
        try:
            sync.add(1)
            with self.assertRaises(ValidationError):
                export_order(sync, ids, {"fullName": " "}, "en", out_dir=self.tmp)
        finally:
            sync.close()
        self.assertEqual(ids.next_order_id(), 1000)


if __name__ == "__main__":
    unittest.main()
