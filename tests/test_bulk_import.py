"""
Tests for catalog.services.bulk_import

Rows are reconciled concurrently; results must not depend on worker count.
"""
import unittest

from catalog.services.bulk_import import reconcile, resolve_aliases

from support import TempDbTestCase


def sheet_row(special_id, **extra):
    row = {
        "Special ID": special_id,
        "Main Category": "Rings",
        "Group": "A",
        "Class Name": f"Class {special_id}",
        "Class Features": "",
        "Class Price": "10",
        "Class KG": "",
        "Class Quantity": "5",
        "Class Video": "",
    }
    row.update(extra)
    return row


class TestResolveAliases(unittest.TestCase):

    def test_first_non_empty_alias_wins(self):
        out = resolve_aliases({"Class KG": "", "class_weight": "1.5", "Class Weight": "9"})
        self.assertEqual(out["classWeight"], "1.5")

    def test_export_header_and_snake_case(self):
        out = resolve_aliases({"Class Weight (kg)": 2, "class_name_ar": "خاتم", " Group ": "B"})
        self.assertEqual(out["classWeight"], 2)
        self.assertEqual(out["classNameArabic"], "خاتم")
        self.assertEqual(out["quality"], "B")

    def test_missing_columns_are_empty(self):
        out = resolve_aliases({})
        self.assertEqual(out["specialId"], "")
        self.assertEqual(out["classVideoUrl"], "")


class TestReconcile(TempDbTestCase):

    def test_mixed_sheet(self):
        self.add_class("CR01", class_features="old", class_price=10.0, class_quantity=5)
        before = self.store.get_by_special_id("CR01")

        rows = [
            sheet_row("CR05"),
            sheet_row("CR06", **{"Class Price": "abc"}),
            sheet_row("CR01", **{"Class Name": "Class CR01", "Class Features": "new"}),
        ]
        result = reconcile(self.store, rows, workers=3)

        self.assertEqual(result.processed_count, 2)
        self.assertEqual(result.skipped_count, 1)
        self.assertEqual(result.skipped[0]["index"], 3)
        self.assertIn("classPrice", result.skipped[0]["reason"])

        self.assertIsNotNone(self.store.get_by_special_id("CR05"))
        self.assertIsNone(self.store.get_by_special_id("CR06"))
        after = self.store.get_by_special_id("CR01")
        self.assertEqual(after["class_features"], "new")
        for column in ("main_category", "quality", "class_name", "class_price", "class_quantity"):
            self.assertEqual(after[column], before[column])

    def test_missing_special_id_skipped(self):
        result = reconcile(self.store, [sheet_row("")])
        self.assertEqual(result.skipped, [{"index": 2, "reason": "Special ID is required."}])

    def test_update_only_does_not_create(self):
        self.add_class("CR01")
        result = reconcile(self.store, [sheet_row("CR01"), sheet_row("CR02")], update_only=True)
        self.assertEqual(result.processed_count, 1)
        self.assertEqual(result.skipped[0]["index"], 3)
        self.assertEqual(result.skipped[0]["reason"], "Record not found (update only mode).")
        self.assertIsNone(self.store.get_by_special_id("CR02"))

    def test_reimport_is_idempotent(self):
        rows = [sheet_row("CR%02d" % i) for i in range(1, 8)]
        first = reconcile(self.store, rows, workers=4)
        self.assertEqual({p["action"] for p in first.processed}, {"created"})
        stamps = {r["special_id"]: r["updated_at"] for r in self.store.list(include_zero_quantity=True)}

        second = reconcile(self.store, rows, workers=2)
        self.assertEqual(second.processed_count, 7)
        self.assertEqual({p["action"] for p in second.processed}, {"unchanged"})
        again = {r["special_id"]: r["updated_at"] for r in self.store.list(include_zero_quantity=True)}
        self.assertEqual(stamps, again)

    def test_empty_video_cell_keeps_uploaded_video(self):
        self.add_class("CR01", class_video="/uploads/1-1.mp4", class_price=10.0, class_quantity=5)
        result = reconcile(self.store, [sheet_row("CR01", **{"Class Name": "Renamed"})])
        self.assertEqual(result.processed[0]["action"], "updated")
        row = self.store.get_by_special_id("CR01")
        self.assertEqual(row["class_name"], "Renamed")
        self.assertEqual(row["class_video"], "/uploads/1-1.mp4")

    def test_video_cell_overwrites_stored_video(self):
        self.add_class("CR01", class_video="/uploads/1-1.mp4", class_price=10.0, class_quantity=5)
        result = reconcile(self.store, [sheet_row("CR01", **{"Class Video": "https://cdn.example.com/ring.mp4"})])
        self.assertEqual(result.processed[0]["action"], "updated")
        row = self.store.get_by_special_id("CR01")
        self.assertEqual(row["class_video"], "https://cdn.example.com/ring.mp4")

    def test_out_of_range_quantity_skips_only_that_row(self):
        rows = [
            sheet_row("CR01"),
            sheet_row("CR02", **{"Class Quantity": "99999999999999999999"}),
            sheet_row("CR03"),
        ]
        result = reconcile(self.store, rows, workers=2)
        self.assertEqual([p["specialId"] for p in result.processed], ["CR01", "CR03"])
        self.assertEqual(result.skipped_count, 1)
        self.assertEqual(result.skipped[0]["index"], 3)
        self.assertIn("out of range", result.skipped[0]["reason"])
        self.assertIsNone(self.store.get_by_special_id("CR02"))

    def test_duplicate_new_code_in_one_sheet_is_reported(self):
        result = reconcile(self.store, [sheet_row("CR09"), sheet_row("CR09")], workers=1)
        # второй экземпляр либо обновляет первый, либо упирается в UNIQUE
        self.assertEqual(result.processed_count + result.skipped_count, 2)
        self.assertEqual(len(self.store.list(include_zero_quantity=True)), 1)

    def test_results_sorted_by_index(self):
        rows = [sheet_row(""), sheet_row("CR01"), sheet_row(""), sheet_row("CR02")]
        result = reconcile(self.store, rows, workers=4)
        self.assertEqual([s["index"] for s in result.skipped], [2, 4])
        self.assertEqual([p["index"] for p in result.processed], [3, 5])

    def test_to_dict_shape(self):
        data = reconcile(self.store, [sheet_row("CR01")]).to_dict()
        self.assertEqual(set(data), {"processedCount", "skippedCount", "skipped", "processed"})


if __name__ == "__main__":
    unittest.main()
