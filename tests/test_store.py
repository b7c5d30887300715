"""
Tests for catalog.db.sqlite

Covers: list filters and ordering, unique special ids, settings key/value.
"""
import unittest

from catalog.errors import DuplicateSpecialIdError, NotFoundError, StorageError

from support import TempDbTestCase


class TestClassStore(TempDbTestCase):

    def test_insert_sets_timestamps(self):
        row = self.add_class("CR01")
        self.assertIsNotNone(row["id"])
        self.assertTrue(row["created_at"])
        self.assertEqual(row["created_at"], row["updated_at"])

    def test_duplicate_special_id_rejected(self):
        self.add_class("CR01")
        with self.assertRaises(DuplicateSpecialIdError):
            self.add_class("CR01")

    def test_get_by_special_id_ignores_case(self):
        row = self.add_class("CR07")
        self.assertEqual(self.store.get_by_special_id("cr07")["id"], row["id"])
        self.assertIsNone(self.store.get_by_special_id("CR08"))

    def test_list_hides_zero_quantity_by_default(self):
        self.add_class("CR01", class_quantity=0)
        self.add_class("CR02", class_quantity=3)
        self.add_class("CR03")
        codes = {r["special_id"] for r in self.store.list()}
        self.assertEqual(codes, {"CR02", "CR03"})
        self.assertEqual(len(self.store.list(include_zero_quantity=True)), 3)

    def test_list_puts_records_with_video_first(self):
        self.add_class("CR01", main_category="A")
        self.add_class("CR02", main_category="Z", class_video="/uploads/x.mp4")
        rows = self.store.list()
        self.assertEqual(rows[0]["special_id"], "CR02")

    def test_list_filters(self):
        self.add_class("CR01", class_name="Gold ring", class_name_ar="خاتم", quality="A")
        self.add_class("XX02", class_name="Silver chain", main_category="Chains", quality="B")

        self.assertEqual(len(self.store.list(class_name_search="GOLD")), 1)
        self.assertEqual(len(self.store.list(class_name_search="خاتم")), 1)
        self.assertEqual(self.store.list(code_search="x0")[0]["special_id"], "XX02")
        self.assertEqual(len(self.store.list(category="chains")), 1)
        self.assertEqual(len(self.store.list(quality="b")), 1)

    def test_special_ids_with_prefix_is_literal(self):
        self.add_class("C_01")
        self.add_class("CX01")
        self.assertEqual(self.store.special_ids_with_prefix("C_"), ["C_01"])

    def test_update_missing_raises(self):
        with self.assertRaises(NotFoundError):
            self.store.update(999, {"class_name": "x"})

    def test_update_rejects_unknown_columns(self):
        row = self.add_class("CR01")
        with self.assertRaises(StorageError):
            self.store.update(row["id"], {"id": 5})

    def test_delete_and_delete_all(self):
        a = self.add_class("CR01")
        self.add_class("CR02")
        self.assertEqual(self.store.delete(a["id"])["special_id"], "CR01")
        with self.assertRaises(NotFoundError):
            self.store.delete(a["id"])
        self.assertEqual(len(self.store.delete_all()), 1)
        self.assertEqual(self.store.list(include_zero_quantity=True), [])

    def test_count_video_refs(self):
        self.add_class("CR01", class_video="/uploads/a.mp4")
        self.add_class("CR02", class_video="/uploads/a.mp4")
        self.assertEqual(self.store.count_video_refs("/uploads/a.mp4"), 2)
        self.assertEqual(self.store.count_video_refs("/uploads/b.mp4"), 0)


class TestSettingsStore(TempDbTestCase):

    def test_get_default_and_overwrite(self):
        self.assertEqual(self.settings_store.get("k", "d"), "d")
        self.settings_store.set("k", "1")
        self.settings_store.set("k", "2")
        self.assertEqual(self.settings_store.get("k"), "2")


if __name__ == "__main__":
    unittest.main()
