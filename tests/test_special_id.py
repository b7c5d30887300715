"""Tests for catalog.services.special_id"""
import unittest

from catalog.services.special_id import next_special_id

from support import TempDbTestCase


class TestNextSpecialId(TempDbTestCase):

    def test_empty_catalog_starts_at_01(self):
        self.assertEqual(next_special_id(self.store), "CR01")

    def test_increments_max_suffix(self):
        for code in ("CR01", "CR07", "CR03"):
            self.add_class(code)
        self.assertEqual(next_special_id(self.store), "CR08")

    def test_width_follows_longest_max_suffix(self):
        self.add_class("CR099")
        self.assertEqual(next_special_id(self.store), "CR100")

    def test_non_numeric_suffix_counts_as_zero(self):
        self.add_class("CRAB")
        self.assertEqual(next_special_id(self.store), "CR01")

    def test_prefix_is_upper_cased_and_separate(self):
        self.add_class("CR05")
        self.add_class("MX09")
        self.assertEqual(next_special_id(self.store, "mx"), "MX10")
        self.assertEqual(next_special_id(self.store, "ZZ"), "ZZ01")

    def test_superscript_suffix_counts_as_zero(self):
        self.add_class("CR\u00b2")
        self.assertEqual(next_special_id(self.store), "CR01")


if __name__ == "__main__":
    unittest.main()
