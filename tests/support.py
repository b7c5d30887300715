"""Shared fixtures: a fresh sqlite database per test case."""
import os
import shutil
import tempfile
import unittest

from catalog.db.sqlite import ClassStore, SettingsStore, init_db


class TempDbTestCase(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.db_path = os.path.join(self.tmp, "catalog.db")
        init_db(self.db_path)
        self.store = ClassStore(self.db_path)
        self.settings_store = SettingsStore(self.db_path)

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def add_class(self, special_id, **fields):
        record = {
            "special_id": special_id,
            "main_category": fields.pop("main_category", "Rings"),
            "quality": fields.pop("quality", "A"),
            "class_name": fields.pop("class_name", f"Class {special_id}"),
        }
        record.update(fields)
        return self.store.insert(record)
