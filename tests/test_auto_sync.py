"""
Tests for catalog.services.auto_sync

Ticks that arrive while a sync is running are dropped, never queued.
"""
import threading
import unittest

from catalog.constants import SETTINGS_SHEETS_AUTO_SYNC, SETTINGS_SHEETS_URL
from catalog.errors import InvalidSourceError
from catalog.services.auto_sync import SheetAutoSync

from support import TempDbTestCase

URL = "https://docs.google.com/spreadsheets/d/abc/edit"


class TestSheetAutoSync(TempDbTestCase):

    def setUp(self):
        super().setUp()
        self.calls = []
        self.auto = SheetAutoSync(self.settings_store, runner=self.calls.append, interval=0.05)

    def tearDown(self):
        self.auto.stop()
        super().tearDown()

    def _enable(self):
        self.settings_store.set(SETTINGS_SHEETS_URL, URL)
        self.settings_store.set(SETTINGS_SHEETS_AUTO_SYNC, "true")

    def test_disabled_tick_is_noop(self):
        self.settings_store.set(SETTINGS_SHEETS_URL, URL)
        self.assertFalse(self.auto.tick())
        self.assertEqual(self.calls, [])

    def test_enabled_without_url_is_noop(self):
        self.settings_store.set(SETTINGS_SHEETS_AUTO_SYNC, "true")
        self.assertFalse(self.auto.tick())

    def test_tick_runs_with_stored_url(self):
        self._enable()
        self.assertTrue(self.auto.tick())
        self.assertEqual(self.calls, [URL])

    def test_tick_dropped_while_busy(self):
        self._enable()
        started = threading.Event()
        release = threading.Event()

        def slow_run():
            started.set()
            release.wait(5)
            return "done"

        results = []
        worker = threading.Thread(target=lambda: results.append(self.auto.run_exclusive(slow_run)))
        worker.start()
        self.assertTrue(started.wait(5))

        self.assertTrue(self.auto.busy)
        self.assertFalse(self.auto.tick())
        self.assertIsNone(self.auto.run_exclusive(lambda: "second"))

        release.set()
        worker.join(5)
        self.assertEqual(results, ["done"])
        self.assertEqual(self.calls, [])
        self.assertTrue(self.auto.tick())

    def test_loop_survives_failures(self):
        self._enable()
        attempts = []
        done = threading.Event()

        def failing(url):
            attempts.append(url)
            if len(attempts) >= 2:
                done.set()
            raise InvalidSourceError("sheet gone")

        auto = SheetAutoSync(self.settings_store, runner=failing, interval=0.01)
        auto.start()
        try:
            self.assertTrue(done.wait(5))
        finally:
            auto.stop()
        self.assertFalse(auto.busy)

    def test_loop_survives_unexpected_errors(self):
        self._enable()
        attempts = []
        done = threading.Event()

        def broken(url):
            attempts.append(url)
            if len(attempts) >= 2:
                done.set()
            raise OverflowError("int too big")

        auto = SheetAutoSync(self.settings_store, runner=broken, interval=0.01)
        auto.start()
        try:
            self.assertTrue(done.wait(5))
        finally:
            auto.stop()
        self.assertGreaterEqual(len(attempts), 2)


if __name__ == "__main__":
    unittest.main()
