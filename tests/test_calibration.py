import sqlite3
import tempfile
import unittest
from datetime import date, datetime, timezone
from pathlib import Path

from stack_tracker.pricing.calibration import DEFAULT_GLD_RATIO, DEFAULT_SLV_RATIO, EtfRatioCalibrator
from stack_tracker.pricing.models import CalibrationRecord, EtfRatios
from stack_tracker.storage import NullRatioStore, SqliteRatioStore, build_ratio_store

NOW = datetime(2024, 4, 19, 21, 0, tzinfo=timezone.utc)


class _Quotes:
    def __init__(self, slv=28.10, gld=246.9):
        self.slv = slv
        self.gld = gld
        self.calls = 0

    def current_etf_quotes(self):
        self.calls += 1
        return {"slv": self.slv, "gld": self.gld}


class _BrokenStore(NullRatioStore):
    def upsert(self, record):
        raise sqlite3.OperationalError("database is locked")

    def latest_on_or_before(self, day):
        raise sqlite3.OperationalError("database is locked")


def _record(day, slv_ratio, gld_ratio):
    return CalibrationRecord(
        date=day, slv_ratio=slv_ratio, gld_ratio=gld_ratio, slv_price=28.0, gld_price=240.0,
        gold_spot=2600.0, silver_spot=30.0, updated_at=datetime(day.year, day.month, day.day, tzinfo=timezone.utc),
    )


class CalibratorTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.db_path = str(Path(self.tmp.name) / "ratios.sqlite3")
        self.store = SqliteRatioStore(self.db_path)

    def tearDown(self):
        self.tmp.cleanup()

    def _calibrator(self, quotes=None, store=None, now=NOW):
        return EtfRatioCalibrator(quotes or _Quotes(), store or self.store, clock=lambda: now)

    def test_calibrate_computes_ratios(self):
        result = self._calibrator().calibrate(2650, 30.5)
        self.assertAlmostEqual(result.slv_ratio, 0.9213, places=4)
        self.assertAlmostEqual(result.gld_ratio, 0.09317, places=5)
        self.assertEqual(result.slv_price, 28.10)
        self.assertEqual(result.gld_price, 246.9)

    def test_calibrate_persists_record_for_today(self):
        self._calibrator().calibrate(2650, 30.5)
        record = self.store.latest()
        self.assertEqual(record.date, date(2024, 4, 19))
        self.assertEqual(record.gold_spot, 2650)
        self.assertEqual(record.silver_spot, 30.5)
        self.assertAlmostEqual(record.slv_ratio, 28.10 / 30.5)

    def test_missing_quote_aborts_without_side_effects(self):
        for quotes in (_Quotes(slv=None), _Quotes(gld=None)):
            calibrator = self._calibrator(quotes=quotes)
            self.assertIsNone(calibrator.calibrate(2650, 30.5))
            self.assertIsNone(calibrator.cached_ratios()["date"])
            self.assertEqual(self.store.count(), 0)
            self.assertTrue(calibrator.needs_calibration())

    def test_non_positive_spot_aborts(self):
        quotes = _Quotes()
        self.assertIsNone(self._calibrator(quotes=quotes).calibrate(0, 30.5))
        self.assertEqual(quotes.calls, 0)

    def test_recalibration_same_day_overwrites(self):
        calibrator = self._calibrator()
        calibrator.calibrate(2650, 30.5)
        calibrator.quotes = _Quotes(slv=29.0, gld=250.0)
        calibrator.calibrate(2650, 30.5)
        self.assertEqual(self.store.count(), 1)
        self.assertAlmostEqual(self.store.latest().slv_ratio, 29.0 / 30.5)

    def test_defaults_before_any_calibration(self):
        ratios = self._calibrator().get_ratio_for_date(date(2020, 1, 1))
        self.assertEqual(ratios, EtfRatios(DEFAULT_SLV_RATIO, DEFAULT_GLD_RATIO))

    def test_today_served_from_memory(self):
        calibrator = self._calibrator(store=NullRatioStore())
        result = calibrator.calibrate(2650, 30.5)
        ratios = calibrator.get_ratio_for_date(date(2024, 4, 19))
        self.assertEqual(ratios.slv_ratio, result.slv_ratio)
        # no store behind it, so other days get defaults
        self.assertEqual(calibrator.get_ratio_for_date(date(2024, 4, 20)).slv_ratio, DEFAULT_SLV_RATIO)

    def test_later_calibration_not_applied_retroactively(self):
        self.store.upsert(_record(date(2024, 3, 1), 0.93, 0.094))
        self.store.upsert(_record(date(2024, 4, 1), 0.925, 0.0935))
        calibrator = self._calibrator()
        self.assertEqual(calibrator.get_ratio_for_date(date(2024, 2, 28)).slv_ratio, DEFAULT_SLV_RATIO)
        self.assertEqual(calibrator.get_ratio_for_date(date(2024, 3, 15)).slv_ratio, 0.93)
        self.assertEqual(calibrator.get_ratio_for_date(date(2024, 4, 1)).gld_ratio, 0.0935)
        self.assertEqual(calibrator.get_ratio_for_date(date(2024, 4, 10)).slv_ratio, 0.925)

    def test_storage_failure_is_swallowed(self):
        calibrator = self._calibrator(store=_BrokenStore())
        result = calibrator.calibrate(2650, 30.5)
        self.assertIsNotNone(result)
        self.assertEqual(calibrator.get_ratio_for_date(date(2024, 4, 19)).slv_ratio, result.slv_ratio)
        self.assertEqual(calibrator.get_ratio_for_date(date(2024, 4, 18)).slv_ratio, DEFAULT_SLV_RATIO)

    def test_needs_calibration_reads_store_in_a_new_process(self):
        self._calibrator().calibrate(2650, 30.5)
        fresh = self._calibrator()
        self.assertFalse(fresh.needs_calibration())
        next_day = self._calibrator(now=datetime(2024, 4, 20, 1, 0, tzinfo=timezone.utc))
        self.assertTrue(next_day.needs_calibration())
        self.assertEqual(next_day.last_calibration_date(), date(2024, 4, 19))

    def test_etf_to_spot(self):
        calibrator = self._calibrator(store=NullRatioStore())
        calibrator.calibrate(2650, 30.5)
        self.assertEqual(calibrator.etf_to_spot(28.10, "silver", date(2024, 4, 19)), 30.5)
        self.assertEqual(calibrator.etf_to_spot(246.9, "gold", date(2024, 4, 19)), 2650.0)


class BuildRatioStoreTests(unittest.TestCase):
    def test_no_path_gives_null_store(self):
        self.assertIsInstance(build_ratio_store(None), NullRatioStore)

    def test_path_gives_sqlite_store(self):
        with tempfile.TemporaryDirectory() as tmp:
            store = build_ratio_store(str(Path(tmp) / "sub" / "ratios.sqlite3"))
            self.assertIsInstance(store, SqliteRatioStore)
            self.assertIsNone(store.latest())


if __name__ == "__main__":
    unittest.main()
