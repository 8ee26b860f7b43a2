import unittest
from datetime import date

from stack_tracker.pricing.historical import HistoricalPriceResolver
from stack_tracker.pricing.models import Metal, PriceSource, SpotSnapshot
from stack_tracker.pricing.store import PriceStore


class _FixedSpot:
    def __init__(self, silver=30.50, gold=2650.00):
        self.snap = SpotSnapshot(silver=silver, gold=gold)

    def snapshot(self):
        return self.snap


def _resolver(gold=None, ratios=None):
    return HistoricalPriceResolver(PriceStore(gold=gold, ratios=ratios), _FixedSpot())


class GoldResolutionTests(unittest.TestCase):
    def test_exact(self):
        r = _resolver(gold={date(2024, 4, 19): 2391.50}).resolve("2024-04-19", "gold")
        self.assertEqual(r.source, PriceSource.exact)
        self.assertEqual(r.price, 2391.50)

    def test_nearest(self):
        r = _resolver(gold={date(2024, 4, 19): 2391.50}).resolve("2024-04-20", Metal.gold)
        self.assertEqual(r.source, PriceSource.nearest)
        self.assertEqual(r.price, 2391.50)
        self.assertIn("2024-04-19", r.note)

    def test_out_of_window_falls_back_to_spot(self):
        r = _resolver(gold={date(2024, 4, 19): 2391.50}).resolve("2024-06-01", "gold")
        self.assertEqual(r.source, PriceSource.fallback)
        self.assertEqual(r.price, 2650.00)

    def test_accepts_date_objects(self):
        r = _resolver(gold={date(2024, 4, 19): 2391.50}).resolve(date(2024, 4, 19), "gold")
        self.assertEqual(r.source, PriceSource.exact)


class SilverResolutionTests(unittest.TestCase):
    def test_exact_gold_and_ratio(self):
        r = _resolver(gold={date(2024, 4, 19): 2391.50}, ratios={date(2024, 4, 19): 84.5}).resolve("2024-04-19", "silver")
        self.assertEqual(r.source, PriceSource.exact)
        self.assertEqual(r.price, 28.30)

    def test_exact_gold_with_nearby_ratio(self):
        r = _resolver(gold={date(2024, 4, 19): 2391.50}, ratios={date(2024, 4, 10): 85.0}).resolve("2024-04-19", "silver")
        self.assertEqual(r.source, PriceSource.interpolated)
        self.assertEqual(r.price, 28.14)
        self.assertIn("2024-04-10", r.note)

    def test_exact_gold_without_ratio_uses_typical_ratio(self):
        r = _resolver(gold={date(2024, 4, 19): 2391.50}, ratios={date(2023, 1, 1): 70.0}).resolve("2024-04-19", "silver")
        self.assertEqual(r.source, PriceSource.estimated)
        self.assertEqual(r.price, 29.89)

    def test_nearby_gold_and_nearby_ratio(self):
        r = _resolver(gold={date(2024, 4, 19): 2391.50}, ratios={date(2024, 4, 21): 84.0}).resolve("2024-04-22", "silver")
        self.assertEqual(r.source, PriceSource.interpolated)
        self.assertEqual(r.price, 28.47)
        self.assertIn("2024-04-19", r.note)

    def test_nearby_gold_without_ratio(self):
        r = _resolver(gold={date(2024, 4, 19): 2391.50}).resolve("2024-04-22", "silver")
        self.assertEqual(r.source, PriceSource.interpolated)
        self.assertEqual(r.price, 29.89)

    def test_no_data_falls_back_to_spot(self):
        r = _resolver().resolve("2024-04-19", "silver")
        self.assertEqual(r.source, PriceSource.fallback)
        self.assertEqual(r.price, 30.50)

    def test_impossible_calendar_date_falls_back(self):
        r = _resolver(gold={date(2024, 2, 28): 2000.0}).resolve("2024-02-30", "silver")
        self.assertEqual(r.source, PriceSource.fallback)

    def test_typical_ratio_is_configurable(self):
        resolver = HistoricalPriceResolver(PriceStore(gold={date(2024, 4, 19): 2400.0}), _FixedSpot(), typical_ratio=60.0)
        self.assertEqual(resolver.resolve("2024-04-19", "silver").price, 40.0)

    def test_exact_silver_matches_division_for_every_day(self):
        gold = {date(2024, 4, d): 2300.0 + d * 3.7 for d in range(1, 29)}
        ratios = {date(2024, 4, d): 80.0 + d * 0.31 for d in range(1, 29)}
        resolver = _resolver(gold=gold, ratios=ratios)
        for day in gold:
            r = resolver.resolve(day, "silver")
            self.assertEqual(r.source, PriceSource.exact)
            self.assertEqual(r.price, round(gold[day] / ratios[day], 2))


class PriceStoreTests(unittest.TestCase):
    def test_replace_swaps_only_given_tables(self):
        store = PriceStore(gold={date(2024, 4, 19): 1.0}, ratios={date(2024, 4, 19): 80.0})
        before = store.snapshot()
        store.replace(gold={date(2024, 4, 20): 2.0})
        after = store.snapshot()
        self.assertEqual(dict(before.gold), {date(2024, 4, 19): 1.0})
        self.assertEqual(dict(after.gold), {date(2024, 4, 20): 2.0})
        self.assertEqual(dict(after.ratios), {date(2024, 4, 19): 80.0})
        self.assertTrue(store.loaded)

    def test_tables_are_read_only(self):
        store = PriceStore(gold={date(2024, 4, 19): 1.0})
        with self.assertRaises(TypeError):
            store.snapshot().gold[date(2024, 4, 20)] = 2.0

    def test_empty_store_is_not_loaded(self):
        self.assertFalse(PriceStore().loaded)
        self.assertEqual(PriceStore().counts(), (0, 0))


if __name__ == "__main__":
    unittest.main()
