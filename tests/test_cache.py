from __future__ import annotations

import unittest

from cache import TTLCache


class FakeClock:
    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TTLCacheTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.cache: TTLCache[str] = TTLCache(ttl_seconds=10, clock=self.clock)

    def test_set_and_get(self) -> None:
        self.cache.set("a", "alpha")
        self.assertEqual(self.cache.get("a"), "alpha")
        self.assertTrue(self.cache.has("a"))
        self.assertIn("a", self.cache)
        self.assertIsNone(self.cache.get("missing"))

    def test_entries_expire_at_ttl(self) -> None:
        self.cache.set("a", "alpha")
        self.clock.now += 9
        self.assertEqual(self.cache.get("a"), "alpha")
        self.clock.now += 1
        self.assertIsNone(self.cache.get("a"))
        self.assertNotIn("a", self.cache)

    def test_len_counts_live_entries(self) -> None:
        self.cache.set("a", "alpha")
        self.clock.now += 5
        self.cache.set("b", "beta")
        self.assertEqual(len(self.cache), 2)
        self.clock.now += 5
        self.assertEqual(len(self.cache), 1)

    def test_invalidate_and_clear(self) -> None:
        self.cache.set("a", "alpha")
        self.cache.set("b", "beta")
        self.assertTrue(self.cache.invalidate("a"))
        self.assertFalse(self.cache.invalidate("a"))
        self.assertEqual(self.cache.clear(), 1)
        self.assertEqual(len(self.cache), 0)

    def test_get_or_load_calls_loader_once(self) -> None:
        calls = []

        def loader() -> str:
            calls.append(1)
            return "loaded"

        self.assertEqual(self.cache.get_or_load("k", loader), "loaded")
        self.assertEqual(self.cache.get_or_load("k", loader), "loaded")
        self.assertEqual(len(calls), 1)

    def test_get_or_load_respects_should_cache(self) -> None:
        value = self.cache.get_or_load("k", lambda: "draft", should_cache=lambda v: v == "final")
        self.assertEqual(value, "draft")
        self.assertNotIn("k", self.cache)

    def test_loader_errors_propagate_and_nothing_is_stored(self) -> None:
        def loader() -> str:
            raise ConnectionError("down")

        with self.assertRaises(ConnectionError):
            self.cache.get_or_load("k", loader)
        self.assertNotIn("k", self.cache)

    def test_rejects_non_positive_ttl(self) -> None:
        with self.assertRaises(ValueError):
            TTLCache(ttl_seconds=0)

    def test_rejects_zero_maxsize(self) -> None:
        with self.assertRaises(ValueError):
            TTLCache(maxsize=0)


class BoundedTTLCacheTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.cache: TTLCache[str] = TTLCache(ttl_seconds=10, maxsize=2, clock=self.clock)

    def test_least_recently_used_entry_is_evicted(self) -> None:
        self.cache.set("a", "alpha")
        self.cache.set("b", "beta")
        self.assertEqual(self.cache.get("a"), "alpha")
        self.cache.set("c", "gamma")
        self.assertIsNone(self.cache.get("b"))
        self.assertEqual(self.cache.get("a"), "alpha")
        self.assertEqual(self.cache.get("c"), "gamma")
        self.assertEqual(self.cache.stored(), 2)

    def test_overwriting_a_key_does_not_evict(self) -> None:
        self.cache.set("a", "alpha")
        self.cache.set("b", "beta")
        self.cache.set("a", "again")
        self.assertEqual(self.cache.get("a"), "again")
        self.assertEqual(self.cache.get("b"), "beta")

    def test_set_sweeps_expired_entries(self) -> None:
        cache: TTLCache[str] = TTLCache(ttl_seconds=10, clock=self.clock)
        for key in ("a", "b", "c"):
            cache.set(key, key)
        self.clock.now += 10
        cache.set("d", "delta")
        self.assertEqual(cache.stored(), 1)
        self.assertEqual(cache.get("d"), "delta")

    def test_expired_entries_do_not_push_out_live_ones(self) -> None:
        self.cache.set("a", "alpha")
        self.clock.now += 5
        self.cache.set("b", "beta")
        self.clock.now += 5
        self.cache.set("c", "gamma")
        self.assertEqual(self.cache.get("b"), "beta")
        self.assertEqual(self.cache.get("c"), "gamma")

    def test_cleanup_expired(self) -> None:
        self.cache.set("a", "alpha")
        self.clock.now += 5
        self.cache.set("b", "beta")
        self.clock.now += 5
        self.assertEqual(self.cache.cleanup_expired(), 1)
        self.assertEqual(self.cache.stored(), 1)


if __name__ == "__main__":
    unittest.main()
