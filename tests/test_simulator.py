"""
Access-processing tests: hits, half-hits, victim swaps and evictions
"""
import random
import unittest

from cache import Operation
from simulator import AccessResult, Simulator, setup

R = Operation.READ
W = Operation.WRITE


def tags(sim, index=0):
    return [line.tag if line.is_valid() else None for line in sim.cache.sets[index]]


class TestScenario(unittest.TestCase):
    def test_two_way_set_with_victim_entry(self):
        # 16 sets x 2 ways of 32 bytes; 0x200 apart stays in set 0
        sim = setup(10, 5, 1, 0, "B", "L")
        results = [sim.access(R, a) for a in (0x000, 0x200, 0x400, 0x000)]
        self.assertEqual(results, [AccessResult.MISS, AccessResult.MISS,
                                   AccessResult.MISS, AccessResult.VICTIM_HIT])
        stats = sim.complete()
        self.assertEqual(stats.accesses, 4)
        self.assertEqual(stats.read_misses, 4)
        self.assertEqual(stats.read_misses_combined, 3)
        self.assertEqual(stats.misses, 3)
        self.assertAlmostEqual(stats.miss_rate, 0.75)
        # 0x200 was least recent, so it is the one now in the victim buffer
        self.assertEqual(sim.victims.entries[0].address, 0x200)
        self.assertEqual(sim.victims.entries[0].tag, 0x200 >> 5)

    def test_line_stride_maps_to_different_sets(self):
        sim = setup(10, 5, 1, 0, "B", "L")
        results = [sim.access(R, a) for a in (0x00, 0x20, 0x40, 0x00)]
        self.assertEqual(results[-1], AccessResult.HIT)
        stats = sim.complete()
        self.assertEqual(stats.misses, 3)
        self.assertEqual(tags(sim, 1), [0, None])


class TestHits(unittest.TestCase):
    def test_write_hit_sets_dirty(self):
        sim = setup(10, 5, 1, 0, "B", "L")
        sim.access(R, 0x100)
        self.assertEqual(sim.access(W, 0x11f), AccessResult.HIT)
        tag, index, _ = sim.config.decode(0x100)
        way, _ = sim.cache.lookup(index, tag, False)
        self.assertTrue(sim.cache.line(index, way).dirty)
        self.assertEqual(sim.cache.line(index, way).recency, 2)
        stats = sim.complete()
        self.assertEqual((stats.reads, stats.writes), (1, 1))
        self.assertEqual(stats.write_misses, 0)

    def test_read_miss_installs_clean(self):
        sim = setup(10, 5, 1, 0, "B", "L")
        sim.access(R, 0x40)
        self.assertFalse(sim.cache.line(2, 0).dirty)
        self.assertTrue(sim.cache.line(2, 0).valid_low)
        self.assertFalse(sim.cache.line(2, 0).valid_high)

    def test_string_operations(self):
        sim = setup(10, 5, 1, 0, "B", "L")
        sim.access("w", 0x40)
        sim.access("r", 0x40)
        stats = sim.complete()
        self.assertEqual((stats.reads, stats.writes), (1, 1))

    def test_rejects_bad_input(self):
        sim = setup(10, 5, 1, 0, "B", "L")
        with self.assertRaises(ValueError):
            sim.access("x", 0)
        with self.assertRaises(ValueError):
            sim.access(R, -1)
        with self.assertRaises(ValueError):
            sim.access(R, 1 << 64)
        self.assertEqual(sim.stats.accesses, 0)

    def test_top_of_address_space(self):
        sim = setup(10, 5, 1, 0, "B", "L")
        self.assertEqual(sim.access(R, (1 << 64) - 1), AccessResult.MISS)
        self.assertEqual(sim.access(R, (1 << 64) - 32), AccessResult.HIT)


class TestSubBlocking(unittest.TestCase):
    def test_other_half_is_combined_miss(self):
        sim = setup(10, 5, 1, 0, "S", "L")
        self.assertEqual(sim.access(W, 0x000), AccessResult.MISS)
        self.assertEqual(sim.access(R, 0x010), AccessResult.HALF_HIT)
        self.assertEqual(sim.access(R, 0x018), AccessResult.HIT)
        line = sim.cache.line(0, 0)
        self.assertTrue(line.valid_low and line.valid_high)
        self.assertTrue(line.dirty)
        stats = sim.complete()
        self.assertEqual(stats.write_misses, 1)
        self.assertEqual(stats.write_misses_combined, 1)
        self.assertEqual(stats.read_misses, 1)
        self.assertEqual(stats.read_misses_combined, 1)
        self.assertEqual(stats.misses, 2)

    def test_upper_half_install(self):
        sim = setup(10, 5, 1, 0, "S", "L")
        sim.access(R, 0x01f)
        line = sim.cache.line(0, 0)
        self.assertFalse(line.valid_low)
        self.assertTrue(line.valid_high)
        self.assertEqual(sim.access(R, 0x000), AccessResult.HALF_HIT)

    def test_victim_half_hit(self):
        # one set, two ways, one victim entry
        sim = setup(6, 5, 1, 0, "S", "L")
        for address in (0x000, 0x020, 0x040):
            sim.access(R, address)
        self.assertEqual(sim.victims.entries[0].address, 0x000)
        self.assertEqual(sim.access(R, 0x010), AccessResult.VICTIM_HALF_HIT)
        self.assertEqual(tags(sim), [2, 0])
        self.assertTrue(sim.cache.line(0, 1).valid_high)
        self.assertEqual(sim.victims.entries[0].address, 0x020)
        stats = sim.complete()
        self.assertEqual(stats.read_misses, 4)
        self.assertEqual(stats.read_misses_combined, 4)

        self.assertEqual(sim.access(R, 0x000), AccessResult.HIT)
        self.assertEqual(sim.access(R, 0x020), AccessResult.VICTIM_HIT)
        stats = sim.complete()
        self.assertEqual(stats.read_misses, 5)
        self.assertEqual(stats.read_misses_combined, 4)
        self.assertEqual(sim.victims.entries[0].address, 0x040)


class TestVictimSwap(unittest.TestCase):
    def test_dirty_line_survives_round_trip(self):
        sim = setup(6, 5, 1, 0, "B", "L")
        sim.access(W, 0x000)
        sim.access(R, 0x020)
        sim.access(R, 0x040)
        victim = sim.victims.entries[0]
        self.assertEqual(victim.address, 0x000)
        self.assertTrue(victim.dirty)
        self.assertEqual(victim.recency, 3)

        self.assertEqual(sim.access(R, 0x000), AccessResult.VICTIM_HIT)
        self.assertEqual(tags(sim), [2, 0])
        self.assertTrue(sim.cache.line(0, 1).dirty)
        self.assertEqual(sim.cache.line(0, 1).recency, 4)
        # exchanged, not copied
        self.assertEqual(sim.victims.entries[0].address, 0x020)
        self.assertFalse(sim.victims.entries[0].dirty)
        self.assertEqual(sim.victims.entries[0].recency, 4)

    def test_victim_buffer_uses_lru(self):
        # one set of one way, two victim entries
        sim = setup(5, 5, 0, 1, "B", "N")
        for address in (0x000, 0x020, 0x040):
            sim.access(R, address)
        self.assertEqual([e.address for e in sim.victims.entries], [0x000, 0x020])
        sim.access(R, 0x060)
        # the older entry (0x000) is the one dropped
        self.assertEqual([e.address for e in sim.victims.entries], [0x040, 0x020])

    def test_nmru_swap_compacts(self):
        # one set of four ways, one victim entry
        sim = setup(7, 5, 2, 0, "B", "N")
        for address in (0x00, 0x20, 0x40, 0x60, 0x80):
            sim.access(R, address)
        self.assertEqual(tags(sim), [1, 2, 3, 4])
        self.assertEqual(sim.victims.entries[0].address, 0x00)
        self.assertEqual(sim.access(R, 0x00), AccessResult.VICTIM_HIT)
        # tag 4 is the register, so way 0 (tag 1) goes out and the rest slide down
        self.assertEqual(tags(sim), [2, 3, 4, 0])
        self.assertEqual(sim.victims.entries[0].address, 0x20)
        self.assertEqual(sim.cache.nmru[0], 0)


class TestReplacement(unittest.TestCase):
    def test_lru_eviction(self):
        sim = setup(7, 5, 2, 0, "B", "L")
        for address in (0x00, 0x20, 0x40, 0x60, 0x00, 0x80):
            sim.access(R, address)
        self.assertEqual(tags(sim), [0, 4, 2, 3])
        self.assertEqual(sim.victims.entries[0].address, 0x20)

    def test_nmru_fifo_eviction(self):
        sim = setup(7, 5, 2, 0, "B", "N")
        for address in (0x00, 0x20, 0x40, 0x60):
            sim.access(R, address)
        self.assertEqual(sim.cache.nmru[0], 3)
        sim.access(R, 0x80)
        self.assertEqual(tags(sim), [1, 2, 3, 4])
        self.assertEqual(sim.cache.nmru[0], 4)
        self.assertEqual(sim.victims.entries[0].address, 0x00)

        sim.access(R, 0x60)
        self.assertEqual(sim.cache.nmru[0], 3)
        sim.access(R, 0xA0)
        self.assertEqual(tags(sim), [2, 3, 4, 5])
        self.assertEqual(sim.victims.entries[0].address, 0x20)

    def test_nmru_spares_register_at_head(self):
        sim = setup(7, 5, 2, 0, "B", "N")
        for address in (0x20, 0x40, 0x60, 0x80, 0x20):
            sim.access(R, address)
        self.assertEqual(sim.cache.nmru[0], 1)
        sim.access(R, 0xC0)
        self.assertEqual(tags(sim), [1, 3, 4, 6])
        self.assertEqual(sim.victims.entries[0].address, 0x40)

    def test_clock_does_not_wrap(self):
        sim = setup(6, 5, 1, 0, "B", "L")
        sim.access(R, 0x00)
        sim.access(R, 0x20)
        for _ in range(300):
            sim.access(R, 0x20)
        sim.access(R, 0x00)
        sim.access(R, 0x40)
        self.assertEqual(tags(sim), [0, 2])
        self.assertEqual(sim.clock, 304)


class TestProperties(unittest.TestCase):
    CONFIGS = [
        (10, 5, 1, 0, "B", "L"),
        (10, 5, 1, 0, "S", "L"),
        (10, 5, 2, 1, "B", "N"),
        (10, 4, 2, 2, "S", "N"),
        (6, 5, 0, 0, "S", "N"),
    ]

    def test_repeat_access_never_misses(self):
        rng = random.Random(7)
        for params in self.CONFIGS:
            sim = setup(*params)
            for _ in range(500):
                operation = rng.choice([R, W])
                address = rng.randrange(0, 1 << 13)
                sim.access(operation, address)
                before = sim.complete().as_dict()
                self.assertEqual(sim.access(operation, address), AccessResult.HIT)
                after = sim.complete().as_dict()
                for name in ("read_misses", "write_misses", "read_misses_combined",
                             "write_misses_combined"):
                    self.assertEqual(before[name], after[name], (params, name))

    def test_capacity(self):
        for policy in ("L", "N"):
            sim = setup(8, 5, 3, 0, "B", policy)
            addresses = [way << 5 for way in range(8)]
            for address in addresses:
                sim.access(R, address)
            self.assertEqual(sim.stats.read_misses, 8)
            for address in addresses:
                self.assertEqual(sim.access(R, address), AccessResult.HIT)
            self.assertEqual(sim.stats.read_misses, 8)

    def test_independent_instances(self):
        first = setup(10, 5, 1, 0, "B", "L")
        second = setup(10, 5, 1, 0, "B", "L")
        first.access(R, 0x40)
        self.assertEqual(second.access(R, 0x40), AccessResult.MISS)
        self.assertEqual(first.clock, 1)
        self.assertEqual(second.clock, 1)

    def test_complete_logs_residency(self):
        sim = setup(6, 5, 1, 0, "B", "L")
        for address in (0x000, 0x020, 0x040):
            sim.access(R, address)
        with self.assertLogs("simulator", level="INFO") as logs:
            sim.complete()
        self.assertIn("3 accesses, 2 primary lines and 1 victim entries resident", logs.output[0])

    def test_simulator_from_configuration(self):
        from cache import CacheConfiguration
        sim = Simulator(CacheConfiguration(10, 5, 1, 0))
        sim.access(R, 0)
        self.assertEqual(sim.complete().accesses, 1)


if __name__ == '__main__':
    unittest.main()
