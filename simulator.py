# simulator.py
import enum
import logging

from cache import (ADDRESS_LIMIT, CacheConfiguration, Operation, PrimaryCache,
                   ReplacementPolicy, HALF_HIT)
from stats import Statistics
from victim import VictimBuffer

logger = logging.getLogger(__name__)


class AccessResult(enum.Enum):
    HIT = "hit"
    HALF_HIT = "half-hit"
    VICTIM_HIT = "victim-hit"
    VICTIM_HALF_HIT = "victim-half-hit"
    MISS = "miss"


class Simulator:
    """
    One independent run: a primary cache, its victim buffer, the logical
    clock and the statistics. Accesses are processed one at a time.
    """

    def __init__(self, config: CacheConfiguration):
        self.config = config
        self.cache = PrimaryCache(config)
        self.victims = VictimBuffer(config)
        self.clock = 0
        self.stats = Statistics()
        logger.info("setup: %d sets x %d ways of %d bytes, %d victim entries, %s/%s "
                    "(tag=%d index=%d offset=%d bits)",
                    config.set_count, config.ways, config.line_bytes, config.victim_ways,
                    config.storage_policy.name, config.replacement_policy.name,
                    config.tag_bits, config.index_bits, config.offset_bits)

    @property
    def _fifo(self):
        return self.config.replacement_policy is ReplacementPolicy.NMRU_FIFO

    def access(self, operation, address):
        operation = Operation(operation)
        if not isinstance(address, int) or not 0 <= address < ADDRESS_LIMIT:
            raise ValueError(f"not a 64-bit address: {address!r}")

        self.clock += 1
        self.stats.record_access(operation)
        write = operation is Operation.WRITE

        tag, index, offset = self.config.decode(address)
        upper = self.config.upper_half(offset)

        found = self.cache.lookup(index, tag, upper)
        if found is not None:
            way, kind = found
            line = self.cache.line(index, way)
            if kind == HALF_HIT:
                # the missing half comes from memory
                self.stats.record_miss(operation)
                self.stats.record_combined_miss(operation)
                line.fill()
            self.cache.touch(index, way, tag, self.clock)
            if write:
                line.dirty = True
            logger.debug("%s %#x: %s in set %d way %d", operation.value, address, kind, index, way)
            return AccessResult.HALF_HIT if kind == HALF_HIT else AccessResult.HIT

        self.stats.record_miss(operation)
        way = self.cache.select_victim_way(index)

        found = self.victims.lookup(self.config.victim_tag(address), upper)
        if found is not None:
            slot, kind = found
            way = self._promote(index, way, slot, tag)
            line = self.cache.line(index, way)
            if kind == HALF_HIT:
                self.stats.record_combined_miss(operation)
                line.fill()
            self.cache.touch(index, way, tag, self.clock)
            if write:
                line.dirty = True
            logger.debug("%s %#x: victim %s, slot %d swapped into set %d way %d",
                         operation.value, address, kind, slot, index, way)
            return AccessResult.VICTIM_HALF_HIT if kind == HALF_HIT else AccessResult.VICTIM_HIT

        self.stats.record_combined_miss(operation)
        if self.cache.line(index, way).is_valid():
            way = self._evict(index, way)
        self.cache.install(index, way, tag, address, upper, write, self.clock)
        logger.debug("%s %#x: miss, installed in set %d way %d", operation.value, address, index, way)
        return AccessResult.MISS

    def _promote(self, index, way, slot, tag):
        # exchange: the candidate's contents take the victim entry's place
        displaced = self.cache.line(index, way).copy()
        if self._fifo:
            way = self.cache.push_entry(index, way)
        promoted = self.victims.swap(slot, displaced, self.clock)
        line = self.cache.line(index, way)
        line.copy_from(promoted)
        line.tag = tag
        return way

    def _evict(self, index, way):
        slot = self.victims.victim_to_update()
        displaced = self.cache.line(index, way).copy()
        if self._fifo:
            way = self.cache.push_entry(index, way)
        self.victims.store(slot, displaced, self.clock)
        logger.debug("evicted %#x from set %d into victim slot %d", displaced.address, index, slot)
        return way

    def complete(self):
        """Finalized statistics as of now, detached from the running counters."""
        logger.info("complete: %d accesses, %d primary lines and %d victim entries resident",
                    self.stats.accesses, self.cache.resident_lines(), self.victims.resident_lines())
        return self.stats.snapshot().complete(self.config)


def setup(c, b, s, v, storage_policy, replacement_policy):
    """Validate the geometry and allocate a fresh simulator for it."""
    return Simulator(CacheConfiguration(c, b, s, v, storage_policy, replacement_policy))
