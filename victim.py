# victim.py
import logging

from cache import CacheLine, probe

logger = logging.getLogger(__name__)


class VictimBuffer:
    """
    Small fully-associative store for lines pushed out of the primary cache.
    Shared by every set and always replaced in plain LRU order, whatever the
    primary replacement policy is.
    """

    def __init__(self, config):
        self.config = config
        self.entries = [CacheLine() for _ in range(config.victim_ways)]

    def lookup(self, victim_tag, upper):
        return probe(self.entries, victim_tag, upper)

    def victim_to_update(self):
        for slot, entry in enumerate(self.entries):
            if not entry.is_valid():
                return slot
        return min(range(len(self.entries)), key=lambda slot: self.entries[slot].recency)

    def store(self, slot, line, stamp):
        """Put a line displaced from the primary cache into `slot`."""
        entry = self.entries[slot]
        if entry.is_valid():
            logger.debug("victim slot %d drops %#x (dirty=%d)", slot, entry.address, entry.dirty)
        return self._put(slot, line, stamp)

    def swap(self, slot, line, stamp):
        """
        Exchange `line` with the entry in `slot`.
        Returns the entry's previous contents as a detached line.
        """
        promoted = self.entries[slot].copy()
        self._put(slot, line, stamp)
        return promoted

    def _put(self, slot, line, stamp):
        entry = self.entries[slot]
        entry.copy_from(line)
        entry.tag = self.config.victim_tag(line.address)
        entry.recency = stamp
        return entry

    def resident_lines(self):
        return sum(1 for entry in self.entries if entry.is_valid())
