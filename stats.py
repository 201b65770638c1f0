# stats.py
import math

from cache import ADDRESS_BITS, Operation, ReplacementPolicy

DIRTY_BITS = 1
VICTIM_RECENCY_BITS = 8
RECENCY_BITS = {
    ReplacementPolicy.LRU: 8,
    ReplacementPolicy.NMRU_FIFO: 4,
}

COUNTERS = (
    "accesses", "reads", "writes",
    "read_misses", "read_misses_combined",
    "write_misses", "write_misses_combined",
)
DERIVED = (
    "misses", "miss_rate", "hit_time", "miss_penalty",
    "avg_access_time", "storage_overhead", "storage_overhead_ratio",
)


def validity_bits(config):
    return 2 if config.sub_blocking else 1


def primary_overhead_bits(config):
    per_line = (DIRTY_BITS + validity_bits(config)
                + RECENCY_BITS[config.replacement_policy] + config.tag_bits)
    return per_line * (config.total_data_bytes // config.line_bytes)


def victim_overhead_bits(config):
    # victim tags keep the index bits: only the offset is dropped
    per_entry = DIRTY_BITS + validity_bits(config) + VICTIM_RECENCY_BITS + (ADDRESS_BITS - config.offset_bits)
    return per_entry * config.victim_ways


def total_storage_bytes(config):
    return config.total_data_bytes + config.line_bytes * config.victim_ways


class Statistics:
    """
    Running counters for one simulation plus the metrics derived from them.
    `read_misses`/`write_misses` count primary-cache misses; the `_combined`
    variants count references neither the primary cache nor the victim
    buffer could satisfy.
    """

    def __init__(self):
        for name in COUNTERS:
            setattr(self, name, 0)
        self.misses = 0
        self.miss_rate = 0.0
        self.hit_time = 0
        self.miss_penalty = 0
        self.avg_access_time = 0.0
        self.storage_overhead = 0
        self.storage_overhead_ratio = 0.0

    def record_access(self, operation):
        self.accesses += 1
        if operation is Operation.READ:
            self.reads += 1
        else:
            self.writes += 1

    def record_miss(self, operation):
        if operation is Operation.READ:
            self.read_misses += 1
        else:
            self.write_misses += 1

    def record_combined_miss(self, operation):
        if operation is Operation.READ:
            self.read_misses_combined += 1
        else:
            self.write_misses_combined += 1

    def complete(self, config):
        """Recompute every derived field from the counters. Safe to repeat."""
        self.misses = self.read_misses_combined + self.write_misses_combined
        self.miss_rate = self.misses / self.accesses if self.accesses else 0.0
        self.hit_time = math.ceil(0.2 * config.ways)

        miss_block = config.line_bytes // 2 if config.sub_blocking else config.line_bytes
        self.miss_penalty = math.ceil(0.2 * config.ways + 50 + 0.25 * miss_block)
        self.avg_access_time = self.hit_time + self.miss_rate * self.miss_penalty

        self.storage_overhead = primary_overhead_bits(config) + victim_overhead_bits(config)
        self.storage_overhead_ratio = (self.storage_overhead / 8) / total_storage_bytes(config)
        return self

    def snapshot(self):
        """Detached copy of the counters; later accesses do not reach it."""
        copy = Statistics()
        for name in COUNTERS:
            setattr(copy, name, getattr(self, name))
        return copy

    def as_dict(self):
        return {name: getattr(self, name) for name in COUNTERS + DERIVED}

    def __repr__(self):
        fields = ", ".join(f"{name}={getattr(self, name)}" for name in COUNTERS)
        return f"Statistics({fields})"


def format_statistics(stats):
    lines = [
        "Cache Statistics",
        f"Accesses: {stats.accesses}",
        f"Reads: {stats.reads}",
        f"Read misses: {stats.read_misses}",
        f"Read misses combined: {stats.read_misses_combined}",
        f"Writes: {stats.writes}",
        f"Write misses: {stats.write_misses}",
        f"Write misses combined: {stats.write_misses_combined}",
        f"Misses: {stats.misses}",
        f"Hit Time: {stats.hit_time}",
        f"Miss Penalty: {stats.miss_penalty}",
        f"Miss rate: {stats.miss_rate:.6f}",
        f"Average access time (AAT): {stats.avg_access_time:.6f}",
        f"Storage Overhead: {stats.storage_overhead}",
        f"Storage Overhead Ratio: {stats.storage_overhead_ratio:.6f}",
    ]
    return "\n".join(lines)
