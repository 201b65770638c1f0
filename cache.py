# cache.py
import enum
import logging

logger = logging.getLogger(__name__)

ADDRESS_BITS = 64
ADDRESS_LIMIT = 1 << ADDRESS_BITS


class ConfigurationError(ValueError):
    """Raised by setup when the requested geometry or policies are unusable."""


class StoragePolicy(enum.Enum):
    BLOCKING = "B"
    SUB_BLOCKING = "S"


class ReplacementPolicy(enum.Enum):
    LRU = "L"
    NMRU_FIFO = "N"


class Operation(enum.Enum):
    READ = "r"
    WRITE = "w"


_POLICY_NAMES = {
    "blocking": StoragePolicy.BLOCKING,
    "subblocking": StoragePolicy.SUB_BLOCKING,
    "sub_blocking": StoragePolicy.SUB_BLOCKING,
    "lru": ReplacementPolicy.LRU,
    "nmru_fifo": ReplacementPolicy.NMRU_FIFO,
    "nmru": ReplacementPolicy.NMRU_FIFO,
}


def _parse_policy(kind, value):
    if isinstance(value, kind):
        return value
    if isinstance(value, str):
        text = value.strip()
        for member in kind:
            if text.upper() == member.value:
                return member
        member = _POLICY_NAMES.get(text.lower())
        if isinstance(member, kind):
            return member
    raise ConfigurationError(f"unrecognized {kind.__name__}: {value!r}")


class CacheConfiguration:
    """
    Geometry of the primary cache and its victim buffer.
    Sizes are given as powers of two: 2^c data bytes, 2^b bytes per line,
    2^s ways per set and 2^v victim entries.
    """

    def __init__(self, c=15, b=5, s=3, v=2,
                 storage_policy=StoragePolicy.BLOCKING,
                 replacement_policy=ReplacementPolicy.LRU):
        for name, value in (("c", c), ("b", b), ("s", s), ("v", v)):
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigurationError(f"{name} must be a non-negative integer, got {value!r}")
        self.storage_policy = _parse_policy(StoragePolicy, storage_policy)
        self.replacement_policy = _parse_policy(ReplacementPolicy, replacement_policy)

        if b + s > c:
            raise ConfigurationError(f"b + s ({b} + {s}) exceeds c ({c}): no room for a set index")
        if self.storage_policy is StoragePolicy.SUB_BLOCKING and b < 1:
            raise ConfigurationError("sub-blocking needs lines of at least two bytes (b >= 1)")

        self.c, self.b, self.s, self.v = c, b, s, v
        self.total_data_bytes = 1 << c
        self.line_bytes = 1 << b
        self.ways = 1 << s
        self.victim_ways = 1 << v

        self.offset_bits = b
        self.index_bits = c - b - s
        self.tag_bits = ADDRESS_BITS - b - self.index_bits
        if self.tag_bits < 0:
            raise ConfigurationError(f"address too narrow for geometry: tag would be {self.tag_bits} bits")
        self.set_count = 1 << self.index_bits

        self._offset_mask = self.line_bytes - 1
        self._index_mask = self.set_count - 1

    @property
    def sub_blocking(self):
        return self.storage_policy is StoragePolicy.SUB_BLOCKING

    def decode(self, address):
        """Split an address into (tag, index, offset)."""
        offset = address & self._offset_mask
        index = (address >> self.offset_bits) & self._index_mask
        tag = address >> (self.offset_bits + self.index_bits)
        return tag, index, offset

    def victim_tag(self, address):
        # victim entries are not bound to a set, so the index bits stay in the tag
        return address >> self.offset_bits

    def upper_half(self, offset):
        """True when `offset` falls in the validity bit tracked by valid_high."""
        return self.sub_blocking and offset >= self.line_bytes // 2

    def __repr__(self):
        return (f"CacheConfiguration(c={self.c}, b={self.b}, s={self.s}, v={self.v}, "
                f"storage_policy={self.storage_policy.name}, "
                f"replacement_policy={self.replacement_policy.name})")


class CacheLine:
    """Metadata for one line: no data bytes are modeled."""

    __slots__ = ("tag", "address", "valid_low", "valid_high", "dirty", "recency")

    def __init__(self):
        self.tag = 0
        self.address = 0
        self.valid_low = False
        self.valid_high = False
        self.dirty = False
        self.recency = 0

    def is_valid(self):
        # structurally valid: some part of the line is resident
        return self.valid_low or self.valid_high

    def has_half(self, upper):
        return self.valid_high if upper else self.valid_low

    def fill(self):
        self.valid_low = True
        self.valid_high = True

    def invalidate(self):
        self.valid_low = False
        self.valid_high = False

    def copy_from(self, other):
        for name in CacheLine.__slots__:
            setattr(self, name, getattr(other, name))

    def copy(self):
        line = CacheLine()
        line.copy_from(self)
        return line

    def __repr__(self):
        return (f"CacheLine(tag={self.tag:#x}, address={self.address:#x}, "
                f"valid=({int(self.valid_low)},{int(self.valid_high)}), "
                f"dirty={int(self.dirty)}, recency={self.recency})")


HIT = "hit"
HALF_HIT = "half-hit"


def probe(lines, tag, upper):
    """
    Search `lines` in physical order for `tag`.
    Returns (position, HIT) when the requested half is resident,
    (position, HALF_HIT) when only the other half is, else None.
    """
    for position, line in enumerate(lines):
        if line.tag != tag:
            continue
        if line.has_half(upper):
            return position, HIT
        if line.has_half(not upper):
            return position, HALF_HIT
    return None


class PrimaryCache:
    """
    Set-associative store of CacheLine slots addressed by (set index, way).
    Physical way order is kept stable; NMRU-FIFO relies on it as an age queue.
    """

    def __init__(self, config):
        self.config = config
        self.sets = [[CacheLine() for _ in range(config.ways)]
                     for _ in range(config.set_count)]
        if config.replacement_policy is ReplacementPolicy.NMRU_FIFO:
            self.nmru = [None] * config.set_count
        else:
            self.nmru = None

    def line(self, index, way):
        return self.sets[index][way]

    def lookup(self, index, tag, upper):
        return probe(self.sets[index], tag, upper)

    def touch(self, index, way, tag, stamp):
        self.sets[index][way].recency = stamp
        if self.nmru is not None:
            self.nmru[index] = tag

    def select_victim_way(self, index):
        lines = self.sets[index]
        # an empty slot always wins over evicting live data
        for way, line in enumerate(lines):
            if not line.is_valid():
                return way

        if self.nmru is None:
            # min() keeps the first minimum, so ties go to the lowest way
            return min(range(len(lines)), key=lambda way: lines[way].recency)

        mru_tag = self.nmru[index]
        for way, line in enumerate(lines):
            if line.tag != mru_tag:
                return way
        return 0

    def push_entry(self, index, way):
        """
        Close the gap left at `way` by sliding later ways down one slot, so the
        newest line lands at the tail. Returns the way the new line belongs in.
        """
        lines = self.sets[index]
        if not lines[way].is_valid():
            return way
        for slot in range(way, len(lines) - 1):
            following = lines[slot + 1]
            if not following.is_valid():
                return slot
            lines[slot].copy_from(following)
            following.invalidate()
        return len(lines) - 1

    def install(self, index, way, tag, address, upper, dirty, stamp):
        line = self.sets[index][way]
        line.tag = tag
        line.address = address
        line.valid_low = not upper
        line.valid_high = upper
        line.dirty = dirty
        self.touch(index, way, tag, stamp)
        return line

    def resident_lines(self):
        return sum(1 for lines in self.sets for line in lines if line.is_valid())
