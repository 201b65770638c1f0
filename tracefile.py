# tracefile.py
import io
import logging
import sys

from cache import ADDRESS_LIMIT, Operation

logger = logging.getLogger(__name__)


def parse_line(line):
    """
    Parse one trace line of the form `r 7fffe6c8` or `w 0x1000`.
    Returns (Operation, address), or None for blank and comment lines.
    Raises ValueError for anything else.
    """
    text = line.split("#", 1)[0].strip()
    if not text:
        return None
    parts = text.split()
    if len(parts) != 2:
        raise ValueError(f"expected '<r|w> <address>', got {text!r}")
    operation = Operation(parts[0].lower())
    address = int(parts[1], 16)
    if not 0 <= address < ADDRESS_LIMIT:
        raise ValueError(f"address out of 64-bit range: {parts[1]}")
    return operation, address


def read_trace(stream):
    """Yield (Operation, address) pairs, skipping lines that do not parse."""
    for number, line in enumerate(stream, 1):
        try:
            access = parse_line(line)
        except ValueError as exc:
            logger.warning("Invalid trace line %d: %s (%s)", number, line.strip(), exc)
            continue
        if access is not None:
            yield access


def load_trace(path):
    """Read a whole trace file into a list; `-` reads standard input."""
    if path in (None, "-"):
        stream = sys.stdin
        if hasattr(stream, "buffer"):
            # undecodable bytes become U+FFFD and fail parsing like any bad line
            stream = io.TextIOWrapper(stream.buffer, encoding="utf-8", errors="replace")
        return list(read_trace(stream))
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return list(read_trace(f))


def run_trace(simulator, accesses):
    for operation, address in accesses:
        simulator.access(operation, address)
    return simulator.complete()
