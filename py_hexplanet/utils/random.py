"""
Deterministic seed utilities.

Seeds are configured as strings and converted to integers with a simple
polynomial hash so that the same seed string always drives the same noise,
on every platform and across runs. Python's ``hash()`` is salted per process
and must not be used for this.
"""

_INT32_MASK = 0xFFFFFFFF

# Offsets keep the per-channel noise fields decorrelated while sharing one seed
CHANNEL_SEED_OFFSETS = {
    "height": 0,
    "moisture": 1013,
    "temperature": 2027,
    "population": 3041,
}


def to_int32(n: int) -> int:
    """Wrap an arbitrary integer to the signed 32-bit range."""
    n &= _INT32_MASK
    return n - 0x100000000 if n & 0x80000000 else n


def _utf16_code_units(s: str):
    data = s.encode("utf-16-le")
    for i in range(0, len(data), 2):
        yield data[i] | (data[i + 1] << 8)


def string_to_seed(seed: str) -> int:
    """
    Convert a seed string to a signed 32-bit integer.

    ``hash = 23; hash = hash * 31 + c`` over the UTF-16 code units of the
    string, with 32-bit wraparound. An empty string maps to 0.

    Args:
        seed: Seed string

    Returns:
        Signed 32-bit integer seed
    """
    if not seed:
        return 0

    h = 23
    for code_unit in _utf16_code_units(seed):
        h = to_int32(h * 31 + code_unit)
    return h


def channel_seed(seed: str, channel: str) -> int:
    """Seed for one named noise channel, derived from the planet seed."""
    offset = CHANNEL_SEED_OFFSETS.get(channel)
    if offset is None:
        # Unknown channels still get a stable, distinct offset
        offset = string_to_seed(channel)
    return to_int32(string_to_seed(seed) + offset)
