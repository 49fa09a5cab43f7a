"""
Seeded random number generation for town generation.

Every random draw in the pipeline comes from a SeededRNG keyed by a string.
The hash is a murmur-style 32-bit mix of the seed string, and the stream is a
mulberry32 generator, so a given seed always produces the same sequence of
floats in [0, 1).
"""

import math

_MASK32 = 0xFFFFFFFF
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _uint32(n):
    """Convert to unsigned 32-bit integer."""
    return int(n) & _MASK32


def _imul(a, b):
    """32-bit integer multiply with wrap-around."""
    return (_uint32(a) * _uint32(b)) & _MASK32


def _code_units(text):
    """Yield UTF-16 code units of a string."""
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        yield data[i] | (data[i + 1] << 8)


def hash32(text: str) -> int:
    """
    Hash a string into an unsigned 32-bit integer.

    Args:
        text: Any string (seed, signature, ...)

    Returns:
        Integer in [0, 2^32)
    """
    units = list(_code_units(text))
    h = _uint32(1779033703 ^ len(units))
    for unit in units:
        h = _imul(h ^ unit, 3432918353)
        h = ((h << 13) | (h >> 19)) & _MASK32
    h = _imul(h ^ (h >> 16), 2246822507)
    h = _imul(h ^ (h >> 13), 3266489909)
    return (h ^ (h >> 16)) & _MASK32


def to_base36(value: int) -> str:
    """Render a non-negative integer in base 36."""
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards +infinity."""
    return int(math.floor(value + 0.5))


class SeededRNG:
    """
    Deterministic mulberry32 stream.

    The generator state is a single 32-bit integer, so a stream can be cloned
    and replayed from any point.
    """

    def __init__(self, state: int):
        """Initialize from an unsigned 32-bit state."""
        self.state = _uint32(state)
        self.call_count = 0

    def random(self) -> float:
        """Generate next random number in [0, 1)."""
        self.call_count += 1
        self.state = (self.state + 0x6D2B79F5) & _MASK32
        t = self.state
        t = _imul(t ^ (t >> 15), t | 1)
        t = (t ^ (t + _imul(t ^ (t >> 7), t | 61))) & _MASK32
        return ((t ^ (t >> 14)) & _MASK32) / 4294967296

    def clone(self) -> "SeededRNG":
        """Return an independent copy positioned at the same point in the stream."""
        copy = SeededRNG(self.state)
        copy.call_count = self.call_count
        return copy


def make_rng(seed: str) -> SeededRNG:
    """Create the stream for a seed string."""
    return SeededRNG(hash32(seed))


def rng_for(seed: str, entity_id: str, channel: str) -> SeededRNG:
    """
    Derive an independent stream for one entity.

    The stream depends only on (seed, entity_id, channel), so an entity's
    randomness does not move when other entities are generated before it.
    """
    return make_rng(f"{seed}::{entity_id}::{channel}")


def stable_id(prefix: str, seed: str, signature: str) -> str:
    """Hash a geometry signature into a short deterministic id."""
    return f"{prefix}{to_base36(hash32(f'{seed}::{signature}'))}"
