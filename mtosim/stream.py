"""
Deterministic pseudo-random stream.

A linear congruential recurrence ``seed' = (seed * 9301 + 49297) mod 233280``.
Low quality and NOT cryptographically secure; what matters is that a given
seed string replays an identical sequence on every platform.

The functional API threads an immutable ``StreamState`` through every call.
``SeededRandom`` wraps one state for code that owns a single stream, such as
an engine instance.  There is no module-level stream.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")

MULTIPLIER = 9301
INCREMENT  = 49297
MODULUS    = 233280


@dataclass(frozen=True)
class StreamState:
    value: int


def hash_seed(text: str) -> int:
    """Rolling ``h * 31 + c`` hash kept to signed 32 bits, returned as its magnitude."""
    h = 0
    for ch in text:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def seed(text: Optional[str] = None) -> StreamState:
    """Seed from a string, or non-deterministically when none (or empty) is given."""
    if text:
        return StreamState(hash_seed(text))
    return StreamState(random.randrange(2_147_483_647))


def next_value(state: StreamState) -> Tuple[float, StreamState]:
    nxt = (state.value * MULTIPLIER + INCREMENT) % MODULUS
    return nxt / MODULUS, StreamState(nxt)


def between(state: StreamState, lo: float, hi: float) -> Tuple[float, StreamState]:
    u, state = next_value(state)
    return lo + u * (hi - lo), state


def choice(state: StreamState, items: Sequence[T]) -> Tuple[T, StreamState]:
    if not items:
        raise IndexError("cannot choose from an empty sequence")
    u, state = next_value(state)
    return items[math.floor(u * len(items))], state


class SeededRandom:
    """Single owner of a stream; each call advances the wrapped state."""

    def __init__(self, seed_text: Optional[str] = None, state: Optional[StreamState] = None) -> None:
        self.state = state if state is not None else seed(seed_text)

    def next(self) -> float:
        u, self.state = next_value(self.state)
        return u

    def between(self, lo: float, hi: float) -> float:
        v, self.state = between(self.state, lo, hi)
        return v

    def int_between(self, lo: float, hi: float) -> int:
        """``floor(between(lo, hi))``; *hi* itself is never returned."""
        return math.floor(self.between(lo, hi))

    def choice(self, items: Sequence[T]) -> T:
        item, self.state = choice(self.state, items)
        return item
