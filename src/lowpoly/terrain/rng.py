"""Deterministic xorshift random number stream.

Every randomized decision in a generation run draws from an instance of
``XorShiftRandom``. Instances share no state, and saving ``state`` then
writing it back reproduces the exact same subsequent draws.
"""

from numbers import Integral
from typing import overload

from ..exceptions import InvalidRangeError

UINT32_MASK = 0xFFFFFFFF
UINT32_MAX = 0xFFFFFFFF

# Offset added to the seed so that small seeds start from a dense state
SEED_OFFSET = 2147483647


def xorshift32(state: int) -> int:
    """Advance a 32-bit xorshift state by one step.

    Shifts are (21, 35, 4) with shift counts taken modulo the 32-bit word
    size, so the right shift is effectively by 3.
    """
    state ^= (state << 21) & UINT32_MASK
    state ^= state >> (35 % 32)
    state ^= (state << 4) & UINT32_MASK
    return state


class XorShiftRandom:
    """Seeded 32-bit xorshift generator."""

    def __init__(self, seed: int = 1):
        self._state = (seed + SEED_OFFSET) & UINT32_MASK

    @property
    def state(self) -> int:
        """Current 32-bit state, usable as a checkpoint."""
        return self._state

    @state.setter
    def state(self, value: int) -> None:
        self._state = value & UINT32_MASK

    def checkpoint(self) -> int:
        """Return the current state for a later ``restore``."""
        return self._state

    def restore(self, checkpoint: int) -> None:
        """Rewind to a previously saved checkpoint."""
        self.state = checkpoint

    def next_uint(self) -> int:
        """Draw the next unsigned 32-bit value."""
        self._state = xorshift32(self._state)
        return self._state

    @overload
    def range(self, min_value: int, max_value: int) -> int: ...

    @overload
    def range(self, min_value: float, max_value: float) -> float: ...

    def range(self, min_value, max_value):
        """Draw a uniform value in ``[min_value, max_value)``.

        Integer bounds use the modulo of a 32-bit draw. If either bound is
        a float, the draw is scaled by ``UINT32_MAX`` instead, which makes
        ``max_value`` itself reachable.

        Raises:
            InvalidRangeError: If max_value <= min_value.
        """
        if max_value <= min_value:
            raise InvalidRangeError(
                f"max_value ({max_value}) must be greater than min_value ({min_value})"
            )

        if isinstance(min_value, Integral) and isinstance(max_value, Integral):
            span = int(max_value) - int(min_value)
            return self.next_uint() % span + int(min_value)

        value = self.next_uint()
        return value / UINT32_MAX * (float(max_value) - float(min_value)) + float(min_value)

    def boolean(self) -> bool:
        """Draw a boolean as ``range(-10, 11) > 0``.

        This is true for 10 of the 21 possible values, not a fair coin.
        """
        return self.range(-10, 11) > 0

    def choice_index(self, count: int) -> int:
        """Draw an index into a sequence of ``count`` items."""
        return self.range(0, count)
