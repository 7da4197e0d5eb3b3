"""
Value conversions between SDL controller readings and DualShock wire bytes.

SDL reports sticks and triggers as signed 16-bit axes and buttons as booleans.
The emulator boards want unsigned bytes centred on 0x80, with buttons packed
eight to a byte. Everything here is pure arithmetic on Python ints, clamped to
the width of the integer type being modelled.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple


class InvalidInputLength(ValueError):
    """Raised when a bit collapse is not given exactly eight values."""


@dataclass(frozen=True)
class IntRange:
    """Bounds of a fixed-width integer type (min, max and midpoint)."""

    minimum: int
    maximum: int

    @property
    def midpoint(self) -> int:
        # Integer division truncating toward zero, so the signed midpoint is 0 not -1.
        return int((self.maximum + self.minimum) / 2)

    def clamp(self, value: int) -> int:
        return max(self.minimum, min(self.maximum, value))


U8 = IntRange(0, 0xFF)
I16 = IntRange(-0x8000, 0x7FFF)


def button_to_analog(pressed: bool, value_range: IntRange = I16) -> int:
    """Expand a button into the fully released / fully pressed analog value."""
    return value_range.maximum if pressed else value_range.minimum


def analog_to_button(value: int, value_range: IntRange = I16) -> bool:
    """Return True if the value sits strictly above the midpoint of its range."""
    return value > value_range.midpoint


def scale_for_wire(axis: int) -> int:
    """Keep the top byte of a signed 16-bit axis and recentre it on 0x80."""
    return ((axis >> 8) + 0x80) & 0xFF


def half_axis_positive(axis: int) -> int:
    """
    Stretch the positive half of an axis over the whole signed range.

    Triggers only report 0..MAX, so they would otherwise never go below the
    wire midpoint. 0 (and anything negative) becomes MIN, MAX stays MAX and the
    values between are recentred on MAX/2 and doubled.
    """
    if axis == I16.maximum:
        return I16.maximum
    if axis <= 0:
        return I16.minimum
    recentred = I16.clamp(axis + I16.minimum // 2)
    return I16.clamp(recentred * 2)


def half_axis_negative(axis: int) -> int:
    """Mirror of half_axis_positive for the negative half of an axis."""
    # The +1 accounts for MIN having one more step than MAX.
    return half_axis_positive(-I16.clamp(axis + 1))


def _shrink_deadzone(coordinate: int) -> int:
    step = int(coordinate / 10)
    return I16.clamp(coordinate + step)


def normalise_stick(x: int, y: int, enabled: bool = True) -> Tuple[int, int]:
    """
    Push stick coordinates outward by 10% to make up for the DualShock deadzone.

    This is the linear model: each coordinate gains a tenth of itself (truncated,
    saturating at the axis limits). It is not bit-identical to scaling the polar
    radius by 1.1, which rounds differently near the corners.
    """
    if not enabled:
        return x, y
    return _shrink_deadzone(x), _shrink_deadzone(y)


def collapse_bits(values: Sequence[int], value_range: IntRange = I16) -> int:
    """Pack eight analog values into one byte, first value in the most significant bit."""
    if len(values) != 8:
        raise InvalidInputLength(f"Input must be 8 items long ({len(values)} provided)")
    result = 0
    for value in values:
        result = (result << 1) | int(analog_to_button(value, value_range))
    return result
