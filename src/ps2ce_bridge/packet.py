"""
DualShock packet assembly for the PS2 controller emulator firmwares.

Both supported firmwares take the same leading fields:

  0    : 0x5A (DualShock magic)
  1    : buttons1, inverted (0 = pressed)  Left Down Right Up Start R3 L3 Select
  2    : buttons2, inverted (0 = pressed)  Square Cross Circle Triangle R1 L1 R2 L2
  3-6  : right X, right Y, left X, left Y (0x80 = centre)

The extended firmware adds twelve pressure bytes and a mode byte:

  7-18 : right, left, up, down, triangle, circle, cross, square, L1, R1, L2, R2
  19   : 0xAA while Guide is held (analog mode toggle), 0x55 otherwise
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Dict, Mapping

from .codec import (
    I16,
    button_to_analog,
    collapse_bits,
    half_axis_negative,
    half_axis_positive,
    normalise_stick,
    scale_for_wire,
)

DUALSHOCK_MAGIC = 0x5A
MODE_NORMAL = 0x55
MODE_TOGGLE = 0xAA

# The minimal firmware answers "k" on success and "x" for input it doesn't recognise.
MINIMAL_OK_RESPONSE = b"k"
MINIMAL_ERR_RESPONSE = b"x"

MINIMAL_PACKET_LENGTH = 7
EXTENDED_PACKET_LENGTH = 20


class Button(IntEnum):
    A = 0
    B = 1
    X = 2
    Y = 3
    BACK = 4
    GUIDE = 5
    START = 6
    LEFT_STICK = 7
    RIGHT_STICK = 8
    LEFT_SHOULDER = 9
    RIGHT_SHOULDER = 10
    DPAD_UP = 11
    DPAD_DOWN = 12
    DPAD_LEFT = 13
    DPAD_RIGHT = 14


class Axis(IntEnum):
    LEFT_X = 0
    LEFT_Y = 1
    RIGHT_X = 2
    RIGHT_Y = 3
    TRIGGER_LEFT = 4
    TRIGGER_RIGHT = 5


class TriggerMode(Enum):
    """Which physical inputs feed L2/R2, Cross/Square and the right stick Y axis."""

    NORMAL = "normal"
    RIGHT_STICK = "right-stick"
    CROSS_AND_SQUARE = "cross-and-square"


class CommunicationMode(Enum):
    UNDETERMINED = "undetermined"  # log only, nothing is sent
    MINIMAL = "minimal"  # 7-byte packets
    EXTENDED = "extended"  # 20-byte packets with pressure and vibration


@dataclass(frozen=True)
class ControllerSnapshot:
    """Read-only copy of one controller's buttons and axes at a single instant."""

    buttons: Mapping[Button, bool] = field(default_factory=dict)
    axes: Mapping[Axis, int] = field(default_factory=dict)

    def button(self, button: Button) -> bool:
        return bool(self.buttons.get(button, False))

    def axis(self, axis: Axis) -> int:
        return I16.clamp(int(self.axes.get(axis, 0)))

    @classmethod
    def capture(cls, controller) -> "ControllerSnapshot":
        """Read every button and axis from a controller exposing button()/axis()."""
        buttons: Dict[Button, bool] = {button: bool(controller.button(button)) for button in Button}
        axes: Dict[Axis, int] = {axis: int(controller.axis(axis)) for axis in Axis}
        return cls(buttons=buttons, axes=axes)

    @classmethod
    def neutral(cls) -> "ControllerSnapshot":
        return cls()


# Handshake packet: every button released, sticks centred, no pressure.
NEUTRAL_PACKET = bytes(
    [
        DUALSHOCK_MAGIC,
        # Buttons (0=Pressed)
        # ┌─────────── Left
        # │┌────────── Down
        # ││┌───────── Right
        # │││┌──────── Up
        # ││││┌─────── [Start>
        # │││││┌────── (R3)
        # ││││││┌───── (L3)
        # │││││││┌──── [Select]
        0b11111111,
        0b11111111,
        # │││││││└──── [L2]
        # ││││││└───── [R2]
        # │││││└────── [L1]
        # ││││└─────── [R1]
        # │││└──────── Triangle
        # ││└───────── Circle
        # │└────────── Cross
        # └─────────── Square
        0x80,  # Right stick X
        0x80,  # Right stick Y
        0x80,  # Left stick X
        0x80,  # Left stick Y
        0x00,  # Right
        0x00,  # Left
        0x00,  # Up
        0x00,  # Down
        0x00,  # Triangle
        0x00,  # Circle
        0x00,  # Cross
        0x00,  # Square
        0x00,  # [L1]
        0x00,  # [R1]
        0x00,  # [L2]
        0x00,  # [R2]
        MODE_NORMAL,
    ]
)


def build_extended_packet(
    snapshot: ControllerSnapshot,
    trigger_mode: TriggerMode = TriggerMode.NORMAL,
    normalise_sticks: bool = False,
) -> bytes:
    """Build the 20-byte packet for the extended firmware."""
    pressed = snapshot.button
    axis = snapshot.axis

    dpad_left = button_to_analog(pressed(Button.DPAD_LEFT))
    dpad_down = button_to_analog(pressed(Button.DPAD_DOWN))
    dpad_right = button_to_analog(pressed(Button.DPAD_RIGHT))
    dpad_up = button_to_analog(pressed(Button.DPAD_UP))
    start = button_to_analog(pressed(Button.START))
    r3 = button_to_analog(pressed(Button.RIGHT_STICK))
    l3 = button_to_analog(pressed(Button.LEFT_STICK))
    select = button_to_analog(pressed(Button.BACK))

    square = button_to_analog(pressed(Button.X))
    cross = button_to_analog(pressed(Button.A))
    circle = button_to_analog(pressed(Button.B))
    triangle = button_to_analog(pressed(Button.Y))
    r1 = button_to_analog(pressed(Button.RIGHT_SHOULDER))
    l1 = button_to_analog(pressed(Button.LEFT_SHOULDER))
    r2 = half_axis_positive(axis(Axis.TRIGGER_RIGHT))
    l2 = half_axis_positive(axis(Axis.TRIGGER_LEFT))

    right_x = axis(Axis.RIGHT_X)
    right_y = axis(Axis.RIGHT_Y)
    left_x = axis(Axis.LEFT_X)
    left_y = axis(Axis.LEFT_Y)

    if trigger_mode is TriggerMode.RIGHT_STICK:
        l2 = half_axis_negative(axis(Axis.RIGHT_Y))
        r2 = half_axis_positive(axis(Axis.RIGHT_Y))
        # Both triggers share one axis, so holding both cancels out.
        right_y = I16.clamp(axis(Axis.TRIGGER_LEFT) - axis(Axis.TRIGGER_RIGHT))
    elif trigger_mode is TriggerMode.CROSS_AND_SQUARE:
        l2 = button_to_analog(pressed(Button.A))
        r2 = button_to_analog(pressed(Button.X))
        cross = half_axis_positive(axis(Axis.TRIGGER_RIGHT))
        square = half_axis_positive(axis(Axis.TRIGGER_LEFT))

    right_x, right_y = normalise_stick(right_x, right_y, normalise_sticks)
    left_x, left_y = normalise_stick(left_x, left_y, normalise_sticks)

    buttons1 = [dpad_left, dpad_down, dpad_right, dpad_up, start, r3, l3, select]
    buttons2 = [square, cross, circle, triangle, r1, l1, r2, l2]
    pressures = [dpad_right, dpad_left, dpad_up, dpad_down, triangle, circle, cross, square, l1, r1, l2, r2]

    packet = bytearray([DUALSHOCK_MAGIC])
    # DualShock treats 0 as pressed, so the collapsed bits are inverted.
    packet.append(~collapse_bits(buttons1) & 0xFF)
    packet.append(~collapse_bits(buttons2) & 0xFF)
    packet.extend(scale_for_wire(value) for value in (right_x, right_y, left_x, left_y))
    packet.extend(scale_for_wire(value) for value in pressures)
    packet.append(MODE_TOGGLE if pressed(Button.GUIDE) else MODE_NORMAL)
    return bytes(packet)


def build_minimal_packet(
    snapshot: ControllerSnapshot,
    trigger_mode: TriggerMode = TriggerMode.NORMAL,
    normalise_sticks: bool = False,
) -> bytes:
    """Build the 7-byte packet, which is the head of the extended packet."""
    return build_extended_packet(snapshot, trigger_mode, normalise_sticks)[:MINIMAL_PACKET_LENGTH]


def build_packet(
    snapshot: ControllerSnapshot,
    mode: CommunicationMode,
    trigger_mode: TriggerMode = TriggerMode.NORMAL,
    normalise_sticks: bool = False,
) -> bytes:
    """Build the packet shape spoken by the given dialect (log-only uses the extended shape)."""
    if mode is CommunicationMode.MINIMAL:
        return build_minimal_packet(snapshot, trigger_mode, normalise_sticks)
    return build_extended_packet(snapshot, trigger_mode, normalise_sticks)


def format_packet(data: bytes) -> str:
    """Return a space separated hex dump for logging."""
    return " ".join(f"{byte:02x}" for byte in data)
