"""
Python bridge from SDL2 game controllers to PS2 controller emulator boards.

Expose the protocol helpers at the package root so callers can import
``ps2ce_bridge`` and build packets or run a session directly. The SDL side
lives in ``ps2ce_bridge.sdl_controllers`` and is not imported here.
"""

from .codec import (  # noqa: F401
    InvalidInputLength,
    analog_to_button,
    button_to_analog,
    collapse_bits,
    half_axis_negative,
    half_axis_positive,
    normalise_stick,
    scale_for_wire,
)
from .config import SessionConfig  # noqa: F401
from .frame_pump import FramePump, RumbleCommand, RumbleError  # noqa: F401
from .packet import (  # noqa: F401
    NEUTRAL_PACKET,
    Axis,
    Button,
    CommunicationMode,
    ControllerSnapshot,
    TriggerMode,
    build_extended_packet,
    build_minimal_packet,
)
from .session import SessionNegotiator, run_session  # noqa: F401
from .transport import EmulatorUART  # noqa: F401

__all__ = [
    "Axis",
    "Button",
    "CommunicationMode",
    "ControllerSnapshot",
    "EmulatorUART",
    "FramePump",
    "InvalidInputLength",
    "NEUTRAL_PACKET",
    "RumbleCommand",
    "RumbleError",
    "SessionConfig",
    "SessionNegotiator",
    "TriggerMode",
    "analog_to_button",
    "build_extended_packet",
    "build_minimal_packet",
    "button_to_analog",
    "collapse_bits",
    "half_axis_negative",
    "half_axis_positive",
    "normalise_stick",
    "run_session",
    "scale_for_wire",
]
