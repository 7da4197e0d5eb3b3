"""Runtime settings for a bridge session."""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from typing import Optional

from .packet import TriggerMode

DEFAULT_BAUD = 9600
DEFAULT_READ_TIMEOUT = 0.008  # seconds; well under one 60 Hz frame
DEFAULT_FRAME_RATE = 60.0
RUMBLE_DURATION_MS = 500
RESPONSE_SIZE = 4
DEVICE_ENV_VAR = "PS2CE_DEVICE"


@dataclass
class SessionConfig:
    device: Optional[str] = None
    baud: int = DEFAULT_BAUD
    read_timeout: float = DEFAULT_READ_TIMEOUT
    trigger_mode: TriggerMode = TriggerMode.NORMAL
    normalise_sticks: bool = False
    frame_rate: float = DEFAULT_FRAME_RATE
    rumble_duration_ms: int = RUMBLE_DURATION_MS
    response_size: int = RESPONSE_SIZE
    verbose: bool = False

    @property
    def frame_interval(self) -> float:
        return 1.0 / self.frame_rate


def build_session_config(args: argparse.Namespace) -> SessionConfig:
    """Derive session configuration from parsed CLI arguments."""
    device = getattr(args, "device", None) or os.environ.get(DEVICE_ENV_VAR) or None
    return SessionConfig(
        device=device,
        baud=int(getattr(args, "baud", DEFAULT_BAUD)),
        trigger_mode=TriggerMode(getattr(args, "trigger_mode", TriggerMode.NORMAL.value)),
        normalise_sticks=bool(getattr(args, "normalise_sticks", False)),
        frame_rate=max(float(getattr(args, "frame_rate", DEFAULT_FRAME_RATE)), 1.0),
        verbose=bool(getattr(args, "verbose", False)),
    )
