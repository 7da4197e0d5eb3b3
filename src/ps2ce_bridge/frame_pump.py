"""
Steady-state loop that keeps the emulator board fed with controller state.

One iteration is one frame: drain every pending input event, send at most one
packet, then sleep until the next frame boundary. A packet goes out when the
tracked controller changed, and on every frame for the extended firmware,
which reverts to a default state if it stops hearing from us.
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, Iterable, Optional, Set

from rich.console import Console
from serial import SerialException

from .config import SessionConfig
from .packet import (
    DUALSHOCK_MAGIC,
    MINIMAL_OK_RESPONSE,
    CommunicationMode,
    ControllerSnapshot,
    build_packet,
    format_packet,
)


SPIN_WINDOW = 0.001  # seconds busy-waited before a frame deadline


class RumbleError(RuntimeError):
    """Raised by a controller that could not start or stop rumble."""


class EventKind(Enum):
    QUIT = "quit"
    DEVICE_ADDED = "device-added"
    DEVICE_REMOVED = "device-removed"
    INPUT_CHANGED = "input-changed"


@dataclass(frozen=True)
class ControllerEvent:
    kind: EventKind
    # Device index for DEVICE_ADDED, instance id otherwise.
    which: int = 0


@dataclass(frozen=True)
class RumbleCommand:
    low_frequency: int
    high_frequency: int
    duration_ms: int

    @property
    def is_stop(self) -> bool:
        return self.low_frequency == 0 and self.high_frequency == 0


def rumble_from_response(response: bytes, duration_ms: int) -> Optional[RumbleCommand]:
    """
    Turn an extended-firmware reply into a rumble command for the controller.

    Byte 1 drives the small (high frequency) motor and byte 2 the large (low
    frequency) one. Both are 0-255 and get stretched onto SDL's 0-0xFFFF range.
    Replies too short to carry motor bytes, or not starting with the magic
    byte, carry no vibration data.
    """
    if len(response) < 3 or response[0] != DUALSHOCK_MAGIC:
        return None
    small, large = response[1], response[2]
    if small == 0 and large == 0:
        return RumbleCommand(0, 0, 0)
    return RumbleCommand(low_frequency=large * 0x101, high_frequency=small * 0x101, duration_ms=duration_ms)


def sleep_until(
    deadline: float,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    spin: float = SPIN_WINDOW,
) -> None:
    """Sleep coarsely until just before the deadline, then spin for the rest."""
    remaining = deadline - clock()
    if remaining > spin:
        sleep(remaining - spin)
    while clock() < deadline:
        pass


class FrameCounter:
    """Running average of the achieved frame rate over the last few frames."""

    def __init__(self, window: int = 60) -> None:
        self._ticks: Deque[float] = deque(maxlen=max(window, 2))

    def tick(self, now: float) -> None:
        self._ticks.append(now)

    @property
    def fps(self) -> float:
        if len(self._ticks) < 2:
            return 0.0
        elapsed = self._ticks[-1] - self._ticks[0]
        if elapsed <= 0:
            return 0.0
        return (len(self._ticks) - 1) / elapsed


class FramePump:
    def __init__(
        self,
        uart,
        registry,
        mode: CommunicationMode,
        config: SessionConfig,
        console: Console,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.uart = uart
        self.registry = registry
        self.mode = mode
        self.config = config
        self.console = console
        self.clock = clock
        self.sleep = sleep
        self.frames = FrameCounter(window=int(config.frame_rate))
        self.running = False
        self._last_rate_report = 0.0

    def _log(self, message: str) -> None:
        if self.config.verbose:
            self.console.print(message)

    def run(self, events) -> None:
        """Pump frames until the input layer reports quit."""
        self.running = True
        interval = self.config.frame_interval
        next_frame = self.clock()
        while self.running:
            if not self.step(events.poll()):
                break
            now = self.clock()
            next_frame += interval
            if next_frame < now:
                # Fell behind (slow device or suspended process); don't try to catch up.
                next_frame = now
            sleep_until(next_frame, self.clock, self.sleep)

    def step(self, events: Iterable[ControllerEvent]) -> bool:
        """Run one frame against the given batch of events; False once quit was seen."""
        changed: Set[int] = set()
        for event in events:
            if event.kind is EventKind.QUIT:
                self.running = False
                return False
            if event.kind is EventKind.DEVICE_ADDED:
                self.registry.add_controller(event.which)
            elif event.kind is EventKind.DEVICE_REMOVED:
                self.registry.remove_controller(event.which)
            elif event.kind is EventKind.INPUT_CHANGED:
                changed.add(event.which)

        # Decided after the drain: a pad unplugged mid-batch is no longer tracked.
        tracked = self.registry.tracked()
        if tracked is not None:
            if tracked.instance_id in changed or self.mode is CommunicationMode.EXTENDED:
                self.update(tracked)

        now = self.clock()
        self.frames.tick(now)
        if now - self._last_rate_report >= 1.0:
            self._last_rate_report = now
            self._log(f"[cyan]Frame rate: {self.frames.fps:.1f} Hz[/cyan]")
        return True

    def update(self, controller) -> bytes:
        """Send the controller's current state and act on whatever comes back."""
        snapshot = ControllerSnapshot.capture(controller)
        packet = build_packet(snapshot, self.mode, self.config.trigger_mode, self.config.normalise_sticks)

        if self.mode is CommunicationMode.UNDETERMINED:
            self._log(f"Would send: {format_packet(packet)}")
            return packet

        try:
            self.uart.send_packet(packet)
        except SerialException as exc:
            self._log(f"[yellow]Error writing packet: {exc}[/yellow]")

        try:
            received = self.uart.read_response(self.config.response_size)
        except SerialException as exc:
            self._log(f"[yellow]Error reading response: {exc}[/yellow]")
            received = b""

        self._log(f"Sent: {format_packet(packet)}")
        if received:
            self._log(f"Received: {format_packet(received)}")

        if self.mode is CommunicationMode.MINIMAL:
            if received and received[:1] != MINIMAL_OK_RESPONSE:
                self.console.print("[yellow]WARNING: Adapter responded with an error status.[/yellow]")
        elif self.mode is CommunicationMode.EXTENDED:
            command = rumble_from_response(received, self.config.rumble_duration_ms)
            if command is not None:
                self.relay_rumble(controller, command)
        return packet

    def relay_rumble(self, controller, command: RumbleCommand) -> None:
        try:
            controller.set_rumble(command.low_frequency, command.high_frequency, command.duration_ms)
        except RumbleError as exc:
            # Plenty of controllers have no motors; trying is how we find out.
            self._log(f"[yellow]Rumble unavailable on {controller.name()}: {exc}[/yellow]")
