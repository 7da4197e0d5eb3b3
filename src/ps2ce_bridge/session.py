"""
Work out which emulator firmware is on the other end of the serial link.

The handshake is a neutral 20-byte packet. The extended firmware answers with
vibration data starting with the DualShock magic byte; the minimal firmware
doesn't understand a 20-byte packet and answers "x". Anything else leaves us
in log-only mode. The result holds for the whole session.
"""

from __future__ import annotations

from enum import Enum

from rich.console import Console
from serial import SerialException

from .config import SessionConfig
from .frame_pump import FramePump
from .packet import DUALSHOCK_MAGIC, MINIMAL_ERR_RESPONSE, NEUTRAL_PACKET, CommunicationMode, format_packet


class NegotiationState(Enum):
    START = "start"
    HANDSHAKE_SENT = "handshake-sent"
    MINIMAL = "minimal"
    EXTENDED = "extended"
    UNKNOWN = "unknown"


_STATE_TO_MODE = {
    NegotiationState.MINIMAL: CommunicationMode.MINIMAL,
    NegotiationState.EXTENDED: CommunicationMode.EXTENDED,
    NegotiationState.UNKNOWN: CommunicationMode.UNDETERMINED,
}


def classify_response(response: bytes) -> NegotiationState:
    """Map the first byte of the handshake reply to a firmware family."""
    if response[:1] == bytes([DUALSHOCK_MAGIC]):
        return NegotiationState.EXTENDED
    if response[:1] == MINIMAL_ERR_RESPONSE:
        return NegotiationState.MINIMAL
    return NegotiationState.UNKNOWN


class SessionNegotiator:
    def __init__(self, uart, console: Console, verbose: bool = False, response_size: int = 4) -> None:
        self.uart = uart
        self.console = console
        self.verbose = verbose
        self.response_size = response_size
        self.state = NegotiationState.START

    @property
    def mode(self) -> CommunicationMode:
        return _STATE_TO_MODE.get(self.state, CommunicationMode.UNDETERMINED)

    def _clear(self) -> None:
        if self.verbose:
            self.console.print("[cyan]Clearing serial buffer...[/cyan]")
        discarded = self.uart.clear_input()
        if discarded and self.verbose:
            self.console.print(f"[cyan]Discarded {discarded} stale byte(s)[/cyan]")

    def negotiate(self) -> CommunicationMode:
        """Query the board once and return the dialect to use for this session."""
        if self.state is not NegotiationState.START:
            raise RuntimeError("Device type has already been negotiated for this session")

        # The board might still be holding replies meant for a previous session.
        self._clear()

        if self.verbose:
            self.console.print("[cyan]Determining device type...[/cyan]")
        self.uart.send_packet(NEUTRAL_PACKET)
        self.state = NegotiationState.HANDSHAKE_SENT

        try:
            response = self.uart.read_response(self.response_size)
        except SerialException as exc:
            self.console.print(f"[red]Failed reading from device: {exc}[/red]")
            response = b""

        self.state = classify_response(response)
        if self.state is NegotiationState.EXTENDED:
            if self.verbose:
                self.console.print(
                    f"[green]Response began with 0x{DUALSHOCK_MAGIC:02x}: this is the 20-byte firmware[/green]"
                )
        elif self.state is NegotiationState.MINIMAL:
            if self.verbose:
                self.console.print(
                    f"[green]Response began with '{MINIMAL_ERR_RESPONSE.decode()}': this is the 7-byte firmware[/green]"
                )
        else:
            self.console.print(
                f"[yellow]Unrecognised response: {format_packet(response) or '(nothing)'}; logging only[/yellow]"
            )

        self._clear()
        return self.mode


def run_session(uart, registry, events, config: SessionConfig, console: Console) -> CommunicationMode:
    """Negotiate the dialect, then pump frames until the input layer quits."""
    mode = SessionNegotiator(uart, console, config.verbose, config.response_size).negotiate()
    if config.verbose:
        console.print(f"[cyan]Using trigger mode '{config.trigger_mode.value}'...[/cyan]")
    FramePump(uart, registry, mode, config, console).run(events)
    return mode
