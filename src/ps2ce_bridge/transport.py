"""
Serial link to the PS2 controller emulator board.

The board is a USB serial device (Teensy or Arduino based). The core only
needs "write these bytes" and "read up to N bytes within the timeout", so this
wraps a ``serial.Serial`` configured for 8N1 with a short read timeout. A read
that returns fewer bytes than requested is how pyserial reports a timeout.
"""

from __future__ import annotations

import sys
from typing import Dict, List, Optional

import serial
from serial.tools import list_ports
from serial.tools import list_ports_common

from .config import DEFAULT_BAUD, DEFAULT_READ_TIMEOUT, RESPONSE_SIZE

if sys.platform == "darwin":
    SERIAL_HINT = "(Usually /dev/cu.usbmodem12341 for USB Serial on macOS.)"
elif sys.platform == "win32":
    SERIAL_HINT = "(Usually COM3 for USB Serial on Windows.)"
else:
    SERIAL_HINT = "(Usually /dev/ttyUSB0 for USB Serial on Unix.)"


class EmulatorUART:
    def __init__(self, port: serial.Serial) -> None:
        self.serial = port

    @classmethod
    def open(
        cls, device: str, baudrate: int = DEFAULT_BAUD, timeout: float = DEFAULT_READ_TIMEOUT
    ) -> "EmulatorUART":
        """Open and configure the serial device (8 data bits, no parity, one stop bit)."""
        port = serial.Serial(
            port=device,
            baudrate=baudrate,
            bytesize=serial.EIGHTBITS,
            stopbits=serial.STOPBITS_ONE,
            parity=serial.PARITY_NONE,
            timeout=timeout,
            xonxoff=False,
            rtscts=False,
            dsrdtr=False,
        )
        return cls(port)

    def clear_input(self) -> int:
        """
        Read and discard whatever the board still has queued for us.

        Stops at the first read that times out. Any other error is a real
        problem with the link and propagates as ``SerialException``.
        """
        discarded = 0
        while True:
            chunk = self.serial.read(1)
            if not chunk:
                return discarded
            discarded += len(chunk)

    def send_packet(self, packet: bytes) -> None:
        """Write the whole packet; pyserial blocks until every byte is queued."""
        self.serial.write(packet)

    def read_response(self, size: int = RESPONSE_SIZE) -> bytes:
        """Read up to ``size`` bytes; an empty result means the board had nothing to say."""
        return bytes(self.serial.read(size))

    def close(self) -> None:
        self.serial.close()

    def __enter__(self) -> "EmulatorUART":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def is_usb_serial(path: str) -> bool:
    """Heuristic for USB serial path prefixes (best-effort when VID/PID are missing)."""
    usb_prefixes = (
        "/dev/ttyusb",   # Linux USB serial
        "/dev/ttyacm",   # Linux CDC ACM (Teensy, Arduino)
        "/dev/cu.usb",   # macOS cu/tty USB adapters
        "/dev/tty.usb",
    )
    return path.lower().startswith(usb_prefixes)


def is_usb_serial_port(port: list_ports_common.ListPortInfo) -> bool:
    """Prefer ports with USB VID/PID; fall back to manufacturer and path hints."""
    if getattr(port, "vid", None) is not None or getattr(port, "pid", None) is not None:
        return True
    manufacturer = (getattr(port, "manufacturer", "") or "").upper()
    if "USB" in manufacturer:
        return True
    return is_usb_serial(port.device or "")


def discover_ports(
    include_non_usb: bool = False,
    include_descriptions: Optional[List[str]] = None,
) -> List[Dict[str, str]]:
    """List serial ports that could be an emulator board."""
    includes = [d.lower() for d in include_descriptions or []]
    results: List[Dict[str, str]] = []
    for port in list_ports.comports():
        path = port.device or ""
        if not path:
            continue
        if not include_non_usb and not is_usb_serial_port(port):
            continue
        description = port.description or "Unknown"
        if includes and not any(keep in description.lower() for keep in includes):
            continue
        results.append({"device": path, "description": description})
    return results
