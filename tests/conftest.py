import io
from typing import Dict, List, Optional

import pytest
from rich.console import Console

from ps2ce_bridge.frame_pump import ControllerEvent, EventKind, RumbleError
from ps2ce_bridge.packet import Axis, Button
from ps2ce_bridge.transport import EmulatorUART


class FakeSerial:
    """Stands in for serial.Serial: each write queues the next scripted reply."""

    def __init__(self, pending: bytes = b"", replies: Optional[List[bytes]] = None) -> None:
        self.buffer = bytearray(pending)
        self.replies = list(replies or [])
        self.written: List[bytes] = []
        self.read_error: Optional[Exception] = None
        self.write_error: Optional[Exception] = None
        self.closed = False

    def write(self, data: bytes) -> int:
        if self.write_error is not None:
            raise self.write_error
        self.written.append(bytes(data))
        if self.replies:
            self.buffer.extend(self.replies.pop(0))
        return len(data)

    def read(self, size: int = 1) -> bytes:
        if self.read_error is not None:
            raise self.read_error
        chunk = bytes(self.buffer[:size])
        del self.buffer[:size]
        return chunk

    def close(self) -> None:
        self.closed = True


class FakeController:
    def __init__(
        self,
        instance_id: int = 0,
        buttons: Optional[Dict[Button, bool]] = None,
        axes: Optional[Dict[Axis, int]] = None,
        rumble_error: Optional[str] = None,
    ) -> None:
        self.instance_id = instance_id
        self.buttons = dict(buttons or {})
        self.axes = dict(axes or {})
        self.rumble_error = rumble_error
        self.rumbles: List[tuple] = []

    def name(self) -> str:
        return f"Fake Pad {self.instance_id}"

    def button(self, button: Button) -> bool:
        return self.buttons.get(button, False)

    def axis(self, axis: Axis) -> int:
        return self.axes.get(axis, 0)

    def set_rumble(self, low_frequency: int, high_frequency: int, duration_ms: int) -> None:
        if self.rumble_error:
            raise RumbleError(self.rumble_error)
        self.rumbles.append((low_frequency, high_frequency, duration_ms))


class FakeRegistry:
    def __init__(self, *controllers: FakeController) -> None:
        self.active_controllers = {c.instance_id: c for c in controllers}
        self.added: List[int] = []
        self.removed: List[int] = []
        self.enumeration_error: Optional[str] = None
        self.closed = False

    def __len__(self) -> int:
        return len(self.active_controllers)

    def add_available_controllers(self) -> None:
        if self.enumeration_error:
            raise RuntimeError(self.enumeration_error)

    def close_all(self) -> None:
        self.active_controllers.clear()
        self.closed = True

    def add_controller(self, index: int) -> FakeController:
        self.added.append(index)
        controller = FakeController(instance_id=100 + index)
        self.active_controllers[controller.instance_id] = controller
        return controller

    def remove_controller(self, instance_id: int) -> Optional[FakeController]:
        self.removed.append(instance_id)
        return self.active_controllers.pop(instance_id, None)

    def tracked(self) -> Optional[FakeController]:
        if not self.active_controllers:
            return None
        return self.active_controllers[min(self.active_controllers)]


class ScriptedEvents:
    """Hands out one batch of events per frame, then quits."""

    def __init__(self, batches: List[List[ControllerEvent]]) -> None:
        self.batches = list(batches)

    def poll(self) -> List[ControllerEvent]:
        if not self.batches:
            return [ControllerEvent(EventKind.QUIT)]
        return self.batches.pop(0)


class FakeClock:
    """Monotonic clock that creeps forward on every read and jumps on sleep."""

    def __init__(self, start: float = 0.0, step: float = 0.0001) -> None:
        self.now = start
        self.step = step
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        self.now += self.step
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=200, force_terminal=False)


@pytest.fixture
def fake_serial():
    return FakeSerial()


@pytest.fixture
def uart(fake_serial):
    return EmulatorUART(fake_serial)


def console_text(console: Console) -> str:
    return console.file.getvalue()
