"""
SDL2 game controllers as seen by the bridge.

SDL does the heavy lifting: it opens every supported pad, applies the
GameControllerDB mappings so every pad looks like an Xbox layout, and reports
hotplug and input events. This module wraps that in the small surface the
frame pump needs: a registry of open controllers and a source of events.
"""

from __future__ import annotations

import urllib.request
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import sdl2
from rich.console import Console

from .frame_pump import ControllerEvent, EventKind, RumbleError
from .packet import Axis, Button

CONTROLLER_DB_URL_DEFAULT = (
    "https://raw.githubusercontent.com/mdqinc/SDL_GameControllerDB/refs/heads/master/gamecontrollerdb.txt"
)
DEFAULT_MAPPING_PATH = Path(__file__).parent / "controller_db" / "gamecontrollerdb.txt"

BUTTON_MAP = {
    Button.A: sdl2.SDL_CONTROLLER_BUTTON_A,
    Button.B: sdl2.SDL_CONTROLLER_BUTTON_B,
    Button.X: sdl2.SDL_CONTROLLER_BUTTON_X,
    Button.Y: sdl2.SDL_CONTROLLER_BUTTON_Y,
    Button.BACK: sdl2.SDL_CONTROLLER_BUTTON_BACK,
    Button.GUIDE: sdl2.SDL_CONTROLLER_BUTTON_GUIDE,
    Button.START: sdl2.SDL_CONTROLLER_BUTTON_START,
    Button.LEFT_STICK: sdl2.SDL_CONTROLLER_BUTTON_LEFTSTICK,
    Button.RIGHT_STICK: sdl2.SDL_CONTROLLER_BUTTON_RIGHTSTICK,
    Button.LEFT_SHOULDER: sdl2.SDL_CONTROLLER_BUTTON_LEFTSHOULDER,
    Button.RIGHT_SHOULDER: sdl2.SDL_CONTROLLER_BUTTON_RIGHTSHOULDER,
    Button.DPAD_UP: sdl2.SDL_CONTROLLER_BUTTON_DPAD_UP,
    Button.DPAD_DOWN: sdl2.SDL_CONTROLLER_BUTTON_DPAD_DOWN,
    Button.DPAD_LEFT: sdl2.SDL_CONTROLLER_BUTTON_DPAD_LEFT,
    Button.DPAD_RIGHT: sdl2.SDL_CONTROLLER_BUTTON_DPAD_RIGHT,
}

AXIS_MAP = {
    Axis.LEFT_X: sdl2.SDL_CONTROLLER_AXIS_LEFTX,
    Axis.LEFT_Y: sdl2.SDL_CONTROLLER_AXIS_LEFTY,
    Axis.RIGHT_X: sdl2.SDL_CONTROLLER_AXIS_RIGHTX,
    Axis.RIGHT_Y: sdl2.SDL_CONTROLLER_AXIS_RIGHTY,
    Axis.TRIGGER_LEFT: sdl2.SDL_CONTROLLER_AXIS_TRIGGERLEFT,
    Axis.TRIGGER_RIGHT: sdl2.SDL_CONTROLLER_AXIS_TRIGGERRIGHT,
}

_BUTTON_EVENTS = (sdl2.SDL_CONTROLLERBUTTONDOWN, sdl2.SDL_CONTROLLERBUTTONUP)


def sdl_error() -> str:
    error = sdl2.SDL_GetError()
    return error.decode(errors="ignore") if isinstance(error, bytes) else str(error)


def set_hint(name: str, value: str) -> None:
    """Set an SDL hint safely even if the constant is missing in PySDL2."""
    try:
        sdl2.SDL_SetHint(name.encode(), value.encode())
    except AttributeError:
        pass


def initialize_sdl() -> None:
    """Initialise the SDL subsystems needed for controllers, raising RuntimeError on failure."""
    sdl2.SDL_SetHint(sdl2.SDL_HINT_JOYSTICK_ALLOW_BACKGROUND_EVENTS, b"1")
    set_hint("SDL_JOYSTICK_HIDAPI", "1")
    # The video subsystem stops the screen saver kicking in while only the pad is in use.
    if sdl2.SDL_Init(sdl2.SDL_INIT_GAMECONTROLLER | sdl2.SDL_INIT_JOYSTICK | sdl2.SDL_INIT_VIDEO) != 0:
        raise RuntimeError(f"SDL init failed: {sdl_error()}")


def shutdown_sdl() -> None:
    sdl2.SDL_Quit()


def download_controller_db(console: Console, destination: Path, url: str) -> bool:
    """Download the latest SDL controller DB to the local controller_db directory."""
    console.print(f"[cyan]Fetching SDL controller database from {url}...[/cyan]")
    try:
        with urllib.request.urlopen(url, timeout=20) as response:
            status = getattr(response, "status", 200)
            if status != 200:
                raise RuntimeError(f"HTTP {status}")
            data = response.read()
    except (OSError, RuntimeError) as exc:
        console.print(f"[red]Failed to download controller database: {exc}[/red]")
        return False
    destination.parent.mkdir(parents=True, exist_ok=True)
    try:
        destination.write_bytes(data)
    except OSError as exc:
        console.print(f"[red]Failed to write controller database to {destination}: {exc}[/red]")
        return False
    console.print(f"[green]Updated controller database ({len(data)} bytes) at {destination}[/green]")
    return True


def mapping_lines(text: str) -> List[str]:
    """Return the non-empty, non-comment lines of a GameControllerDB file."""
    lines = (line.strip() for line in text.splitlines())
    return [line for line in lines if line and not line.startswith("#")]


def load_mappings(console: Console, paths: List[Path]) -> int:
    """
    Load controller mappings one line at a time.

    Loading a whole file in one call silently gives up at the first malformed
    line, so each mapping is added on its own and failures are reported.
    """
    loaded = 0
    for path in paths:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            console.print(f"[red]Failed to read SDL mapping {path}: {exc}[/red]")
            continue
        count = 0
        for line in mapping_lines(text):
            if sdl2.SDL_GameControllerAddMapping(line.encode()) < 0:
                console.print(f"[yellow]Skipping bad mapping in {path}: {sdl_error()}[/yellow]")
                continue
            count += 1
        console.print(f"[green]Loaded {count} SDL mapping(s) from {path}[/green]")
        loaded += count
    return loaded


def prepare_mappings(console: Console, extra: List[str], update: bool, url: str) -> int:
    """Fetch the bundled DB if needed, then load it plus any user-supplied mapping files."""
    if update or not DEFAULT_MAPPING_PATH.exists():
        download_controller_db(console, DEFAULT_MAPPING_PATH, url)
    paths: List[Path] = []
    if DEFAULT_MAPPING_PATH.exists():
        paths.append(DEFAULT_MAPPING_PATH)
    paths.extend(Path(p).expanduser() for p in extra)
    return load_mappings(console, paths)


class SDLGameController:
    def __init__(self, controller: sdl2.SDL_GameController) -> None:
        self.controller = controller
        joystick = sdl2.SDL_GameControllerGetJoystick(controller)
        self.instance_id = int(sdl2.SDL_JoystickInstanceID(joystick))

    @classmethod
    def open(cls, index: int) -> "SDLGameController":
        controller = sdl2.SDL_GameControllerOpen(index)
        if not controller:
            raise RuntimeError(f"Failed to open controller {index}: {sdl_error()}")
        return cls(controller)

    def name(self) -> str:
        name = sdl2.SDL_GameControllerName(self.controller)
        if not name:
            return "Unknown"
        if isinstance(name, bytes):
            return name.decode(errors="ignore")
        return str(name)

    def button(self, button: Button) -> bool:
        return bool(sdl2.SDL_GameControllerGetButton(self.controller, BUTTON_MAP[button]))

    def axis(self, axis: Axis) -> int:
        return int(sdl2.SDL_GameControllerGetAxis(self.controller, AXIS_MAP[axis]))

    def set_rumble(self, low_frequency: int, high_frequency: int, duration_ms: int) -> None:
        if sdl2.SDL_GameControllerRumble(self.controller, low_frequency, high_frequency, duration_ms) != 0:
            raise RumbleError(sdl_error())

    def close(self) -> None:
        sdl2.SDL_GameControllerClose(self.controller)


class ControllerRegistry:
    """Controllers currently open, keyed by SDL instance id."""

    def __init__(self, console: Console) -> None:
        self.console = console
        self.active_controllers: Dict[int, SDLGameController] = {}

    def __len__(self) -> int:
        return len(self.active_controllers)

    def _report_count(self) -> None:
        self.console.print(f"(There are {len(self.active_controllers)} controllers connected)")

    def add_available_controllers(self) -> None:
        """Open every controller that was already plugged in at start-up."""
        count = sdl2.SDL_NumJoysticks()
        if count < 0:
            raise RuntimeError(f"Failed to enumerate joysticks: {sdl_error()}")
        for index in range(count):
            if not sdl2.SDL_IsGameController(index):
                name = sdl2.SDL_JoystickNameForIndex(index)
                name_str = name.decode(errors="ignore") if isinstance(name, bytes) else str(name)
                self.console.print(f"[yellow]Note: joystick {index} ({name_str}) can't be used as a controller[/yellow]")
                continue
            try:
                controller = SDLGameController.open(index)
            except RuntimeError as exc:
                self.console.print(f"[yellow]Note: joystick {index} can't be used as a controller: {exc}[/yellow]")
                continue
            self.active_controllers[controller.instance_id] = controller
            self.console.print(f"[cyan]Found “{controller.name()}” (#{controller.instance_id})[/cyan]")

    def add_controller(self, index: int) -> Optional[SDLGameController]:
        """Open a hotplugged controller by device index; duplicates are ignored."""
        try:
            controller = SDLGameController.open(index)
        except RuntimeError as exc:
            self.console.print(f"[red]Could not initialise connected joystick {index}: {exc}[/red]")
            return None
        # SDL hands back the same instance for a device that is already open.
        if controller.instance_id in self.active_controllers:
            controller.close()
            return self.active_controllers[controller.instance_id]
        self.active_controllers[controller.instance_id] = controller
        self.console.print(f"[green]Added “{controller.name()}” (#{controller.instance_id})[/green]")
        self._report_count()
        return controller

    def remove_controller(self, instance_id: int) -> Optional[SDLGameController]:
        controller = self.active_controllers.pop(instance_id, None)
        if controller is None:
            return None
        self.console.print(f"[yellow]Removed “{controller.name()}” (#{instance_id})[/yellow]")
        controller.close()
        self._report_count()
        return controller

    def get(self, instance_id: int) -> Optional[SDLGameController]:
        return self.active_controllers.get(instance_id)

    def tracked(self) -> Optional[SDLGameController]:
        """The controller being bridged: the oldest one still connected."""
        if not self.active_controllers:
            return None
        return self.active_controllers[min(self.active_controllers)]

    def close_all(self) -> None:
        for controller in self.active_controllers.values():
            controller.close()
        self.active_controllers.clear()


class SDLEventSource:
    """Drains the SDL event queue into ControllerEvents."""

    def __init__(self) -> None:
        self._event = sdl2.SDL_Event()

    def poll(self) -> Iterator[ControllerEvent]:
        event = self._event
        while sdl2.SDL_PollEvent(event):
            if event.type == sdl2.SDL_QUIT:
                yield ControllerEvent(EventKind.QUIT)
            elif event.type == sdl2.SDL_CONTROLLERDEVICEADDED:
                yield ControllerEvent(EventKind.DEVICE_ADDED, event.cdevice.which)
            elif event.type == sdl2.SDL_CONTROLLERDEVICEREMOVED:
                yield ControllerEvent(EventKind.DEVICE_REMOVED, event.cdevice.which)
            elif event.type == sdl2.SDL_CONTROLLERAXISMOTION:
                yield ControllerEvent(EventKind.INPUT_CHANGED, event.caxis.which)
            elif event.type in _BUTTON_EVENTS:
                yield ControllerEvent(EventKind.INPUT_CHANGED, event.cbutton.which)


def _button_label(value: int) -> str:
    for button, sdl_button in BUTTON_MAP.items():
        if sdl_button == value:
            return button.name
    return str(value)


def _axis_label(value: int) -> str:
    for axis, sdl_axis in AXIS_MAP.items():
        if sdl_axis == value:
            return axis.name
    return str(value)


def print_events(registry: ControllerRegistry, console: Console) -> None:
    """Print every controller event until quit, rumbling the pad on axis motion."""
    console.print("[cyan]Printing all controller events...[/cyan]")
    event = sdl2.SDL_Event()
    while True:
        if not sdl2.SDL_WaitEvent(event):
            raise RuntimeError(f"SDL_WaitEvent failed: {sdl_error()}")
        if event.type == sdl2.SDL_QUIT:
            break
        if event.type == sdl2.SDL_CONTROLLERDEVICEADDED:
            registry.add_controller(event.cdevice.which)
        elif event.type == sdl2.SDL_CONTROLLERDEVICEREMOVED:
            registry.remove_controller(event.cdevice.which)
        elif event.type == sdl2.SDL_CONTROLLERAXISMOTION:
            controller = registry.get(event.caxis.which)
            if controller is None:
                continue
            console.print(
                f"“{controller.name()}” (#{event.caxis.which}): {_axis_label(event.caxis.axis)}: {event.caxis.value}"
            )
            try:
                controller.set_rumble(0xFFFF, 0xFFFF, 500)
            except RumbleError:
                pass
        elif event.type in _BUTTON_EVENTS:
            controller = registry.get(event.cbutton.which)
            if controller is None:
                continue
            state = "down" if event.type == sdl2.SDL_CONTROLLERBUTTONDOWN else "up"
            console.print(
                f"“{controller.name()}” (#{event.cbutton.which}): {_button_label(event.cbutton.button)}: {state}"
            )
