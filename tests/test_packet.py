import pytest

from conftest import FakeController
from ps2ce_bridge.packet import (
    EXTENDED_PACKET_LENGTH,
    MINIMAL_PACKET_LENGTH,
    NEUTRAL_PACKET,
    Axis,
    Button,
    CommunicationMode,
    ControllerSnapshot,
    TriggerMode,
    build_extended_packet,
    build_minimal_packet,
    build_packet,
    format_packet,
)

NEUTRAL_BYTES = bytes([0x5A, 0xFF, 0xFF, 0x80, 0x80, 0x80, 0x80] + [0] * 12 + [0x55])


def busy_snapshot() -> ControllerSnapshot:
    return ControllerSnapshot(
        buttons={Button.DPAD_LEFT: True, Button.A: True},
        axes={
            Axis.TRIGGER_LEFT: 32767,
            Axis.RIGHT_X: -24000,
            Axis.RIGHT_Y: 16500,
            Axis.LEFT_X: 255,
            Axis.LEFT_Y: -4096,
        },
    )


def test_neutral_packet_constant():
    assert NEUTRAL_PACKET == NEUTRAL_BYTES
    assert len(NEUTRAL_PACKET) == EXTENDED_PACKET_LENGTH


@pytest.mark.parametrize("normalise", [False, True])
def test_neutral_controller_builds_neutral_packet(normalise):
    packet = build_extended_packet(ControllerSnapshot.neutral(), TriggerMode.NORMAL, normalise)
    assert packet == NEUTRAL_BYTES


def test_busy_controller_normal_mode():
    packet = build_extended_packet(busy_snapshot(), TriggerMode.NORMAL, normalise_sticks=True)
    assert packet[0] == 0x5A
    # Left is the top bit of buttons1; Cross and L2 are bits 6 and 0 of buttons2.
    assert packet[1] == (~0b10000000) & 0xFF
    assert packet[2] == (~0b01000001) & 0xFF
    assert packet[3:7] == bytes([0x18, 0xC6, 0x81, 0x6E])
    # right, left, up, down, triangle, circle, cross, square, L1, R1, L2, R2
    assert packet[7:19] == bytes([0, 0xFF, 0, 0, 0, 0, 0xFF, 0, 0, 0, 0xFF, 0])
    assert packet[19] == 0x55


def test_sticks_without_normalisation():
    packet = build_extended_packet(busy_snapshot(), TriggerMode.NORMAL, normalise_sticks=False)
    # -24000 >> 8 == -94, 16500 >> 8 == 64, 255 >> 8 == 0, -4096 >> 8 == -16
    assert packet[3:7] == bytes([0x22, 0xC0, 0x80, 0x70])


def test_guide_sets_mode_byte():
    snapshot = ControllerSnapshot(buttons={Button.GUIDE: True})
    assert build_extended_packet(snapshot)[19] == 0xAA


def test_buttons1_bit_order():
    snapshot = ControllerSnapshot(buttons={Button.BACK: True, Button.START: True, Button.DPAD_UP: True})
    # Left Down Right Up Start R3 L3 Select
    assert build_extended_packet(snapshot)[1] == (~0b00011001) & 0xFF


def test_buttons2_bit_order():
    snapshot = ControllerSnapshot(
        buttons={Button.X: True, Button.Y: True, Button.RIGHT_SHOULDER: True},
        axes={Axis.TRIGGER_RIGHT: 32767},
    )
    # Square Cross Circle Triangle R1 L1 R2 L2
    assert build_extended_packet(snapshot)[2] == (~0b10011010) & 0xFF


def test_right_stick_trigger_mode():
    snapshot = ControllerSnapshot(axes={Axis.RIGHT_Y: 32767, Axis.TRIGGER_LEFT: 32767})
    packet = build_extended_packet(snapshot, TriggerMode.RIGHT_STICK)
    assert packet[2] == (~0b00000010) & 0xFF  # R2 only
    assert packet[4] == 0xFF  # right Y now carries left trigger minus right trigger
    assert packet[17] == 0x00  # L2 pressure
    assert packet[18] == 0xFF  # R2 pressure


def test_right_stick_trigger_mode_pulling_up():
    snapshot = ControllerSnapshot(axes={Axis.RIGHT_Y: -32768, Axis.TRIGGER_RIGHT: 32767})
    packet = build_extended_packet(snapshot, TriggerMode.RIGHT_STICK)
    assert packet[2] == (~0b00000001) & 0xFF  # L2 only
    assert packet[4] == 0x00
    assert packet[17] == 0xFF
    assert packet[18] == 0x00


def test_cross_and_square_trigger_mode():
    snapshot = ControllerSnapshot(buttons={Button.A: True}, axes={Axis.TRIGGER_RIGHT: 32767})
    packet = build_extended_packet(snapshot, TriggerMode.CROSS_AND_SQUARE)
    # A drives L2, right trigger drives Cross, left trigger (released) drives Square.
    assert packet[2] == (~0b01000001) & 0xFF
    assert packet[13] == 0xFF  # cross pressure
    assert packet[14] == 0x00  # square pressure
    assert packet[17] == 0xFF  # L2 pressure


def test_cross_and_square_ignores_face_buttons_for_cross():
    snapshot = ControllerSnapshot(buttons={Button.X: True})
    packet = build_extended_packet(snapshot, TriggerMode.CROSS_AND_SQUARE)
    assert packet[2] == (~0b00000010) & 0xFF  # X is R2 here, not Square


@pytest.mark.parametrize("trigger_mode", list(TriggerMode))
@pytest.mark.parametrize("normalise", [False, True])
def test_minimal_packet_is_prefix_of_extended(trigger_mode, normalise):
    for snapshot in (ControllerSnapshot.neutral(), busy_snapshot()):
        extended = build_extended_packet(snapshot, trigger_mode, normalise)
        minimal = build_minimal_packet(snapshot, trigger_mode, normalise)
        assert len(minimal) == MINIMAL_PACKET_LENGTH
        assert extended[:MINIMAL_PACKET_LENGTH] == minimal


def test_building_twice_is_identical():
    snapshot = busy_snapshot()
    first = build_extended_packet(snapshot, TriggerMode.RIGHT_STICK, True)
    second = build_extended_packet(snapshot, TriggerMode.RIGHT_STICK, True)
    assert first == second


def test_build_packet_dispatches_on_mode():
    snapshot = busy_snapshot()
    assert len(build_packet(snapshot, CommunicationMode.MINIMAL)) == MINIMAL_PACKET_LENGTH
    assert len(build_packet(snapshot, CommunicationMode.EXTENDED)) == EXTENDED_PACKET_LENGTH
    assert len(build_packet(snapshot, CommunicationMode.UNDETERMINED)) == EXTENDED_PACKET_LENGTH


def test_snapshot_capture_reads_controller():
    controller = FakeController(buttons={Button.B: True}, axes={Axis.LEFT_X: -100})
    snapshot = ControllerSnapshot.capture(controller)
    assert snapshot.button(Button.B)
    assert not snapshot.button(Button.A)
    assert snapshot.axis(Axis.LEFT_X) == -100
    assert snapshot.axis(Axis.RIGHT_Y) == 0
    assert set(snapshot.buttons) == set(Button)
    assert set(snapshot.axes) == set(Axis)


def test_snapshot_does_not_follow_controller():
    controller = FakeController(buttons={Button.B: True})
    snapshot = ControllerSnapshot.capture(controller)
    controller.buttons[Button.B] = False
    assert snapshot.button(Button.B)


def test_format_packet():
    assert format_packet(b"\x5a\x00\xff") == "5a 00 ff"
    assert format_packet(b"") == ""
