from __future__ import annotations

import asyncio
import json

import pytest
from fakes import FakeChannel

from wakestream.core import (
    FitMode,
    GamepadState,
    InputTransport,
    Viewport,
    map_pointer,
)


def _messages(channel: FakeChannel) -> list[dict]:
    return [json.loads(raw) for raw in channel.sent]


def _transport(
    channel: FakeChannel, viewport: Viewport | None = None
) -> InputTransport:
    viewport = viewport or Viewport(element_width=1920, element_height=1080)
    return InputTransport(channel, viewport=viewport, clock=lambda: 1.5)


def test_pointer_moves_coalesce_to_one_per_frame():
    channel = FakeChannel()
    transport = _transport(channel)

    for step in range(10):
        transport.pointer_move(100 + step * 10, 200 + step * 5)
    assert channel.sent == []

    assert transport.flush_frame() is True
    assert transport.flush_frame() is False

    messages = _messages(channel)
    assert len(messages) == 1
    move = messages[0]
    assert move["t"] == "mmoveAbs"
    assert move["x"] == pytest.approx(190 / 1920)
    assert move["y"] == pytest.approx(245 / 1080)
    assert move["inside"] == 1
    assert move["ts"] == 1500.0


def test_events_dropped_while_channel_not_open():
    channel = FakeChannel()
    channel.readyState = "connecting"
    transport = _transport(channel)

    assert transport.key_up("KeyA") is False
    transport.pointer_move(10, 10)
    assert transport.flush_frame() is False

    channel.readyState = "open"
    assert transport.flush_frame() is False
    assert transport.wheel(0, -120) is True
    assert [m["t"] for m in _messages(channel)] == ["mwheel"]


def test_key_repeat_is_suppressed():
    channel = FakeChannel()
    transport = _transport(channel)

    assert transport.key_down("KeyW") is True
    assert transport.key_down("KeyW", repeat=True) is False
    assert transport.key_down("KeyW") is False
    assert transport.key_up("KeyW") is True
    assert transport.key_down("KeyW") is True

    assert [(m["t"], m["k"]) for m in _messages(channel)] == [
        ("kdown", "KeyW"),
        ("kup", "KeyW"),
        ("kdown", "KeyW"),
    ]


def test_buttons_are_sent_immediately_with_coordinates():
    channel = FakeChannel()
    transport = _transport(channel)

    transport.pointer_down(0, 960, 540)
    transport.pointer_up(0, 960, 540)

    down, up = _messages(channel)
    assert (down["t"], down["b"], down["x"], down["y"]) == ("mdown", 0, 0.5, 0.5)
    assert up["t"] == "mup"


def test_contain_letterbox_maps_bars_outside():
    # 4:3 element showing 16:9 video leaves bars top and bottom
    viewport = Viewport(element_width=800, element_height=600)

    offset_x, offset_y, width, height = viewport.content_box()
    assert (offset_x, width) == (0, 800)
    assert height == pytest.approx(450)
    assert offset_y == pytest.approx(75)

    in_bar = map_pointer(viewport, 400, 20)
    assert in_bar.inside is False
    assert in_bar.y == 0.0

    center = map_pointer(viewport, 400, 300)
    assert (center.x, center.y, center.inside) == (0.5, 0.5, True)


def test_cover_and_fill_boxes():
    cover = Viewport(element_width=800, element_height=600, fit=FitMode.COVER)
    _, _, width, height = cover.content_box()
    assert height == 600
    assert width == pytest.approx(600 * 16 / 9)

    fill = Viewport(element_width=800, element_height=600, fit=FitMode.FILL)
    assert fill.content_box() == (0.0, 0.0, 800, 600)


def test_scale_down_keeps_intrinsic_size_when_it_fits():
    viewport = Viewport(
        element_width=1000,
        element_height=800,
        video_width=640,
        video_height=360,
        fit=FitMode.SCALE_DOWN,
    )
    assert viewport.content_box() == (180.0, 220.0, 640.0, 360.0)

    larger = Viewport(element_width=800, element_height=600, fit=FitMode.SCALE_DOWN)
    assert larger.content_box()[2] == 800


def test_map_pointer_without_viewport():
    assert map_pointer(None, 5, 5).inside is False


class FakePad:
    def __init__(self) -> None:
        self.state: GamepadState | None = GamepadState(
            id="Xbox Controller", index=0, axes=[0.02, -0.01], buttons=[False, False]
        )

    def read(self) -> GamepadState | None:
        return self.state


def test_gamepad_sends_only_on_change():
    channel = FakeChannel()
    transport = _transport(channel)
    pad = FakePad()
    poller = transport.attach_gamepad(pad, hz=500)

    assert poller.hz == 240
    assert poller.poll() is True
    assert poller.poll() is False

    pad.state = GamepadState(
        id="Xbox Controller", index=0, axes=[0.02, -0.01], buttons=[True, False]
    )
    assert poller.poll() is True

    messages = _messages(channel)
    assert [m["t"] for m in messages] == ["gp", "gp"]
    assert messages[1]["buttons"] == [1, 0]


def test_gamepad_resends_after_failed_send():
    channel = FakeChannel()
    channel.readyState = "closed"
    transport = _transport(channel)
    poller = transport.attach_gamepad(FakePad())

    assert poller.poll() is False
    channel.readyState = "open"
    assert poller.poll() is True


def test_gamepad_calibration_zeroes_axes():
    channel = FakeChannel()
    transport = _transport(channel)
    pad = FakePad()
    poller = transport.attach_gamepad(pad)

    assert poller.calibrate() is True
    poller.poll()
    assert _messages(channel)[-1]["axes"] == [0.0, 0.0]

    pad.state = None
    assert poller.calibrate() is False
    assert poller.poll() is False


def test_transport_frame_loop_flushes_and_stops():
    channel = FakeChannel()
    transport = _transport(channel)

    async def scenario():
        transport.start()
        transport.pointer_move(10, 10)
        await asyncio.sleep(0.05)
        await transport.stop()
        transport.pointer_move(20, 20)
        await asyncio.sleep(0.05)

    asyncio.run(scenario())
    assert [m["t"] for m in _messages(channel)] == ["mmoveAbs"]
