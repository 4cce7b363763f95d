from typing import List, Optional

import numpy as np
import pytest

from kioskwatch.config import ClickAction, SendKeysAction, WatchRegion
from kioskwatch.errors import CaptureFailure, WindowUnavailable
from kioskwatch.frames import Point, RawFrame, Rect


def make_frame(width: int = 8, height: int = 6, fill: Optional[int] = None, seq: int = 0) -> RawFrame:
    if fill is None:
        pixels = (np.arange(width * height * 3) % 251).astype(np.uint8).reshape(height, width, 3)
    else:
        pixels = np.full((height, width, 3), fill, dtype=np.uint8)
    return RawFrame(pixels=pixels, sequence=seq)


def make_region(**overrides) -> WatchRegion:
    values = dict(
        name="test-region",
        bounds=Rect(0, 0, 4, 3),
        action=ClickAction(point=Point(960, 540)),
    )
    values.update(overrides)
    return WatchRegion(**values)


class DummyDesktop:
    def __init__(self, cursor=(10, 20), active="operator", windows=("operator", "kiosk")) -> None:
        self.cursor = Point(*cursor)
        self.active = active
        self.windows = set(windows)
        self.events: List[tuple] = []

    def cursor_position(self) -> Point:
        return self.cursor

    def move_cursor(self, x: int, y: int) -> None:
        self.cursor = Point(x, y)
        self.events.append(("move", x, y))

    def click(self, x: int, y: int) -> None:
        self.events.append(("click", x, y))

    def send_keys(self, sequence: str) -> None:
        self.events.append(("keys", sequence, self.active))

    def active_window(self):
        return self.active

    def is_alive(self, handle) -> bool:
        return handle in self.windows

    def activate(self, handle) -> None:
        if handle not in self.windows:
            raise WindowUnavailable(f"{handle} is gone")
        self.active = handle
        self.events.append(("activate", handle))

    def clicks(self):
        return [e for e in self.events if e[0] == "click"]


class DummyReader:
    def __init__(self, text: str = "") -> None:
        self.text = text
        self.calls: List[RawFrame] = []

    def recognize(self, frame: RawFrame) -> str:
        self.calls.append(frame)
        return self.text


class DummyCapture:
    """Hands out the queued frames (or raises queued exceptions), then calls on_empty."""

    def __init__(self, items, on_empty=None) -> None:
        self.items = list(items)
        self.on_empty = on_empty

    def capture(self) -> RawFrame:
        if not self.items:
            if self.on_empty:
                self.on_empty()
            raise CaptureFailure("no more frames")
        item = self.items.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture()
def desktop():
    return DummyDesktop()


@pytest.fixture()
def reader():
    return DummyReader()


@pytest.fixture()
def sleeps():
    return []


@pytest.fixture()
def send_keys_region():
    return make_region(name="reload", expected_text="Nine", action=SendKeysAction(keys="{F5}"))
