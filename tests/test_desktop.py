import itertools
import sys
import types

import pytest

# No real display in CI: stand in for pyautogui and pygetwindow before import
calls = []
windows = []
active = {"win": None}

sys.modules["pyautogui"] = types.SimpleNamespace(
    FAILSAFE=True,
    position=lambda: (11, 22),
    moveTo=lambda x, y, **kw: calls.append(("moveTo", x, y)),
    mouseDown=lambda x, y, **kw: calls.append(("mouseDown", x, y)),
    mouseUp=lambda x, y, **kw: calls.append(("mouseUp", x, y)),
    press=lambda key: calls.append(("press", key)),
    hotkey=lambda *keys: calls.append(("hotkey",) + keys),
)
sys.modules["pygetwindow"] = types.SimpleNamespace(
    getAllWindows=lambda: list(windows),
    getActiveWindow=lambda: active["win"],
)

from kioskwatch.desktop import Desktop, WindowHandle, WindowLocator  # noqa: E402
from kioskwatch.errors import WindowUnavailable  # noqa: E402
from kioskwatch.frames import Point, Rect  # noqa: E402


class DummyWindow:
    def __init__(self, hwnd, title, broken=False):
        self._hWnd = hwnd
        self.title = title
        self.isMinimized = False
        self.broken = broken
        self.moved = None
        self.resized = None

    def activate(self):
        if self.broken:
            raise Exception("Error code from Windows: 1400")
        active["win"] = self

    def restore(self):
        self.isMinimized = False

    def moveTo(self, x, y):
        self.moved = (x, y)

    def resizeTo(self, w, h):
        self.resized = (w, h)


@pytest.fixture(autouse=True)
def reset():
    calls.clear()
    windows.clear()
    active["win"] = None
    yield


def test_corner_failsafe_is_off():
    # A cursor the operator left in a corner must not abort every action
    assert sys.modules["pyautogui"].FAILSAFE is False


def test_click_is_press_then_release():
    Desktop().click(5, 6)
    assert calls == [("mouseDown", 5, 6), ("mouseUp", 5, 6)]


def test_cursor_position():
    assert Desktop().cursor_position() == Point(11, 22)


def test_send_keys_maps_strokes():
    Desktop().send_keys("{F5}^w")
    assert calls == [("press", "f5"), ("hotkey", "ctrl", "w")]


def test_handles_compare_by_native_id():
    a = WindowHandle(ident=7, title="one")
    b = WindowHandle(ident=7, title="renamed")
    assert a == b
    assert a != WindowHandle(ident=8)


def test_active_window_and_is_alive():
    operator = DummyWindow(1, "Notepad")
    windows.append(operator)
    active["win"] = operator

    desktop = Desktop()
    handle = desktop.active_window()

    assert handle.ident == 1
    assert desktop.is_alive(handle)
    windows.clear()
    assert not desktop.is_alive(handle)
    assert not desktop.is_alive(None)


def test_activate_failure_becomes_window_unavailable():
    broken = DummyWindow(3, "Gone", broken=True)
    desktop = Desktop()
    with pytest.raises(WindowUnavailable):
        desktop.activate(WindowHandle(ident=3, title="Gone", native=broken))
    with pytest.raises(WindowUnavailable):
        desktop.activate(None)


def test_find_window_is_case_insensitive_substring():
    windows.extend([DummyWindow(1, ""), DummyWindow(2, "EarthCam - Dublin - Microsoft Edge")])
    locator = WindowLocator()

    assert locator.find_window("earthcam").ident == 2
    assert locator.find_window("earthcam", case_insensitive=False) is None
    assert locator.find_window("  ") is None


def test_load_or_find_launches_and_positions(monkeypatch):
    monkeypatch.setattr("kioskwatch.desktop.time.sleep", lambda s: None)
    operator = DummyWindow(1, "Notepad")
    windows.append(operator)
    active["win"] = operator
    browser = DummyWindow(2, "EarthCam Live")
    opened = []

    def opener(url):
        opened.append(url)
        windows.append(browser)

    locator = WindowLocator(opener=opener, launch_timeout=5)
    handle = locator.load_or_find("https://example.test", "earthcam", Rect(1920, 0, 1920, 1080))

    assert opened == ["https://example.test"]
    assert handle.ident == 2
    assert browser.moved == (1920, 0)
    assert browser.resized == (1920, 1080)
    assert ("press", "f11") in calls
    assert active["win"] is operator


def test_load_or_find_prefers_existing_window():
    windows.append(DummyWindow(2, "EarthCam Live"))
    locator = WindowLocator(opener=lambda url: pytest.fail("should not launch"))
    assert locator.load_or_find("https://example.test", "earthcam", Rect(0, 0, 10, 10)).ident == 2


def test_launch_gives_up_when_no_window_appears(monkeypatch):
    monkeypatch.setattr("kioskwatch.desktop.time.sleep", lambda s: None)
    ticks = itertools.count(0.0, 0.5)
    monkeypatch.setattr("kioskwatch.desktop.time.time", lambda: next(ticks))
    logs = []
    locator = WindowLocator(opener=lambda url: None, launch_timeout=1.0,
                            log_fn=lambda m, l: logs.append(l))

    assert locator.launch_and_position("https://example.test", "earthcam", Rect(0, 0, 10, 10)) is None
    assert logs[-1] == "ERROR"
    assert calls == []
