"""
kioskwatch/desktop.py - The real mouse, keyboard and windows.

Thin wrapper over pyautogui (cursor, clicks, keys) and pygetwindow (window
lookup and focus). Nothing clever lives here; the dispatcher decides what to
do, this just does it. Tests swap in a fake with the same methods.

pygetwindow is imported lazily: it refuses to import on platforms it
doesn't support, and nothing else in the package should care.
"""

from __future__ import annotations

import time
import webbrowser
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import pyautogui

from .errors import WindowUnavailable
from .frames import Point, Rect
from .keys import parse_key_sequence

# Corner failsafe off: the cursor we start from is the operator's, and a
# cursor parked in a corner would make every click and key press raise.
# Stop the watcher from its console instead.
pyautogui.FAILSAFE = False


@dataclass(frozen=True)
class WindowHandle:
    """
    Opaque, comparable reference to a top-level window. Equality is by the
    native id only; the window object rides along for activate().
    """
    ident: int
    title: str = field(default="", compare=False)
    native: Any = field(default=None, compare=False, repr=False)


def _gw():
    import pygetwindow as gw  # type: ignore
    return gw


def _handle_for(win) -> Optional[WindowHandle]:
    if win is None:
        return None
    ident = getattr(win, "_hWnd", None)
    if ident is None:
        ident = id(win)
    return WindowHandle(ident=int(ident), title=getattr(win, "title", "") or "", native=win)


class Desktop:
    # The one shared resource: the operator's cursor and focus.

    def cursor_position(self) -> Point:
        x, y = pyautogui.position()
        return Point(int(x), int(y))

    def move_cursor(self, x: int, y: int) -> None:
        pyautogui.moveTo(x, y, _pause=False)

    def click(self, x: int, y: int) -> None:
        # Explicit press + release, no drag, no hold
        pyautogui.mouseDown(x, y, _pause=False)
        pyautogui.mouseUp(x, y, _pause=False)

    def send_keys(self, sequence: str) -> None:
        for stroke in parse_key_sequence(sequence):
            if stroke.is_chord:
                pyautogui.hotkey(*stroke.keys)
            else:
                pyautogui.press(stroke.keys[0])

    def active_window(self) -> Optional[WindowHandle]:
        return _handle_for(_gw().getActiveWindow())

    def is_alive(self, handle: Optional[WindowHandle]) -> bool:
        if handle is None:
            return False
        return any(
            _handle_for(w) == handle for w in _gw().getAllWindows()
        )

    def activate(self, handle: Optional[WindowHandle]) -> None:
        if handle is None or handle.native is None:
            raise WindowUnavailable("No window to activate")
        win = handle.native
        try:
            if getattr(win, "isMinimized", False):
                win.restore()
            win.activate()
        except Exception as e:
            # pygetwindow raises plain Exceptions from the win32 layer
            raise WindowUnavailable(f"Can't activate {handle.title!r}: {e}") from e


class WindowLocator:
    """
    Finds the kiosk browser window, or opens it.

    launch_and_position() is the old "LoadOrFindBrowser" dance: open the URL,
    wait for the window, drag it onto the target screen, F11 it, and hand
    focus back to whoever had it.
    """

    def __init__(
        self,
        desktop: Optional[Desktop] = None,
        launch_timeout: float = 10.0,
        settle_delay: float = 0.3,
        opener: Callable[[str], Any] = webbrowser.open,
        log_fn: Optional[Callable[[str, str], None]] = None,
    ) -> None:
        self.desktop = desktop or Desktop()
        self.launch_timeout = launch_timeout
        self.settle_delay = settle_delay
        self._open = opener
        self._log = log_fn or (lambda m, l: None)

    def find_window(self, title: str, case_insensitive: bool = True) -> Optional[WindowHandle]:
        needle = title.strip()
        if not needle:
            return None
        if case_insensitive:
            needle = needle.lower()

        for win in _gw().getAllWindows():
            win_title = (getattr(win, "title", "") or "").strip()
            if not win_title:
                continue
            hay = win_title.lower() if case_insensitive else win_title
            if needle in hay:
                return _handle_for(win)
        return None

    def launch_and_position(self, url: str, title: str, screen: Rect) -> Optional[WindowHandle]:
        previous = self.desktop.active_window()
        self._log(f"Opening {url}", "INFO")
        self._open(url)

        handle = None
        deadline = time.time() + self.launch_timeout
        while time.time() < deadline:
            time.sleep(self.settle_delay)
            handle = self.find_window(title)
            if handle:
                break

        if handle is None:
            self._log(f"No window titled '{title}' after {self.launch_timeout:.0f}s", "ERROR")
            return None

        win = handle.native
        win.moveTo(screen.x, screen.y)
        win.resizeTo(screen.width, screen.height)
        self.desktop.activate(handle)
        time.sleep(self.settle_delay)
        self.desktop.send_keys("{F11}")
        time.sleep(self.settle_delay)

        if previous is not None:
            try:
                self.desktop.activate(previous)
            except WindowUnavailable as e:
                self._log(f"Couldn't hand focus back: {e}", "WARN")

        self._log(f"Browser ready: {handle.title}", "SUCCESS")
        return handle

    def load_or_find(self, url: str, title: str, screen: Rect) -> Optional[WindowHandle]:
        handle = self.find_window(title)
        if handle is not None:
            return handle
        if not url:
            return None
        return self.launch_and_position(url, title, screen)
