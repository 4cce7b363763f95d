"""
kioskwatch/actions.py - Fire a region's action without the operator noticing.

Whatever happens in between, the cursor goes back where it was and the
window that had focus gets it back. That's the whole contract.

Known gap: if the process dies halfway through (Ctrl+C, power cut) nothing
puts things back. We don't pretend otherwise.
"""

import time
from typing import Callable, Optional, Protocol

from .config import ClickAction, SendKeysAction, WatchRegion
from .errors import WindowUnavailable
from .frames import Point


LogFn = Callable[[str, str], None]


class DesktopLike(Protocol):
    def cursor_position(self) -> Point: ...
    def move_cursor(self, x: int, y: int) -> None: ...
    def click(self, x: int, y: int) -> None: ...
    def send_keys(self, sequence: str) -> None: ...
    def active_window(self): ...
    def is_alive(self, handle) -> bool: ...
    def activate(self, handle) -> None: ...


class ActionDispatcher:
    # Runs ClickAction / SendKeysAction and restores cursor + focus.

    def __init__(
        self,
        desktop: DesktopLike,
        target_window: Callable[[], object],
        settle_delay: float = 0.3,
        sleep: Callable[[float], None] = time.sleep,
        log_fn: Optional[LogFn] = None,
        echo_window: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.desktop = desktop
        # Resolved on every SendKeys so a restarted browser is picked up
        self._target_window = target_window
        self.settle_delay = settle_delay
        self._sleep = sleep
        self._log = log_fn or (lambda m, l: None)
        # Global key hooks deliver our own keystrokes late, from their own
        # thread. Treat the echo_window seconds after a send as ours too.
        self.echo_window = echo_window
        self._clock = clock
        self._sending = False
        self._quiet_until = 0.0

    @property
    def injecting(self) -> bool:
        """True while keys we sent may still be showing up in keyboard hooks."""
        return self._sending or self._clock() < self._quiet_until

    def dispatch(self, region: WatchRegion) -> None:
        action = region.action
        if isinstance(action, ClickAction):
            self.click(action)
        elif isinstance(action, SendKeysAction):
            self.send_keys(action)
        else:
            raise TypeError(f"Unknown action for region {region.name!r}: {action!r}")

    def click(self, action: ClickAction) -> None:
        home = self.desktop.cursor_position()
        focused = self.desktop.active_window()
        x, y = action.point.x, action.point.y

        try:
            self.desktop.move_cursor(x, y)
            if action.hover:
                # Nudge so the page sees a mousemove, then let the controls fade in
                self.desktop.move_cursor(x + 1, y + 1)
                self._sleep(action.hover_ms / 1000.0)
            self.desktop.click(x, y)
        finally:
            self._restore_cursor(home)
            self._restore_focus(focused)

    def send_keys(self, action: SendKeysAction) -> None:
        focused = self.desktop.active_window()

        try:
            target = self._target_window()
            if target is None or not self.desktop.is_alive(target):
                raise WindowUnavailable("Kiosk window is not open")
            self.desktop.activate(target)
            self._sleep(self.settle_delay)
            self._sending = True
            try:
                self.desktop.send_keys(action.keys)
            finally:
                self._sending = False
                self._quiet_until = self._clock() + self.echo_window
        finally:
            self._restore_focus(focused)

    # Each restore step runs on its own; a failed cursor move must not cost
    # the operator their focus.

    def _restore_cursor(self, home: Point) -> None:
        try:
            self.desktop.move_cursor(home.x, home.y)
        except Exception as e:
            self._log(f"Couldn't put the cursor back at {home.x},{home.y}: {e!r}", "WARN")

    def _restore_focus(self, focused) -> None:
        if focused is None:
            return
        try:
            self.desktop.activate(focused)
        except WindowUnavailable as e:
            # Operator closed their window meanwhile. Nothing to give back.
            self._log(f"Couldn't restore focus: {e}", "WARN")
