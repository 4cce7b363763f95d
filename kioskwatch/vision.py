"""
kioskwatch/vision.py - Screen capture and reference images.
"""

from pathlib import Path
from typing import Optional, Union

import cv2
import mss
import numpy as np
from mss.exception import ScreenShotError

from .errors import CaptureFailure, ReferenceImageLoadFailure
from .frames import RawFrame, Rect


def load_reference_image(path: Union[str, Path]) -> RawFrame:
    """
    Read a reference PNG as a BGR frame. Alpha is dropped so it lines up with
    what ScreenCapture produces.
    """
    img = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if img is None:
        raise ReferenceImageLoadFailure(f"Can't read reference image: {path}")
    return RawFrame(pixels=img)


class ScreenCapture:
    # Screen grabber using mss (way faster than pyautogui)
    #
    # screen_index is 0-based like the OS numbers screens. mss keeps the
    # "all monitors" virtual screen at [0], so screen N lives at [N + 1].

    def __init__(self, screen_index: int = 0) -> None:
        self._sct: Optional[mss.mss] = None
        self.screen_index = screen_index
        self._sequence = 0

    def __enter__(self):
        self._sct = mss.mss()
        return self

    def __exit__(self, exc_type, exc_str, exc_tb):
        self.close()

    def close(self) -> None:
        if self._sct:
            self._sct.close()
            self._sct = None

    def _handle(self):
        if not self._sct:
            self._sct = mss.mss()
        return self._sct

    def list_monitors(self) -> list:
        # Physical monitors only, without the virtual "all" entry
        return self._handle().monitors[1:]

    def _monitor(self) -> dict:
        monitors = self.list_monitors()
        if not 0 <= self.screen_index < len(monitors):
            raise CaptureFailure(
                f"Screen {self.screen_index} not found ({len(monitors)} connected)"
            )
        return monitors[self.screen_index]

    def monitor_bounds(self) -> Rect:
        m = self._monitor()
        return Rect(m["left"], m["top"], m["width"], m["height"])

    def capture(self) -> RawFrame:
        """Grab the whole configured screen as one BGR frame."""
        monitor = self._monitor()
        try:
            img = self._handle().grab(monitor)
        except ScreenShotError as e:
            raise CaptureFailure(f"Screen grab failed: {e}") from e

        frame = np.array(img)
        frame = cv2.cvtColor(frame, cv2.COLOR_BGRA2BGR)

        self._sequence += 1
        return RawFrame(
            pixels=frame,
            origin=(monitor["left"], monitor["top"]),
            sequence=self._sequence,
        )
